"""SQLAlchemy models shared across all services."""
from __future__ import annotations

from datetime import date, datetime, timezone
from enum import Enum
from typing import List, Optional

from sqlalchemy import Boolean, Date, DateTime, Enum as SqlEnum, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .booking_states import BookingState, guest_label, receptionist_label
from .database import Base


def utcnow() -> datetime:
    """Naive UTC timestamp for the timezone-less DateTime columns."""

    return datetime.now(timezone.utc).replace(tzinfo=None)


class RoleEnum(str, Enum):
    ADMIN = "Admin"
    RECEPTIONIST = "Receptionist"
    GUEST = "Guest"


class UserStatus(str, Enum):
    PENDING = "Pending"
    ACCEPTED = "Accepted"
    DECLINED = "Declined"


class RoomStatus(str, Enum):
    AVAILABLE = "Available"
    OCCUPIED = "Occupied"
    RESERVED = "Reserved"
    MAINTENANCE = "Maintenance"


class BookingType(str, Enum):
    ONLINE = "online"
    MANUAL = "manual"


class PaymentStatus(str, Enum):
    UNPAID = "Unpaid"
    PAID = "Paid"


class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    username: Mapped[str] = mapped_column(String(50), unique=True, index=True)
    hashed_password: Mapped[str] = mapped_column(String(255))
    role: Mapped[RoleEnum] = mapped_column(SqlEnum(RoleEnum), default=RoleEnum.GUEST)
    status: Mapped[UserStatus] = mapped_column(SqlEnum(UserStatus), default=UserStatus.PENDING)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    bookings: Mapped[List["Booking"]] = relationship(back_populates="user")


class Room(Base):
    __tablename__ = "rooms"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    room_number: Mapped[str] = mapped_column(String(20), unique=True, index=True)
    room_type: Mapped[str] = mapped_column(String(50), index=True)
    price: Mapped[float] = mapped_column(Numeric(10, 2, asdecimal=False), default=0)
    status: Mapped[RoomStatus] = mapped_column(SqlEnum(RoomStatus), default=RoomStatus.AVAILABLE)
    capacity: Mapped[Optional[int]] = mapped_column(Integer, default=None)
    floor_number: Mapped[Optional[int]] = mapped_column(Integer, default=None)
    size_sqm: Mapped[Optional[float]] = mapped_column(Numeric(8, 2, asdecimal=False), default=None)
    description: Mapped[Optional[str]] = mapped_column(Text, default=None)
    amenities: Mapped[Optional[str]] = mapped_column(Text, default=None)
    image_data: Mapped[Optional[str]] = mapped_column(Text, default=None)


class Booking(Base):
    __tablename__ = "bookings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), index=True)
    guest_name: Mapped[str] = mapped_column(String(100))
    room_number: Mapped[Optional[str]] = mapped_column(ForeignKey("rooms.room_number"), index=True, default=None)
    room_type: Mapped[str] = mapped_column(String(50))
    checkin_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    checkout_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    phone: Mapped[str] = mapped_column(String(30))
    booking_type: Mapped[BookingType] = mapped_column(SqlEnum(BookingType), default=BookingType.ONLINE)
    state: Mapped[BookingState] = mapped_column(SqlEnum(BookingState), default=BookingState.PENDING, index=True)
    payment_status: Mapped[PaymentStatus] = mapped_column(SqlEnum(PaymentStatus), default=PaymentStatus.UNPAID)
    payment_uploaded: Mapped[bool] = mapped_column(Boolean, default=False)
    payment_verified: Mapped[bool] = mapped_column(Boolean, default=False)
    payment_image: Mapped[Optional[str]] = mapped_column(Text, default=None)
    gcash_number: Mapped[Optional[str]] = mapped_column(String(30), default=None)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    user: Mapped[User] = relationship(back_populates="bookings")
    payments: Mapped[List["Payment"]] = relationship(back_populates="booking")

    @property
    def status(self) -> str:
        return guest_label(self.state)

    @property
    def receptionist_status(self) -> str:
        return receptionist_label(self.state)


class Payment(Base):
    __tablename__ = "payments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    booking_id: Mapped[int] = mapped_column(ForeignKey("bookings.id"), index=True, nullable=False)
    room_type: Mapped[Optional[str]] = mapped_column(String(50), default=None)
    amount: Mapped[float] = mapped_column(Numeric(10, 2, asdecimal=False), default=0)
    payment_method: Mapped[str] = mapped_column(String(30))
    status: Mapped[PaymentStatus] = mapped_column(SqlEnum(PaymentStatus), default=PaymentStatus.PAID)
    image_data: Mapped[Optional[str]] = mapped_column(Text, default=None)
    payment_date: Mapped[datetime] = mapped_column(DateTime, default=utcnow, index=True)

    booking: Mapped[Booking] = relationship(back_populates="payments")


class Rating(Base):
    __tablename__ = "ratings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    booking_id: Mapped[int] = mapped_column(ForeignKey("bookings.id"), unique=True, index=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), index=True)
    room_number: Mapped[Optional[str]] = mapped_column(String(20), index=True, default=None)
    room_type: Mapped[str] = mapped_column(String(50), index=True)
    rating: Mapped[int] = mapped_column(Integer)
    comment: Mapped[Optional[str]] = mapped_column(Text, default=None)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, index=True)
