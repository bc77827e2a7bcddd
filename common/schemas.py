"""Pydantic schemas shared across the services."""
from __future__ import annotations

from datetime import date, datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

from .booking_states import BookingState
from .models import BookingType, PaymentStatus, RoleEnum, RoomStatus, UserStatus


class Envelope(BaseModel):
    success: bool = True
    message: Optional[str] = None


class UserCreate(BaseModel):
    username: str = Field(..., min_length=3, max_length=50)
    password: str = Field(..., min_length=6)
    role: RoleEnum = RoleEnum.GUEST


class LoginRequest(BaseModel):
    username: str
    password: str
    role: RoleEnum


class UserStatusUpdate(BaseModel):
    status: UserStatus


class UserRead(BaseModel):
    id: int
    username: str
    role: RoleEnum
    status: UserStatus
    created_at: datetime

    model_config = {"from_attributes": True}


class UserResponse(Envelope):
    user: UserRead


class UserListResponse(Envelope):
    users: List[UserRead]


class LoginResponse(Envelope):
    user: UserRead
    access_token: str
    token_type: str = "bearer"


class RoomBase(BaseModel):
    room_number: str = Field(..., min_length=1, max_length=20)
    room_type: str = Field(..., min_length=1, max_length=50)
    price: float = Field(..., ge=0)
    capacity: Optional[int] = Field(None, ge=1)
    floor_number: Optional[int] = None
    size_sqm: Optional[float] = Field(None, ge=0)
    description: Optional[str] = None
    amenities: Optional[str] = None
    image_data: Optional[str] = None


class RoomCreate(RoomBase):
    status: RoomStatus = RoomStatus.AVAILABLE

    @field_validator("status")
    @classmethod
    def not_occupied(cls, value: RoomStatus) -> RoomStatus:
        if value == RoomStatus.OCCUPIED:
            raise ValueError("a new room cannot start Occupied")
        return value


class RoomUpdate(BaseModel):
    room_number: Optional[str] = Field(None, min_length=1, max_length=20)
    room_type: Optional[str] = Field(None, min_length=1, max_length=50)
    price: Optional[float] = Field(None, ge=0)
    status: Optional[RoomStatus] = None
    capacity: Optional[int] = Field(None, ge=1)
    floor_number: Optional[int] = None
    size_sqm: Optional[float] = Field(None, ge=0)
    description: Optional[str] = None
    amenities: Optional[str] = None
    image_data: Optional[str] = None

    @field_validator("room_number", "room_type", "price", "status", mode="before")
    @classmethod
    def not_null(cls, value):
        if value is None:
            raise ValueError("may be omitted but not null")
        return value


class RoomRead(RoomBase):
    id: int
    status: RoomStatus

    model_config = {"from_attributes": True}


class RoomResponse(Envelope):
    room: RoomRead


class RoomListResponse(Envelope):
    rooms: List[RoomRead]


class RoomTypeAvailability(BaseModel):
    room_type: str
    total_rooms: int
    booked: int
    available: int


class OnlineBookingCreate(BaseModel):
    guest_name: str = Field(..., min_length=1, max_length=100)
    room_type: str = Field(..., min_length=1, max_length=50)
    checkin_date: date
    checkout_date: date
    phone: str = Field(..., min_length=1, max_length=30)


class ManualBookingCreate(OnlineBookingCreate):
    user_id: int
    room_number: str = Field(..., min_length=1, max_length=20)
    payment_proof: str = Field(..., min_length=1)


class BookingUpdate(BaseModel):
    guest_name: Optional[str] = Field(None, min_length=1, max_length=100)
    phone: Optional[str] = Field(None, min_length=1, max_length=30)
    checkin_date: Optional[date] = None
    checkout_date: Optional[date] = None


class ReceptionistDecision(BaseModel):
    action: Literal["accept", "decline"]
    room_number: Optional[str] = None
    gcash_number: Optional[str] = None


class ReceptionistActionRequest(BaseModel):
    action: Literal["checkin", "checkout", "cancel"]


class CheckRequest(BaseModel):
    action: Literal["checkin", "checkout"]


class PaymentUpload(BaseModel):
    payment_image: Optional[str] = None


class PaymentVerification(BaseModel):
    approved: bool
    amount: Optional[float] = Field(None, ge=0)


class BookingRead(BaseModel):
    id: int
    user_id: int
    guest_name: str
    room_number: Optional[str]
    room_type: str
    checkin_date: date
    checkout_date: date
    phone: str
    booking_type: BookingType
    state: BookingState
    status: str
    receptionist_status: str
    payment_status: PaymentStatus
    payment_uploaded: bool
    payment_verified: bool
    payment_image: Optional[str] = None
    gcash_number: Optional[str] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class BookingResponse(Envelope):
    booking: BookingRead


class BookingListResponse(Envelope):
    bookings: List[BookingRead]


class ManualBookingResponse(BookingResponse):
    nights: int
    total_amount: float
    payment_id: int


class ExpectedAmountResponse(Envelope):
    booking_id: int
    expected_amount: float


class AvailabilityResponse(Envelope):
    room_number: str
    checkin_date: date
    checkout_date: date
    available: bool


class PaymentCreate(BaseModel):
    booking_id: int
    amount: float = Field(..., ge=0)
    payment_method: str = Field(..., min_length=1, max_length=30)
    room_type: Optional[str] = None


class PaymentConfirm(BaseModel):
    image_data: Optional[str] = None
    amount: Optional[float] = Field(None, ge=0)


class PaymentRead(BaseModel):
    id: int
    booking_id: int
    room_type: Optional[str]
    amount: float
    payment_method: str
    status: PaymentStatus
    image_data: Optional[str] = None
    payment_date: datetime

    model_config = {"from_attributes": True}


class PaymentResponse(Envelope):
    payment: PaymentRead


class PaymentListResponse(Envelope):
    payments: List[PaymentRead]


class RatingCreate(BaseModel):
    booking_id: int
    rating: int = Field(..., ge=1, le=5)
    comment: Optional[str] = Field(None, max_length=1000)


class RatingRead(BaseModel):
    id: int
    booking_id: int
    user_id: int
    room_number: Optional[str]
    room_type: str
    rating: int
    comment: Optional[str]
    created_at: datetime

    model_config = {"from_attributes": True}


class RatingResponse(Envelope):
    rating: RatingRead


class RatingListResponse(Envelope):
    ratings: List[RatingRead]


class RatingSummary(BaseModel):
    count: int
    avg_rating: Optional[float]


class RatingSummaryResponse(Envelope):
    summary: RatingSummary


class DashboardStats(BaseModel):
    total_rooms: int
    occupied_rooms: int
    current_guests: int
    monthly_revenue: float


class DashboardResponse(Envelope):
    stats: DashboardStats
