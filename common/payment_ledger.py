"""Append-only payment records and the amounts derived from them."""
from __future__ import annotations

import logging
import math
from datetime import date, datetime, timedelta
from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from .access import STAFF_ROLES, authorize
from .database import transaction
from .errors import NotFoundError, ValidationError
from .models import Booking, BookingType, Payment, PaymentStatus, Room, User, utcnow

logger = logging.getLogger(__name__)

GCASH = "GCash"
MANUAL = "Manual"
CASH_PROOF = "Cash/Proof"


def nights_between(checkin: date, checkout: date) -> int:
    """Billable nights for a stay; any partial day counts and the minimum is one."""

    seconds = (checkout - checkin).total_seconds()
    return max(1, math.ceil(seconds / timedelta(days=1).total_seconds()))


def stay_amount(price: float, checkin: date, checkout: date) -> float:
    return nights_between(checkin, checkout) * float(price or 0)


def record_payment(
    db: Session,
    booking_id: int,
    room_type: Optional[str],
    amount: float,
    method: str,
    status: PaymentStatus = PaymentStatus.PAID,
    image_data: Optional[str] = None,
) -> Payment:
    """Append a payment row inside the caller's transaction."""

    if booking_id is None:
        raise ValidationError("Payment must reference a booking")
    if db.get(Booking, booking_id) is None:
        raise NotFoundError(f"Booking #{booking_id} not found")

    payment = Payment(
        booking_id=booking_id,
        room_type=room_type,
        amount=amount,
        payment_method=method,
        status=status,
        image_data=image_data,
        payment_date=utcnow(),
    )
    db.add(payment)
    db.flush()
    logger.info("Recorded %s payment #%s of %.2f for booking #%s", method, payment.id, amount, booking_id)
    return payment


def expected_amount(db: Session, booking_id: int) -> float:
    """Nights times the room's *current* price; zero while no room is assigned."""

    booking = db.get(Booking, booking_id)
    if booking is None:
        raise NotFoundError(f"Booking #{booking_id} not found")
    if not booking.room_number:
        return 0.0
    room = db.query(Room).filter(Room.room_number == booking.room_number).first()
    if room is None:
        return 0.0
    return stay_amount(room.price, booking.checkin_date, booking.checkout_date)


def list_payments(db: Session) -> List[Payment]:
    return db.query(Payment).order_by(Payment.payment_date.desc()).all()


def list_verified_payments(db: Session) -> List[Payment]:
    return (
        db.query(Payment)
        .filter(Payment.status == PaymentStatus.PAID)
        .order_by(Payment.payment_date.desc())
        .all()
    )


def list_pending_verifications(db: Session) -> List[Booking]:
    """Online bookings whose proof was uploaded but not yet verified."""

    return (
        db.query(Booking)
        .filter(
            Booking.payment_uploaded.is_(True),
            Booking.payment_verified.is_(False),
            Booking.booking_type == BookingType.ONLINE,
        )
        .order_by(Booking.created_at.asc())
        .all()
    )


def revenue_since(db: Session, since: datetime) -> float:
    total = db.query(func.sum(Payment.amount)).filter(Payment.payment_date >= since).scalar()
    return float(total or 0)


def add_payment(
    db: Session,
    caller: User,
    booking_id: int,
    amount: float,
    method: str,
    room_type: Optional[str] = None,
) -> Payment:
    """Staff-entered payment for an existing booking."""

    authorize(caller, *STAFF_ROLES)
    with transaction(db):
        booking = db.get(Booking, booking_id)
        if booking is None:
            raise NotFoundError(f"Booking #{booking_id} not found")
        return record_payment(db, booking_id, room_type or booking.room_type, amount, method)


def confirm_payment(db: Session, caller: User, booking_id: int, image_data: Optional[str], amount: Optional[float]) -> Payment:
    """Mark a booking paid on the strength of a receptionist-held proof."""

    authorize(caller, *STAFF_ROLES)
    if not image_data:
        raise ValidationError("Payment image confirmation is required.")

    with transaction(db):
        booking = db.query(Booking).filter(Booking.id == booking_id).with_for_update().first()
        if booking is None:
            raise NotFoundError(f"Booking #{booking_id} not found.")
        booking.payment_status = PaymentStatus.PAID
        booking.payment_verified = True
        payment = record_payment(
            db,
            booking.id,
            booking.room_type,
            amount or 0,
            CASH_PROOF,
            image_data=image_data,
        )
    return payment
