"""Booking lifecycle: creation, front-desk decisions, payment, stay and cancellation.

Every operation takes the request's ``Session`` and runs its reads and writes
inside :func:`common.database.transaction`. The booking row is locked with
``SELECT ... FOR UPDATE`` before its preconditions are checked, and room
assignment re-runs the overlap query under the same lock, so two front-desk
actions on the same booking or room serialize instead of both passing.
Business-rule failures are raised before the first write, and the
surrounding transaction rolls back anything else.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Any, Optional

from sqlalchemy.orm import Session

from .access import STAFF_ROLES, authorize, authorize_owner_or_staff, ensure_active, is_staff
from .availability import ensure_room_available
from .booking_states import (
    OWNER_CANCELLABLE_STATES,
    PRE_ARRIVAL_STATES,
    TERMINAL_STATES,
    BookingState,
    guest_label,
)
from .config import get_settings
from .database import transaction
from .errors import ConflictError, NotFoundError, StateError, ValidationError
from .models import Booking, BookingType, Payment, PaymentStatus, Room, RoomStatus, User
from .payment_ledger import GCASH, MANUAL, nights_between, record_payment

logger = logging.getLogger(__name__)


class Decision(str, Enum):
    ACCEPT = "accept"
    DECLINE = "decline"


class ReceptionistAction(str, Enum):
    CHECKIN = "checkin"
    CHECKOUT = "checkout"
    CANCEL = "cancel"


@dataclass
class ManualBooking:
    booking: Booking
    payment: Payment
    nights: int
    total_amount: float


def _require(value: Any, field: str) -> None:
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ValidationError(f"{field} is required")


def _validate_stay(checkin: Optional[date], checkout: Optional[date]) -> None:
    _require(checkin, "checkin_date")
    _require(checkout, "checkout_date")
    if checkout <= checkin:
        raise ValidationError("Check-out date must be after check-in date")


def _lock_booking(db: Session, booking_id: int) -> Booking:
    booking = db.query(Booking).filter(Booking.id == booking_id).with_for_update().first()
    if booking is None:
        raise NotFoundError(f"Booking #{booking_id} not found")
    return booking


def _lock_room(db: Session, room_number: str) -> Optional[Room]:
    return db.query(Room).filter(Room.room_number == room_number).with_for_update().first()


def _other_stay_in_room(db: Session, booking: Booking) -> Optional[Booking]:
    return (
        db.query(Booking)
        .filter(
            Booking.room_number == booking.room_number,
            Booking.state == BookingState.CHECKED_IN,
            Booking.id != booking.id,
        )
        .first()
    )


def _release_room(db: Session, booking: Booking) -> None:
    if not booking.room_number:
        return
    room = _lock_room(db, booking.room_number)
    if room is None or room.status == RoomStatus.MAINTENANCE:
        return
    if _other_stay_in_room(db, booking) is None:
        room.status = RoomStatus.AVAILABLE


def _parse(enum_cls, value: Any, label: str):
    try:
        return enum_cls(value)
    except ValueError as exc:
        allowed = ", ".join(member.value for member in enum_cls)
        raise ValidationError(f"Invalid {label} '{value}'. Expected one of: {allowed}") from exc


def create_online(
    db: Session,
    owner: User,
    guest_name: str,
    room_type: str,
    checkin: date,
    checkout: date,
    phone: str,
) -> Booking:
    """Guest request with no room yet; the front desk assigns one on accept."""

    ensure_active(owner)
    _require(guest_name, "guest_name")
    _require(room_type, "room_type")
    _require(phone, "phone")
    _validate_stay(checkin, checkout)

    with transaction(db):
        booking = Booking(
            user_id=owner.id,
            guest_name=guest_name.strip(),
            room_type=room_type,
            checkin_date=checkin,
            checkout_date=checkout,
            phone=phone,
            booking_type=BookingType.ONLINE,
            state=BookingState.PENDING,
            payment_status=PaymentStatus.UNPAID,
        )
        db.add(booking)
        db.flush()
        logger.info("Booking #%s requested online by user %s", booking.id, owner.id)
    return booking


def create_manual(
    db: Session,
    caller: User,
    user_id: int,
    guest_name: str,
    room_number: str,
    room_type: str,
    checkin: date,
    checkout: date,
    phone: str,
    payment_proof: str,
    allow_unpriced_room: Optional[bool] = None,
) -> ManualBooking:
    """Front-desk booking with the room assigned and payment taken up front."""

    authorize(caller, *STAFF_ROLES)
    _require(user_id, "user_id")
    _require(guest_name, "guest_name")
    _require(room_number, "room_number")
    _require(room_type, "room_type")
    _require(phone, "phone")
    _require(payment_proof, "payment_proof")
    _validate_stay(checkin, checkout)
    if allow_unpriced_room is None:
        allow_unpriced_room = get_settings().allow_unpriced_manual_rooms

    with transaction(db):
        if db.get(User, user_id) is None:
            raise NotFoundError(f"User #{user_id} not found")
        room = _lock_room(db, room_number)
        if room is None and not allow_unpriced_room:
            raise NotFoundError(f"Room {room_number} not found")
        ensure_room_available(db, room_number, checkin, checkout)

        nights = nights_between(checkin, checkout)
        price = float(room.price) if room is not None else 0.0
        total_amount = nights * price

        booking = Booking(
            user_id=user_id,
            guest_name=guest_name.strip(),
            room_number=room_number if room is not None else None,
            room_type=room_type,
            checkin_date=checkin,
            checkout_date=checkout,
            phone=phone,
            booking_type=BookingType.MANUAL,
            state=BookingState.ACCEPTED,
            payment_status=PaymentStatus.PAID,
            payment_uploaded=True,
            payment_verified=True,
            payment_image=payment_proof,
        )
        db.add(booking)
        db.flush()
        payment = record_payment(db, booking.id, room_type, total_amount, MANUAL, image_data=payment_proof)
        logger.info(
            "Manual booking #%s for room %s: %s night(s), total %.2f", booking.id, room_number, nights, total_amount
        )
    return ManualBooking(booking=booking, payment=payment, nights=nights, total_amount=total_amount)


def receptionist_decide(
    db: Session,
    caller: User,
    booking_id: int,
    action: str,
    room_number: Optional[str] = None,
    gcash_number: Optional[str] = None,
) -> Booking:
    """Accept an online request into a room, or decline it."""

    authorize(caller, *STAFF_ROLES)
    decision = _parse(Decision, action, "action")
    if decision is Decision.ACCEPT:
        _require(room_number, "room_number")
        _require(gcash_number, "gcash_number")

    with transaction(db):
        booking = _lock_booking(db, booking_id)
        if booking.booking_type != BookingType.ONLINE:
            raise StateError("Only online booking requests can be accepted or declined")
        if booking.state != BookingState.PENDING:
            raise StateError(f"Booking #{booking_id} is already {booking.state.value}")

        if decision is Decision.ACCEPT:
            if _lock_room(db, room_number) is None:
                raise NotFoundError(f"Room {room_number} not found")
            ensure_room_available(
                db, room_number, booking.checkin_date, booking.checkout_date, exclude_booking_id=booking.id
            )
            booking.room_number = room_number
            booking.gcash_number = gcash_number
            booking.state = BookingState.ACCEPTED
        else:
            booking.state = BookingState.DECLINED
        logger.info("Booking #%s %s by user %s", booking.id, booking.state.value, caller.id)
    return booking


def update_details(
    db: Session,
    caller: User,
    booking_id: int,
    guest_name: Optional[str] = None,
    phone: Optional[str] = None,
    checkin: Optional[date] = None,
    checkout: Optional[date] = None,
) -> Booking:
    """Staff correction of guest details or stay dates.

    Dates may only move before arrival, and a booking with a room keeps it
    only if the new range is still free.
    """

    authorize(caller, *STAFF_ROLES)
    if guest_name is not None:
        _require(guest_name, "guest_name")
    if phone is not None:
        _require(phone, "phone")

    with transaction(db):
        booking = _lock_booking(db, booking_id)
        if booking.state in TERMINAL_STATES:
            raise StateError(f"Cannot edit a booking that is {guest_label(booking.state)}")

        if checkin is not None or checkout is not None:
            if booking.state not in PRE_ARRIVAL_STATES:
                raise StateError("Stay dates can only change before check-in")
            new_checkin = checkin or booking.checkin_date
            new_checkout = checkout or booking.checkout_date
            _validate_stay(new_checkin, new_checkout)
            if booking.room_number:
                ensure_room_available(
                    db, booking.room_number, new_checkin, new_checkout, exclude_booking_id=booking.id
                )
            booking.checkin_date = new_checkin
            booking.checkout_date = new_checkout

        if guest_name is not None:
            booking.guest_name = guest_name.strip()
        if phone is not None:
            booking.phone = phone
        logger.info("Booking #%s edited by user %s", booking.id, caller.id)
    return booking


def upload_payment(db: Session, caller: User, booking_id: int, payment_image: Optional[str]) -> Booking:
    _require(payment_image, "payment_image")

    with transaction(db):
        booking = _lock_booking(db, booking_id)
        authorize_owner_or_staff(caller, booking)
        booking.payment_image = payment_image
        booking.payment_uploaded = True
        booking.payment_verified = False
        logger.info("Payment proof uploaded for booking #%s", booking.id)
    return booking


def verify_payment(
    db: Session,
    caller: User,
    booking_id: int,
    approved: bool,
    amount: Optional[float] = None,
) -> Booking:
    """Approve the uploaded proof into the ledger, or reset it for a fresh upload."""

    authorize(caller, *STAFF_ROLES)

    with transaction(db):
        booking = _lock_booking(db, booking_id)
        if approved:
            if booking.payment_status == PaymentStatus.PAID:
                raise StateError(f"Booking #{booking.id} is already paid")
            if not booking.payment_uploaded:
                raise StateError("No payment proof has been uploaded for this booking")
            booking.payment_status = PaymentStatus.PAID
            booking.payment_verified = True
            record_payment(db, booking.id, booking.room_type, amount or 0, GCASH, image_data=booking.payment_image)
            logger.info("Payment for booking #%s verified by user %s", booking.id, caller.id)
        else:
            booking.payment_uploaded = False
            booking.payment_verified = False
            booking.payment_image = None
            booking.payment_status = PaymentStatus.UNPAID
            logger.info("Payment proof for booking #%s rejected by user %s", booking.id, caller.id)
    return booking


def check_in(db: Session, caller: User, booking_id: int) -> Booking:
    authorize(caller, *STAFF_ROLES)

    with transaction(db):
        booking = _lock_booking(db, booking_id)
        if booking.payment_status != PaymentStatus.PAID:
            raise StateError(f"Cannot check-in. Payment status is {booking.payment_status.value}.")
        if booking.state == BookingState.CHECKED_IN:
            raise StateError("Guest is already Checked In.")
        if booking.state in TERMINAL_STATES:
            raise StateError(f"Cannot check-in. Booking is {guest_label(booking.state)}.")
        if booking.state != BookingState.ACCEPTED:
            raise StateError("Cannot check-in. The booking has not been accepted yet.")

        if booking.room_number:
            room = _lock_room(db, booking.room_number)
            if room is not None:
                if _other_stay_in_room(db, booking) is not None:
                    raise ConflictError(f"Room {room.room_number} is still occupied")
                room.status = RoomStatus.OCCUPIED
        booking.state = BookingState.CHECKED_IN
        logger.info("Booking #%s checked in to room %s", booking.id, booking.room_number)
    return booking


def check_out(db: Session, caller: User, booking_id: int) -> Booking:
    authorize(caller, *STAFF_ROLES)

    with transaction(db):
        booking = _lock_booking(db, booking_id)
        if booking.state != BookingState.CHECKED_IN:
            raise StateError("Cannot check-out. Guest is not Checked In.")
        booking.state = BookingState.CHECKED_OUT
        _release_room(db, booking)
        logger.info("Booking #%s checked out of room %s", booking.id, booking.room_number)
    return booking


def cancel(db: Session, caller: User, booking_id: int) -> Booking:
    """Staff may cancel in any state; owners only before arrival."""

    with transaction(db):
        booking = _lock_booking(db, booking_id)
        authorize_owner_or_staff(caller, booking)
        if not is_staff(caller) and booking.state not in OWNER_CANCELLABLE_STATES:
            raise StateError(f"Cannot cancel a booking that is {guest_label(booking.state)}")
        booking.state = BookingState.CANCELLED
        _release_room(db, booking)
        logger.info("Booking #%s cancelled by user %s", booking.id, caller.id)
    return booking


def apply_receptionist_action(db: Session, caller: User, booking_id: int, action: str) -> Booking:
    parsed = _parse(ReceptionistAction, action, "action")
    if parsed is ReceptionistAction.CHECKIN:
        return check_in(db, caller, booking_id)
    if parsed is ReceptionistAction.CHECKOUT:
        return check_out(db, caller, booking_id)
    return cancel(db, caller, booking_id)
