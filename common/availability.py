"""Date-range overlap checks for room assignment."""
from __future__ import annotations

from datetime import date
from typing import List, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from .booking_states import INACTIVE_STATES
from .errors import ConflictError
from .models import Booking


def ranges_overlap(checkin: date, checkout: date, other_checkin: date, other_checkout: date) -> bool:
    """Half-open ``[checkin, checkout)`` overlap test; back-to-back stays do not collide."""

    return not (checkout <= other_checkin or checkin >= other_checkout)


def overlapping_bookings(
    db: Session,
    room_number: str,
    checkin: date,
    checkout: date,
    exclude_booking_id: Optional[int] = None,
    lock: bool = False,
) -> List[Booking]:
    query = db.query(Booking).filter(
        Booking.room_number == room_number,
        Booking.state.notin_(list(INACTIVE_STATES)),
        ~or_(Booking.checkout_date <= checkin, Booking.checkin_date >= checkout),
    )
    if exclude_booking_id is not None:
        query = query.filter(Booking.id != exclude_booking_id)
    if lock:
        query = query.with_for_update()
    return query.all()


def is_room_available(
    db: Session,
    room_number: str,
    checkin: date,
    checkout: date,
    exclude_booking_id: Optional[int] = None,
    lock: bool = False,
) -> bool:
    """True when no active booking on ``room_number`` overlaps the range.

    Pass ``lock=True`` from write paths so the candidate rows stay locked
    until the surrounding transaction ends.
    """

    return not overlapping_bookings(db, room_number, checkin, checkout, exclude_booking_id, lock)


def ensure_room_available(
    db: Session,
    room_number: str,
    checkin: date,
    checkout: date,
    exclude_booking_id: Optional[int] = None,
) -> None:
    if not is_room_available(db, room_number, checkin, checkout, exclude_booking_id, lock=True):
        raise ConflictError(f"Room {room_number} is already booked for the selected dates")
