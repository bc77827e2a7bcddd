"""One rating per completed stay, written by the guest who stayed."""
from __future__ import annotations

import html
import logging
from typing import Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Query, Session

from .access import ensure_active
from .booking_states import BookingState
from .database import transaction
from .errors import ConflictError, ForbiddenError, NotFoundError, StateError, ValidationError
from .models import Booking, Rating, User

logger = logging.getLogger(__name__)


def _sanitize(comment: Optional[str]) -> Optional[str]:
    if comment is None:
        return None
    stripped = comment.strip()
    return html.escape(stripped) if stripped else None


def submit_rating(
    db: Session,
    caller: User,
    booking_id: int,
    rating: int,
    comment: Optional[str] = None,
) -> Rating:
    ensure_active(caller)
    if not isinstance(rating, int) or not 1 <= rating <= 5:
        raise ValidationError("Rating must be an integer between 1 and 5")

    try:
        with transaction(db):
            booking = db.get(Booking, booking_id)
            if booking is None:
                raise NotFoundError(f"Booking #{booking_id} not found")
            if booking.user_id != caller.id:
                raise ForbiddenError("You can only rate your own bookings")
            if booking.state != BookingState.CHECKED_OUT:
                raise StateError("Only checked-out bookings can be rated")
            if db.query(Rating.id).filter(Rating.booking_id == booking_id).first() is not None:
                raise ConflictError(f"Booking #{booking_id} has already been rated")

            entry = Rating(
                booking_id=booking.id,
                user_id=caller.id,
                room_number=booking.room_number,
                room_type=booking.room_type,
                rating=rating,
                comment=_sanitize(comment),
            )
            db.add(entry)
            db.flush()
    except IntegrityError as exc:
        raise ConflictError(f"Booking #{booking_id} has already been rated") from exc

    logger.info("Rating #%s (%s/5) stored for booking #%s", entry.id, rating, booking_id)
    return entry


def _filtered(query: Query, room_type: Optional[str], room_number: Optional[str]) -> Query:
    if room_type:
        query = query.filter(Rating.room_type == room_type)
    if room_number:
        query = query.filter(Rating.room_number == room_number)
    return query


def rating_summary(db: Session, room_type: Optional[str] = None, room_number: Optional[str] = None) -> Dict[str, object]:
    stats = _filtered(
        db.query(func.count(Rating.id).label("count"), func.avg(Rating.rating).label("avg_rating")),
        room_type,
        room_number,
    ).one()
    return {
        "count": stats.count or 0,
        "avg_rating": round(float(stats.avg_rating), 2) if stats.avg_rating is not None else None,
    }


def list_ratings(db: Session, room_type: Optional[str] = None, room_number: Optional[str] = None) -> List[Rating]:
    return _filtered(db.query(Rating), room_type, room_number).order_by(Rating.created_at.desc()).all()
