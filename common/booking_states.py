"""Canonical booking state and the labels derived from it."""
from __future__ import annotations

from enum import Enum
from typing import Dict, FrozenSet


class BookingState(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"
    CHECKED_IN = "checked-in"
    CHECKED_OUT = "checked-out"
    CANCELLED = "cancelled"


TERMINAL_STATES: FrozenSet[BookingState] = frozenset(
    {BookingState.DECLINED, BookingState.CHECKED_OUT, BookingState.CANCELLED}
)

# Bookings in these states never hold a room for overlap purposes.
INACTIVE_STATES: FrozenSet[BookingState] = frozenset({BookingState.DECLINED, BookingState.CANCELLED})

PRE_ARRIVAL_STATES: FrozenSet[BookingState] = frozenset({BookingState.PENDING, BookingState.ACCEPTED})

# Guests may withdraw their own request only before arrival.
OWNER_CANCELLABLE_STATES: FrozenSet[BookingState] = PRE_ARRIVAL_STATES

_GUEST_LABELS: Dict[BookingState, str] = {
    BookingState.PENDING: "Pending",
    BookingState.ACCEPTED: "Pending",
    BookingState.DECLINED: "Cancelled",
    BookingState.CHECKED_IN: "Checked In",
    BookingState.CHECKED_OUT: "Checked Out",
    BookingState.CANCELLED: "Cancelled",
}


def guest_label(state: BookingState) -> str:
    """Guest-facing lifecycle label for a booking state."""

    return _GUEST_LABELS[BookingState(state)]


def receptionist_label(state: BookingState) -> str:
    """Operational label shown to the front desk (the enum value itself)."""

    return BookingState(state).value


def is_active(state: BookingState) -> bool:
    return BookingState(state) not in INACTIVE_STATES
