"""Unit tests for room overlap detection."""
from datetime import date

import pytest

from common.availability import ensure_room_available, is_room_available, overlapping_bookings, ranges_overlap
from common.booking_states import BookingState
from common.errors import ConflictError
from common.models import Booking, BookingType


class TestRangesOverlap:
    def test_back_to_back_stays_do_not_overlap(self):
        assert not ranges_overlap(date(2025, 1, 1), date(2025, 1, 3), date(2025, 1, 3), date(2025, 1, 5))
        assert not ranges_overlap(date(2025, 1, 3), date(2025, 1, 5), date(2025, 1, 1), date(2025, 1, 3))

    def test_partial_and_nested_ranges_overlap(self):
        assert ranges_overlap(date(2025, 1, 1), date(2025, 1, 3), date(2025, 1, 2), date(2025, 1, 4))
        assert ranges_overlap(date(2025, 1, 1), date(2025, 1, 10), date(2025, 1, 4), date(2025, 1, 5))


@pytest.fixture()
def booked_room(db_session, make_room, guest):
    make_room("101")

    def add(checkin, checkout, state=BookingState.ACCEPTED):
        booking = Booking(
            user_id=guest.id,
            guest_name="Maria",
            room_number="101",
            room_type="Standard",
            checkin_date=checkin,
            checkout_date=checkout,
            phone="0917",
            booking_type=BookingType.MANUAL,
            state=state,
        )
        db_session.add(booking)
        db_session.commit()
        return booking

    return add


class TestRoomQueries:
    def test_active_booking_blocks_range(self, db_session, booked_room):
        booking = booked_room(date(2025, 1, 1), date(2025, 1, 3))

        clashes = overlapping_bookings(db_session, "101", date(2025, 1, 2), date(2025, 1, 4))

        assert [b.id for b in clashes] == [booking.id]
        assert is_room_available(db_session, "101", date(2025, 1, 3), date(2025, 1, 4))

    def test_cancelled_and_declined_bookings_free_the_room(self, db_session, booked_room):
        booked_room(date(2025, 1, 1), date(2025, 1, 3), BookingState.CANCELLED)
        booked_room(date(2025, 1, 1), date(2025, 1, 3), BookingState.DECLINED)

        assert is_room_available(db_session, "101", date(2025, 1, 1), date(2025, 1, 3))

    def test_booking_can_be_excluded_from_its_own_check(self, db_session, booked_room):
        booking = booked_room(date(2025, 1, 1), date(2025, 1, 3))

        assert is_room_available(
            db_session, "101", date(2025, 1, 1), date(2025, 1, 3), exclude_booking_id=booking.id
        )

    def test_other_rooms_are_unaffected(self, db_session, booked_room):
        booked_room(date(2025, 1, 1), date(2025, 1, 3))

        assert is_room_available(db_session, "102", date(2025, 1, 1), date(2025, 1, 3))

    def test_ensure_room_available_raises_conflict(self, db_session, booked_room):
        booked_room(date(2025, 1, 1), date(2025, 1, 3))

        with pytest.raises(ConflictError):
            ensure_room_available(db_session, "101", date(2025, 1, 2), date(2025, 1, 3))
