"""Unit tests for post-stay ratings."""
from datetime import date

import pytest

from common import booking_workflow as workflow
from common import rating_gate
from common.errors import ConflictError, ForbiddenError, NotFoundError, StateError, ValidationError


@pytest.fixture()
def finished_stay(db_session, make_room, receptionist, guest):
    make_room("101")
    booking = workflow.create_manual(
        db_session, receptionist, guest.id, "Maria", "101", "Standard",
        date(2025, 1, 1), date(2025, 1, 3), "0917", "proof.png",
    ).booking
    workflow.check_in(db_session, receptionist, booking.id)
    workflow.check_out(db_session, receptionist, booking.id)
    return booking


def test_submit_rating(db_session, guest, finished_stay):
    rating = rating_gate.submit_rating(db_session, guest, finished_stay.id, 4, "  <b>Great</b> view ")

    assert rating.room_number == "101"
    assert rating.room_type == "Standard"
    assert rating.comment == "&lt;b&gt;Great&lt;/b&gt; view"


def test_one_rating_per_booking(db_session, guest, finished_stay):
    rating_gate.submit_rating(db_session, guest, finished_stay.id, 5)

    with pytest.raises(ConflictError):
        rating_gate.submit_rating(db_session, guest, finished_stay.id, 3)


def test_only_owner_may_rate(db_session, make_user, finished_stay):
    with pytest.raises(ForbiddenError):
        rating_gate.submit_rating(db_session, make_user("someone"), finished_stay.id, 5)


def test_stay_must_be_finished(db_session, guest):
    booking = workflow.create_online(db_session, guest, "Maria", "Standard", date(2025, 1, 1), date(2025, 1, 3), "0917")

    with pytest.raises(StateError):
        rating_gate.submit_rating(db_session, guest, booking.id, 5)
    with pytest.raises(NotFoundError):
        rating_gate.submit_rating(db_session, guest, 404, 5)


@pytest.mark.parametrize("score", [0, 6])
def test_score_bounds(db_session, guest, finished_stay, score):
    with pytest.raises(ValidationError):
        rating_gate.submit_rating(db_session, guest, finished_stay.id, score)


def test_summary_and_listing(db_session, guest, finished_stay):
    assert rating_gate.rating_summary(db_session) == {"count": 0, "avg_rating": None}

    rating_gate.submit_rating(db_session, guest, finished_stay.id, 4)

    assert rating_gate.rating_summary(db_session, room_type="Standard") == {"count": 1, "avg_rating": 4.0}
    assert rating_gate.rating_summary(db_session, room_number="202")["count"] == 0
    assert len(rating_gate.list_ratings(db_session, room_number="101")) == 1
