"""Unit tests for the booking lifecycle operations."""
import threading
from datetime import date

import pytest

from common import booking_workflow as workflow
from common.booking_states import BookingState
from common.database import SessionLocal
from common.errors import AuthError, ConflictError, ForbiddenError, NotFoundError, StateError, ValidationError
from common.models import Booking, BookingType, Payment, PaymentStatus, Room, RoomStatus, User

JAN_1 = date(2025, 1, 1)
JAN_3 = date(2025, 1, 3)


def _online(db, owner, checkin=JAN_1, checkout=JAN_3):
    return workflow.create_online(db, owner, "Maria", "Standard", checkin, checkout, "0917")


def _manual(db, caller, user, room_number="101", checkin=JAN_1, checkout=JAN_3, **kwargs):
    return workflow.create_manual(
        db, caller, user.id, "Walk In", room_number, "Standard", checkin, checkout, "0998", "proof.png", **kwargs
    )


def _room(db, room_number="101"):
    return db.query(Room).filter(Room.room_number == room_number).one()


class TestCreate:
    def test_online_booking_starts_pending(self, db_session, guest):
        booking = _online(db_session, guest)

        assert booking.state == BookingState.PENDING
        assert booking.booking_type == BookingType.ONLINE
        assert booking.payment_status == PaymentStatus.UNPAID
        assert booking.room_number is None

    def test_online_booking_validates_dates(self, db_session, guest):
        with pytest.raises(ValidationError):
            _online(db_session, guest, checkin=JAN_3, checkout=JAN_1)
        with pytest.raises(ValidationError):
            workflow.create_online(db_session, guest, "  ", "Standard", JAN_1, JAN_3, "0917")

    def test_manual_booking_is_paid_and_accepted(self, db_session, make_room, receptionist, guest):
        make_room("101", price=2500)

        result = _manual(db_session, receptionist, guest)

        assert result.nights == 2
        assert result.total_amount == 5000
        assert result.booking.state == BookingState.ACCEPTED
        assert result.booking.payment_status == PaymentStatus.PAID
        assert result.booking.payment_uploaded and result.booking.payment_verified
        assert result.payment.amount == 5000
        assert result.payment.payment_method == "Manual"

    def test_manual_booking_unknown_user(self, db_session, make_room, receptionist, guest):
        make_room("101")

        with pytest.raises(NotFoundError):
            workflow.create_manual(
                db_session, receptionist, 999, "Ghost", "101", "Standard", JAN_1, JAN_3, "0998", "proof.png"
            )

    def test_manual_booking_unpriced_room_policy(self, db_session, receptionist, guest):
        with pytest.raises(NotFoundError):
            _manual(db_session, receptionist, guest, room_number="999")

        result = _manual(db_session, receptionist, guest, room_number="999", allow_unpriced_room=True)

        assert result.total_amount == 0
        assert result.booking.room_number is None

    def test_failed_manual_booking_leaves_no_rows(self, db_session, make_room, receptionist, guest):
        make_room("101")
        _manual(db_session, receptionist, guest)

        with pytest.raises(ConflictError):
            _manual(db_session, receptionist, guest, checkin=date(2025, 1, 2), checkout=date(2025, 1, 4))

        assert db_session.query(Booking).count() == 1
        assert db_session.query(Payment).count() == 1

    def test_guest_cannot_create_manual_booking(self, db_session, make_room, guest):
        make_room("101")
        with pytest.raises(ForbiddenError):
            _manual(db_session, guest, guest)


class TestReceptionistDecision:
    def test_accept_assigns_room(self, db_session, make_room, receptionist, guest):
        make_room("101")
        booking = _online(db_session, guest)

        workflow.receptionist_decide(db_session, receptionist, booking.id, "accept", "101", "0917000")

        assert booking.state == BookingState.ACCEPTED
        assert booking.room_number == "101"
        assert booking.gcash_number == "0917000"

    def test_accept_unknown_room(self, db_session, receptionist, guest):
        booking = _online(db_session, guest)

        with pytest.raises(NotFoundError):
            workflow.receptionist_decide(db_session, receptionist, booking.id, "accept", "404", "0917000")

    def test_accept_conflict_rolls_back(self, db_session, make_room, receptionist, guest):
        make_room("101")
        _manual(db_session, receptionist, guest)
        booking = _online(db_session, guest, checkin=date(2025, 1, 2), checkout=date(2025, 1, 5))

        with pytest.raises(ConflictError):
            workflow.receptionist_decide(db_session, receptionist, booking.id, "accept", "101", "0917000")

        db_session.refresh(booking)
        assert booking.state == BookingState.PENDING
        assert booking.room_number is None

    def test_only_pending_online_requests(self, db_session, make_room, receptionist, guest):
        make_room("101")
        manual = _manual(db_session, receptionist, guest).booking
        booking = _online(db_session, guest)
        workflow.receptionist_decide(db_session, receptionist, booking.id, "decline")

        with pytest.raises(StateError):
            workflow.receptionist_decide(db_session, receptionist, booking.id, "accept", "101", "0917000")
        with pytest.raises(StateError):
            workflow.receptionist_decide(db_session, receptionist, manual.id, "decline")

    def test_unknown_action(self, db_session, receptionist, guest):
        booking = _online(db_session, guest)
        with pytest.raises(ValidationError):
            workflow.receptionist_decide(db_session, receptionist, booking.id, "maybe")

    def test_missing_caller(self, db_session, guest):
        booking = _online(db_session, guest)
        with pytest.raises(AuthError):
            workflow.receptionist_decide(db_session, None, booking.id, "decline")


class TestPayment:
    def test_upload_by_other_guest_is_forbidden(self, db_session, make_user, guest):
        booking = _online(db_session, guest)
        stranger = make_user("stranger")

        with pytest.raises(ForbiddenError):
            workflow.upload_payment(db_session, stranger, booking.id, "proof.png")

    def test_verify_approved_records_gcash_payment(self, db_session, receptionist, guest):
        booking = _online(db_session, guest)
        workflow.upload_payment(db_session, guest, booking.id, "proof.png")

        workflow.verify_payment(db_session, receptionist, booking.id, True, 5000)

        payment = db_session.query(Payment).one()
        assert booking.payment_status == PaymentStatus.PAID
        assert booking.payment_verified is True
        assert payment.payment_method == "GCash"
        assert payment.amount == 5000
        assert payment.image_data == "proof.png"

    def test_verify_rejected_resets_fields(self, db_session, receptionist, guest):
        booking = _online(db_session, guest)
        workflow.upload_payment(db_session, guest, booking.id, "proof.png")

        workflow.verify_payment(db_session, receptionist, booking.id, False)

        assert booking.payment_uploaded is False
        assert booking.payment_image is None
        assert booking.payment_status == PaymentStatus.UNPAID
        assert db_session.query(Payment).count() == 0

    def test_approval_needs_an_uploaded_proof(self, db_session, receptionist, guest):
        booking = _online(db_session, guest)

        with pytest.raises(StateError, match="No payment proof"):
            workflow.verify_payment(db_session, receptionist, booking.id, True, 5000)

        db_session.refresh(booking)
        assert booking.payment_status == PaymentStatus.UNPAID
        assert db_session.query(Payment).count() == 0

    def test_second_approval_does_not_book_revenue_twice(self, db_session, receptionist, guest):
        booking = _online(db_session, guest)
        workflow.upload_payment(db_session, guest, booking.id, "proof.png")
        workflow.verify_payment(db_session, receptionist, booking.id, True, 5000)

        with pytest.raises(StateError, match="already paid"):
            workflow.verify_payment(db_session, receptionist, booking.id, True, 5000)

        assert db_session.query(Payment).count() == 1


class TestStay:
    def test_check_in_and_out_sync_room(self, db_session, make_room, receptionist, guest):
        make_room("101")
        booking = _manual(db_session, receptionist, guest).booking

        workflow.check_in(db_session, receptionist, booking.id)
        assert booking.status == "Checked In"
        assert _room(db_session).status == RoomStatus.OCCUPIED

        workflow.check_out(db_session, receptionist, booking.id)
        assert booking.status == "Checked Out"
        assert _room(db_session).status == RoomStatus.AVAILABLE

    def test_check_in_unpaid_is_rejected_without_changes(self, db_session, make_room, receptionist, guest):
        make_room("101")
        booking = _online(db_session, guest)
        workflow.receptionist_decide(db_session, receptionist, booking.id, "accept", "101", "0917000")

        with pytest.raises(StateError, match="Payment status is Unpaid"):
            workflow.check_in(db_session, receptionist, booking.id)

        db_session.refresh(booking)
        assert booking.state == BookingState.ACCEPTED
        assert _room(db_session).status == RoomStatus.AVAILABLE

    def test_check_in_requires_accepted_booking(self, db_session, receptionist, guest):
        booking = _online(db_session, guest)
        workflow.upload_payment(db_session, guest, booking.id, "proof.png")
        workflow.verify_payment(db_session, receptionist, booking.id, True, 5000)

        with pytest.raises(StateError, match="not been accepted"):
            workflow.check_in(db_session, receptionist, booking.id)

        db_session.refresh(booking)
        assert booking.state == BookingState.PENDING
        assert booking.room_number is None

    def test_check_in_cancelled_booking(self, db_session, make_room, receptionist, guest):
        make_room("101")
        booking = _manual(db_session, receptionist, guest).booking
        workflow.cancel(db_session, receptionist, booking.id)

        with pytest.raises(StateError):
            workflow.check_in(db_session, receptionist, booking.id)

    def test_check_in_while_room_occupied(self, db_session, make_room, receptionist, guest):
        make_room("101")
        first = _manual(db_session, receptionist, guest).booking
        second = _manual(db_session, receptionist, guest, checkin=JAN_3, checkout=date(2025, 1, 5)).booking
        workflow.check_in(db_session, receptionist, first.id)

        with pytest.raises(ConflictError):
            workflow.check_in(db_session, receptionist, second.id)

    def test_maintenance_room_is_left_alone(self, db_session, make_room, receptionist, guest):
        make_room("101")
        booking = _manual(db_session, receptionist, guest).booking
        workflow.check_in(db_session, receptionist, booking.id)
        _room(db_session).status = RoomStatus.MAINTENANCE
        db_session.commit()

        workflow.check_out(db_session, receptionist, booking.id)

        assert _room(db_session).status == RoomStatus.MAINTENANCE

    def test_guest_cannot_check_in(self, db_session, make_room, receptionist, guest):
        make_room("101")
        booking = _manual(db_session, receptionist, guest).booking
        with pytest.raises(ForbiddenError):
            workflow.check_in(db_session, guest, booking.id)

    def test_unknown_booking(self, db_session, receptionist):
        with pytest.raises(NotFoundError):
            workflow.check_out(db_session, receptionist, 404)


class TestCancel:
    def test_owner_cancels_pending_request(self, db_session, guest):
        booking = _online(db_session, guest)

        workflow.cancel(db_session, guest, booking.id)

        assert booking.status == "Cancelled"
        assert booking.receptionist_status == "cancelled"

    def test_cancelled_booking_frees_dates(self, db_session, make_room, receptionist, guest):
        make_room("101")
        booking = _manual(db_session, receptionist, guest).booking
        workflow.cancel(db_session, receptionist, booking.id)

        again = _manual(db_session, receptionist, guest)

        assert again.booking.room_number == "101"

    def test_receptionist_action_dispatch(self, db_session, make_room, receptionist, guest):
        make_room("101")
        booking = _manual(db_session, receptionist, guest).booking

        workflow.apply_receptionist_action(db_session, receptionist, booking.id, "checkin")
        workflow.apply_receptionist_action(db_session, receptionist, booking.id, "checkout")

        assert booking.state == BookingState.CHECKED_OUT
        with pytest.raises(ValidationError):
            workflow.apply_receptionist_action(db_session, receptionist, booking.id, "teleport")


class TestEditDetails:
    def test_staff_moves_dates_within_free_range(self, db_session, make_room, receptionist, guest):
        make_room("101")
        booking = _manual(db_session, receptionist, guest).booking

        workflow.update_details(
            db_session, receptionist, booking.id, guest_name=" Maria L. ", checkout=date(2025, 1, 4)
        )

        assert booking.guest_name == "Maria L."
        assert booking.checkin_date == JAN_1
        assert booking.checkout_date == date(2025, 1, 4)

    def test_new_dates_must_not_overlap_another_stay(self, db_session, make_room, receptionist, guest):
        make_room("101")
        booking = _manual(db_session, receptionist, guest).booking
        _manual(db_session, receptionist, guest, checkin=JAN_3, checkout=date(2025, 1, 5))

        with pytest.raises(ConflictError):
            workflow.update_details(db_session, receptionist, booking.id, checkout=date(2025, 1, 4))

        db_session.refresh(booking)
        assert booking.checkout_date == JAN_3

    def test_dates_are_frozen_after_arrival(self, db_session, make_room, receptionist, guest):
        make_room("101")
        booking = _manual(db_session, receptionist, guest).booking
        workflow.check_in(db_session, receptionist, booking.id)

        with pytest.raises(StateError):
            workflow.update_details(db_session, receptionist, booking.id, checkout=date(2025, 1, 4))
        workflow.update_details(db_session, receptionist, booking.id, phone="0999")

        assert booking.phone == "0999"

    def test_edit_rules(self, db_session, receptionist, guest):
        booking = _online(db_session, guest)

        with pytest.raises(ForbiddenError):
            workflow.update_details(db_session, guest, booking.id, phone="0999")
        with pytest.raises(ValidationError):
            workflow.update_details(db_session, receptionist, booking.id, checkin=JAN_3, checkout=JAN_1)
        workflow.cancel(db_session, receptionist, booking.id)
        with pytest.raises(StateError):
            workflow.update_details(db_session, receptionist, booking.id, phone="0999")


def _race(action, *user_ids):
    """Run ``action(session, *users)`` on two threads released together."""

    barrier = threading.Barrier(2)
    outcomes = []

    def worker():
        session = SessionLocal()
        try:
            users = [session.get(User, user_id) for user_id in user_ids]
            barrier.wait()
            try:
                action(session, *users)
                outcomes.append("committed")
            except ConflictError:
                outcomes.append("conflict")
            except Exception as exc:
                outcomes.append(repr(exc))
        finally:
            session.close()

    threads = [threading.Thread(target=worker) for _ in range(2)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=30)
    return sorted(outcomes)


class TestConcurrentAssignment:
    def test_one_of_two_overlapping_manual_bookings_commits(self, db_session, make_room, receptionist, guest):
        make_room("101")

        outcomes = _race(lambda session, staff, owner: _manual(session, staff, owner), receptionist.id, guest.id)

        assert outcomes == ["committed", "conflict"]
        assert db_session.query(Booking).count() == 1
        assert db_session.query(Payment).count() == 1

    def test_one_of_two_overlapping_accepts_commits(self, db_session, make_room, receptionist, guest):
        make_room("101")
        booking_ids = iter([_online(db_session, guest).id, _online(db_session, guest).id])
        claim = threading.Lock()

        def accept(session, staff):
            with claim:
                booking_id = next(booking_ids)
            workflow.receptionist_decide(session, staff, booking_id, "accept", "101", "0917000")

        outcomes = _race(accept, receptionist.id)

        assert outcomes == ["committed", "conflict"]
        assert db_session.query(Booking).filter(Booking.state == BookingState.ACCEPTED).count() == 1
