from datetime import date, timedelta
from typing import Literal, Optional

from fastapi import Depends, Query, Request, status
from sqlalchemy import func
from sqlalchemy.orm import Session

from common import booking_workflow as workflow
from common import payment_ledger as ledger
from common.access import STAFF_ROLES, authorize, authorize_owner_or_staff, is_staff
from common.availability import is_room_available
from common.booking_states import BookingState
from common.cache import StatsCache
from common.config import get_settings
from common.database import get_db, guarded_read
from common.dependencies import allow_roles, get_current_active_user
from common.errors import NotFoundError
from common.models import Booking, Room, RoomStatus, User, utcnow
from common.schemas import (
    AvailabilityResponse,
    BookingListResponse,
    BookingResponse,
    BookingUpdate,
    CheckRequest,
    DashboardResponse,
    DashboardStats,
    ExpectedAmountResponse,
    ManualBookingCreate,
    ManualBookingResponse,
    OnlineBookingCreate,
    PaymentConfirm,
    PaymentCreate,
    PaymentListResponse,
    PaymentResponse,
    PaymentUpload,
    PaymentVerification,
    ReceptionistActionRequest,
    ReceptionistDecision,
)
from common.service_app import create_service_app, limiter

settings = get_settings()
dashboard_cache: StatsCache[DashboardStats] = StatsCache(ttl=settings.dashboard_cache_ttl)

app = create_service_app("Bookings Service", "bookings")


def _stats_changed() -> None:
    """Occupancy, guests and revenue moved; the next dashboard read recomputes."""

    dashboard_cache.invalidate()


def _stay_message(booking: Booking) -> str:
    message = f"Booking #{booking.id} status updated to {booking.status}."
    if booking.room_number:
        message += f" Room {booking.room_number} updated accordingly."
    return message


# ----- listings -----


@app.get("/bookings", response_model=BookingListResponse)
@limiter.limit("30/minute")
def list_bookings(
    request: Request,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db),
) -> BookingListResponse:
    query = db.query(Booking)
    if not is_staff(current_user):
        query = query.filter(Booking.user_id == current_user.id)
    return BookingListResponse(bookings=query.order_by(Booking.checkin_date.desc()).all())


@app.get("/bookings/availability", response_model=AvailabilityResponse)
@limiter.limit("40/minute")
def check_availability(
    request: Request,
    room_number: str,
    checkin_date: date = Query(...),
    checkout_date: date = Query(...),
    _: User = Depends(get_current_active_user),
    db: Session = Depends(get_db),
) -> AvailabilityResponse:
    available = checkout_date > checkin_date and is_room_available(db, room_number, checkin_date, checkout_date)
    return AvailabilityResponse(
        room_number=room_number,
        checkin_date=checkin_date,
        checkout_date=checkout_date,
        available=available,
    )


@app.get("/bookings/user/{user_id}", response_model=BookingListResponse)
@limiter.limit("30/minute")
def user_bookings(
    request: Request,
    user_id: int,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db),
) -> BookingListResponse:
    if current_user.id != user_id:
        authorize(current_user, *STAFF_ROLES)
    bookings = db.query(Booking).filter(Booking.user_id == user_id).order_by(Booking.checkin_date.desc()).all()
    return BookingListResponse(bookings=bookings)


@app.get("/bookings/{booking_id}", response_model=BookingResponse)
@limiter.limit("60/minute")
def get_booking(
    request: Request,
    booking_id: int,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db),
) -> BookingResponse:
    booking = db.get(Booking, booking_id)
    if booking is None:
        raise NotFoundError(f"Booking #{booking_id} not found")
    authorize_owner_or_staff(current_user, booking)
    return BookingResponse(booking=booking)


@app.get("/bookings/{booking_id}/expected-amount", response_model=ExpectedAmountResponse)
@limiter.limit("30/minute")
def booking_expected_amount(
    request: Request,
    booking_id: int,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db),
) -> ExpectedAmountResponse:
    booking = db.get(Booking, booking_id)
    if booking is None:
        raise NotFoundError(f"Booking #{booking_id} not found")
    authorize_owner_or_staff(current_user, booking)
    return ExpectedAmountResponse(booking_id=booking_id, expected_amount=ledger.expected_amount(db, booking_id))


@app.get("/guests", response_model=BookingListResponse)
@limiter.limit("30/minute")
def current_guests(
    request: Request,
    _: User = Depends(allow_roles(*STAFF_ROLES)),
    db: Session = Depends(get_db),
) -> BookingListResponse:
    bookings = (
        db.query(Booking)
        .filter(Booking.state == BookingState.CHECKED_IN)
        .order_by(Booking.checkout_date.asc())
        .all()
    )
    return BookingListResponse(bookings=bookings)


# ----- workflow -----


@app.post("/bookings/online", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit("20/minute")
def create_online_booking(
    request: Request,
    booking_in: OnlineBookingCreate,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db),
) -> BookingResponse:
    booking = workflow.create_online(
        db,
        current_user,
        guest_name=booking_in.guest_name,
        room_type=booking_in.room_type,
        checkin=booking_in.checkin_date,
        checkout=booking_in.checkout_date,
        phone=booking_in.phone,
    )
    return BookingResponse(message="Booking request submitted", booking=booking)


@app.post("/bookings/manual", response_model=ManualBookingResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit("20/minute")
def create_manual_booking(
    request: Request,
    booking_in: ManualBookingCreate,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db),
) -> ManualBookingResponse:
    result = workflow.create_manual(
        db,
        current_user,
        user_id=booking_in.user_id,
        guest_name=booking_in.guest_name,
        room_number=booking_in.room_number,
        room_type=booking_in.room_type,
        checkin=booking_in.checkin_date,
        checkout=booking_in.checkout_date,
        phone=booking_in.phone,
        payment_proof=booking_in.payment_proof,
    )
    _stats_changed()
    return ManualBookingResponse(
        message="Manual booking created",
        booking=result.booking,
        nights=result.nights,
        total_amount=result.total_amount,
        payment_id=result.payment.id,
    )


@app.put("/bookings/online/{booking_id}/receptionist-action", response_model=BookingResponse)
@limiter.limit("30/minute")
def decide_online_booking(
    request: Request,
    booking_id: int,
    decision: ReceptionistDecision,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db),
) -> BookingResponse:
    booking = workflow.receptionist_decide(
        db,
        current_user,
        booking_id,
        decision.action,
        room_number=decision.room_number,
        gcash_number=decision.gcash_number,
    )
    return BookingResponse(message=f"Booking #{booking.id} {booking.receptionist_status}", booking=booking)


@app.put("/bookings/{booking_id}", response_model=BookingResponse)
@limiter.limit("20/minute")
def edit_booking(
    request: Request,
    booking_id: int,
    changes: BookingUpdate,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db),
) -> BookingResponse:
    booking = workflow.update_details(
        db,
        current_user,
        booking_id,
        guest_name=changes.guest_name,
        phone=changes.phone,
        checkin=changes.checkin_date,
        checkout=changes.checkout_date,
    )
    return BookingResponse(message="Booking updated", booking=booking)


@app.put("/bookings/{booking_id}/receptionist-action", response_model=BookingResponse)
@limiter.limit("30/minute")
def booking_receptionist_action(
    request: Request,
    booking_id: int,
    body: ReceptionistActionRequest,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db),
) -> BookingResponse:
    booking = workflow.apply_receptionist_action(db, current_user, booking_id, body.action)
    _stats_changed()
    return BookingResponse(message=_stay_message(booking), booking=booking)


@app.put("/bookings/{booking_id}/upload-payment", response_model=BookingResponse)
@limiter.limit("10/minute")
def upload_payment(
    request: Request,
    booking_id: int,
    body: PaymentUpload,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db),
) -> BookingResponse:
    booking = workflow.upload_payment(db, current_user, booking_id, body.payment_image)
    return BookingResponse(message="Payment proof uploaded. Awaiting verification.", booking=booking)


@app.put("/bookings/{booking_id}/verify-payment", response_model=BookingResponse)
@limiter.limit("30/minute")
def verify_payment(
    request: Request,
    booking_id: int,
    body: PaymentVerification,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db),
) -> BookingResponse:
    booking = workflow.verify_payment(db, current_user, booking_id, body.approved, body.amount)
    _stats_changed()
    message = "Payment verified" if body.approved else "Payment proof rejected. Guest must re-upload."
    return BookingResponse(message=message, booking=booking)


@app.put("/check/{booking_id}", response_model=BookingResponse)
@limiter.limit("30/minute")
def check_booking(
    request: Request,
    booking_id: int,
    body: CheckRequest,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db),
) -> BookingResponse:
    if body.action == "checkin":
        booking = workflow.check_in(db, current_user, booking_id)
    else:
        booking = workflow.check_out(db, current_user, booking_id)
    _stats_changed()
    return BookingResponse(message=_stay_message(booking), booking=booking)


# ----- payments -----


@app.get("/payments", response_model=PaymentListResponse | BookingListResponse)
@limiter.limit("30/minute")
def list_payments(
    request: Request,
    payment_filter: Optional[Literal["pending", "verified"]] = Query(None, alias="filter"),
    _: User = Depends(allow_roles(*STAFF_ROLES)),
    db: Session = Depends(get_db),
) -> PaymentListResponse | BookingListResponse:
    if payment_filter == "pending":
        return BookingListResponse(bookings=ledger.list_pending_verifications(db))
    if payment_filter == "verified":
        return PaymentListResponse(payments=ledger.list_verified_payments(db))
    return PaymentListResponse(payments=ledger.list_payments(db))


@app.post("/payments", response_model=PaymentResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit("20/minute")
def create_payment(
    request: Request,
    payment_in: PaymentCreate,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db),
) -> PaymentResponse:
    payment = ledger.add_payment(
        db,
        current_user,
        payment_in.booking_id,
        payment_in.amount,
        payment_in.payment_method,
        room_type=payment_in.room_type,
    )
    _stats_changed()
    return PaymentResponse(message="Payment recorded", payment=payment)


@app.put("/payments/confirm/{booking_id}", response_model=PaymentResponse)
@limiter.limit("20/minute")
def confirm_payment(
    request: Request,
    booking_id: int,
    body: PaymentConfirm,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db),
) -> PaymentResponse:
    payment = ledger.confirm_payment(db, current_user, booking_id, body.image_data, body.amount)
    _stats_changed()
    return PaymentResponse(message=f"Payment confirmed for booking #{booking_id}.", payment=payment)


# ----- dashboard -----


@guarded_read
def _dashboard_stats(db: Session) -> DashboardStats:
    total_rooms = db.query(func.count(Room.id)).scalar() or 0
    occupied_rooms = db.query(func.count(Room.id)).filter(Room.status == RoomStatus.OCCUPIED).scalar() or 0
    current_guests = (
        db.query(func.count(func.distinct(Booking.user_id)))
        .filter(Booking.state == BookingState.CHECKED_IN)
        .scalar()
        or 0
    )
    since = utcnow() - timedelta(days=settings.revenue_window_days)
    return DashboardStats(
        total_rooms=total_rooms,
        occupied_rooms=occupied_rooms,
        current_guests=current_guests,
        monthly_revenue=ledger.revenue_since(db, since),
    )


@app.get("/dashboard/stats", response_model=DashboardResponse)
@limiter.limit("30/minute")
def dashboard_stats(
    request: Request,
    _: User = Depends(allow_roles(*STAFF_ROLES)),
    db: Session = Depends(get_db),
) -> DashboardResponse:
    stats = dashboard_cache.fetch("stats", lambda: _dashboard_stats(db))
    return DashboardResponse(stats=stats)
