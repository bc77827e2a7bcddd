from typing import List, Optional

from fastapi import Depends, Request, status
from sqlalchemy import case, func
from sqlalchemy.orm import Session

from common.database import get_db, guarded_read, transaction
from common.dependencies import allow_roles
from common.errors import ConflictError, NotFoundError, ValidationError
from common.models import Booking, RoleEnum, Room, RoomStatus, User
from common.schemas import Envelope, RoomCreate, RoomListResponse, RoomResponse, RoomTypeAvailability, RoomUpdate
from common.service_app import create_service_app, limiter

app = create_service_app("Rooms Service", "rooms")


class RoomAvailabilityResponse(Envelope):
    availability: List[RoomTypeAvailability]


def _get_room(db: Session, room_number: str, lock: bool = False) -> Room:
    query = db.query(Room).filter(Room.room_number == room_number)
    if lock:
        query = query.with_for_update()
    room = query.first()
    if not room:
        raise NotFoundError("Room not found")
    return room


@guarded_read
def _find_rooms(db: Session, room_type: Optional[str] = None, room_status: Optional[RoomStatus] = None) -> List[Room]:
    query = db.query(Room)
    if room_type:
        query = query.filter(Room.room_type == room_type)
    if room_status:
        query = query.filter(Room.status == room_status)
    return query.order_by(Room.room_number.asc()).all()


def _has_bookings(db: Session, room_number: str) -> bool:
    return db.query(Booking.id).filter(Booking.room_number == room_number).first() is not None


@app.get("/rooms", response_model=RoomListResponse)
@limiter.limit("60/minute")
def list_rooms(
    request: Request,
    room_type: Optional[str] = None,
    room_status: Optional[RoomStatus] = None,
    db: Session = Depends(get_db),
) -> RoomListResponse:
    return RoomListResponse(rooms=_find_rooms(db, room_type, room_status))


@app.get("/rooms/availability", response_model=RoomAvailabilityResponse)
@limiter.limit("60/minute")
def availability_by_type(request: Request, db: Session = Depends(get_db)) -> RoomAvailabilityResponse:
    occupied = func.sum(case((Room.status == RoomStatus.OCCUPIED, 1), else_=0))
    rows = (
        db.query(Room.room_type, func.count(Room.id), occupied)
        .group_by(Room.room_type)
        .order_by(Room.room_type)
        .all()
    )
    return RoomAvailabilityResponse(
        availability=[
            RoomTypeAvailability(
                room_type=room_type,
                total_rooms=total,
                booked=booked or 0,
                available=total - (booked or 0),
            )
            for room_type, total, booked in rows
        ]
    )


@app.get("/rooms/available/{room_type}", response_model=RoomListResponse)
@limiter.limit("60/minute")
def available_rooms(request: Request, room_type: str, db: Session = Depends(get_db)) -> RoomListResponse:
    return RoomListResponse(rooms=_find_rooms(db, room_type, RoomStatus.AVAILABLE))


@app.get("/rooms/{room_number}", response_model=RoomResponse)
@limiter.limit("60/minute")
def get_room(request: Request, room_number: str, db: Session = Depends(get_db)) -> RoomResponse:
    return RoomResponse(room=_get_room(db, room_number))


@app.post("/rooms", response_model=RoomResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit("10/minute")
def add_room(
    request: Request,
    room_in: RoomCreate,
    _: User = Depends(allow_roles(RoleEnum.ADMIN)),
    db: Session = Depends(get_db),
) -> RoomResponse:
    with transaction(db):
        if db.query(Room.id).filter(Room.room_number == room_in.room_number).first():
            raise ConflictError(f"Room {room_in.room_number} already exists")
        room = Room(**room_in.model_dump())
        db.add(room)
        db.flush()
    return RoomResponse(message="Room added successfully", room=room)


@app.put("/rooms/{room_number}", response_model=RoomResponse)
@limiter.limit("15/minute")
def update_room(
    request: Request,
    room_number: str,
    room_update: RoomUpdate,
    _: User = Depends(allow_roles(RoleEnum.ADMIN)),
    db: Session = Depends(get_db),
) -> RoomResponse:
    update_data = room_update.model_dump(exclude_unset=True)
    if update_data.get("status") == RoomStatus.OCCUPIED:
        raise ValidationError("Rooms become Occupied only through check-in")
    with transaction(db):
        room = _get_room(db, room_number, lock=True)
        new_number = update_data.get("room_number")
        if new_number and new_number != room.room_number:
            if _has_bookings(db, room.room_number):
                raise ConflictError("Room number is referenced by bookings and cannot change")
            if db.query(Room.id).filter(Room.room_number == new_number).first():
                raise ConflictError(f"Room {new_number} already exists")
        if "status" in update_data and update_data["status"] != room.status:
            if _has_bookings(db, room.room_number):
                raise ConflictError("Room status is managed by the bookings that reference it")

        for key, value in update_data.items():
            setattr(room, key, value)
    return RoomResponse(message="Room updated successfully", room=room)


@app.delete("/rooms/{room_number}", response_model=Envelope)
@limiter.limit("15/minute")
def delete_room(
    request: Request,
    room_number: str,
    _: User = Depends(allow_roles(RoleEnum.ADMIN)),
    db: Session = Depends(get_db),
) -> Envelope:
    with transaction(db):
        room = _get_room(db, room_number, lock=True)
        if _has_bookings(db, room_number):
            raise ConflictError("Room is referenced by bookings and cannot be deleted")
        db.delete(room)
    return Envelope(message="Room deleted successfully")
