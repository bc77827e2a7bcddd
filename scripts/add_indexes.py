#!/usr/bin/env python3
"""Script to add composite indexes used by the booking overlap and revenue queries."""
from sqlalchemy import create_engine, text

from common.config import get_settings

INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_bookings_room_dates ON bookings (room_number, checkin_date, checkout_date);",
    "CREATE INDEX IF NOT EXISTS idx_bookings_state_room ON bookings (state, room_number);",
    "CREATE INDEX IF NOT EXISTS idx_bookings_payment_queue ON bookings (payment_uploaded, payment_verified);",
    "CREATE INDEX IF NOT EXISTS idx_payments_booking_date ON payments (booking_id, payment_date);",
    "CREATE INDEX IF NOT EXISTS idx_ratings_room_type ON ratings (room_type, room_number);",
    "CREATE INDEX IF NOT EXISTS idx_rooms_type_status ON rooms (room_type, status);",
]


def add_indexes():
    engine = create_engine(get_settings().database_url)
    with engine.begin() as conn:
        for statement in INDEXES:
            conn.execute(text(statement))
    print(f"{len(INDEXES)} indexes ensured.")


if __name__ == "__main__":
    add_indexes()
