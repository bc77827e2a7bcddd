import os
from typing import Callable, Generator

import pytest
from fastapi.testclient import TestClient

os.environ.setdefault("DATABASE_URL", "sqlite:///./test.db")
os.environ.setdefault("RATE_LIMITING_ENABLED", "false")
os.environ.setdefault("ALLOW_HEADER_IDENTITY", "true")

from common.config import reset_settings_cache  # noqa: E402

reset_settings_cache()

from common.auth import hash_password  # noqa: E402
from common.database import Base, SessionLocal, engine  # noqa: E402
from common.models import RoleEnum, Room, RoomStatus, User, UserStatus  # noqa: E402
from services.bookings.app import app as bookings_app, dashboard_cache  # noqa: E402
from services.ratings.app import app as ratings_app  # noqa: E402
from services.rooms.app import app as rooms_app  # noqa: E402
from services.users.app import app as users_app  # noqa: E402


@pytest.fixture(autouse=True, scope="function")
def _create_test_database() -> Generator[None, None, None]:
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    dashboard_cache.invalidate()
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def db_session() -> Generator:
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def make_user(db_session) -> Callable[..., User]:
    def factory(username: str, role: RoleEnum = RoleEnum.GUEST, status: UserStatus = UserStatus.ACCEPTED) -> User:
        user = User(
            username=username,
            hashed_password=hash_password("Passw0rd!"),
            role=role,
            status=status,
        )
        db_session.add(user)
        db_session.commit()
        return user

    return factory


@pytest.fixture()
def make_room(db_session) -> Callable[..., Room]:
    def factory(room_number: str = "101", room_type: str = "Standard", price: float = 2500) -> Room:
        room = Room(room_number=room_number, room_type=room_type, price=price, status=RoomStatus.AVAILABLE)
        db_session.add(room)
        db_session.commit()
        return room

    return factory


@pytest.fixture()
def admin(make_user) -> User:
    return make_user("admin", RoleEnum.ADMIN)


@pytest.fixture()
def receptionist(make_user) -> User:
    return make_user("frontdesk", RoleEnum.RECEPTIONIST)


@pytest.fixture()
def guest(make_user) -> User:
    return make_user("maria", RoleEnum.GUEST)


@pytest.fixture()
def auth_headers() -> Callable[[User], dict[str, str]]:
    def build(user: User) -> dict[str, str]:
        return {"X-User-Id": str(user.id)}

    return build


@pytest.fixture()
def users_client() -> Generator[TestClient, None, None]:
    with TestClient(users_app) as client:
        yield client


@pytest.fixture()
def rooms_client() -> Generator[TestClient, None, None]:
    with TestClient(rooms_app) as client:
        yield client


@pytest.fixture()
def bookings_client() -> Generator[TestClient, None, None]:
    with TestClient(bookings_app) as client:
        yield client


@pytest.fixture()
def ratings_client() -> Generator[TestClient, None, None]:
    with TestClient(ratings_app) as client:
        yield client
