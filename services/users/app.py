import logging

from fastapi import Depends, Request, status
from sqlalchemy.orm import Session

from common import auth
from common.database import get_db, transaction
from common.dependencies import allow_roles
from common.errors import ForbiddenError, NotFoundError, ValidationError
from common.models import RoleEnum, User, UserStatus
from common.schemas import (
    LoginRequest,
    LoginResponse,
    UserCreate,
    UserListResponse,
    UserResponse,
    UserStatusUpdate,
)
from common.service_app import create_service_app, limiter

logger = logging.getLogger(__name__)

app = create_service_app("Users Service", "users")


@app.post("/users/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit("5/minute")
def register_user(request: Request, user_in: UserCreate, db: Session = Depends(get_db)) -> UserResponse:
    with transaction(db):
        if db.query(User).filter(User.username == user_in.username).first():
            raise ValidationError("Username already exists")

        # The very first admin has nobody to approve it.
        admins_exist = db.query(User).filter(User.role == RoleEnum.ADMIN).first() is not None
        bootstrap_admin = user_in.role == RoleEnum.ADMIN and not admins_exist
        user = User(
            username=user_in.username,
            hashed_password=auth.hash_password(user_in.password),
            role=user_in.role,
            status=UserStatus.ACCEPTED if bootstrap_admin else UserStatus.PENDING,
        )
        db.add(user)
        db.flush()
        logger.info("Registered %s account %s (%s)", user.role.value, user.username, user.status.value)
    return UserResponse(message="Registration successful", user=user)


@app.post("/users/login", response_model=LoginResponse)
@limiter.limit("10/minute")
def login(request: Request, credentials: LoginRequest, db: Session = Depends(get_db)) -> LoginResponse:
    user = auth.login(db, credentials.username, credentials.password, credentials.role)
    return LoginResponse(message="Login successful", user=user, access_token=auth.issue_token(user))


@app.get("/users", response_model=UserListResponse)
@limiter.limit("20/minute")
def list_users(
    request: Request,
    _: User = Depends(allow_roles(RoleEnum.ADMIN)),
    db: Session = Depends(get_db),
) -> UserListResponse:
    return UserListResponse(users=db.query(User).order_by(User.id.asc()).all())


@app.put("/users/status/{user_id}", response_model=UserResponse)
@limiter.limit("20/minute")
def update_user_status(
    request: Request,
    user_id: int,
    body: UserStatusUpdate,
    current_user: User = Depends(allow_roles(RoleEnum.ADMIN)),
    db: Session = Depends(get_db),
) -> UserResponse:
    with transaction(db):
        user = db.query(User).filter(User.id == user_id).with_for_update().first()
        if user is None:
            raise NotFoundError("User not found")
        if user.role == RoleEnum.ADMIN:
            raise ForbiddenError("Cannot modify status of Admin account via this endpoint")
        user.status = body.status
        logger.info("User %s set to %s by admin %s", user.username, body.status.value, current_user.id)
    return UserResponse(message=f"User status set to {body.status.value}", user=user)
