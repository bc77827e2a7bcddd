"""Reusable FastAPI dependencies for caller identity and database access."""
from typing import Callable, Optional

from fastapi import Depends, Security
from fastapi.security import APIKeyHeader, OAuth2PasswordBearer
from sqlalchemy.orm import Session

from .access import authorize, ensure_active
from .auth import token_user_id
from .config import get_settings
from .database import get_db
from .errors import AuthError
from .models import RoleEnum, User

settings = get_settings()
oauth_scheme = OAuth2PasswordBearer(tokenUrl="/users/login", auto_error=False)
user_id_header = APIKeyHeader(name="X-User-Id", auto_error=False)


def _header_user_id(raw: str) -> int:
    try:
        return int(raw)
    except ValueError as exc:
        raise AuthError("Invalid caller identity") from exc


def resolve_caller(
    token: Optional[str] = Depends(oauth_scheme),
    header_user_id: Optional[str] = Security(user_id_header),
    db: Session = Depends(get_db),
) -> User:
    """Load the caller from a bearer token, or from ``X-User-Id`` when allowed."""

    if token:
        user_id = token_user_id(token)
    elif header_user_id and settings.allow_header_identity:
        user_id = _header_user_id(header_user_id)
    else:
        raise AuthError("Missing caller identity")

    user = db.get(User, user_id)
    if user is None:
        raise AuthError("Unknown caller")
    return user


def get_current_active_user(current_user: User = Depends(resolve_caller)) -> User:
    return ensure_active(current_user)


def allow_roles(*roles: RoleEnum) -> Callable[[User], User]:
    def dependency(current_user: User = Depends(resolve_caller)) -> User:
        return authorize(current_user, *roles)

    return dependency
