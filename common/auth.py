"""Credentials and bearer tokens for hotel accounts."""
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy.orm import Session

from .access import ensure_active
from .config import get_settings
from .errors import AuthError
from .models import RoleEnum, User

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")
settings = get_settings()


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def issue_token(user: User, expires_delta: Optional[timedelta] = None) -> str:
    """Signed bearer token; ``sub`` is the user id, ``role`` is informational only."""

    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=settings.access_token_expire_minutes))
    claims = {"sub": str(user.id), "role": user.role.value, "exp": expire}
    return jwt.encode(claims, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def token_user_id(token: str) -> int:
    try:
        claims = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except JWTError as exc:
        raise AuthError("Invalid token") from exc
    try:
        return int(claims["sub"])
    except (KeyError, TypeError, ValueError) as exc:
        raise AuthError("Invalid token subject") from exc


def login(db: Session, username: str, password: str, role: RoleEnum) -> User:
    """Check the password, the role the caller signed in as, and account approval.

    Unknown usernames and wrong passwords share one message so the endpoint
    does not reveal which accounts exist.
    """

    user = db.query(User).filter(User.username == username).first()
    if user is None or not verify_password(password, user.hashed_password):
        raise AuthError("Invalid username or password")
    if user.role != role:
        raise AuthError(f"You are registered as a {user.role.value}, please select the correct role")
    return ensure_active(user)
