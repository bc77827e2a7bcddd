"""Role checks applied by workflow operations to an already resolved caller."""
from __future__ import annotations

from typing import FrozenSet

from .errors import AuthError, ForbiddenError
from .models import Booking, RoleEnum, User, UserStatus

STAFF_ROLES: FrozenSet[RoleEnum] = frozenset({RoleEnum.RECEPTIONIST, RoleEnum.ADMIN})


def ensure_active(user: User) -> User:
    if user.status != UserStatus.ACCEPTED:
        raise ForbiddenError(f"Your account status is {user.status.value}. It must be Accepted to continue.")
    return user


def authorize(caller: User | None, *roles: RoleEnum) -> User:
    if caller is None:
        raise AuthError("Missing caller identity")
    ensure_active(caller)
    if caller.role not in roles:
        raise ForbiddenError("Insufficient permissions")
    return caller


def is_staff(caller: User) -> bool:
    return caller.role in STAFF_ROLES


def authorize_owner_or_staff(caller: User | None, booking: Booking) -> User:
    if caller is None:
        raise AuthError("Missing caller identity")
    ensure_active(caller)
    if not is_staff(caller) and booking.user_id != caller.id:
        raise ForbiddenError("Access denied")
    return caller
