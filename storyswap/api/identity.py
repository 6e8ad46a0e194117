"""Acting-user resolution from identity-provider headers.

Authentication happens upstream.  The gateway in front of this service
verifies the session and forwards the result as headers:

    X-User-Id      user id (absent for anonymous readers)
    X-User-Role    user | moderator | admin   (default: user)
    X-User-Banned  true | false               (default: false)
    X-User-Active  true | false               (default: true)

Routes declare one of the ``Annotated`` dependency aliases below instead
of reading headers themselves.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Header, HTTPException

from storyswap.models.user import ActingUser, UserRole
from storyswap.utils.errors import ForbiddenError, ValidationFailedError

_TRUE_VALUES = frozenset({"1", "true", "yes", "on"})
_FALSE_VALUES = frozenset({"0", "false", "no", "off"})


def _parse_flag(name: str, value: str | None, default: bool) -> bool:
    if value is None or not value.strip():
        return default
    lowered = value.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ValidationFailedError(message=f"Invalid {name} header: {value!r}")


def get_optional_user(
    x_user_id: Annotated[str | None, Header()] = None,
    x_user_role: Annotated[str | None, Header()] = None,
    x_user_banned: Annotated[str | None, Header()] = None,
    x_user_active: Annotated[str | None, Header()] = None,
) -> ActingUser | None:
    """The acting user, or None for an anonymous request."""
    if x_user_id is None or not x_user_id.strip():
        return None

    try:
        role = UserRole((x_user_role or UserRole.USER.value).strip().lower())
    except ValueError:
        raise ValidationFailedError(message=f"Invalid X-User-Role header: {x_user_role!r}") from None

    return ActingUser(
        user_id=x_user_id.strip(),
        role=role,
        is_banned=_parse_flag("X-User-Banned", x_user_banned, default=False),
        is_active=_parse_flag("X-User-Active", x_user_active, default=True),
    )


def get_acting_user(user: Annotated[ActingUser | None, Depends(get_optional_user)]) -> ActingUser:
    """The acting user; private routes answer 401 without one."""
    if user is None:
        raise HTTPException(status_code=401, detail="Authentication required")
    return user


def get_admin_user(user: Annotated[ActingUser, Depends(get_acting_user)]) -> ActingUser:
    if not user.is_admin:
        raise ForbiddenError(message="Admin access required")
    return user


OptionalUserDep = Annotated[ActingUser | None, Depends(get_optional_user)]
ActingUserDep = Annotated[ActingUser, Depends(get_acting_user)]
AdminUserDep = Annotated[ActingUser, Depends(get_admin_user)]
