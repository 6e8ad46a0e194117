"""User models as seen by the swap engine.

Registration, credentials and sessions belong to the identity provider.
The engine only consumes the acting user's identity and flags, and keeps
its own per-user counters that it increments as swap side effects.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class UserRole(str, Enum):
    USER = "user"
    MODERATOR = "moderator"
    ADMIN = "admin"


class ActingUser(BaseModel):
    """Identity of the user making a request, as vouched for upstream."""

    model_config = ConfigDict(frozen=True)

    user_id: str = Field(min_length=1)
    role: UserRole = UserRole.USER
    is_active: bool = True
    is_banned: bool = False

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    @property
    def can_act(self) -> bool:
        return self.is_active and not self.is_banned


class UserStats(BaseModel):
    """Counters the engine maintains for each user."""

    model_config = ConfigDict(frozen=True)

    user_id: str
    stories_published: int = Field(default=0, ge=0)
    stories_unlocked: int = Field(default=0, ge=0)
    swaps_completed: int = Field(default=0, ge=0)


USER_STAT_FIELDS = frozenset({"stories_published", "stories_unlocked", "swaps_completed"})
