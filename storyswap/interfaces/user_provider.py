"""Abstract base class for per-user counter storage.

Users themselves are owned by the identity provider; this store only
keeps the counters the swap engine increments.  Concrete implementation:
SQLiteUserProvider (storyswap/providers/user/sqlite_user_provider.py).
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from storyswap.models.user import UserStats


class IUserProvider(ABC):
    """Contract for user stats persistence."""

    @abstractmethod
    async def initialize(self) -> None:
        """Create tables if they don't exist."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier for this provider."""

    @abstractmethod
    async def get_stats(self, user_id: str) -> UserStats:
        """Counters for a user; all zero for a user never seen before."""

    @abstractmethod
    async def increment_stats(self, user_id: str, **deltas: int) -> UserStats:
        """Atomically add ``deltas`` to the named counters and return the result.

        Raises
        ------
        ValueError
            If a key is not one of ``stories_published``,
            ``stories_unlocked`` or ``swaps_completed``.
        """
