"""Abstract base class for swap persistence providers.

# ─── ADAPTER PATTERN ─────────────────────────────────────────────────
#
# ISwapProvider is the only place the one-swap-per-(user, story) rule is
# enforced.  ``insert_swap`` must rely on an atomic uniqueness constraint in
# the backend, never on a read-then-write check, and report a lost race as
# ``SwapInsertResult(inserted=False, swap=<winner>)`` instead of raising.
#
# Status changes go through ``save_swap`` with the status the caller last
# saw (compare-and-set), so a transition only happens once even if two
# workers hold the same swap.
#
# Concrete implementation: SQLiteSwapProvider
# (storyswap/providers/swap/sqlite_swap_provider.py).
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any

from storyswap.models.swap import Swap, SwapInsertResult, SwapStatus


class ISwapProvider(ABC):
    """Contract for swap persistence."""

    # ── Lifecycle ──────────────────────────────────────────────────────

    @abstractmethod
    async def initialize(self) -> None:
        """Create tables/indices (including the unique pair index)."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier for this provider."""

    # ── Writes ─────────────────────────────────────────────────────────

    @abstractmethod
    async def insert_swap(self, swap: Swap) -> SwapInsertResult:
        """Insert a swap unless one already exists for its (user, story) pair."""

    @abstractmethod
    async def save_swap(self, swap: Swap, expected_status: SwapStatus) -> bool:
        """Write ``swap`` only if the stored status still equals ``expected_status``.

        Returns True when the row was updated.
        """

    @abstractmethod
    async def delete_swap(
        self,
        swap_id: str,
        *,
        statuses: tuple[SwapStatus, ...] | None = None,
    ) -> bool:
        """Delete a swap, optionally only while it is in one of ``statuses``."""

    @abstractmethod
    async def expire_swaps(self, now: datetime) -> int:
        """Move pending/rejected swaps with ``expires_at < now`` to expired.

        Idempotent; returns the number of swaps changed.
        """

    # ── Reads ──────────────────────────────────────────────────────────

    @abstractmethod
    async def get_swap(self, swap_id: str) -> Swap | None:
        """Retrieve a swap by id."""

    @abstractmethod
    async def find_swap(self, user_id: str, story_id: str) -> Swap | None:
        """The swap for a (user, story-to-unlock) pair, if any."""

    @abstractmethod
    async def list_user_swaps(
        self,
        user_id: str,
        *,
        status: SwapStatus | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> list[Swap]:
        """A user's swaps, newest first."""

    @abstractmethod
    async def count_user_swaps(self, user_id: str, *, status: SwapStatus | None = None) -> int:
        """Total number of swaps for a user (for pagination)."""

    @abstractmethod
    async def list_review_queue(self, limit: int = 50) -> list[Swap]:
        """Rejected swaps flagged for manual review, newest first."""

    @abstractmethod
    async def get_status_breakdown(self, created_since: datetime) -> list[dict[str, Any]]:
        """Per-status counts for swaps created since a cutoff.

        Returns
        -------
        list[dict]
            Each dict: ``status``, ``count``, ``avg_processing_ms``.
        """
