"""Abstract base class for story persistence providers.

# ─── ADAPTER PATTERN ─────────────────────────────────────────────────
#
# IStoryProvider hides the storage backend for stories.  The concrete
# implementation is SQLiteStoryProvider
# (storyswap/providers/story/sqlite_story_provider.py).
#
# Engagement counters are only ever changed through
# ``increment_engagement`` so concurrent requests touching the same story
# never lose an update.  Scores are written separately by the scoring
# service after it recomputes them from the incremented counters.
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime

from storyswap.models.story import Story


class IStoryProvider(ABC):
    """Contract for story persistence.  All storage operations are async."""

    # ── Lifecycle ──────────────────────────────────────────────────────

    @abstractmethod
    async def initialize(self) -> None:
        """Create tables/indices if they don't exist.  Called at startup."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier for this provider."""

    # ── Story CRUD ─────────────────────────────────────────────────────

    @abstractmethod
    async def create_story(self, story: Story) -> Story:
        """Persist a new story with its tag links and return it."""

    @abstractmethod
    async def get_story(self, story_id: str) -> Story | None:
        """Retrieve a story by id regardless of status; None if unknown."""

    # ── Counters and scores ────────────────────────────────────────────

    @abstractmethod
    async def increment_engagement(
        self,
        story_id: str,
        metric: str,
        amount: int = 1,
    ) -> Story | None:
        """Atomically add ``amount`` to one engagement counter.

        Returns the story as stored after the increment, or None if the
        story does not exist.

        Raises
        ------
        ValueError
            If ``metric`` is not an engagement counter.
        """

    @abstractmethod
    async def set_popularity_score(self, story_id: str, score: int) -> None:
        """Overwrite the derived popularity score."""

    # ── Queries ────────────────────────────────────────────────────────

    @abstractmethod
    async def find_published_containing(self, fragment: str, limit: int = 5) -> list[str]:
        """Ids of published stories whose body contains ``fragment``.

        Matching is a literal, case-insensitive substring test.
        """

    @abstractmethod
    async def list_trending(
        self,
        *,
        published_since: datetime,
        limit: int = 20,
    ) -> list[Story]:
        """Published stories since a cutoff, best score first."""
