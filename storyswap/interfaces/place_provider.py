"""Abstract base class for location and tag persistence providers.

Concrete implementation: SQLitePlaceProvider
(storyswap/providers/place/sqlite_place_provider.py).
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime

from storyswap.models.place import Location, Tag, TagTrending


class IPlaceProvider(ABC):
    """Contract for Location and Tag persistence."""

    @abstractmethod
    async def initialize(self) -> None:
        """Create tables/indices if they don't exist."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier for this provider."""

    # ── Locations ──────────────────────────────────────────────────────

    @abstractmethod
    async def find_location_near(
        self,
        longitude: float,
        latitude: float,
        radius_m: float,
    ) -> Location | None:
        """Closest location within ``radius_m`` meters, or None."""

    @abstractmethod
    async def create_location(self, location: Location) -> Location:
        """Persist a new location."""

    @abstractmethod
    async def get_location(self, location_id: str) -> Location | None:
        """Retrieve a location by id."""

    @abstractmethod
    async def record_location_story(self, location_id: str, at: datetime) -> Location | None:
        """Atomically bump ``stories_count`` and set ``last_story_at``."""

    @abstractmethod
    async def set_location_score(self, location_id: str, score: int) -> None:
        """Overwrite the derived location popularity score."""

    @abstractmethod
    async def list_popular_locations(
        self,
        *,
        city: str | None = None,
        limit: int = 20,
    ) -> list[Location]:
        """Locations ordered by popularity then story count."""

    # ── Tags ───────────────────────────────────────────────────────────

    @abstractmethod
    async def find_or_create_tag(self, name: str, display_name: str, created_at: datetime) -> Tag:
        """Return the tag with normalized ``name``, creating it if missing.

        Safe under concurrent callers: the name column is unique.
        """

    @abstractmethod
    async def get_tag(self, tag_id: str) -> Tag | None:
        """Retrieve a tag by id."""

    @abstractmethod
    async def increment_tag_usage(
        self,
        tag_id: str,
        *,
        total_stories: int = 0,
        active_stories: int = 0,
        total_views: int = 0,
    ) -> Tag | None:
        """Atomically add to a tag's usage counters and return the stored tag."""

    @abstractmethod
    async def set_tag_scores(self, tag_id: str, popularity_score: int, trending: TagTrending) -> None:
        """Overwrite the derived popularity score and trending state."""

    @abstractmethod
    async def list_trending_tags(self, limit: int = 20) -> list[Tag]:
        """Trending tags first, each group ordered by trending score."""
