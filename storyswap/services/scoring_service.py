"""Recompute-on-write popularity scoring for stories, locations and tags.

Whenever a counter changes, the caller asks this service to rescore the
affected record.  It re-reads the record, applies the pure formulas in
``storyswap/utils/popularity.py`` and writes the derived score back.  Two
concurrent rescores of the same record both read committed counters, so
the last write always reflects at least every increment it observed.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime

import structlog

from storyswap.interfaces.place_provider import IPlaceProvider
from storyswap.interfaces.story_provider import IStoryProvider
from storyswap.models.place import Tag
from storyswap.models.story import Story
from storyswap.utils.clock import utc_now
from storyswap.utils.popularity import (
    TRENDING_THRESHOLD,
    location_popularity_score,
    story_popularity_score,
    tag_popularity_score,
    tag_trending_score,
    update_trending,
)

logger = structlog.get_logger(logger_name=__name__)


class ScoringService:
    """Keeps derived popularity scores in step with their counters."""

    def __init__(
        self,
        story_store: IStoryProvider,
        place_store: IPlaceProvider,
        trending_threshold: float = TRENDING_THRESHOLD,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._story_store = story_store
        self._place_store = place_store
        self._trending_threshold = trending_threshold
        self._clock = clock

    async def rescore_story(self, story: Story | str) -> int | None:
        """Recompute a story's score.  Accepts the story or its id.

        Returns the new score, or None when the story does not exist.
        """
        if isinstance(story, str):
            story = await self._story_store.get_story(story)
            if story is None:
                return None

        score = story_popularity_score(story.engagement, story.published_at, self._clock())
        if score != story.popularity_score:
            await self._story_store.set_popularity_score(story.story_id, score)
        return score

    async def rescore_location(self, location_id: str) -> int | None:
        location = await self._place_store.get_location(location_id)
        if location is None:
            return None

        score = location_popularity_score(location.stories_count, location.last_story_at, self._clock())
        if score != location.popularity_score:
            await self._place_store.set_location_score(location_id, score)
        return score

    async def rescore_tag(self, tag: Tag | str) -> Tag | None:
        """Recompute a tag's popularity and trending state.  Accepts the tag or its id."""
        if isinstance(tag, str):
            tag = await self._place_store.get_tag(tag)
            if tag is None:
                return None

        popularity = tag_popularity_score(
            tag.usage,
            is_official=tag.is_official,
            is_featured=tag.is_featured,
        )
        trending = update_trending(
            tag.trending,
            tag_trending_score(tag.usage.total_stories, popularity),
            self._clock(),
            threshold=self._trending_threshold,
        )
        await self._place_store.set_tag_scores(tag.tag_id, popularity, trending)

        if trending.is_trending != tag.trending.is_trending:
            logger.info("tag_trending_changed", tag=tag.name, is_trending=trending.is_trending)
        return tag.model_copy(update={"popularity_score": popularity, "trending": trending})
