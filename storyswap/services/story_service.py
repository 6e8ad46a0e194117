"""Story reads, engagement and discovery.

# ─── ARCHITECTURE ROLE ───────────────────────────────────────────────
#
# Layer: Services.
# Depends on: IStoryProvider, IPlaceProvider, UnlockService,
#             StoryMaterializer, ScoringService.
#
# Every story read goes through the unlock engine: readers who have not
# unlocked a story get the redacted view (snippet only, no media).  Views
# are only counted for readers who can see the full story; each counted
# view also adds to the views of the story's tags.
#
# Direct authoring shares the materializer's publish path with swaps, so a
# story published either way gets the same location, tag and score side
# effects.
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timedelta

import structlog

from storyswap.interfaces.place_provider import IPlaceProvider
from storyswap.interfaces.story_provider import IStoryProvider
from storyswap.models.place import Location, Tag
from storyswap.models.story import Story, StoryStatus, SwapSettings
from storyswap.models.swap import Submission, UnlockDecision
from storyswap.models.user import ActingUser
from storyswap.services.content_validator import clean_submission
from storyswap.services.scoring_service import ScoringService
from storyswap.services.story_materializer import StoryMaterializer
from storyswap.services.unlock_service import UnlockService
from storyswap.utils.clock import utc_now
from storyswap.utils.errors import ForbiddenError, NotFoundError, ValidationFailedError

logger = structlog.get_logger(logger_name=__name__)

TRENDING_TIMEFRAMES: dict[str, int] = {"1d": 1, "3d": 3, "7d": 7, "30d": 30}
_DEFAULT_TRENDING_DAYS = 7


class StoryService:
    """Serves stories to readers and records their engagement."""

    def __init__(
        self,
        story_store: IStoryProvider,
        place_store: IPlaceProvider,
        unlock: UnlockService,
        materializer: StoryMaterializer,
        scoring: ScoringService,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._story_store = story_store
        self._place_store = place_store
        self._unlock = unlock
        self._materializer = materializer
        self._scoring = scoring
        self._clock = clock

    # ── Reads ──────────────────────────────────────────────────────────

    async def get_story(self, story_id: str, user_id: str | None) -> tuple[Story, UnlockDecision]:
        """Return the story as ``user_id`` may see it, plus the unlock decision.

        Raises:
            NotFoundError: Unknown id, or the story is not published and the
                reader is not its author.
        """
        story = await self._story_store.get_story(story_id)
        if story is None or (story.status != StoryStatus.PUBLISHED and story.author_id != user_id):
            raise NotFoundError(message=f"Story {story_id} not found")

        decision = await self._unlock.can_view(story, user_id)
        if not decision.unlocked:
            return self._unlock.redact(story), decision

        story = await self._record_view(story)
        return story, decision

    async def list_trending(self, timeframe: str = "7d", limit: int = 20) -> list[Story]:
        """Published stories from the timeframe, best score first, always redacted.

        Unknown timeframes fall back to 7 days.
        """
        days = TRENDING_TIMEFRAMES.get(timeframe, _DEFAULT_TRENDING_DAYS)
        stories = await self._story_store.list_trending(
            published_since=self._clock() - timedelta(days=days),
            limit=limit,
        )
        return [s if s.is_unlocked else self._unlock.redact(s) for s in stories]

    async def list_trending_tags(self, limit: int = 20) -> list[Tag]:
        return await self._place_store.list_trending_tags(limit)

    async def list_popular_locations(self, city: str | None = None, limit: int = 20) -> list[Location]:
        return await self._place_store.list_popular_locations(city=city, limit=limit)

    # ── Writes ─────────────────────────────────────────────────────────

    async def create_story(
        self,
        acting_user: ActingUser,
        submission: Submission,
        swap_settings: SwapSettings | None = None,
    ) -> Story:
        """Publish a story directly (no swap).

        Raises:
            ForbiddenError: The acting user is banned or inactive.
            ValidationFailedError: The story has no title or no content.
        """
        if not acting_user.can_act:
            raise ForbiddenError(message="Account is not allowed to publish stories")

        submission = clean_submission(submission)
        if not submission.title:
            raise ValidationFailedError(message="Title is required")
        if not submission.content.text and not submission.content.media:
            raise ValidationFailedError(message="Story must have text or media content")

        story = await self._materializer.publish(acting_user.user_id, submission, swap_settings)
        logger.info("story_published", story_id=story.story_id, author_id=acting_user.user_id)
        return story

    async def like_story(self, story_id: str, acting_user: ActingUser) -> Story:
        """Add a like and return the story as the liker may see it."""
        if not acting_user.can_act:
            raise ForbiddenError(message="Account is not allowed to like stories")
        current = await self._story_store.get_story(story_id)
        if current is None or current.status != StoryStatus.PUBLISHED:
            raise NotFoundError(message=f"Story {story_id} not found")

        story = await self._story_store.increment_engagement(story_id, "likes")
        if story is None:
            raise NotFoundError(message=f"Story {story_id} not found")
        story = await self._rescored(story)

        decision = await self._unlock.can_view(story, acting_user.user_id)
        return story if decision.unlocked else self._unlock.redact(story)

    # ── Private helpers ────────────────────────────────────────────────

    async def _record_view(self, story: Story) -> Story:
        updated = await self._story_store.increment_engagement(story.story_id, "views")
        if updated is None:
            return story
        for tag_id in updated.tag_ids:
            tag = await self._place_store.increment_tag_usage(tag_id, total_views=1)
            if tag is not None:
                await self._scoring.rescore_tag(tag)
        return await self._rescored(updated)

    async def _rescored(self, story: Story) -> Story:
        score = await self._scoring.rescore_story(story)
        if score is None:
            return story
        return story.model_copy(update={"popularity_score": score})
