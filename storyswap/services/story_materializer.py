"""Turns an accepted submission into a published Story.

# ─── ARCHITECTURE ROLE ───────────────────────────────────────────────
#
# Layer: Services.
# Depends on: IStoryProvider, IPlaceProvider, IUserProvider, ScoringService.
#
# ``publish`` is the shared path for every new story, whether it arrives
# through a completed swap or direct authoring:
#
#   1. LOCATION  -- reuse a location within the merge radius (haversine),
#                   else create one; bump its story count.
#   2. TAGS      -- normalize, keep the first N distinct names, find or
#                   create each tag; bump its usage counters.
#   3. STORY     -- build typed content (word count, snippet) and persist
#                   it as ``published``, locked behind a swap.
#   4. SCORES    -- rescore the new story, its location and its tags.
#
# ``materialize`` wraps ``publish`` for a swap: it additionally counts an
# unlock on the target story and credits the submitter's swap stats.
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

import uuid
from collections.abc import Callable
from datetime import datetime
from typing import Any

import structlog

from storyswap.interfaces.place_provider import IPlaceProvider
from storyswap.interfaces.story_provider import IStoryProvider
from storyswap.interfaces.user_provider import IUserProvider
from storyswap.models.place import Address, Location
from storyswap.models.story import Story, StoryContent, StoryStatus, SwapSettings, TextBody
from storyswap.models.swap import Submission, SubmissionLocation, Swap
from storyswap.services.scoring_service import ScoringService
from storyswap.utils.clock import utc_now
from storyswap.utils.errors import NotFoundError
from storyswap.utils.text_normalizer import (
    build_snippet,
    count_words,
    normalize_tag_name,
    tag_display_name,
)

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_MAX_TAGS = 5
_DEFAULT_MERGE_RADIUS_M = 50.0
_TITLE_MAX_CHARS = 200
_UNTITLED = "Untitled story"


class StoryMaterializer:
    """Creates published stories and applies every counter side effect."""

    def __init__(
        self,
        story_store: IStoryProvider,
        place_store: IPlaceProvider,
        user_store: IUserProvider,
        scoring: ScoringService,
        max_tags: int = _DEFAULT_MAX_TAGS,
        merge_radius_m: float = _DEFAULT_MERGE_RADIUS_M,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._story_store = story_store
        self._place_store = place_store
        self._user_store = user_store
        self._scoring = scoring
        self._max_tags = max_tags
        self._merge_radius_m = merge_radius_m
        self._clock = clock

    @classmethod
    def from_config(
        cls,
        config: dict[str, Any],
        story_store: IStoryProvider,
        place_store: IPlaceProvider,
        user_store: IUserProvider,
        scoring: ScoringService,
    ) -> StoryMaterializer:
        section = config.get("materializer", {}) or {}
        return cls(
            story_store,
            place_store,
            user_store,
            scoring,
            max_tags=int(section.get("max_tags", _DEFAULT_MAX_TAGS)),
            merge_radius_m=float(section.get("location_merge_radius_m", _DEFAULT_MERGE_RADIUS_M)),
        )

    # ── Public API ─────────────────────────────────────────────────────

    async def publish(
        self,
        author_id: str,
        submission: Submission,
        swap_settings: SwapSettings | None = None,
    ) -> Story:
        """Publish a story authored directly (not through a swap)."""
        story = await self._create_published_story(author_id, submission, swap_settings)
        await self._user_store.increment_stats(author_id, stories_published=1)
        return story

    async def materialize(self, swap: Swap) -> Story:
        """Publish the swap's submission and apply the unlock side effects.

        The new story takes ``swap.submitted_story_id`` when the caller has
        already reserved one.

        Raises:
            NotFoundError: If the story being unlocked no longer exists.
        """
        story = await self._create_published_story(
            swap.user_id, swap.submission_data, None, story_id=swap.submitted_story_id
        )

        target = await self._story_store.increment_engagement(swap.story_to_unlock_id, "unlocks")
        if target is None:
            raise NotFoundError(
                message=f"Story {swap.story_to_unlock_id} disappeared during swap {swap.swap_id}",
                provider_name=self._story_store.get_provider_name(),
            )
        await self._scoring.rescore_story(target)

        await self._user_store.increment_stats(
            swap.user_id,
            stories_published=1,
            stories_unlocked=1,
            swaps_completed=1,
        )
        logger.info(
            "swap_story_materialized",
            swap_id=swap.swap_id,
            story_id=story.story_id,
            unlocked_story_id=target.story_id,
        )
        return story

    # ── Steps ──────────────────────────────────────────────────────────

    async def _create_published_story(
        self,
        author_id: str,
        submission: Submission,
        swap_settings: SwapSettings | None,
        story_id: str | None = None,
    ) -> Story:
        now = self._clock()
        location_id = await self._resolve_location(submission.location, now)
        tag_ids = await self._resolve_tags(submission.tags, now)

        story = Story(
            story_id=story_id or str(uuid.uuid4()),
            title=_derive_title(submission),
            content=_build_content(submission),
            author_id=author_id,
            location_id=location_id,
            tag_ids=tag_ids,
            status=StoryStatus.PUBLISHED,
            swap_settings=swap_settings or SwapSettings(is_locked=True, requires_swap=True),
            published_at=now,
            created_at=now,
        )
        story = await self._story_store.create_story(story)

        score = await self._scoring.rescore_story(story)
        if score is not None:
            story = story.model_copy(update={"popularity_score": score})
        return story

    async def _resolve_location(self, submitted: SubmissionLocation | None, now: datetime) -> str | None:
        if submitted is None or not submitted.has_coordinates():
            return None

        longitude, latitude = submitted.coordinates
        location = await self._place_store.find_location_near(longitude, latitude, self._merge_radius_m)
        if location is None:
            defaults = Address()
            location = await self._place_store.create_location(Location(
                location_id=str(uuid.uuid4()),
                longitude=longitude,
                latitude=latitude,
                address=Address(
                    formatted=submitted.address or defaults.formatted,
                    city=submitted.city or defaults.city,
                    country=submitted.country or defaults.country,
                ),
                created_at=now,
            ))

        await self._place_store.record_location_story(location.location_id, now)
        await self._scoring.rescore_location(location.location_id)
        return location.location_id

    async def _resolve_tags(self, raw_tags: list[str], now: datetime) -> list[str]:
        names: list[tuple[str, str]] = []
        seen: set[str] = set()
        for raw in raw_tags:
            name = normalize_tag_name(raw)
            if not name or name in seen:
                continue
            seen.add(name)
            names.append((name, tag_display_name(raw)))
            if len(names) >= self._max_tags:
                break

        tag_ids: list[str] = []
        for name, display_name in names:
            tag = await self._place_store.find_or_create_tag(name, display_name or name, now)
            updated = await self._place_store.increment_tag_usage(
                tag.tag_id, total_stories=1, active_stories=1
            )
            await self._scoring.rescore_tag(updated or tag)
            tag_ids.append(tag.tag_id)
        return tag_ids


def _build_content(submission: Submission) -> StoryContent:
    content = submission.content
    text = TextBody(body=content.text, word_count=count_words(content.text)) if content.text else None
    return StoryContent(
        type=content.type,
        text=text,
        media=list(content.media),
        snippet=build_snippet(content.text),
    )


def _derive_title(submission: Submission) -> str:
    title = submission.title.strip()
    if not title:
        snippet = build_snippet(submission.content.text)
        title = snippet or _UNTITLED
    return title[:_TITLE_MAX_CHARS]
