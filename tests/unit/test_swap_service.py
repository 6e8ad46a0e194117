"""Unit tests for the SwapService state machine.

Most tests run the service against real SQLite providers on a temporary
database so that the UNIQUE pair index and the compare-and-set updates are
exercised.  Faults and lost insert races are simulated with mocks.
"""

from __future__ import annotations

from datetime import timedelta
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from storyswap.models.story import SwapRequirements
from storyswap.models.swap import SwapInsertResult, SwapStatus
from storyswap.models.user import ActingUser
from storyswap.providers.place.sqlite_place_provider import SQLitePlaceProvider
from storyswap.providers.story.sqlite_story_provider import SQLiteStoryProvider
from storyswap.providers.swap.sqlite_swap_provider import SQLiteSwapProvider
from storyswap.providers.user.sqlite_user_provider import SQLiteUserProvider
from storyswap.services.moderation import ModerationPipeline
from storyswap.services.scoring_service import ScoringService
from storyswap.services.story_materializer import StoryMaterializer
from storyswap.services.swap_service import FAULT_REASON, SwapService
from storyswap.utils.errors import (
    ForbiddenError,
    NotFoundError,
    ProcessingFaultError,
    SwapStateError,
    ValidationFailedError,
)
from tests.conftest import FIXED_NOW, SUBMISSION_TEXT, make_story, make_submission, make_swap

SPAM_TEXT = "Cheap spam offers at the market stall, plus more words to pass the length rule."


def _clock():
    return FIXED_NOW


@pytest.fixture
async def stack(tmp_db, mock_config):
    """Real providers and services sharing one temporary database."""
    story_store = SQLiteStoryProvider(db_path=tmp_db)
    place_store = SQLitePlaceProvider(db_path=tmp_db)
    swap_store = SQLiteSwapProvider(db_path=tmp_db)
    user_store = SQLiteUserProvider(db_path=tmp_db)
    for provider in (story_store, place_store, swap_store, user_store):
        await provider.initialize()

    scoring = ScoringService(story_store, place_store)
    materializer = StoryMaterializer.from_config(
        mock_config, story_store, place_store, user_store, scoring
    )
    pipeline = ModerationPipeline.from_config(mock_config, story_store)
    service = SwapService(story_store, swap_store, pipeline, materializer, clock=_clock)

    await story_store.create_story(make_story())
    return SimpleNamespace(
        story_store=story_store,
        place_store=place_store,
        swap_store=swap_store,
        user_store=user_store,
        pipeline=pipeline,
        materializer=materializer,
        service=service,
    )


def _service_with_pipeline(stack, pipeline) -> SwapService:
    return SwapService(
        stack.story_store, stack.swap_store, pipeline, stack.materializer, clock=_clock
    )


# ─── Happy path ───────────────────────────────────────────────────

class TestCompletedSwap:
    @pytest.mark.asyncio
    async def test_swap_completes_and_unlocks(self, stack, reader):
        outcome = await stack.service.request_unlock(reader, "story-1", make_submission())

        assert outcome.status == SwapStatus.COMPLETED
        assert outcome.unlocked is True
        assert outcome.message == "Story swapped and unlocked successfully!"
        assert outcome.swap_id is not None
        assert outcome.submitted_story_id is not None

        swap = await stack.swap_store.get_swap(outcome.swap_id)
        assert swap.status == SwapStatus.COMPLETED
        assert swap.submitted_story_id == outcome.submitted_story_id
        assert swap.validation.passed_profanity_check is True
        assert swap.validation.passed_duplicate_check is True
        assert swap.validation.passed_moderation_check is True
        assert swap.metrics.processing_time_ms == 0
        assert swap.metrics.unlock_time == FIXED_NOW

    @pytest.mark.asyncio
    async def test_side_effects(self, stack, reader):
        outcome = await stack.service.request_unlock(reader, "story-1", make_submission())

        target = await stack.story_store.get_story("story-1")
        assert target.engagement.unlocks == 1
        assert target.popularity_score > 0

        published = await stack.story_store.get_story(outcome.submitted_story_id)
        assert published.author_id == "reader-1"
        assert published.title == "The night market"
        assert published.content.text.body == SUBMISSION_TEXT
        assert published.swap_settings.is_locked is True
        assert published.location_id is not None
        assert len(published.tag_ids) == 2

        stats = await stack.user_store.get_stats("reader-1")
        assert stats.stories_published == 1
        assert stats.stories_unlocked == 1
        assert stats.swaps_completed == 1

    @pytest.mark.asyncio
    async def test_second_request_reports_already_unlocked(self, stack, reader):
        first = await stack.service.request_unlock(reader, "story-1", make_submission())
        second = await stack.service.request_unlock(reader, "story-1", make_submission())

        assert second.status == SwapStatus.COMPLETED
        assert second.unlocked is True
        assert second.message == "Story already unlocked"
        assert second.swap_id == first.swap_id
        target = await stack.story_store.get_story("story-1")
        assert target.engagement.unlocks == 1


# ─── Short-circuits ───────────────────────────────────────────────

class TestShortCircuits:
    @pytest.mark.asyncio
    async def test_unknown_story(self, stack, reader):
        with pytest.raises(NotFoundError):
            await stack.service.request_unlock(reader, "missing", make_submission())

    @pytest.mark.asyncio
    async def test_banned_user(self, stack):
        banned = ActingUser(user_id="reader-2", is_banned=True)
        with pytest.raises(ForbiddenError):
            await stack.service.request_unlock(banned, "story-1", make_submission())

    @pytest.mark.asyncio
    async def test_inactive_user(self, stack):
        inactive = ActingUser(user_id="reader-2", is_active=False)
        with pytest.raises(ForbiddenError):
            await stack.service.request_unlock(inactive, "story-1", make_submission())

    @pytest.mark.asyncio
    async def test_own_story_needs_no_swap(self, stack, author):
        outcome = await stack.service.request_unlock(author, "story-1", make_submission())
        assert outcome.unlocked is True
        assert outcome.message == "You can access your own story"
        assert await stack.swap_store.find_swap("author-1", "story-1") is None

    @pytest.mark.asyncio
    async def test_open_story_needs_no_swap(self, stack, reader):
        await stack.story_store.create_story(make_story("story-open", requires_swap=False))
        outcome = await stack.service.request_unlock(reader, "story-open", make_submission())
        assert outcome.unlocked is True
        assert outcome.message == "Story is already unlocked"
        assert outcome.swap_id is None

    @pytest.mark.asyncio
    async def test_pending_swap_is_reported(self, stack, reader):
        await stack.swap_store.insert_swap(make_swap("swap-pending"))
        outcome = await stack.service.request_unlock(reader, "story-1", make_submission())
        assert outcome.status == SwapStatus.PENDING
        assert outcome.unlocked is False
        assert outcome.swap_id == "swap-pending"


# ─── Rejections ───────────────────────────────────────────────────

class TestValidationRejection:
    @pytest.mark.asyncio
    async def test_rule_violations_reject(self, stack, reader):
        outcome = await stack.service.request_unlock(
            reader, "story-1", make_submission(text="Too short", coordinates=[])
        )
        assert outcome.status == SwapStatus.REJECTED
        assert outcome.unlocked is False
        assert outcome.message == "Story does not meet swap requirements"
        assert outcome.errors == [
            "Content must be at least 50 characters",
            "Location is required for this swap",
        ]

        swap = await stack.swap_store.get_swap(outcome.swap_id)
        assert swap.status == SwapStatus.REJECTED
        assert swap.moderation_results.review_required is False

    @pytest.mark.asyncio
    async def test_user_may_resubmit_after_rule_violation(self, stack, reader):
        rejected = await stack.service.request_unlock(reader, "story-1", make_submission(text="Too short"))
        outcome = await stack.service.request_unlock(reader, "story-1", make_submission())

        assert outcome.status == SwapStatus.COMPLETED
        assert outcome.swap_id != rejected.swap_id
        assert await stack.swap_store.get_swap(rejected.swap_id) is None

    @pytest.mark.asyncio
    async def test_custom_requirements_are_used(self, stack, reader):
        await stack.story_store.create_story(make_story(
            "story-lenient",
            requirements=SwapRequirements(min_content_length=5, requires_location=False),
        ))
        outcome = await stack.service.request_unlock(
            reader, "story-lenient", make_submission(coordinates=[])
        )
        assert outcome.status == SwapStatus.COMPLETED


class TestModerationRejection:
    @pytest.mark.asyncio
    async def test_flagged_content_goes_to_review(self, stack, reader):
        outcome = await stack.service.request_unlock(reader, "story-1", make_submission(text=SPAM_TEXT))

        assert outcome.status == SwapStatus.REJECTED
        assert outcome.unlocked is False
        assert "manual review" in outcome.message
        assert outcome.errors == []

        swap = await stack.swap_store.get_swap(outcome.swap_id)
        assert swap.moderation_results.flagged is True
        assert swap.moderation_results.review_required is True
        assert swap.moderation_results.reasons == ["profanity_detected"]
        assert swap.validation.passed_profanity_check is False
        assert swap.submitted_story_id is None

    @pytest.mark.asyncio
    async def test_flagged_content_changes_nothing_else(self, stack, reader):
        await stack.service.request_unlock(reader, "story-1", make_submission(text=SPAM_TEXT))

        target = await stack.story_store.get_story("story-1")
        assert target.engagement.unlocks == 0
        stats = await stack.user_store.get_stats("reader-1")
        assert stats.stories_published == 0

    @pytest.mark.asyncio
    async def test_review_blocks_resubmission(self, stack, reader):
        first = await stack.service.request_unlock(reader, "story-1", make_submission(text=SPAM_TEXT))
        second = await stack.service.request_unlock(reader, "story-1", make_submission())
        assert second.status == SwapStatus.REJECTED
        assert second.swap_id == first.swap_id

    @pytest.mark.asyncio
    async def test_duplicate_of_published_story_is_flagged(self, stack, reader):
        outcome = await stack.service.request_unlock(
            reader, "story-1", make_submission(text=make_story().content.text.body)
        )
        swap = await stack.swap_store.get_swap(outcome.swap_id)
        assert swap.moderation_results.reasons == ["duplicate_content"]
        assert swap.validation.passed_duplicate_check is False


# ─── Faults and races ─────────────────────────────────────────────

class TestFaults:
    @pytest.mark.asyncio
    async def test_pipeline_fault_rejects_and_raises(self, stack, reader):
        broken = MagicMock()
        broken.run = AsyncMock(side_effect=RuntimeError("checker offline"))
        service = _service_with_pipeline(stack, broken)

        with pytest.raises(ProcessingFaultError):
            await service.request_unlock(reader, "story-1", make_submission())

        swap = await stack.swap_store.find_swap("reader-1", "story-1")
        assert swap.status == SwapStatus.REJECTED
        assert swap.moderation_results.reasons == [FAULT_REASON]
        assert swap.moderation_results.review_required is True

    @pytest.mark.asyncio
    async def test_cancel_during_checks_publishes_nothing(self, stack, reader):
        async def cancel_then_check(submission):
            pending = await stack.swap_store.find_swap("reader-1", "story-1")
            await service.cancel_swap(pending.swap_id, reader)
            return await stack.pipeline.run(submission)

        pipeline = MagicMock()
        pipeline.run = AsyncMock(side_effect=cancel_then_check)
        service = _service_with_pipeline(stack, pipeline)

        with pytest.raises(SwapStateError):
            await service.request_unlock(reader, "story-1", make_submission())

        assert await stack.swap_store.find_swap("reader-1", "story-1") is None
        assert (await stack.story_store.get_story("story-1")).engagement.unlocks == 0
        stories = await stack.story_store.list_trending(published_since=FIXED_NOW - timedelta(days=1))
        assert [s.story_id for s in stories] == ["story-1"]
        stats = await stack.user_store.get_stats("reader-1")
        assert (stats.stories_published, stats.stories_unlocked, stats.swaps_completed) == (0, 0, 0)

    @pytest.mark.asyncio
    async def test_materializer_fault_rolls_back_completion(self, stack, reader):
        materializer = MagicMock()
        materializer.materialize = AsyncMock(side_effect=RuntimeError("disk full"))
        service = SwapService(
            stack.story_store, stack.swap_store, stack.pipeline, materializer, clock=_clock
        )

        with pytest.raises(ProcessingFaultError):
            await service.request_unlock(reader, "story-1", make_submission())

        claimed = materializer.materialize.await_args.args[0]
        assert claimed.status == SwapStatus.COMPLETED
        assert claimed.submitted_story_id is not None

        swap = await stack.swap_store.find_swap("reader-1", "story-1")
        assert swap.status == SwapStatus.REJECTED
        assert swap.submitted_story_id is None
        assert swap.metrics.unlock_time is None
        assert swap.moderation_results.reasons == [FAULT_REASON]

    @pytest.mark.asyncio
    async def test_insert_conflict_without_winner_reports_pending(self, reader):
        story_store = MagicMock()
        story_store.get_story = AsyncMock(return_value=make_story())
        swap_store = MagicMock()
        swap_store.find_swap = AsyncMock(return_value=None)
        swap_store.insert_swap = AsyncMock(return_value=SwapInsertResult(inserted=False, swap=None))
        pipeline = MagicMock()
        pipeline.run = AsyncMock()
        service = SwapService(story_store, swap_store, pipeline, MagicMock(), clock=_clock)

        outcome = await service.request_unlock(reader, "story-1", make_submission())

        assert outcome.status == SwapStatus.PENDING
        assert outcome.swap_id is None
        pipeline.run.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_lost_insert_race_reports_winner(self, reader):
        story_store = MagicMock()
        story_store.get_story = AsyncMock(return_value=make_story())
        swap_store = MagicMock()
        swap_store.find_swap = AsyncMock(return_value=None)
        swap_store.insert_swap = AsyncMock(
            return_value=SwapInsertResult(inserted=False, swap=make_swap("swap-winner"))
        )
        pipeline = MagicMock()
        pipeline.run = AsyncMock()
        service = SwapService(story_store, swap_store, pipeline, MagicMock(), clock=_clock)

        outcome = await service.request_unlock(reader, "story-1", make_submission())

        assert outcome.status == SwapStatus.PENDING
        assert outcome.swap_id == "swap-winner"
        pipeline.run.assert_not_awaited()


# ─── Admin and owner operations ───────────────────────────────────

class TestRetry:
    @pytest.mark.asyncio
    async def test_admin_retry_completes_faulted_swap(self, stack, reader, admin):
        broken = MagicMock()
        broken.run = AsyncMock(side_effect=RuntimeError("checker offline"))
        with pytest.raises(ProcessingFaultError):
            await _service_with_pipeline(stack, broken).request_unlock(
                reader, "story-1", make_submission()
            )
        swap = await stack.swap_store.find_swap("reader-1", "story-1")

        outcome = await stack.service.retry_swap(swap.swap_id, admin)

        assert outcome.status == SwapStatus.COMPLETED
        assert outcome.swap_id == swap.swap_id
        stored = await stack.swap_store.get_swap(swap.swap_id)
        assert stored.status == SwapStatus.COMPLETED
        assert stored.moderation_results.flagged is False

    @pytest.mark.asyncio
    async def test_retry_requires_admin(self, stack, reader):
        outcome = await stack.service.request_unlock(reader, "story-1", make_submission(text=SPAM_TEXT))
        with pytest.raises(ForbiddenError):
            await stack.service.retry_swap(outcome.swap_id, reader)

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "status, created_at",
        [
            (SwapStatus.PENDING, FIXED_NOW),
            (SwapStatus.COMPLETED, FIXED_NOW),
            (SwapStatus.EXPIRED, FIXED_NOW - timedelta(hours=48)),
            # Past the deadline but not reaped yet.
            (SwapStatus.PENDING, FIXED_NOW - timedelta(hours=48)),
            (SwapStatus.REJECTED, FIXED_NOW - timedelta(hours=48)),
        ],
    )
    async def test_retry_refused_and_nothing_changes(self, stack, admin, status, created_at):
        await stack.swap_store.insert_swap(make_swap("swap-x", status=status, created_at=created_at))
        before = await stack.swap_store.get_swap("swap-x")

        with pytest.raises(SwapStateError):
            await stack.service.retry_swap("swap-x", admin)

        assert await stack.swap_store.get_swap("swap-x") == before
        assert (await stack.story_store.get_story("story-1")).engagement.unlocks == 0

    @pytest.mark.asyncio
    async def test_retry_measures_processing_from_the_retry(self, stack, reader, admin):
        broken = MagicMock()
        broken.run = AsyncMock(side_effect=RuntimeError("checker offline"))
        with pytest.raises(ProcessingFaultError):
            await _service_with_pipeline(stack, broken).request_unlock(
                reader, "story-1", make_submission()
            )
        swap = await stack.swap_store.find_swap("reader-1", "story-1")

        later = FIXED_NOW + timedelta(hours=2)
        service = SwapService(
            stack.story_store, stack.swap_store, stack.pipeline, stack.materializer,
            clock=lambda: later,
        )
        await service.retry_swap(swap.swap_id, admin)

        stored = await stack.swap_store.get_swap(swap.swap_id)
        assert stored.status == SwapStatus.COMPLETED
        assert stored.metrics.processing_time_ms == 0
        assert stored.metrics.unlock_time == later

    @pytest.mark.asyncio
    async def test_retry_unknown_swap(self, stack, admin):
        with pytest.raises(NotFoundError):
            await stack.service.retry_swap("missing", admin)


class TestCancel:
    @pytest.mark.asyncio
    async def test_owner_cancels_pending_swap(self, stack, reader):
        await stack.swap_store.insert_swap(make_swap("swap-pending"))
        await stack.service.cancel_swap("swap-pending", reader)
        assert await stack.swap_store.get_swap("swap-pending") is None

    @pytest.mark.asyncio
    async def test_only_owner_may_cancel(self, stack):
        await stack.swap_store.insert_swap(make_swap("swap-pending"))
        with pytest.raises(ForbiddenError):
            await stack.service.cancel_swap("swap-pending", ActingUser(user_id="someone-else"))

    @pytest.mark.asyncio
    async def test_cannot_cancel_completed_swap(self, stack, reader):
        outcome = await stack.service.request_unlock(reader, "story-1", make_submission())
        with pytest.raises(SwapStateError):
            await stack.service.cancel_swap(outcome.swap_id, reader)


class TestReap:
    @pytest.mark.asyncio
    async def test_expires_overdue_swaps_once(self, stack):
        old = FIXED_NOW - timedelta(hours=48)
        await stack.swap_store.insert_swap(make_swap("swap-old", created_at=old))
        await stack.swap_store.insert_swap(make_swap("swap-new", user_id="reader-2"))

        assert await stack.service.reap() == 1
        assert await stack.service.reap() == 0

        assert (await stack.swap_store.get_swap("swap-old")).status == SwapStatus.EXPIRED
        assert (await stack.swap_store.get_swap("swap-new")).status == SwapStatus.PENDING

    @pytest.mark.asyncio
    async def test_completed_swaps_are_never_reaped(self, stack, reader):
        outcome = await stack.service.request_unlock(reader, "story-1", make_submission())
        assert await stack.service.reap(now=FIXED_NOW + timedelta(days=30)) == 0
        assert (await stack.swap_store.get_swap(outcome.swap_id)).status == SwapStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_expired_swap_frees_the_slot(self, stack, reader):
        old = FIXED_NOW - timedelta(hours=48)
        await stack.swap_store.insert_swap(make_swap("swap-old", created_at=old))

        outcome = await stack.service.request_unlock(reader, "story-1", make_submission())

        assert outcome.status == SwapStatus.COMPLETED
        assert outcome.swap_id != "swap-old"


# ─── Reads ────────────────────────────────────────────────────────

class TestReads:
    @pytest.mark.asyncio
    async def test_get_swap_access(self, stack, reader, admin):
        await stack.swap_store.insert_swap(make_swap("swap-1"))
        assert (await stack.service.get_swap("swap-1", reader)).swap_id == "swap-1"
        assert (await stack.service.get_swap("swap-1", admin)).swap_id == "swap-1"
        with pytest.raises(ForbiddenError):
            await stack.service.get_swap("swap-1", ActingUser(user_id="someone-else"))

    @pytest.mark.asyncio
    async def test_list_user_swaps_paginates(self, stack):
        for i in range(3):
            await stack.story_store.create_story(make_story(f"story-{i + 10}"))
            await stack.swap_store.insert_swap(make_swap(
                f"swap-{i}",
                story_id=f"story-{i + 10}",
                created_at=FIXED_NOW + timedelta(minutes=i),
            ))

        page_one, total = await stack.service.list_user_swaps("reader-1", page=1, limit=2)
        page_two, _ = await stack.service.list_user_swaps("reader-1", page=2, limit=2)

        assert total == 3
        assert [s.swap_id for s in page_one] == ["swap-2", "swap-1"]
        assert [s.swap_id for s in page_two] == ["swap-0"]

    @pytest.mark.asyncio
    async def test_review_queue_holds_only_flagged_swaps(self, stack, reader):
        flagged = await stack.service.request_unlock(reader, "story-1", make_submission(text=SPAM_TEXT))
        await stack.story_store.create_story(make_story("story-2"))
        await stack.service.request_unlock(reader, "story-2", make_submission(text="Too short"))

        queue = await stack.service.review_queue()
        assert [s.swap_id for s in queue] == [flagged.swap_id]

    @pytest.mark.asyncio
    async def test_stats(self, stack, reader):
        await stack.service.request_unlock(reader, "story-1", make_submission())
        other = ActingUser(user_id="reader-2")
        await stack.service.request_unlock(other, "story-1", make_submission(text=SPAM_TEXT))

        stats = await stack.service.swap_stats("7d")
        assert stats.total == 2
        assert stats.completed == 1
        assert stats.rejected == 1
        assert stats.pending == 0
        assert stats.success_rate == 50.0

    @pytest.mark.asyncio
    async def test_stats_with_no_swaps(self, stack):
        stats = await stack.service.swap_stats("1d")
        assert stats.total == 0
        assert stats.success_rate == 0.0

    @pytest.mark.asyncio
    async def test_stats_rejects_unknown_timeframe(self, stack):
        with pytest.raises(ValidationFailedError):
            await stack.service.swap_stats("2w")
