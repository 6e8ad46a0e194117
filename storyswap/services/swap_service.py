"""Swap state machine: request, validate, moderate, complete, retry, reap.

# ─── ARCHITECTURE ROLE ───────────────────────────────────────────────
#
# Layer: Services (business logic orchestration).
# Depends on: IStoryProvider, ISwapProvider, ModerationPipeline,
#             StoryMaterializer.
#
# SwapService owns every status change of a swap.  A request flows:
#
#   1. SHORT-CIRCUITS -- story already open, reader is the author, or a
#      live swap already exists for the pair: answer without a new swap.
#   2. INSERT         -- a new ``pending`` swap.  The storage UNIQUE index
#      decides concurrent races; the loser is answered "pending" with the
#      winner's swap id.
#   3. VALIDATE       -- submission rules; violations reject immediately.
#   4. MODERATE       -- all automated checks; any failure rejects the
#      swap and flags it for manual review.
#   5. MATERIALIZE    -- complete the swap, then publish the submission.
#      Completing first means a swap cancelled or reaped mid-check never
#      publishes anything; a fault while publishing moves it back to
#      ``rejected``.
#
# Every transition is a compare-and-set on the current status, so it is
# applied exactly once even when an admin retry, a cancel and the reaper
# touch the same swap.
#
# Validation and moderation failures are outcomes, not exceptions.  Only
# a fault inside steps 4-5 raises (ProcessingFaultError), after the swap
# has been rejected so it can never stay ``pending``.
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

import uuid
from collections.abc import Callable
from datetime import datetime, timedelta

import structlog

from storyswap.interfaces.story_provider import IStoryProvider
from storyswap.interfaces.swap_provider import ISwapProvider
from storyswap.models.story import Story
from storyswap.models.swap import (
    ModerationResults,
    Submission,
    Swap,
    SwapMetrics,
    SwapStats,
    SwapStatsBreakdown,
    SwapStatus,
    UnlockOutcome,
)
from storyswap.models.user import ActingUser
from storyswap.services.content_validator import (
    build_validation_snapshot,
    clean_submission,
    validate_submission,
)
from storyswap.services.moderation import (
    DUPLICATE_CHECK,
    PATTERN_CHECK,
    PROFANITY_CHECK,
    ModerationPipeline,
)
from storyswap.services.story_materializer import StoryMaterializer
from storyswap.utils.clock import utc_now
from storyswap.utils.errors import (
    ForbiddenError,
    NotFoundError,
    ProcessingFaultError,
    SwapStateError,
    ValidationFailedError,
)
from storyswap.utils.logging import swap_context

logger = structlog.get_logger(logger_name=__name__)

# ── Constants ─────────────────────────────────────────────────────────
DEFAULT_SWAP_TTL = timedelta(hours=24)

STATS_TIMEFRAMES: dict[str, int] = {"1d": 1, "7d": 7, "30d": 30}

FAULT_REASON = "automated_check_failed"

_MSG_STORY_OPEN = "Story is already unlocked"
_MSG_OWN_STORY = "You can access your own story"
_MSG_ALREADY_SWAPPED = "Story already unlocked"
_MSG_PROCESSING = "Swap is being processed"
_MSG_REQUIREMENTS = "Story does not meet swap requirements"
_MSG_REVIEW = "Your story is pending manual review. We'll notify you once it's approved."
_MSG_COMPLETED = "Story swapped and unlocked successfully!"


class SwapService:
    """Runs the swap lifecycle.

    All dependencies are constructor-injected; ``clock`` lets tests pin
    the current time.
    """

    def __init__(
        self,
        story_store: IStoryProvider,
        swap_store: ISwapProvider,
        pipeline: ModerationPipeline,
        materializer: StoryMaterializer,
        swap_ttl: timedelta = DEFAULT_SWAP_TTL,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._story_store = story_store
        self._swap_store = swap_store
        self._pipeline = pipeline
        self._materializer = materializer
        self._swap_ttl = swap_ttl
        self._clock = clock

    # ── Requesting an unlock ───────────────────────────────────────────

    async def request_unlock(
        self,
        acting_user: ActingUser,
        story_id: str,
        submission: Submission,
    ) -> UnlockOutcome:
        """Try to unlock ``story_id`` for ``acting_user`` by swapping ``submission``.

        Raises:
            NotFoundError: The target story does not exist.
            ForbiddenError: The acting user is banned or inactive.
            ProcessingFaultError: Moderation or materialization faulted.
        """
        target = await self._story_store.get_story(story_id)
        if target is None:
            raise NotFoundError(message=f"Story {story_id} not found")
        if not acting_user.can_act:
            raise ForbiddenError(message="Account is not allowed to request swaps")

        user_id = acting_user.user_id
        if target.is_unlocked:
            return UnlockOutcome(status=SwapStatus.COMPLETED, unlocked=True, message=_MSG_STORY_OPEN)
        if target.author_id == user_id:
            return UnlockOutcome(status=SwapStatus.COMPLETED, unlocked=True, message=_MSG_OWN_STORY)

        now = self._clock()
        existing = await self._swap_store.find_swap(user_id, story_id)
        if existing is not None:
            outcome = self._existing_swap_outcome(existing, now)
            if outcome is not None:
                return outcome
            await self._free_slot(existing)

        submission = clean_submission(submission)
        swap = Swap(
            swap_id=str(uuid.uuid4()),
            user_id=user_id,
            story_to_unlock_id=story_id,
            status=SwapStatus.PENDING,
            submission_data=submission,
            validation=build_validation_snapshot(submission),
            metrics=SwapMetrics(submission_time=now),
            expires_at=now + self._swap_ttl,
            created_at=now,
            updated_at=now,
        )

        result = await self._swap_store.insert_swap(swap)
        if not result.inserted:
            winner = result.swap
            return UnlockOutcome(
                status=SwapStatus.PENDING,
                unlocked=False,
                message=_MSG_PROCESSING,
                swap_id=winner.swap_id if winner else None,
            )

        logger.info("swap_created", swap_id=swap.swap_id, user_id=user_id, story_id=story_id)
        return await self._process(swap, target)

    # ── Pipeline steps ─────────────────────────────────────────────────

    async def validate(self, swap: Swap, target: Story) -> list[str]:
        """Check the submission against the target's requirements.

        A non-empty result rejects the swap; automated checks are not run.
        """
        violations = validate_submission(swap.submission_data, target.swap_settings.requirements)
        if violations:
            await self._transition(swap, SwapStatus.REJECTED)
            logger.info(
                "swap_rejected",
                swap_id=swap.swap_id,
                stage="validation",
                violations=violations,
            )
        return violations

    async def run_automated_checks(
        self,
        swap: Swap,
        target: Story,
        started_at: datetime | None = None,
    ) -> UnlockOutcome:
        """Moderate the submission and, if every check passes, publish it.

        The swap is moved to ``completed`` (with a reserved
        ``submitted_story_id``) before anything is published.  A swap that
        was cancelled or reaped while the checks ran therefore fails the
        compare-and-set and nothing is published for it.

        Args:
            started_at: Start of this processing pass, for
                ``processing_time_ms``.  Defaults to now.

        Raises:
            ProcessingFaultError: A check or the materializer raised.  The
                swap is rejected before this propagates.
            SwapStateError: The swap left ``pending`` while it was checked.
        """
        started_at = started_at or self._clock()
        try:
            report = await self._pipeline.run(swap.submission_data)
        except Exception as exc:
            await self._reject_after_fault(swap, exc)
            raise self._fault(swap, exc) from exc

        validation = swap.validation.model_copy(update={
            "passed_profanity_check": report.passed_check(PROFANITY_CHECK),
            "passed_duplicate_check": report.passed_check(DUPLICATE_CHECK),
            "passed_moderation_check": report.passed_check(PATTERN_CHECK),
        })

        if not report.passed:
            moderation = ModerationResults(
                flagged=True,
                reasons=report.reasons,
                confidence=report.confidence,
                review_required=True,
            )
            await self._transition(
                swap,
                SwapStatus.REJECTED,
                validation=validation,
                moderation_results=moderation,
            )
            logger.info(
                "swap_rejected",
                swap_id=swap.swap_id,
                stage="moderation",
                reasons=report.reasons,
            )
            # Moderation reasons are for moderators only.
            return UnlockOutcome(
                status=SwapStatus.REJECTED,
                unlocked=False,
                message=_MSG_REVIEW,
                swap_id=swap.swap_id,
            )

        now = self._clock()
        processing_ms = max(0, int((now - started_at).total_seconds() * 1000))
        claimed = await self._transition(
            swap,
            SwapStatus.COMPLETED,
            submitted_story_id=str(uuid.uuid4()),
            validation=validation,
            metrics=swap.metrics.model_copy(update={
                "unlock_time": now,
                "processing_time_ms": processing_ms,
            }),
        )

        try:
            story = await self._materializer.materialize(claimed)
        except Exception as exc:
            await self._reject_after_fault(claimed, exc)
            raise self._fault(swap, exc) from exc

        logger.info(
            "swap_completed",
            swap_id=swap.swap_id,
            user_id=swap.user_id,
            story_id=swap.story_to_unlock_id,
            submitted_story_id=story.story_id,
            processing_time_ms=processing_ms,
        )
        return UnlockOutcome(
            status=SwapStatus.COMPLETED,
            unlocked=True,
            message=_MSG_COMPLETED,
            swap_id=swap.swap_id,
            submitted_story_id=story.story_id,
        )

    # ── Admin / owner operations ───────────────────────────────────────

    async def retry_swap(self, swap_id: str, acting_user: ActingUser) -> UnlockOutcome:
        """Re-run a rejected swap from scratch.  Admin only.

        Raises:
            ForbiddenError: The acting user is not an admin.
            NotFoundError: Unknown swap, or its target story is gone.
            SwapStateError: The swap is not ``rejected``, or is past its
                deadline and so counts as expired.
        """
        if not acting_user.is_admin:
            raise ForbiddenError(message="Only admins can retry swaps")

        swap = await self._require_swap(swap_id)
        if swap.status != SwapStatus.REJECTED:
            raise SwapStateError(message=f"Can only retry rejected swaps (swap is {swap.status.value})")

        now = self._clock()
        if swap.is_expired(now):
            raise SwapStateError(message=f"Swap {swap_id} has expired")

        target = await self._story_store.get_story(swap.story_to_unlock_id)
        if target is None:
            raise NotFoundError(message=f"Story {swap.story_to_unlock_id} not found")

        reset = await self._transition(
            swap,
            SwapStatus.PENDING,
            moderation_results=ModerationResults(),
            validation=build_validation_snapshot(swap.submission_data),
            expires_at=now + self._swap_ttl,
        )
        logger.info("swap_retried", swap_id=swap_id, admin_id=acting_user.user_id)
        return await self._process(reset, target)

    async def cancel_swap(self, swap_id: str, acting_user: ActingUser) -> None:
        """Delete the acting user's own pending swap, freeing the slot."""
        swap = await self._require_swap(swap_id)
        if swap.user_id != acting_user.user_id:
            raise ForbiddenError(message="You can only cancel your own swaps")
        if swap.status != SwapStatus.PENDING:
            raise SwapStateError(message="Can only cancel pending swaps")

        deleted = await self._swap_store.delete_swap(swap_id, statuses=(SwapStatus.PENDING,))
        if not deleted:
            raise SwapStateError(message="Can only cancel pending swaps")
        logger.info("swap_cancelled", swap_id=swap_id, user_id=acting_user.user_id)

    async def reap(self, now: datetime | None = None) -> int:
        """Expire every pending/rejected swap past its deadline.  Idempotent."""
        now = now or self._clock()
        count = await self._swap_store.expire_swaps(now)
        if count:
            logger.info("swaps_reaped", count=count, cutoff=now.isoformat())
        return count

    # ── Reads ──────────────────────────────────────────────────────────

    async def get_swap(self, swap_id: str, acting_user: ActingUser) -> Swap:
        swap = await self._require_swap(swap_id)
        if swap.user_id != acting_user.user_id and not acting_user.is_admin:
            raise ForbiddenError(message="Access denied")
        return swap

    async def list_user_swaps(
        self,
        user_id: str,
        *,
        status: SwapStatus | None = None,
        page: int = 1,
        limit: int = 20,
    ) -> tuple[list[Swap], int]:
        """One page of a user's swaps, newest first, plus the total count."""
        page = max(1, page)
        swaps = await self._swap_store.list_user_swaps(
            user_id, status=status, limit=limit, offset=(page - 1) * limit
        )
        total = await self._swap_store.count_user_swaps(user_id, status=status)
        return swaps, total

    async def review_queue(self, limit: int = 50) -> list[Swap]:
        return await self._swap_store.list_review_queue(limit)

    async def swap_stats(self, timeframe: str = "7d") -> SwapStats:
        """Counts per status for swaps created within ``timeframe``.

        Raises:
            ValidationFailedError: ``timeframe`` is not 1d, 7d or 30d.
        """
        days = STATS_TIMEFRAMES.get(timeframe)
        if days is None:
            raise ValidationFailedError(
                message=f"timeframe must be one of: {', '.join(STATS_TIMEFRAMES)}"
            )

        rows = await self._swap_store.get_status_breakdown(self._clock() - timedelta(days=days))
        breakdown = [
            SwapStatsBreakdown(
                status=SwapStatus(row["status"]),
                count=row["count"],
                avg_processing_ms=row.get("avg_processing_ms"),
            )
            for row in rows
        ]
        counts = {item.status: item.count for item in breakdown}
        total = sum(counts.values())
        completed = counts.get(SwapStatus.COMPLETED, 0)

        return SwapStats(
            timeframe=timeframe,
            total=total,
            completed=completed,
            pending=counts.get(SwapStatus.PENDING, 0),
            rejected=counts.get(SwapStatus.REJECTED, 0),
            expired=counts.get(SwapStatus.EXPIRED, 0),
            success_rate=round(completed / total * 100, 2) if total else 0.0,
            breakdown=breakdown,
        )

    # ── Private helpers ────────────────────────────────────────────────

    async def _process(self, swap: Swap, target: Story) -> UnlockOutcome:
        started_at = self._clock()
        with swap_context(swap):
            violations = await self.validate(swap, target)
            if violations:
                return UnlockOutcome(
                    status=SwapStatus.REJECTED,
                    unlocked=False,
                    message=_MSG_REQUIREMENTS,
                    swap_id=swap.swap_id,
                    errors=violations,
                )
            return await self.run_automated_checks(swap, target, started_at)

    @staticmethod
    def _existing_swap_outcome(existing: Swap, now: datetime) -> UnlockOutcome | None:
        """Answer for a pair that already has a swap, or None if its slot is free."""
        if existing.status == SwapStatus.COMPLETED:
            return UnlockOutcome(
                status=SwapStatus.COMPLETED,
                unlocked=True,
                message=_MSG_ALREADY_SWAPPED,
                swap_id=existing.swap_id,
            )
        if existing.is_expired(now):
            return None
        if existing.status == SwapStatus.PENDING:
            return UnlockOutcome(
                status=SwapStatus.PENDING,
                unlocked=False,
                message=_MSG_PROCESSING,
                swap_id=existing.swap_id,
            )
        # Rejected for failing the rules: the user may resubmit straight away.
        if not existing.moderation_results.review_required:
            return None
        return UnlockOutcome(
            status=SwapStatus.REJECTED,
            unlocked=False,
            message=_MSG_REVIEW,
            swap_id=existing.swap_id,
        )

    async def _free_slot(self, existing: Swap) -> None:
        # Guarded on the status we saw; if another request already replaced
        # the swap, the insert below loses the race and reports it.
        deleted = await self._swap_store.delete_swap(existing.swap_id, statuses=(existing.status,))
        if deleted:
            logger.info(
                "swap_slot_freed",
                swap_id=existing.swap_id,
                previous_status=existing.status.value,
            )

    async def _require_swap(self, swap_id: str) -> Swap:
        swap = await self._swap_store.get_swap(swap_id)
        if swap is None:
            raise NotFoundError(message=f"Swap {swap_id} not found")
        return swap

    async def _transition(self, swap: Swap, status: SwapStatus, **updates: object) -> Swap:
        """Compare-and-set ``swap`` from its current status to ``status``.

        Raises:
            SwapStateError: The stored status no longer matches ``swap.status``.
        """
        updated = swap.model_copy(update={**updates, "status": status, "updated_at": self._clock()})
        if not await self._swap_store.save_swap(updated, expected_status=swap.status):
            raise SwapStateError(
                message=f"Swap {swap.swap_id} is no longer {swap.status.value}",
                provider_name=self._swap_store.get_provider_name(),
            )
        return updated

    async def _reject_after_fault(self, swap: Swap, exc: Exception) -> None:
        logger.error(
            "swap_processing_failed",
            swap_id=swap.swap_id,
            user_id=swap.user_id,
            error=str(exc)[:200],
        )
        moderation = ModerationResults(flagged=True, reasons=[FAULT_REASON], review_required=True)
        try:
            await self._transition(
                swap,
                SwapStatus.REJECTED,
                moderation_results=moderation,
                submitted_story_id=None,
                metrics=swap.metrics.model_copy(update={"unlock_time": None}),
            )
        except SwapStateError:
            logger.warning("swap_fault_rejection_skipped", swap_id=swap.swap_id)

    @staticmethod
    def _fault(swap: Swap, exc: Exception) -> ProcessingFaultError:
        return ProcessingFaultError(
            message=f"Failed to process swap {swap.swap_id}: {exc}",
            provider_name="swap_pipeline",
        )
