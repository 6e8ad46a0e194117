"""Swap domain models: one user's attempt to unlock someone else's story.

# ─── ARCHITECTURE ROLE ───────────────────────────────────────────────
#
# Layer: Models.
#
# A Swap records the candidate story a user submitted (``submission_data``)
# in exchange for access to a locked story (``story_to_unlock_id``).  The
# state machine that moves a swap between statuses lives in
# ``storyswap/services/swap_service.py``; these models only carry state.
#
#   PENDING ──► COMPLETED        (checks passed, story materialized)
#      │  ▲
#      ▼  │ retry
#   REJECTED
#   PENDING / REJECTED ──► EXPIRED  (reaped after ``expires_at``)
#
# Only one swap may exist per (user_id, story_to_unlock_id).  Storage
# enforces this with a UNIQUE index; ``SwapInsertResult`` reports the
# outcome of an insert that lost that race.
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

import math
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from storyswap.models.story import ContentType, MediaItem


class SwapStatus(str, Enum):
    """Lifecycle states of a swap.  COMPLETED and EXPIRED are terminal."""

    PENDING = "pending"
    COMPLETED = "completed"
    REJECTED = "rejected"
    EXPIRED = "expired"


# Statuses the reaper may move to EXPIRED.
REAPABLE_STATUSES = (SwapStatus.PENDING, SwapStatus.REJECTED)


# ─── Submission payload ───────────────────────────────────────────────
class SubmissionContent(BaseModel):
    """Raw content of a candidate story."""

    model_config = ConfigDict(frozen=True)

    type: ContentType = ContentType.TEXT
    text: str | None = None
    media: list[MediaItem] = Field(default_factory=list)


class SubmissionLocation(BaseModel):
    """Where the candidate story happened; coordinates are [longitude, latitude]."""

    model_config = ConfigDict(frozen=True)

    coordinates: list[float] = Field(default_factory=list)
    address: str | None = None
    city: str | None = None
    country: str | None = None

    def has_coordinates(self) -> bool:
        """True for exactly two finite, in-range values."""
        if len(self.coordinates) != 2 or not all(math.isfinite(c) for c in self.coordinates):
            return False
        longitude, latitude = self.coordinates
        return -180.0 <= longitude <= 180.0 and -90.0 <= latitude <= 90.0


class Submission(BaseModel):
    """The user's candidate story payload, stored until materialization."""

    model_config = ConfigDict(frozen=True)

    title: str = ""
    content: SubmissionContent = Field(default_factory=SubmissionContent)
    location: SubmissionLocation | None = None
    tags: list[str] = Field(default_factory=list)


# ─── Snapshots ────────────────────────────────────────────────────────
class SwapValidation(BaseModel):
    """Validation snapshot computed from the submission plus check outcomes."""

    model_config = ConfigDict(frozen=True)

    content_length: int = 0
    has_location: bool = False
    has_media: bool = False
    passed_profanity_check: bool = False
    passed_duplicate_check: bool = False
    passed_moderation_check: bool = True


class ModerationResults(BaseModel):
    """Automated moderation verdict.  Reasons are never shown to the submitter."""

    model_config = ConfigDict(frozen=True)

    flagged: bool = False
    reasons: list[str] = Field(default_factory=list)
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    review_required: bool = False
    moderator_notes: str | None = None


class SwapMetrics(BaseModel):
    """Timing metrics for a swap."""

    model_config = ConfigDict(frozen=True)

    submission_time: datetime | None = None
    processing_time_ms: int | None = None
    unlock_time: datetime | None = None


# ─── Swap ─────────────────────────────────────────────────────────────
class Swap(BaseModel):
    """A single swap record."""

    model_config = ConfigDict(frozen=True)

    swap_id: str
    user_id: str
    story_to_unlock_id: str
    submitted_story_id: str | None = None
    status: SwapStatus = SwapStatus.PENDING
    submission_data: Submission = Field(default_factory=Submission)
    validation: SwapValidation = Field(default_factory=SwapValidation)
    moderation_results: ModerationResults = Field(default_factory=ModerationResults)
    metrics: SwapMetrics = Field(default_factory=SwapMetrics)
    expires_at: datetime
    created_at: datetime
    updated_at: datetime

    def is_expired(self, now: datetime) -> bool:
        """True when the swap is expired, by status or by its deadline."""
        if self.status == SwapStatus.EXPIRED:
            return True
        return self.status in REAPABLE_STATUSES and self.expires_at < now


class SwapInsertResult(BaseModel):
    """Outcome of an atomic unique insert.

    ``inserted`` is False when another request already holds the
    (user, story) slot; ``swap`` is then the record that won.
    """

    model_config = ConfigDict(frozen=True)

    inserted: bool
    swap: Swap | None = None


# ─── Outcomes returned to callers ─────────────────────────────────────
class UnlockOutcome(BaseModel):
    """Result of a RequestUnlock call."""

    model_config = ConfigDict(frozen=True)

    status: SwapStatus
    unlocked: bool
    message: str
    swap_id: str | None = None
    submitted_story_id: str | None = None
    errors: list[str] = Field(default_factory=list)


class UnlockReason(str, Enum):
    """Why a reader can or cannot see a story's full content."""

    AUTHOR = "author"
    NO_SWAP_REQUIRED = "no_swap_required"
    NOT_LOCKED = "not_locked"
    SWAP_COMPLETED = "swap_completed"
    SWAP_REQUIRED = "swap_required"


class UnlockDecision(BaseModel):
    """Whether full content is visible, and why."""

    model_config = ConfigDict(frozen=True)

    unlocked: bool
    reason: UnlockReason


class SwapStatsBreakdown(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: SwapStatus
    count: int = 0
    avg_processing_ms: float | None = None


class SwapStats(BaseModel):
    """Aggregate swap counts for an admin timeframe."""

    model_config = ConfigDict(frozen=True)

    timeframe: str
    total: int = 0
    completed: int = 0
    pending: int = 0
    rejected: int = 0
    expired: int = 0
    success_rate: float = 0.0
    breakdown: list[SwapStatsBreakdown] = Field(default_factory=list)
