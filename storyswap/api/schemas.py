"""Request and response schemas for the StorySwap API.

# ─── ARCHITECTURE ROLE ───────────────────────────────────────────────
#
# Layer: API (Pydantic v2 schemas for request validation and response
#        serialization).
# Pattern: All schemas use ``frozen=True`` for immutability, matching the
#          domain models.
#
# These schemas are the HTTP contract.  They are kept separate from the
# domain models in storyswap/models/ so storage-only fields (and
# moderation reasons, which only admins may read) never leak by accident.
# Value objects that are already public (story content, engagement) are
# reused as-is.
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from storyswap.models.place import Address, TagCategory
from storyswap.models.story import (
    ContentType,
    Engagement,
    MediaType,
    StoryContent,
    StoryStatus,
    SwapSettings,
)
from storyswap.models.swap import (
    ModerationResults,
    SwapMetrics,
    SwapStatus,
    SwapValidation,
    UnlockReason,
)


# ─── Request schemas ──────────────────────────────────────────────────

class MediaItemRequest(BaseModel):
    """A media file already uploaded to the media storage service."""

    model_config = ConfigDict(frozen=True)

    type: MediaType
    url: str = Field(min_length=1, max_length=2048)
    thumbnail_url: str | None = Field(default=None, max_length=2048)
    filename: str | None = Field(default=None, max_length=255)
    size: int | None = Field(default=None, ge=0)
    duration: float | None = Field(default=None, ge=0)


class StoryContentRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: ContentType = ContentType.TEXT
    text: str | None = Field(default=None, max_length=10_000)
    media: list[MediaItemRequest] = Field(default_factory=list, max_length=10)


class LocationRequest(BaseModel):
    """Where the story happened.  ``coordinates`` is ``[longitude, latitude]``."""

    model_config = ConfigDict(frozen=True)

    coordinates: list[float] = Field(default_factory=list, max_length=2)
    address: str | None = Field(default=None, max_length=500)
    city: str | None = Field(default=None, max_length=100)
    country: str | None = Field(default=None, max_length=100)

    @field_validator("coordinates")
    @classmethod
    def _check_coordinates(cls, value: list[float]) -> list[float]:
        if not value:
            return value
        if len(value) != 2:
            raise ValueError("coordinates must be [longitude, latitude]")
        longitude, latitude = value
        if not (-180.0 <= longitude <= 180.0 and -90.0 <= latitude <= 90.0):
            raise ValueError("coordinates out of range")
        return value


class SubmittedStoryRequest(BaseModel):
    """A candidate story offered in exchange for an unlock."""

    model_config = ConfigDict(frozen=True)

    title: str = Field(default="", max_length=200)
    content: StoryContentRequest = Field(default_factory=StoryContentRequest)
    location: LocationRequest | None = None
    tags: list[str] = Field(default_factory=list, max_length=20)


class RequestUnlockRequest(BaseModel):
    """Request body for ``POST /swaps/{story_id}/request-unlock``."""

    model_config = ConfigDict(frozen=True)

    submitted_story: SubmittedStoryRequest


class SwapSettingsRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    is_locked: bool = True
    requires_swap: bool = True
    min_content_length: int = Field(default=50, ge=0, le=10_000)
    requires_location: bool = True
    allowed_content_types: list[ContentType] = Field(default_factory=list)


class CreateStoryRequest(BaseModel):
    """Request body for publishing a story directly."""

    model_config = ConfigDict(frozen=True)

    title: str = Field(min_length=1, max_length=200)
    content: StoryContentRequest
    location: LocationRequest | None = None
    tags: list[str] = Field(default_factory=list, max_length=20)
    swap_settings: SwapSettingsRequest | None = None


# ─── Swap responses ───────────────────────────────────────────────────

class UnlockResponse(BaseModel):
    """Outcome of an unlock request."""

    model_config = ConfigDict(frozen=True)

    status: SwapStatus
    unlocked: bool
    message: str
    swap_id: str | None = None
    submitted_story_id: str | None = None
    errors: list[str] = Field(default_factory=list)


class SwapResponse(BaseModel):
    """A swap as shown to its owner.  ``moderation`` is only filled for admins."""

    model_config = ConfigDict(frozen=True)

    swap_id: str
    user_id: str
    story_to_unlock_id: str
    submitted_story_id: str | None = None
    status: SwapStatus
    title: str = ""
    validation: SwapValidation
    review_required: bool = False
    moderation: ModerationResults | None = None
    metrics: SwapMetrics
    expires_at: datetime
    created_at: datetime
    updated_at: datetime


class PaginationResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    page: int
    limit: int
    total: int
    pages: int


class SwapListResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    swaps: list[SwapResponse] = Field(default_factory=list)
    pagination: PaginationResponse


class SwapStatsBreakdownResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: SwapStatus
    count: int = 0
    avg_processing_ms: float | None = None


class SwapStatsResponse(BaseModel):
    """Admin dashboard counts for a timeframe."""

    model_config = ConfigDict(frozen=True)

    timeframe: str
    total: int = 0
    completed: int = 0
    pending: int = 0
    rejected: int = 0
    expired: int = 0
    success_rate: float = Field(default=0.0, description="Percent completed, 2 decimal places.")
    breakdown: list[SwapStatsBreakdownResponse] = Field(default_factory=list)
    generated_at: datetime


class ReapResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    reaped: int


class MessageResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str


# ─── Story responses ──────────────────────────────────────────────────

class StoryResponse(BaseModel):
    """A story.  ``content`` is already redacted when the reader is locked out."""

    model_config = ConfigDict(frozen=True)

    story_id: str
    title: str
    content: StoryContent
    author_id: str
    location_id: str | None = None
    tag_ids: list[str] = Field(default_factory=list)
    status: StoryStatus
    swap_settings: SwapSettings
    engagement: Engagement
    popularity_score: int = 0
    published_at: datetime | None = None
    created_at: datetime


class StoryDetailResponse(BaseModel):
    """A single story plus the reader's unlock decision."""

    model_config = ConfigDict(frozen=True)

    story: StoryResponse
    is_unlocked: bool
    unlock_reason: UnlockReason


class TagResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    tag_id: str
    name: str
    display_name: str
    category: TagCategory
    total_stories: int = 0
    active_stories: int = 0
    total_views: int = 0
    popularity_score: int = 0
    is_trending: bool = False
    trending_score: float = 0.0
    trending_since: datetime | None = None


class LocationResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    location_id: str
    coordinates: list[float] = Field(description="[longitude, latitude]")
    address: Address
    stories_count: int = 0
    popularity_score: int = 0
    last_story_at: datetime | None = None


# ─── System ───────────────────────────────────────────────────────────

class HealthResponse(BaseModel):
    """Application health check response."""

    status: str
    version: str
    providers: dict[str, Any]


class ErrorResponse(BaseModel):
    """Standard error response body."""

    error: str
    detail: str | None = None
