"""Story domain models: location-tagged stories with swap-gated access.

# ─── ARCHITECTURE ROLE ───────────────────────────────────────────────
#
# Layer: Models (bottom of the dependency graph, no imports from upper layers).
#
# A Story is a short location-tagged account published by a user.  Most
# stories are locked: full content is only visible to the author and to
# users who completed a swap for it (see ``swap.py``).
#
# Key design decisions:
#   - **Immutable state**: all models use ``frozen=True``.  Counter and
#     status changes happen in storage; the service layer re-reads and
#     uses ``model_copy(update={...})`` for in-memory transitions.
#   - **Plain id references**: a Story points at its author, location and
#     tags by id only.  Lookups are done by the orchestrating service.
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


# ─── Enums ────────────────────────────────────────────────────────────
class StoryStatus(str, Enum):
    """Publication lifecycle of a story.  Never moves back to DRAFT."""

    DRAFT = "draft"
    PUBLISHED = "published"
    QUEUED = "queued"
    REMOVED = "removed"
    ARCHIVED = "archived"


class ContentType(str, Enum):
    """Kind of content a story carries."""

    TEXT = "text"
    AUDIO = "audio"
    PHOTO = "photo"
    VIDEO = "video"
    MIXED = "mixed"


class MediaType(str, Enum):
    """Kind of an individual uploaded media item."""

    IMAGE = "image"
    AUDIO = "audio"
    VIDEO = "video"


# Media items count towards the content type they render as.
MEDIA_CONTENT_TYPES: dict[MediaType, ContentType] = {
    MediaType.IMAGE: ContentType.PHOTO,
    MediaType.AUDIO: ContentType.AUDIO,
    MediaType.VIDEO: ContentType.VIDEO,
}


# ─── Content ──────────────────────────────────────────────────────────
class MediaItem(BaseModel):
    """An already-uploaded media file referenced by URL."""

    model_config = ConfigDict(frozen=True)

    type: MediaType = Field(description="image, audio or video.")
    url: str = Field(description="URL supplied by the media storage service.")
    thumbnail_url: str | None = Field(default=None)
    filename: str | None = Field(default=None)
    size: int | None = Field(default=None, ge=0, description="File size in bytes.")
    duration: float | None = Field(default=None, ge=0, description="Seconds (audio/video).")


class TextBody(BaseModel):
    """Text part of a story."""

    model_config = ConfigDict(frozen=True)

    body: str
    word_count: int = Field(default=0, ge=0)


class StoryContent(BaseModel):
    """Typed story content: text body, media list and a derived snippet."""

    model_config = ConfigDict(frozen=True)

    type: ContentType = ContentType.TEXT
    text: TextBody | None = None
    media: list[MediaItem] = Field(default_factory=list)
    snippet: str | None = Field(
        default=None,
        max_length=150,
        description="Short teaser shown in place of the body while locked.",
    )


# ─── Swap settings ────────────────────────────────────────────────────
class SwapRequirements(BaseModel):
    """What a submission must satisfy to unlock a story."""

    model_config = ConfigDict(frozen=True)

    min_content_length: int = Field(default=50, ge=0)
    requires_location: bool = True
    # Empty list means every content type is accepted.
    allowed_content_types: list[ContentType] = Field(default_factory=list)


class SwapSettings(BaseModel):
    """Lock configuration for a story."""

    model_config = ConfigDict(frozen=True)

    is_locked: bool = True
    requires_swap: bool = True
    requirements: SwapRequirements = Field(default_factory=SwapRequirements)

    @property
    def is_unlocked(self) -> bool:
        """True when anyone may read the full story."""
        return not self.is_locked or not self.requires_swap


# ─── Engagement ───────────────────────────────────────────────────────
class Engagement(BaseModel):
    """Engagement counters; mutated in storage by atomic increments only."""

    model_config = ConfigDict(frozen=True)

    views: int = Field(default=0, ge=0)
    likes: int = Field(default=0, ge=0)
    unlocks: int = Field(default=0, ge=0)
    comments: int = Field(default=0, ge=0)
    shares: int = Field(default=0, ge=0)
    saves: int = Field(default=0, ge=0)


ENGAGEMENT_METRICS = frozenset(Engagement.model_fields)


# ─── Story ────────────────────────────────────────────────────────────
class Story(BaseModel):
    """A published (or draft) location-tagged story."""

    model_config = ConfigDict(frozen=True)

    story_id: str = Field(description="UUID identifying this story.")
    title: str = Field(min_length=1, max_length=200)
    content: StoryContent = Field(default_factory=StoryContent)
    author_id: str
    location_id: str | None = None
    tag_ids: list[str] = Field(default_factory=list)
    status: StoryStatus = StoryStatus.DRAFT
    swap_settings: SwapSettings = Field(default_factory=SwapSettings)
    engagement: Engagement = Field(default_factory=Engagement)
    popularity_score: int = Field(default=0, ge=0)
    published_at: datetime | None = None
    created_at: datetime

    @property
    def is_unlocked(self) -> bool:
        return self.swap_settings.is_unlocked
