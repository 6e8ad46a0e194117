"""Location and Tag models: the aggregates a story attaches to.

Both carry derived popularity scores that are recomputed whenever a story
attaches to them or their counters change (see
``storyswap/services/scoring_service.py``).
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class Address(BaseModel):
    model_config = ConfigDict(frozen=True)

    formatted: str = "User submitted location"
    city: str = "Unknown"
    country: str = "Unknown"


class Location(BaseModel):
    """A point on the map that stories are attached to."""

    model_config = ConfigDict(frozen=True)

    location_id: str
    longitude: float = Field(ge=-180.0, le=180.0)
    latitude: float = Field(ge=-90.0, le=90.0)
    address: Address = Field(default_factory=Address)
    stories_count: int = Field(default=0, ge=0)
    popularity_score: int = Field(default=0, ge=0)
    last_story_at: datetime | None = None
    created_at: datetime


class TagCategory(str, Enum):
    FOOD = "food"
    HISTORY = "history"
    CULTURE = "culture"
    NATURE = "nature"
    ARCHITECTURE = "architecture"
    EVENTS = "events"
    PEOPLE = "people"
    HIDDEN_GEMS = "hidden-gems"
    TRANSPORTATION = "transportation"
    SHOPPING = "shopping"
    NIGHTLIFE = "nightlife"
    ART = "art"
    MUSIC = "music"
    SPORTS = "sports"
    BUSINESS = "business"
    EDUCATION = "education"
    TECHNOLOGY = "technology"
    OTHER = "other"


class TagUsage(BaseModel):
    model_config = ConfigDict(frozen=True)

    total_stories: int = Field(default=0, ge=0)
    active_stories: int = Field(default=0, ge=0)
    total_views: int = Field(default=0, ge=0)


class TagTrending(BaseModel):
    """Sticky trending flag.  ``since`` is set when the flag switches on."""

    model_config = ConfigDict(frozen=True)

    is_trending: bool = False
    score: float = 0.0
    since: datetime | None = None


class Tag(BaseModel):
    """A normalized topic label shared across stories."""

    model_config = ConfigDict(frozen=True)

    tag_id: str
    name: str = Field(min_length=1, max_length=30, description="Lower-cased, trimmed, unique.")
    display_name: str = Field(min_length=1, max_length=50)
    category: TagCategory = TagCategory.OTHER
    usage: TagUsage = Field(default_factory=TagUsage)
    popularity_score: int = Field(default=0, ge=0)
    trending: TagTrending = Field(default_factory=TagTrending)
    is_official: bool = False
    is_featured: bool = False
    created_at: datetime
