"""StorySwap domain models: re-exports all public model classes.

The models are organized across four submodules by domain concern:
    - story.py  -- Story, its typed content, swap settings and engagement
    - swap.py   -- Swap lifecycle records and unlock outcomes
    - place.py  -- Location and Tag aggregates with derived scores
    - user.py   -- Acting user identity and per-user counters
"""

from __future__ import annotations

from storyswap.models.place import (
    Address,
    Location,
    Tag,
    TagCategory,
    TagTrending,
    TagUsage,
)
from storyswap.models.story import (
    ContentType,
    Engagement,
    MediaItem,
    MediaType,
    Story,
    StoryContent,
    StoryStatus,
    SwapRequirements,
    SwapSettings,
    TextBody,
)
from storyswap.models.swap import (
    ModerationResults,
    Submission,
    SubmissionContent,
    SubmissionLocation,
    Swap,
    SwapInsertResult,
    SwapMetrics,
    SwapStats,
    SwapStatus,
    SwapValidation,
    UnlockDecision,
    UnlockOutcome,
    UnlockReason,
)
from storyswap.models.user import ActingUser, UserRole, UserStats

__all__ = [
    "ActingUser",
    "Address",
    "ContentType",
    "Engagement",
    "Location",
    "MediaItem",
    "MediaType",
    "ModerationResults",
    "Story",
    "StoryContent",
    "StoryStatus",
    "Submission",
    "SubmissionContent",
    "SubmissionLocation",
    "Swap",
    "SwapInsertResult",
    "SwapMetrics",
    "SwapRequirements",
    "SwapSettings",
    "SwapStats",
    "SwapStatus",
    "SwapValidation",
    "Tag",
    "TagCategory",
    "TagTrending",
    "TagUsage",
    "TextBody",
    "UnlockDecision",
    "UnlockOutcome",
    "UnlockReason",
    "UserRole",
    "UserStats",
]
