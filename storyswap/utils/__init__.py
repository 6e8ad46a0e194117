"""Utility modules for StorySwap.

- **errors** -- exception hierarchy rooted at StorySwapError; each class
  knows the HTTP status the API answers with.
- **logging** -- structlog setup with a dual-renderer pattern: coloured
  console output in development, structured JSON in production.
- **popularity** -- pure scoring math for stories, tags and locations.
- **geo** -- haversine distance used to merge nearby locations.
- **text_normalizer** -- markup stripping, snippets, word counts, tag names.
- **clock** -- UTC "now" and the fixed-width timestamp format used in storage.
"""

from storyswap.utils.clock import to_db_timestamp, utc_now
from storyswap.utils.errors import (
    ConfigurationError,
    ForbiddenError,
    NotFoundError,
    PersistenceError,
    ProcessingFaultError,
    StorySwapError,
    SwapStateError,
    ValidationFailedError,
)
from storyswap.utils.geo import haversine_m
from storyswap.utils.logging import (
    configure_logging,
    get_logger,
    request_context,
    swap_context,
)
from storyswap.utils.popularity import (
    TRENDING_THRESHOLD,
    location_popularity_score,
    story_popularity_score,
    tag_popularity_score,
    tag_trending_score,
    update_trending,
)
from storyswap.utils.text_normalizer import build_snippet, count_words, normalize_tag_name

__all__ = [
    "ConfigurationError",
    "ForbiddenError",
    "NotFoundError",
    "PersistenceError",
    "ProcessingFaultError",
    "StorySwapError",
    "SwapStateError",
    "TRENDING_THRESHOLD",
    "ValidationFailedError",
    "build_snippet",
    "configure_logging",
    "count_words",
    "get_logger",
    "haversine_m",
    "location_popularity_score",
    "normalize_tag_name",
    "request_context",
    "story_popularity_score",
    "swap_context",
    "tag_popularity_score",
    "tag_trending_score",
    "to_db_timestamp",
    "update_trending",
    "utc_now",
]
