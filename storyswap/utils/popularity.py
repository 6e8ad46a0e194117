"""Popularity scoring for stories, tags and locations.

Every ranking value in StorySwap is derived from engagement counters and
age; nothing here touches storage.  The scoring service recomputes these on
every counter mutation (recompute-on-write), so callers never see a score
older than their own last write.

1. **story_popularity_score** -- weighted engagement times an age factor
   that decays 10% per day down to a floor of 10%.
2. **tag_popularity_score** / **tag_trending_score** / **update_trending**
   -- usage-weighted tag score plus a sticky trending flag.
3. **location_popularity_score** -- story count plus a 30-day recency bonus.
"""

from __future__ import annotations

import math
from datetime import datetime

from storyswap.models.place import TagTrending, TagUsage
from storyswap.models.story import Engagement

_SECONDS_PER_DAY = 86_400

# Per-event weights for a story's raw engagement score.
STORY_WEIGHTS: dict[str, int] = {
    "views": 1,
    "likes": 5,
    "unlocks": 10,
    "comments": 3,
    "shares": 8,
}

_AGE_DECAY_PER_DAY = 0.1
_AGE_FACTOR_FLOOR = 0.1

_TAG_STORY_WEIGHT = 10
_TAG_ACTIVE_WEIGHT = 20
_TAG_VIEW_WEIGHT = 1
_TAG_OFFICIAL_BONUS = 50
_TAG_FEATURED_BONUS = 30

TRENDING_THRESHOLD = 100.0

_LOCATION_STORY_WEIGHT = 10
_LOCATION_RECENCY_DAYS = 30


def _days_between(earlier: datetime, later: datetime) -> float:
    # Clock skew can put ``earlier`` slightly in the future; treat as zero age.
    return max(0.0, (later - earlier).total_seconds() / _SECONDS_PER_DAY)


def age_factor(published_at: datetime | None, now: datetime) -> float:
    """Decay multiplier for a story; unpublished stories do not decay."""
    if published_at is None:
        return 1.0
    days = _days_between(published_at, now)
    return max(_AGE_FACTOR_FLOOR, 1.0 - days * _AGE_DECAY_PER_DAY)


def story_popularity_score(
    engagement: Engagement,
    published_at: datetime | None,
    now: datetime,
) -> int:
    """Compute a story's ranking score.

    Args:
        engagement: The story's current counters.
        published_at: Publish timestamp, or None for unpublished stories.
        now: Reference time for the age decay.

    Returns:
        ``floor(weighted_engagement * age_factor)``, never negative.
    """
    raw = sum(getattr(engagement, metric) * weight for metric, weight in STORY_WEIGHTS.items())
    return math.floor(raw * age_factor(published_at, now))


def tag_popularity_score(usage: TagUsage, *, is_official: bool, is_featured: bool) -> int:
    score = (
        usage.total_stories * _TAG_STORY_WEIGHT
        + usage.active_stories * _TAG_ACTIVE_WEIGHT
        + usage.total_views * _TAG_VIEW_WEIGHT
    )
    if is_official:
        score += _TAG_OFFICIAL_BONUS
    if is_featured:
        score += _TAG_FEATURED_BONUS
    return score


def tag_trending_score(total_stories: int, popularity_score: int) -> float:
    """Trending score: story volume only counts once a tag has more than 5 stories."""
    volume = total_stories * 0.3 if total_stories > 5 else 0.0
    return max(0.0, volume) + popularity_score * 0.1


def update_trending(
    current: TagTrending,
    trending_score: float,
    now: datetime,
    threshold: float = TRENDING_THRESHOLD,
) -> TagTrending:
    """Apply the sticky trending rule to a tag's trending state.

    The flag switches on when the score rises above ``threshold`` (stamping
    ``since``) and only switches off once it falls back to or below it.
    """
    if trending_score > threshold and not current.is_trending:
        return TagTrending(is_trending=True, score=trending_score, since=now)
    if trending_score <= threshold and current.is_trending:
        return TagTrending(is_trending=False, score=trending_score, since=None)
    return current.model_copy(update={"score": trending_score})


def location_popularity_score(
    stories_count: int,
    last_story_at: datetime | None,
    now: datetime,
) -> int:
    recency_bonus = 0
    if last_story_at is not None:
        days = math.floor(_days_between(last_story_at, now))
        recency_bonus = max(0, _LOCATION_RECENCY_DAYS - days)
    return stories_count * _LOCATION_STORY_WEIGHT + recency_bonus
