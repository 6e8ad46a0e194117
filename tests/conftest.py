"""Shared pytest fixtures for the StorySwap test suite."""

from __future__ import annotations

import os
import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

import pytest

from storyswap.models.story import (
    ContentType,
    Story,
    StoryContent,
    StoryStatus,
    SwapRequirements,
    SwapSettings,
    TextBody,
)
from storyswap.models.swap import (
    Submission,
    SubmissionContent,
    SubmissionLocation,
    Swap,
    SwapStatus,
)
from storyswap.models.user import ActingUser, UserRole

FIXED_NOW = datetime(2025, 6, 15, 12, 0, 0, tzinfo=timezone.utc)

# Long enough for the default 50-character minimum and free of any
# blocklisted word or moderation pattern.
GOOD_TEXT = (
    "We found a tiny bakery tucked behind the old tram depot, where the owner "
    "still bakes rye loaves in a wood oven every morning before sunrise."
)
SUBMISSION_TEXT = (
    "On Thursdays the riverside night market fills with lantern light, grilled "
    "corn stalls and a brass band playing until the last ferry leaves."
)


# ---------------------------------------------------------------------------
# Paths & config
# ---------------------------------------------------------------------------


@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def tmp_db():
    """Path of a throwaway SQLite file, removed after the test."""
    tmp = tempfile.NamedTemporaryFile(suffix=".db", delete=False)
    tmp.close()
    yield tmp.name
    for suffix in ("", "-wal", "-shm"):
        if os.path.exists(tmp.name + suffix):
            os.unlink(tmp.name + suffix)


@pytest.fixture
def mock_config() -> dict[str, Any]:
    """Minimal rules configuration, matching config/config.yaml defaults."""
    return {
        "moderation": {
            "blocklist": ["spam", "fake", "scam"],
            "use_profanity_wordlist": False,
            "duplicate_min_length": 50,
            "duplicate_prefix_length": 100,
            "patterns": ["violence", "hate", "inappropriate"],
            "pattern_reason": "inappropriate_content",
            "pattern_confidence": 0.8,
        },
        "materializer": {"max_tags": 5, "location_merge_radius_m": 50},
        "scoring": {"trending_threshold": 100},
    }


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


@pytest.fixture
def reader() -> ActingUser:
    return ActingUser(user_id="reader-1")


@pytest.fixture
def author() -> ActingUser:
    return ActingUser(user_id="author-1")


@pytest.fixture
def admin() -> ActingUser:
    return ActingUser(user_id="admin-1", role=UserRole.ADMIN)


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------


def make_story(
    story_id: str = "story-1",
    author_id: str = "author-1",
    *,
    text: str = GOOD_TEXT,
    status: StoryStatus = StoryStatus.PUBLISHED,
    is_locked: bool = True,
    requires_swap: bool = True,
    requirements: SwapRequirements | None = None,
    published_at: datetime | None = FIXED_NOW,
    **kwargs: Any,
) -> Story:
    return Story(
        story_id=story_id,
        title=kwargs.pop("title", "Rye bread at dawn"),
        content=StoryContent(
            type=ContentType.TEXT,
            text=TextBody(body=text, word_count=len(text.split())),
            snippet=" ".join(text.split()[:5]) + "...",
        ),
        author_id=author_id,
        status=status,
        swap_settings=SwapSettings(
            is_locked=is_locked,
            requires_swap=requires_swap,
            requirements=requirements or SwapRequirements(),
        ),
        published_at=published_at,
        created_at=kwargs.pop("created_at", FIXED_NOW),
        **kwargs,
    )


def make_submission(
    *,
    title: str = "The night market",
    text: str | None = SUBMISSION_TEXT,
    coordinates: list[float] | None = None,
    tags: list[str] | None = None,
    **kwargs: Any,
) -> Submission:
    coords = [13.405, 52.52] if coordinates is None else coordinates
    return Submission(
        title=title,
        content=SubmissionContent(type=kwargs.pop("content_type", ContentType.TEXT), text=text, **kwargs),
        location=SubmissionLocation(coordinates=coords, city="Berlin", country="Germany") if coords else None,
        tags=tags if tags is not None else ["food", "Hidden Gems"],
    )


def make_swap(
    swap_id: str = "swap-1",
    user_id: str = "reader-1",
    story_id: str = "story-1",
    *,
    status: SwapStatus = SwapStatus.PENDING,
    created_at: datetime = FIXED_NOW,
    ttl: timedelta = timedelta(hours=24),
    **kwargs: Any,
) -> Swap:
    return Swap(
        swap_id=swap_id,
        user_id=user_id,
        story_to_unlock_id=story_id,
        status=status,
        submission_data=kwargs.pop("submission_data", make_submission()),
        expires_at=created_at + ttl,
        created_at=created_at,
        updated_at=created_at,
        **kwargs,
    )


@pytest.fixture
def story() -> Story:
    return make_story()


@pytest.fixture
def submission() -> Submission:
    return make_submission()
