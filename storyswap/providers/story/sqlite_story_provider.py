"""SQLite-backed story persistence provider.

# ─── ARCHITECTURE ROLE ───────────────────────────────────────────────
#
# Layer: Providers (concrete adapter implementing IStoryProvider).
# Pattern: Adapter pattern, wraps SQLite behind the IStoryProvider ABC so
#          the persistence backend can be swapped without touching the
#          swap engine.
#
# Database: ``data/storyswap.db`` (shared with the swap, place and user
# providers; each provider owns its own tables).
#
# Storage layout:
#   - Typed content and swap settings are stored as JSON documents.
#   - The plain text body is duplicated into its own column so the
#     duplicate-content check can search it without decoding JSON.  A
#     ``casefold()``-ed copy sits beside it; SQLite's lower() only folds
#     ASCII, so case-insensitive matching is done on Python-folded text.
#   - Engagement counters are real columns, only ever changed with
#     ``SET x = x + ?`` so concurrent requests never lose an increment.
#
# Follows the same provider pattern as the swap, place and user providers.
# Uses ``aiosqlite`` for async I/O and ``PRAGMA journal_mode=WAL`` for
# concurrent read safety.
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Any

import aiosqlite
import structlog

from storyswap.interfaces.story_provider import IStoryProvider
from storyswap.models.story import (
    ENGAGEMENT_METRICS,
    Engagement,
    Story,
    StoryContent,
    StoryStatus,
    SwapSettings,
)
from storyswap.utils.clock import to_db_timestamp
from storyswap.utils.errors import PersistenceError

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_DB_PATH = Path("data/storyswap.db")

# ── Schema DDL ────────────────────────────────────────────────────────

_CREATE_STORIES_TABLE = """\
CREATE TABLE IF NOT EXISTS stories (
    id                INTEGER PRIMARY KEY AUTOINCREMENT,
    story_id          TEXT    NOT NULL UNIQUE,
    title             TEXT    NOT NULL,
    content_type      TEXT    NOT NULL DEFAULT 'text',
    content_json      TEXT    NOT NULL,
    body              TEXT,
    body_folded       TEXT,
    author_id         TEXT    NOT NULL,
    location_id       TEXT,
    status            TEXT    NOT NULL DEFAULT 'draft',
    swap_settings_json TEXT   NOT NULL,
    views             INTEGER NOT NULL DEFAULT 0,
    likes             INTEGER NOT NULL DEFAULT 0,
    unlocks           INTEGER NOT NULL DEFAULT 0,
    comments          INTEGER NOT NULL DEFAULT 0,
    shares            INTEGER NOT NULL DEFAULT 0,
    saves             INTEGER NOT NULL DEFAULT 0,
    popularity_score  INTEGER NOT NULL DEFAULT 0,
    published_at      TEXT,
    created_at        TEXT    NOT NULL
);
"""

_CREATE_STORY_TAGS_TABLE = """\
CREATE TABLE IF NOT EXISTS story_tags (
    id        INTEGER PRIMARY KEY AUTOINCREMENT,
    story_id  TEXT    NOT NULL REFERENCES stories(story_id),
    tag_id    TEXT    NOT NULL,
    position  INTEGER NOT NULL DEFAULT 0,
    UNIQUE(story_id, tag_id)
);
"""

_CREATE_INDICES = [
    "CREATE INDEX IF NOT EXISTS idx_stories_status_published ON stories(status, published_at);",
    "CREATE INDEX IF NOT EXISTS idx_stories_author ON stories(author_id);",
    "CREATE INDEX IF NOT EXISTS idx_stories_location ON stories(location_id);",
    "CREATE INDEX IF NOT EXISTS idx_stories_score ON stories(popularity_score);",
    "CREATE INDEX IF NOT EXISTS idx_story_tags_story ON story_tags(story_id);",
    "CREATE INDEX IF NOT EXISTS idx_story_tags_tag ON story_tags(tag_id);",
]

# ── DML ───────────────────────────────────────────────────────────────

_INSERT_STORY = """\
INSERT INTO stories (
    story_id, title, content_type, content_json, body, body_folded, author_id, location_id,
    status, swap_settings_json, views, likes, unlocks, comments, shares, saves,
    popularity_score, published_at, created_at
)
VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?);
"""

_INSERT_STORY_TAG = """\
INSERT OR IGNORE INTO story_tags (story_id, tag_id, position)
VALUES (?, ?, ?);
"""

_SELECT_STORY = "SELECT * FROM stories WHERE story_id = ?;"

_SELECT_STORY_TAGS = "SELECT tag_id FROM story_tags WHERE story_id = ? ORDER BY position ASC;"

_UPDATE_SCORE = "UPDATE stories SET popularity_score = ? WHERE story_id = ?;"

_SELECT_PUBLISHED_CONTAINING = """\
SELECT story_id FROM stories
WHERE status = 'published'
  AND body_folded IS NOT NULL
  AND instr(body_folded, ?) > 0
ORDER BY id ASC
LIMIT ?;
"""

_SELECT_TRENDING = """\
SELECT * FROM stories
WHERE status = 'published' AND published_at >= ?
ORDER BY popularity_score DESC, published_at DESC
LIMIT ?;
"""


class SQLiteStoryProvider(IStoryProvider):
    """SQLite-backed story persistence.

    Stores stories, their tag links and engagement counters.  Engagement is
    mutated only through :meth:`increment_engagement`.
    """

    def __init__(self, db_path: str | Path = _DEFAULT_DB_PATH) -> None:
        self._db_path = Path(db_path)

    async def initialize(self) -> None:
        """Create the story tables and indices if they don't exist."""
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        async with aiosqlite.connect(str(self._db_path)) as db:
            await db.execute("PRAGMA journal_mode=WAL;")
            await db.execute(_CREATE_STORIES_TABLE)
            await db.execute(_CREATE_STORY_TAGS_TABLE)
            for idx_sql in _CREATE_INDICES:
                await db.execute(idx_sql)
            await db.commit()
        logger.info("story_db_initialized", path=str(self._db_path))

    def get_provider_name(self) -> str:
        return "sqlite_story"

    # ── Story CRUD ─────────────────────────────────────────────────────

    async def create_story(self, story: Story) -> Story:
        content = story.content
        body = content.text.body if content.text is not None else None
        engagement = story.engagement

        async with aiosqlite.connect(str(self._db_path)) as db:
            await db.execute(_INSERT_STORY, (
                story.story_id,
                story.title,
                content.type.value,
                content.model_dump_json(),
                body,
                body.casefold() if body is not None else None,
                story.author_id,
                story.location_id,
                story.status.value,
                story.swap_settings.model_dump_json(),
                engagement.views,
                engagement.likes,
                engagement.unlocks,
                engagement.comments,
                engagement.shares,
                engagement.saves,
                story.popularity_score,
                to_db_timestamp(story.published_at),
                to_db_timestamp(story.created_at),
            ))
            for position, tag_id in enumerate(story.tag_ids):
                await db.execute(_INSERT_STORY_TAG, (story.story_id, tag_id, position))
            await db.commit()

        logger.info(
            "story_created",
            story_id=story.story_id,
            status=story.status.value,
            content_type=content.type.value,
            tag_count=len(story.tag_ids),
        )
        return story

    async def get_story(self, story_id: str) -> Story | None:
        async with aiosqlite.connect(str(self._db_path)) as db:
            db.row_factory = aiosqlite.Row
            return await self._fetch_story(db, story_id)

    # ── Counters and scores ────────────────────────────────────────────

    async def increment_engagement(
        self,
        story_id: str,
        metric: str,
        amount: int = 1,
    ) -> Story | None:
        if metric not in ENGAGEMENT_METRICS:
            raise ValueError(f"Unknown engagement metric: {metric!r}")

        # ``metric`` is whitelisted above, so interpolating the column is safe.
        query = f"UPDATE stories SET {metric} = {metric} + ? WHERE story_id = ?;"
        async with aiosqlite.connect(str(self._db_path)) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(query, (amount, story_id))
            await db.commit()
            if cursor.rowcount == 0:
                return None
            return await self._fetch_story(db, story_id)

    async def set_popularity_score(self, story_id: str, score: int) -> None:
        async with aiosqlite.connect(str(self._db_path)) as db:
            await db.execute(_UPDATE_SCORE, (max(0, score), story_id))
            await db.commit()

    # ── Queries ────────────────────────────────────────────────────────

    async def find_published_containing(self, fragment: str, limit: int = 5) -> list[str]:
        # instr() is a literal match, so regex metacharacters in user text are harmless.
        async with aiosqlite.connect(str(self._db_path)) as db:
            cursor = await db.execute(_SELECT_PUBLISHED_CONTAINING, (fragment.casefold(), limit))
            rows = await cursor.fetchall()
        return [row[0] for row in rows]

    async def list_trending(
        self,
        *,
        published_since: datetime,
        limit: int = 20,
    ) -> list[Story]:
        async with aiosqlite.connect(str(self._db_path)) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(_SELECT_TRENDING, (to_db_timestamp(published_since), limit))
            rows = await cursor.fetchall()

            stories: list[Story] = []
            for row in rows:
                row_dict = dict(row)
                tag_ids = await self._get_tag_ids(db, row_dict["story_id"])
                stories.append(self._row_to_story(row_dict, tag_ids))
        return stories

    # ── Private helpers ────────────────────────────────────────────────

    async def _fetch_story(self, db: aiosqlite.Connection, story_id: str) -> Story | None:
        cursor = await db.execute(_SELECT_STORY, (story_id,))
        row = await cursor.fetchone()
        if row is None:
            return None
        tag_ids = await self._get_tag_ids(db, story_id)
        return self._row_to_story(dict(row), tag_ids)

    @staticmethod
    async def _get_tag_ids(db: aiosqlite.Connection, story_id: str) -> list[str]:
        cursor = await db.execute(_SELECT_STORY_TAGS, (story_id,))
        rows = await cursor.fetchall()
        return [row[0] for row in rows]

    @staticmethod
    def _row_to_story(row: dict[str, Any], tag_ids: list[str]) -> Story:
        """Convert a ``stories`` row plus its tag links into a Story model."""
        try:
            content = StoryContent.model_validate_json(row["content_json"])
            swap_settings = SwapSettings.model_validate_json(row["swap_settings_json"])
        except ValueError as exc:
            raise PersistenceError(
                message=f"Corrupt story row {row['story_id']}: {exc}",
                provider_name="sqlite_story",
            ) from exc

        return Story(
            story_id=row["story_id"],
            title=row["title"],
            content=content,
            author_id=row["author_id"],
            location_id=row.get("location_id"),
            tag_ids=tag_ids,
            status=StoryStatus(row["status"]),
            swap_settings=swap_settings,
            engagement=Engagement(**{metric: row[metric] for metric in ENGAGEMENT_METRICS}),
            popularity_score=row["popularity_score"],
            published_at=row.get("published_at"),
            created_at=row["created_at"],
        )
