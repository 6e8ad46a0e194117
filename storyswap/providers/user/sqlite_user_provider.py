"""SQLite-backed per-user counter storage.

Rows are created lazily: the first increment for an unseen user inserts
it via ``INSERT ... ON CONFLICT DO UPDATE``, so increments never race with
row creation.
"""

from __future__ import annotations

from pathlib import Path

import aiosqlite
import structlog

from storyswap.interfaces.user_provider import IUserProvider
from storyswap.models.user import USER_STAT_FIELDS, UserStats
from storyswap.utils.clock import to_db_timestamp, utc_now

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_DB_PATH = Path("data/storyswap.db")

_CREATE_USER_STATS_TABLE = """\
CREATE TABLE IF NOT EXISTS user_stats (
    user_id            TEXT    PRIMARY KEY,
    stories_published  INTEGER NOT NULL DEFAULT 0,
    stories_unlocked   INTEGER NOT NULL DEFAULT 0,
    swaps_completed    INTEGER NOT NULL DEFAULT 0,
    updated_at         TEXT    NOT NULL
);
"""

_SELECT_STATS = """\
SELECT user_id, stories_published, stories_unlocked, swaps_completed
FROM user_stats WHERE user_id = ?;
"""


class SQLiteUserProvider(IUserProvider):
    """Stores the counters the swap engine maintains per user."""

    def __init__(self, db_path: str | Path = _DEFAULT_DB_PATH) -> None:
        self._db_path = Path(db_path)

    async def initialize(self) -> None:
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        async with aiosqlite.connect(str(self._db_path)) as db:
            await db.execute("PRAGMA journal_mode=WAL;")
            await db.execute(_CREATE_USER_STATS_TABLE)
            await db.commit()
        logger.info("user_db_initialized", path=str(self._db_path))

    def get_provider_name(self) -> str:
        return "sqlite_user"

    async def get_stats(self, user_id: str) -> UserStats:
        async with aiosqlite.connect(str(self._db_path)) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(_SELECT_STATS, (user_id,))
            row = await cursor.fetchone()
        if row is None:
            return UserStats(user_id=user_id)
        return UserStats(**dict(row))

    async def increment_stats(self, user_id: str, **deltas: int) -> UserStats:
        unknown = set(deltas) - USER_STAT_FIELDS
        if unknown:
            raise ValueError(f"Unknown user stat(s): {', '.join(sorted(unknown))}")
        if not deltas:
            return await self.get_stats(user_id)

        # Column names come from the USER_STAT_FIELDS whitelist.
        columns = sorted(deltas)
        insert_cols = ", ".join(["user_id", *columns, "updated_at"])
        placeholders = ", ".join("?" for _ in range(len(columns) + 2))
        updates = ", ".join(f"{col} = {col} + excluded.{col}" for col in columns)
        query = (
            f"INSERT INTO user_stats ({insert_cols}) VALUES ({placeholders}) "
            f"ON CONFLICT(user_id) DO UPDATE SET {updates}, updated_at = excluded.updated_at;"
        )
        params = [user_id, *(deltas[col] for col in columns), to_db_timestamp(utc_now())]

        async with aiosqlite.connect(str(self._db_path)) as db:
            db.row_factory = aiosqlite.Row
            await db.execute(query, params)
            await db.commit()
            cursor = await db.execute(_SELECT_STATS, (user_id,))
            row = await cursor.fetchone()
        return UserStats(**dict(row))
