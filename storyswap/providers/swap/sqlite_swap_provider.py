"""SQLite-backed swap persistence provider.

# ─── ARCHITECTURE ROLE ───────────────────────────────────────────────
#
# Layer: Providers (concrete adapter implementing ISwapProvider).
#
# Concurrency guarantees live in the schema, not in Python:
#   - ``UNIQUE(user_id, story_to_unlock_id)`` makes the one-swap-per-pair
#     rule atomic.  A losing INSERT raises IntegrityError, which is turned
#     into ``SwapInsertResult(inserted=False, swap=<winner>)``, or
#     ``swap=None`` when the winner is already gone again.
#   - Every status change is ``UPDATE ... WHERE swap_id = ? AND status = ?``
#     so a transition is applied at most once.
#   - Reaping is a single status-guarded UPDATE and therefore idempotent.
#
# Submission, validation, moderation and metrics are stored as JSON
# documents.  ``review_required`` and ``processing_time_ms`` are also kept
# in their own columns for the review-queue and stats queries.
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Any

import aiosqlite
import structlog

from storyswap.interfaces.swap_provider import ISwapProvider
from storyswap.models.swap import (
    REAPABLE_STATUSES,
    ModerationResults,
    Submission,
    Swap,
    SwapInsertResult,
    SwapMetrics,
    SwapStatus,
    SwapValidation,
)
from storyswap.utils.clock import to_db_timestamp, utc_now

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_DB_PATH = Path("data/storyswap.db")

# ── Schema DDL ────────────────────────────────────────────────────────

_CREATE_SWAPS_TABLE = """\
CREATE TABLE IF NOT EXISTS swaps (
    id                  INTEGER PRIMARY KEY AUTOINCREMENT,
    swap_id             TEXT    NOT NULL UNIQUE,
    user_id             TEXT    NOT NULL,
    story_to_unlock_id  TEXT    NOT NULL,
    submitted_story_id  TEXT,
    status              TEXT    NOT NULL DEFAULT 'pending',
    submission_json     TEXT    NOT NULL,
    validation_json     TEXT    NOT NULL,
    moderation_json     TEXT    NOT NULL,
    metrics_json        TEXT    NOT NULL,
    review_required     INTEGER NOT NULL DEFAULT 0,
    processing_time_ms  INTEGER,
    expires_at          TEXT    NOT NULL,
    created_at          TEXT    NOT NULL,
    updated_at          TEXT    NOT NULL,
    UNIQUE(user_id, story_to_unlock_id)
);
"""

_CREATE_INDICES = [
    "CREATE INDEX IF NOT EXISTS idx_swaps_user_created ON swaps(user_id, created_at);",
    "CREATE INDEX IF NOT EXISTS idx_swaps_story ON swaps(story_to_unlock_id);",
    "CREATE INDEX IF NOT EXISTS idx_swaps_status_expires ON swaps(status, expires_at);",
    "CREATE INDEX IF NOT EXISTS idx_swaps_created ON swaps(created_at);",
]

# ── DML ───────────────────────────────────────────────────────────────

_INSERT_SWAP = """\
INSERT INTO swaps (
    swap_id, user_id, story_to_unlock_id, submitted_story_id, status,
    submission_json, validation_json, moderation_json, metrics_json,
    review_required, processing_time_ms, expires_at, created_at, updated_at
)
VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?);
"""

_COMPARE_AND_SET = """\
UPDATE swaps
SET submitted_story_id = ?,
    status = ?,
    submission_json = ?,
    validation_json = ?,
    moderation_json = ?,
    metrics_json = ?,
    review_required = ?,
    processing_time_ms = ?,
    expires_at = ?,
    updated_at = ?
WHERE swap_id = ? AND status = ?;
"""

_SELECT_SWAP = "SELECT * FROM swaps WHERE swap_id = ?;"

_SELECT_SWAP_FOR_PAIR = "SELECT * FROM swaps WHERE user_id = ? AND story_to_unlock_id = ?;"

_SELECT_REVIEW_QUEUE = """\
SELECT * FROM swaps
WHERE status = 'rejected' AND review_required = 1
ORDER BY created_at DESC, id DESC
LIMIT ?;
"""

_SELECT_STATUS_BREAKDOWN = """\
SELECT status, COUNT(*) AS count, AVG(processing_time_ms) AS avg_processing_ms
FROM swaps
WHERE created_at >= ?
GROUP BY status;
"""


class SQLiteSwapProvider(ISwapProvider):
    """SQLite-backed swap persistence with an atomic per-pair uniqueness rule."""

    def __init__(self, db_path: str | Path = _DEFAULT_DB_PATH) -> None:
        self._db_path = Path(db_path)

    async def initialize(self) -> None:
        """Create the swaps table, its unique pair index and helper indices."""
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        async with aiosqlite.connect(str(self._db_path)) as db:
            await db.execute("PRAGMA journal_mode=WAL;")
            await db.execute(_CREATE_SWAPS_TABLE)
            for idx_sql in _CREATE_INDICES:
                await db.execute(idx_sql)
            await db.commit()
        logger.info("swap_db_initialized", path=str(self._db_path))

    def get_provider_name(self) -> str:
        return "sqlite_swap"

    # ── Writes ─────────────────────────────────────────────────────────

    async def insert_swap(self, swap: Swap) -> SwapInsertResult:
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                await db.execute(_INSERT_SWAP, (
                    swap.swap_id,
                    swap.user_id,
                    swap.story_to_unlock_id,
                    swap.submitted_story_id,
                    swap.status.value,
                    *self._documents(swap),
                    to_db_timestamp(swap.expires_at),
                    to_db_timestamp(swap.created_at),
                    to_db_timestamp(swap.updated_at),
                ))
                await db.commit()
        except aiosqlite.IntegrityError:
            existing = await self.find_swap(swap.user_id, swap.story_to_unlock_id)
            if existing is None:
                # The winner was deleted between the INSERT and the read.
                logger.info(
                    "swap_insert_conflict_vanished",
                    user_id=swap.user_id,
                    story_id=swap.story_to_unlock_id,
                )
                return SwapInsertResult(inserted=False, swap=None)
            logger.info(
                "swap_insert_conflict",
                user_id=swap.user_id,
                story_id=swap.story_to_unlock_id,
                existing_swap_id=existing.swap_id,
            )
            return SwapInsertResult(inserted=False, swap=existing)

        return SwapInsertResult(inserted=True, swap=swap)

    async def save_swap(self, swap: Swap, expected_status: SwapStatus) -> bool:
        async with aiosqlite.connect(str(self._db_path)) as db:
            cursor = await db.execute(_COMPARE_AND_SET, (
                swap.submitted_story_id,
                swap.status.value,
                *self._documents(swap),
                to_db_timestamp(swap.expires_at),
                to_db_timestamp(swap.updated_at),
                swap.swap_id,
                expected_status.value,
            ))
            await db.commit()
            return cursor.rowcount > 0

    async def delete_swap(
        self,
        swap_id: str,
        *,
        statuses: tuple[SwapStatus, ...] | None = None,
    ) -> bool:
        query = "DELETE FROM swaps WHERE swap_id = ?"
        params: list[Any] = [swap_id]
        if statuses:
            query += f" AND status IN ({', '.join('?' for _ in statuses)})"
            params.extend(s.value for s in statuses)

        async with aiosqlite.connect(str(self._db_path)) as db:
            cursor = await db.execute(query + ";", params)
            await db.commit()
            return cursor.rowcount > 0

    async def expire_swaps(self, now: datetime) -> int:
        placeholders = ", ".join("?" for _ in REAPABLE_STATUSES)
        query = (
            f"UPDATE swaps SET status = ?, updated_at = ? "
            f"WHERE status IN ({placeholders}) AND expires_at < ?;"
        )
        params = [
            SwapStatus.EXPIRED.value,
            to_db_timestamp(utc_now()),
            *(s.value for s in REAPABLE_STATUSES),
            to_db_timestamp(now),
        ]
        async with aiosqlite.connect(str(self._db_path)) as db:
            cursor = await db.execute(query, params)
            await db.commit()
            return cursor.rowcount

    # ── Reads ──────────────────────────────────────────────────────────

    async def get_swap(self, swap_id: str) -> Swap | None:
        return await self._fetch_one(_SELECT_SWAP, (swap_id,))

    async def find_swap(self, user_id: str, story_id: str) -> Swap | None:
        return await self._fetch_one(_SELECT_SWAP_FOR_PAIR, (user_id, story_id))

    async def list_user_swaps(
        self,
        user_id: str,
        *,
        status: SwapStatus | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> list[Swap]:
        conditions = ["user_id = ?"]
        params: list[Any] = [user_id]
        if status is not None:
            conditions.append("status = ?")
            params.append(status.value)
        params.extend([limit, offset])

        query = f"""\
            SELECT * FROM swaps
            WHERE {' AND '.join(conditions)}
            ORDER BY created_at DESC, id DESC
            LIMIT ? OFFSET ?;
        """
        async with aiosqlite.connect(str(self._db_path)) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(query, params)
            rows = await cursor.fetchall()
        return [self._row_to_swap(dict(r)) for r in rows]

    async def count_user_swaps(self, user_id: str, *, status: SwapStatus | None = None) -> int:
        query = "SELECT COUNT(*) FROM swaps WHERE user_id = ?"
        params: list[Any] = [user_id]
        if status is not None:
            query += " AND status = ?"
            params.append(status.value)

        async with aiosqlite.connect(str(self._db_path)) as db:
            cursor = await db.execute(query + ";", params)
            row = await cursor.fetchone()
        return row[0] if row else 0

    async def list_review_queue(self, limit: int = 50) -> list[Swap]:
        async with aiosqlite.connect(str(self._db_path)) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(_SELECT_REVIEW_QUEUE, (limit,))
            rows = await cursor.fetchall()
        return [self._row_to_swap(dict(r)) for r in rows]

    async def get_status_breakdown(self, created_since: datetime) -> list[dict[str, Any]]:
        async with aiosqlite.connect(str(self._db_path)) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(_SELECT_STATUS_BREAKDOWN, (to_db_timestamp(created_since),))
            rows = await cursor.fetchall()
        return [dict(r) for r in rows]

    # ── Private helpers ────────────────────────────────────────────────

    async def _fetch_one(self, query: str, params: tuple[Any, ...]) -> Swap | None:
        async with aiosqlite.connect(str(self._db_path)) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(query, params)
            row = await cursor.fetchone()
        return self._row_to_swap(dict(row)) if row is not None else None

    @staticmethod
    def _documents(swap: Swap) -> tuple[Any, ...]:
        """The JSON columns plus their denormalized query columns, in DDL order."""
        return (
            swap.submission_data.model_dump_json(),
            swap.validation.model_dump_json(),
            swap.moderation_results.model_dump_json(),
            swap.metrics.model_dump_json(),
            int(swap.moderation_results.review_required),
            swap.metrics.processing_time_ms,
        )

    @staticmethod
    def _row_to_swap(row: dict[str, Any]) -> Swap:
        return Swap(
            swap_id=row["swap_id"],
            user_id=row["user_id"],
            story_to_unlock_id=row["story_to_unlock_id"],
            submitted_story_id=row.get("submitted_story_id"),
            status=SwapStatus(row["status"]),
            submission_data=Submission.model_validate_json(row["submission_json"]),
            validation=SwapValidation.model_validate_json(row["validation_json"]),
            moderation_results=ModerationResults.model_validate_json(row["moderation_json"]),
            metrics=SwapMetrics.model_validate_json(row["metrics_json"]),
            expires_at=row["expires_at"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )
