"""SQLite-backed location and tag persistence provider.

# ─── ARCHITECTURE ROLE ───────────────────────────────────────────────
#
# Layer: Providers (concrete adapter implementing IPlaceProvider).
#
# Locations are deduplicated by distance: ``find_location_near`` narrows
# candidates with a bounding-box query on (latitude, longitude) and then
# picks the closest one by haversine distance in Python.
#
# Tags are deduplicated by normalized name via a UNIQUE column and
# ``INSERT OR IGNORE``, so two requests creating the same tag at once both
# end up with the same row.
#
# Counters (``stories_count``, tag usage) use ``SET x = x + ?``.
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

import uuid
from datetime import datetime
from pathlib import Path
from typing import Any

import aiosqlite
import structlog

from storyswap.interfaces.place_provider import IPlaceProvider
from storyswap.models.place import Address, Location, Tag, TagCategory, TagTrending, TagUsage
from storyswap.utils.clock import to_db_timestamp
from storyswap.utils.geo import bounding_boxes, haversine_m

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_DB_PATH = Path("data/storyswap.db")

# ── Schema DDL ────────────────────────────────────────────────────────

_CREATE_LOCATIONS_TABLE = """\
CREATE TABLE IF NOT EXISTS locations (
    id                INTEGER PRIMARY KEY AUTOINCREMENT,
    location_id       TEXT    NOT NULL UNIQUE,
    longitude         REAL    NOT NULL,
    latitude          REAL    NOT NULL,
    formatted_address TEXT    NOT NULL,
    city              TEXT    NOT NULL,
    country           TEXT    NOT NULL,
    stories_count     INTEGER NOT NULL DEFAULT 0,
    popularity_score  INTEGER NOT NULL DEFAULT 0,
    last_story_at     TEXT,
    created_at        TEXT    NOT NULL
);
"""

_CREATE_TAGS_TABLE = """\
CREATE TABLE IF NOT EXISTS tags (
    id                INTEGER PRIMARY KEY AUTOINCREMENT,
    tag_id            TEXT    NOT NULL UNIQUE,
    name              TEXT    NOT NULL UNIQUE,
    display_name      TEXT    NOT NULL,
    category          TEXT    NOT NULL DEFAULT 'other',
    total_stories     INTEGER NOT NULL DEFAULT 0,
    active_stories    INTEGER NOT NULL DEFAULT 0,
    total_views       INTEGER NOT NULL DEFAULT 0,
    popularity_score  INTEGER NOT NULL DEFAULT 0,
    is_trending       INTEGER NOT NULL DEFAULT 0,
    trending_score    REAL    NOT NULL DEFAULT 0,
    trending_since    TEXT,
    is_official       INTEGER NOT NULL DEFAULT 0,
    is_featured       INTEGER NOT NULL DEFAULT 0,
    created_at        TEXT    NOT NULL
);
"""

_CREATE_INDICES = [
    "CREATE INDEX IF NOT EXISTS idx_locations_lat_lon ON locations(latitude, longitude);",
    "CREATE INDEX IF NOT EXISTS idx_locations_city ON locations(city);",
    "CREATE INDEX IF NOT EXISTS idx_locations_score ON locations(popularity_score);",
    "CREATE INDEX IF NOT EXISTS idx_tags_trending ON tags(is_trending, trending_score);",
]

# ── DML ───────────────────────────────────────────────────────────────

_INSERT_LOCATION = """\
INSERT INTO locations (
    location_id, longitude, latitude, formatted_address, city, country,
    stories_count, popularity_score, last_story_at, created_at
)
VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?);
"""

_SELECT_LOCATIONS_IN_BOX = """\
SELECT * FROM locations
WHERE longitude BETWEEN ? AND ?
  AND latitude BETWEEN ? AND ?;
"""

_RECORD_LOCATION_STORY = """\
UPDATE locations
SET stories_count = stories_count + 1, last_story_at = ?
WHERE location_id = ?;
"""

_UPDATE_LOCATION_SCORE = "UPDATE locations SET popularity_score = ? WHERE location_id = ?;"

_INSERT_TAG_IF_MISSING = """\
INSERT OR IGNORE INTO tags (tag_id, name, display_name, category, created_at)
VALUES (?, ?, ?, ?, ?);
"""

_INCREMENT_TAG_USAGE = """\
UPDATE tags
SET total_stories = total_stories + ?,
    active_stories = MAX(0, active_stories + ?),
    total_views = total_views + ?
WHERE tag_id = ?;
"""

_UPDATE_TAG_SCORES = """\
UPDATE tags
SET popularity_score = ?, is_trending = ?, trending_score = ?, trending_since = ?
WHERE tag_id = ?;
"""

_SELECT_TRENDING_TAGS = """\
SELECT * FROM tags
ORDER BY is_trending DESC, trending_score DESC, popularity_score DESC
LIMIT ?;
"""


class SQLitePlaceProvider(IPlaceProvider):
    """SQLite-backed persistence for locations and tags."""

    def __init__(self, db_path: str | Path = _DEFAULT_DB_PATH) -> None:
        self._db_path = Path(db_path)

    async def initialize(self) -> None:
        """Create the location and tag tables and indices if they don't exist."""
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        async with aiosqlite.connect(str(self._db_path)) as db:
            await db.execute("PRAGMA journal_mode=WAL;")
            await db.execute(_CREATE_LOCATIONS_TABLE)
            await db.execute(_CREATE_TAGS_TABLE)
            for idx_sql in _CREATE_INDICES:
                await db.execute(idx_sql)
            await db.commit()
        logger.info("place_db_initialized", path=str(self._db_path))

    def get_provider_name(self) -> str:
        return "sqlite_place"

    # ── Locations ──────────────────────────────────────────────────────

    async def find_location_near(
        self,
        longitude: float,
        latitude: float,
        radius_m: float,
    ) -> Location | None:
        # Near the antimeridian the search area is two boxes.
        rows: list[Any] = []
        async with aiosqlite.connect(str(self._db_path)) as db:
            db.row_factory = aiosqlite.Row
            for box in bounding_boxes(longitude, latitude, radius_m):
                cursor = await db.execute(_SELECT_LOCATIONS_IN_BOX, box)
                rows.extend(await cursor.fetchall())

        best: tuple[float, dict[str, Any]] | None = None
        for row in rows:
            row_dict = dict(row)
            distance = haversine_m(longitude, latitude, row_dict["longitude"], row_dict["latitude"])
            if distance <= radius_m and (best is None or distance < best[0]):
                best = (distance, row_dict)

        if best is None:
            return None
        return self._row_to_location(best[1])

    async def create_location(self, location: Location) -> Location:
        async with aiosqlite.connect(str(self._db_path)) as db:
            await db.execute(_INSERT_LOCATION, (
                location.location_id,
                location.longitude,
                location.latitude,
                location.address.formatted,
                location.address.city,
                location.address.country,
                location.stories_count,
                location.popularity_score,
                to_db_timestamp(location.last_story_at),
                to_db_timestamp(location.created_at),
            ))
            await db.commit()
        logger.info(
            "location_created",
            location_id=location.location_id,
            city=location.address.city,
        )
        return location

    async def get_location(self, location_id: str) -> Location | None:
        async with aiosqlite.connect(str(self._db_path)) as db:
            db.row_factory = aiosqlite.Row
            return await self._fetch_location(db, location_id)

    async def record_location_story(self, location_id: str, at: datetime) -> Location | None:
        async with aiosqlite.connect(str(self._db_path)) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(_RECORD_LOCATION_STORY, (to_db_timestamp(at), location_id))
            await db.commit()
            if cursor.rowcount == 0:
                return None
            return await self._fetch_location(db, location_id)

    async def set_location_score(self, location_id: str, score: int) -> None:
        async with aiosqlite.connect(str(self._db_path)) as db:
            await db.execute(_UPDATE_LOCATION_SCORE, (max(0, score), location_id))
            await db.commit()

    async def list_popular_locations(
        self,
        *,
        city: str | None = None,
        limit: int = 20,
    ) -> list[Location]:
        conditions: list[str] = ["stories_count > 0"]
        params: list[Any] = []
        if city:
            conditions.append("lower(city) = lower(?)")
            params.append(city)
        params.append(limit)

        query = f"""\
            SELECT * FROM locations
            WHERE {' AND '.join(conditions)}
            ORDER BY popularity_score DESC, stories_count DESC
            LIMIT ?;
        """
        async with aiosqlite.connect(str(self._db_path)) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(query, params)
            rows = await cursor.fetchall()
        return [self._row_to_location(dict(r)) for r in rows]

    # ── Tags ───────────────────────────────────────────────────────────

    async def find_or_create_tag(self, name: str, display_name: str, created_at: datetime) -> Tag:
        async with aiosqlite.connect(str(self._db_path)) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(_INSERT_TAG_IF_MISSING, (
                str(uuid.uuid4()),
                name,
                display_name,
                TagCategory.OTHER.value,
                to_db_timestamp(created_at),
            ))
            await db.commit()
            if cursor.rowcount:
                logger.info("tag_created", name=name)
            cursor = await db.execute("SELECT * FROM tags WHERE name = ?;", (name,))
            row = await cursor.fetchone()
        return self._row_to_tag(dict(row))

    async def get_tag(self, tag_id: str) -> Tag | None:
        async with aiosqlite.connect(str(self._db_path)) as db:
            db.row_factory = aiosqlite.Row
            return await self._fetch_tag(db, tag_id)

    async def increment_tag_usage(
        self,
        tag_id: str,
        *,
        total_stories: int = 0,
        active_stories: int = 0,
        total_views: int = 0,
    ) -> Tag | None:
        async with aiosqlite.connect(str(self._db_path)) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(
                _INCREMENT_TAG_USAGE, (total_stories, active_stories, total_views, tag_id)
            )
            await db.commit()
            if cursor.rowcount == 0:
                return None
            return await self._fetch_tag(db, tag_id)

    async def set_tag_scores(self, tag_id: str, popularity_score: int, trending: TagTrending) -> None:
        async with aiosqlite.connect(str(self._db_path)) as db:
            await db.execute(_UPDATE_TAG_SCORES, (
                max(0, popularity_score),
                int(trending.is_trending),
                trending.score,
                to_db_timestamp(trending.since),
                tag_id,
            ))
            await db.commit()

    async def list_trending_tags(self, limit: int = 20) -> list[Tag]:
        async with aiosqlite.connect(str(self._db_path)) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(_SELECT_TRENDING_TAGS, (limit,))
            rows = await cursor.fetchall()
        return [self._row_to_tag(dict(r)) for r in rows]

    # ── Private helpers ────────────────────────────────────────────────

    async def _fetch_location(self, db: aiosqlite.Connection, location_id: str) -> Location | None:
        cursor = await db.execute("SELECT * FROM locations WHERE location_id = ?;", (location_id,))
        row = await cursor.fetchone()
        return self._row_to_location(dict(row)) if row is not None else None

    async def _fetch_tag(self, db: aiosqlite.Connection, tag_id: str) -> Tag | None:
        cursor = await db.execute("SELECT * FROM tags WHERE tag_id = ?;", (tag_id,))
        row = await cursor.fetchone()
        return self._row_to_tag(dict(row)) if row is not None else None

    @staticmethod
    def _row_to_location(row: dict[str, Any]) -> Location:
        return Location(
            location_id=row["location_id"],
            longitude=row["longitude"],
            latitude=row["latitude"],
            address=Address(
                formatted=row["formatted_address"],
                city=row["city"],
                country=row["country"],
            ),
            stories_count=row["stories_count"],
            popularity_score=row["popularity_score"],
            last_story_at=row.get("last_story_at"),
            created_at=row["created_at"],
        )

    @staticmethod
    def _row_to_tag(row: dict[str, Any]) -> Tag:
        return Tag(
            tag_id=row["tag_id"],
            name=row["name"],
            display_name=row["display_name"],
            category=TagCategory(row["category"]),
            usage=TagUsage(
                total_stories=row["total_stories"],
                active_stories=row["active_stories"],
                total_views=row["total_views"],
            ),
            popularity_score=row["popularity_score"],
            trending=TagTrending(
                is_trending=bool(row["is_trending"]),
                score=row["trending_score"],
                since=row.get("trending_since"),
            ),
            is_official=bool(row["is_official"]),
            is_featured=bool(row["is_featured"]),
            created_at=row["created_at"],
        )
