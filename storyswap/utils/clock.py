"""UTC clock and the timestamp format used in storage.

Stored timestamps are fixed-width ISO-8601 strings in UTC so that SQL
string comparison (``expires_at < ?``) orders them correctly.
"""

from __future__ import annotations

from datetime import datetime, timezone


def utc_now() -> datetime:
    return datetime.now(tz=timezone.utc)  # noqa: UP017


def to_db_timestamp(value: datetime | None) -> str | None:
    """Serialize a datetime for storage; naive values are taken as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)  # noqa: UP017
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")  # noqa: UP017
