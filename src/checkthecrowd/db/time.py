# src/checkthecrowd/db/time.py
"""Time utilities for database models and challenge rendering."""

from datetime import UTC, datetime


def utcnow() -> datetime:
    """Return the current UTC time as a timezone-aware datetime."""
    return datetime.now(UTC)


def utcnow_ms() -> datetime:
    """Return the current UTC time truncated to whole milliseconds."""
    return truncate_ms(utcnow())


def truncate_ms(value: datetime) -> datetime:
    """Drop sub-millisecond precision so stored and rendered values agree."""
    return value.replace(microsecond=(value.microsecond // 1000) * 1000)


def ensure_utc(value: datetime) -> datetime:
    """Return ``value`` as an aware UTC datetime.

    SQLite hands back naive datetimes; every value we store is UTC.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def isoformat_z(value: datetime) -> str:
    """Render a datetime as ``YYYY-MM-DDTHH:MM:SS.mmmZ``."""
    value = ensure_utc(value)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"
