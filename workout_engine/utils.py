"""Utility helpers used across engine modules."""

from __future__ import annotations

from datetime import datetime, timezone


def utcnow() -> datetime:
    """Return the current time as an aware UTC ``datetime``."""

    return datetime.now(timezone.utc)


def to_iso(value: datetime | None) -> str | None:
    """Return ``value`` as an ISO-8601 string for storage."""

    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat()


def from_iso(value: str | None) -> datetime | None:
    """Parse a stored ISO-8601 string, assuming UTC for naive values."""

    if value is None:
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def elapsed_seconds(start: datetime, end: datetime) -> int:
    """Return whole seconds between ``start`` and ``end``, never negative."""

    return max(0, int((end - start).total_seconds()))


def whole_minutes(start: datetime, end: datetime) -> int:
    """Return the number of whole minutes between ``start`` and ``end``."""

    return elapsed_seconds(start, end) // 60


def format_clock(seconds: int) -> str:
    """Format ``seconds`` as ``m:ss`` for timer displays."""

    m, s = divmod(max(0, int(seconds)), 60)
    return f"{m}:{s:02d}"
