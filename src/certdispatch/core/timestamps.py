"""
Timestamp utilities.

All persisted timestamps are timezone-aware UTC datetimes stored as
ISO-8601 text.

STDLIB ONLY - NO PYDANTIC.
"""

from datetime import UTC, datetime


def utc_now() -> datetime:
    """Get current UTC datetime."""
    return datetime.now(UTC)


def to_iso8601(dt: datetime | None) -> str | None:
    """Convert datetime to ISO 8601 string."""
    if dt is None:
        return None
    return dt.isoformat()


def from_iso8601(s: str | datetime | None) -> datetime | None:
    """Parse ISO 8601 string to datetime; naive values are assumed UTC."""
    if s is None or s == "":
        return None
    dt = s if isinstance(s, datetime) else datetime.fromisoformat(s)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt
