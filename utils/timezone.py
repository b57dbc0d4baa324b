"""UTC-only clock. Every stored timestamp is timezone-aware UTC."""

from datetime import datetime, timezone


def now_utc() -> datetime:
    """Current time in UTC. Use instead of datetime.now()."""
    return datetime.now(timezone.utc)


def ensure_utc(dt: datetime | None) -> datetime:
    """
    Normalize a caller-supplied timestamp to UTC, defaulting to now.

    Raises ValueError for naive datetimes: their offset is unknowable.
    """
    if dt is None:
        return now_utc()
    if dt.tzinfo is None:
        raise ValueError("Naive datetime; pass a timezone-aware value")
    return dt.astimezone(timezone.utc)
