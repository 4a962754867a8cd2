"""
Timestamp utilities for consistent time handling across the system.
"""

from datetime import datetime, timezone
from typing import Optional

SECONDS_PER_DAY = 86400.0


def utc_now() -> datetime:
    """Return the current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def to_iso(value: Optional[datetime] = None) -> str:
    """Convert a datetime to an ISO-8601 string in UTC.

    Args:
        value: datetime to convert (optional, uses current time if None)

    Returns:
        ISO-8601 timestamp string
    """
    if value is None:
        value = utc_now()
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


def from_iso(value) -> datetime:
    """Parse a stored timestamp back into a timezone-aware datetime.

    Accepts ISO-8601 strings, epoch seconds and datetime objects.
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, (int, float)):
        parsed = datetime.fromtimestamp(value, tz=timezone.utc)
    else:
        parsed = datetime.fromisoformat(str(value))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def days_between(earlier: datetime, later: datetime) -> float:
    """Fractional days from earlier to later, never negative."""
    return max(0.0, (later - earlier).total_seconds() / SECONDS_PER_DAY)
