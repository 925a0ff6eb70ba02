"""
Timezone utilities for consistent datetime handling.

All execution timestamps are stored in UTC. SQLite drops tzinfo on the
way back out, so values read from the store are normalised here.
"""

from datetime import datetime, timezone
from typing import Optional


def get_utc_now() -> datetime:
    """
    Get current datetime in UTC.

    Returns:
        datetime: Current time with UTC timezone info
    """
    return datetime.now(tz=timezone.utc)


def to_utc(dt: datetime) -> datetime:
    """
    Convert a datetime to UTC.

    Args:
        dt: Datetime to convert (naive values are assumed to already be UTC)

    Returns:
        datetime: Datetime in UTC
    """
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)

    return dt.astimezone(timezone.utc)


def isoformat(dt: Optional[datetime]) -> Optional[str]:
    """ISO-8601 string in UTC, or None."""
    if dt is None:
        return None
    return to_utc(dt).isoformat()


def seconds_since(start: datetime, end: Optional[datetime] = None) -> float:
    """Elapsed seconds between two (possibly naive) datetimes."""
    end = end or get_utc_now()
    return max((to_utc(end) - to_utc(start)).total_seconds(), 0.0)
