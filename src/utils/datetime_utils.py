"""DateTime utilities for the SkillSoft assessment server.

MongoDB hands back naive datetimes that are implicitly UTC; everything in the
service layer works with timezone-aware UTC values, so reads pass through
``ensure_utc`` before any arithmetic.
"""

from datetime import datetime, timezone
from typing import Optional


def utc_now() -> datetime:
    """Get current UTC datetime.

    Returns:
        datetime: Current UTC datetime with timezone info
    """
    return datetime.now(timezone.utc)


def ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """Normalize a datetime to timezone-aware UTC.

    Naive values are assumed to already be UTC.

    Args:
        dt: Datetime to normalize

    Returns:
        Optional[datetime]: UTC datetime, or None when dt is None
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def elapsed_ms(start: datetime, end: Optional[datetime] = None) -> int:
    """Milliseconds elapsed between two datetimes.

    Args:
        start: Start datetime
        end: End datetime, defaults to now

    Returns:
        int: Elapsed milliseconds, never negative
    """
    end = end or utc_now()
    delta = ensure_utc(end) - ensure_utc(start)
    return max(0, int(delta.total_seconds() * 1000))


def format_duration(minutes: float) -> str:
    """Format duration in minutes to human-readable string.

    Examples:
        >>> format_duration(75.5)
        '1h 15m 30s'
        >>> format_duration(0.5)
        '30s'
    """
    if minutes < 0:
        return "0s"

    total_seconds = int(minutes * 60)
    hours = total_seconds // 3600
    remaining_seconds = total_seconds % 3600
    mins = remaining_seconds // 60
    seconds = remaining_seconds % 60

    parts = []
    if hours > 0:
        parts.append(f"{hours}h")
    if mins > 0:
        parts.append(f"{mins}m")
    if seconds > 0 or not parts:
        parts.append(f"{seconds}s")

    return " ".join(parts)
