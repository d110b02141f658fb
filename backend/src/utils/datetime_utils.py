"""
Datetime utilities for consistent timezone handling across the application.

All timestamps are stored and compared as timezone-aware UTC datetimes.
Some backends (SQLite) drop tzinfo on the way back out, so values read from
the store go through ensure_utc() before any comparison.
"""

from datetime import datetime, timezone
from typing import Optional


def utc_now() -> datetime:
    """Get current UTC datetime (timezone-aware)."""
    return datetime.now(timezone.utc)


def ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """
    Ensure a datetime is timezone-aware in UTC.

    Naive datetimes are assumed to already be UTC.

    Args:
        dt: Datetime to normalise

    Returns:
        Timezone-aware UTC datetime, or None if input is None
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def is_past(dt: Optional[datetime], now: Optional[datetime] = None) -> bool:
    """True when ``dt`` is at or before ``now``. A missing timestamp counts as past."""
    if dt is None:
        return True
    return ensure_utc(dt) <= (now or utc_now())  # type: ignore[operator]
