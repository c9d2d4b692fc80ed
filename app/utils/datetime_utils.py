"""
Timezone-aware datetime utilities.

This module provides utilities for working with timezone-aware datetimes,
ensuring consistent handling across the application.
"""

import math
from datetime import datetime, timezone
from typing import Optional

# UTC timezone constant
UTC = timezone.utc

_SECONDS_PER_DAY = 60 * 60 * 24


def now_utc() -> datetime:
    """
    Get current UTC datetime (timezone-aware).

    Replaces datetime.utcnow() which is deprecated in Python 3.12+.

    Returns:
        datetime: Current UTC time with tzinfo set to UTC
    """
    return datetime.now(UTC)


def ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """
    Ensure datetime is timezone-aware and in UTC.

    SQLite hands back naive datetimes, so everything read from the database
    goes through here before it is compared with ``now_utc()``.
    """
    if dt is None:
        return None

    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)

    return dt.astimezone(UTC)


def days_between(start: datetime, end: datetime) -> int:
    """Whole days from start to end, rounded up (negative when end is earlier)."""
    delta = ensure_utc(end) - ensure_utc(start)
    return math.ceil(delta.total_seconds() / _SECONDS_PER_DAY)
