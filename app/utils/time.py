"""Time Utilities for UTC management"""

import math
from datetime import datetime, timedelta, timezone


def get_utc_now() -> datetime:
    """
    Returns a naive UTC datetime.
    Matches the DB schema (TIMESTAMP WITHOUT TIME ZONE).
    Avoids 'datetime.utcnow()' deprecation warnings.
    """
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: datetime) -> datetime:
    """Normalize an incoming datetime to naive UTC; naive input is assumed UTC."""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def days_until(moment: datetime, now: datetime) -> int:
    """Whole days from now until moment, rounded up (negative once past)."""
    return math.ceil((moment - now) / timedelta(days=1))
