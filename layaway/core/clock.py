"""Time helpers.

All timestamps in the service are naive UTC datetimes; due dates are plain
dates.
"""

from datetime import date, datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    """Current time as a naive UTC datetime."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def utctoday() -> date:
    """Current UTC calendar date."""
    return utcnow().date()


def to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Convert an aware datetime to naive UTC; naive values pass through."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)
