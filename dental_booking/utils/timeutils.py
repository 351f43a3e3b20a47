"""Datetime helpers: everything is stored and compared as UTC-naive"""

from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    """Current time as a UTC-naive datetime"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_utc_naive(dt: Optional[datetime]) -> Optional[datetime]:
    """
    Normalize any datetime to UTC-naive (tzinfo=None) for consistent storage/comparison.
    - Aware datetimes are converted to UTC and tzinfo is stripped
    - Naive datetimes are returned as-is (assumed UTC)
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def truncate_to_minute(dt: datetime) -> datetime:
    """Drop seconds and microseconds; booking slots are minute-granular"""
    return dt.replace(second=0, microsecond=0)
