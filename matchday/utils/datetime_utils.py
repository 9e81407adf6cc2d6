"""
Datetime utility functions.
All stored datetimes are UTC; SQLite hands them back naive.
"""

from datetime import datetime
from typing import Optional
import pytz


def utcnow() -> datetime:
    """
    Get current UTC datetime using pytz.UTC.

    Returns:
        Current UTC datetime with pytz timezone information
    """
    return datetime.now(pytz.UTC)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """
    Normalize a datetime to an aware UTC datetime.

    Naive values are assumed to already be in UTC (that is how they are stored).

    Args:
        value: Datetime to normalize, or None

    Returns:
        Aware UTC datetime, or None if value was None
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return pytz.UTC.localize(value)
    return value.astimezone(pytz.UTC)


def isoformat_utc(value: Optional[datetime]) -> Optional[str]:
    """ISO-8601 string for a stored datetime, or None."""
    value = ensure_utc(value)
    return value.isoformat() if value else None


def format_kickoff_time(value: datetime) -> str:
    """
    Format a match time as HH:MM (24-hour, UTC) for reminder messages.

    Examples:
        >>> format_kickoff_time(datetime(2026, 5, 1, 18, 30))
        '18:30'
    """
    return ensure_utc(value).strftime("%H:%M")
