"""
Timestamp utilities for consistent time handling across the engine.
"""

from datetime import datetime, timezone
from typing import Optional, Union

SECONDS_PER_DAY = 60 * 60 * 24

TimestampLike = Union[datetime, str, int, float, None]


def to_datetime(value: TimestampLike) -> Optional[datetime]:
    """Convert a stored timestamp to an aware UTC datetime.

    Accepts datetimes, ISO-8601 strings (a trailing ``Z`` is allowed) and unix
    seconds. Naive values are assumed to be UTC.

    Args:
        value: Timestamp in any of the supported forms

    Returns:
        datetime in UTC, or None if value is empty

    Raises:
        ValueError: If a string cannot be parsed
    """
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, (int, float)):
        return datetime.fromtimestamp(value, tz=timezone.utc)
    else:
        text = value.strip()
        if text.endswith('Z'):
            text = text[:-1] + '+00:00'
        parsed = datetime.fromisoformat(text)

    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def to_iso(value: Optional[datetime]) -> Optional[str]:
    """Render a datetime as an ISO-8601 string, None passes through."""
    if value is None:
        return None
    return to_datetime(value).isoformat()


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


def days_between(first: datetime, second: datetime) -> float:
    """Absolute difference between two timestamps in fractional days."""
    return abs((first - second).total_seconds()) / SECONDS_PER_DAY


def month_key(value: datetime) -> str:
    """Calendar month bucket, e.g. ``2024-03``."""
    value = to_datetime(value)
    return f'{value.year}-{value.month:02d}'
