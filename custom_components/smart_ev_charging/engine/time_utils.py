"""Timestamp arithmetic for 15-minute price intervals.

All timestamps are integer milliseconds since the Unix epoch (UTC).
"""

from __future__ import annotations

import math
from datetime import date, datetime, timezone, tzinfo
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .const import BLOCK_DURATION_MS, MILLISECONDS_PER_DAY


def from_ms(timestamp: float) -> datetime:
    """Convert epoch milliseconds to an aware UTC datetime."""
    return datetime.fromtimestamp(timestamp / 1000, tz=timezone.utc)


def to_ms(value: datetime) -> int:
    """Convert a datetime to epoch milliseconds. Naive values are taken as UTC."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return int(round(value.timestamp() * 1000))


def parse_iso_timestamp(value: str) -> int:
    """Parse an ISO 8601 string into epoch milliseconds.

    Accepts offsets ("+01:00"), a trailing "Z" and fractional seconds.
    Raises ValueError for anything else.
    """
    if not isinstance(value, str) or not value:
        raise ValueError(f"Invalid ISO timestamp: {value!r}")
    return to_ms(datetime.fromisoformat(value.strip()))


def is_valid_timestamp(timestamp: object) -> bool:
    """Return True if the value can be used as an epoch-ms timestamp."""
    if isinstance(timestamp, bool) or not isinstance(timestamp, (int, float)):
        return False
    if not math.isfinite(timestamp):
        return False
    try:
        from_ms(timestamp)
    except (OverflowError, OSError, ValueError):
        return False
    return True


def utc_day_number(timestamp: float) -> int:
    """Return the UTC day of month (1-31).

    Day-of-month alone collides across month boundaries (Dec 31 and Jan 31
    both give 31). Use utc_date() when a full calendar comparison is needed.
    """
    return from_ms(timestamp).day


def utc_date(timestamp: float) -> date:
    """Return the UTC calendar date of a timestamp."""
    return from_ms(timestamp).date()


def today_and_tomorrow(now: float, day_key=utc_date) -> tuple:
    """Return the day keys for today and tomorrow relative to now."""
    return day_key(now), day_key(now + MILLISECONDS_PER_DAY)


def next_15_minute_boundary(now: float) -> int:
    """Milliseconds until the next :00/:15/:30/:45 boundary.

    Always strictly positive: exactly on a boundary rolls to the next one.
    """
    now_ms = int(math.floor(now))
    return BLOCK_DURATION_MS - (now_ms % BLOCK_DURATION_MS)


def is_valid_timezone(name: str | None) -> bool:
    """Return True if the IANA zone name can be loaded."""
    if not name:
        return False
    try:
        ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        return False
    return True


def resolve_timezone(name: str | None) -> tzinfo:
    """Load a zone by name, falling back to UTC for unknown names."""
    if not is_valid_timezone(name):
        return timezone.utc
    return ZoneInfo(name)
