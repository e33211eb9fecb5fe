"""
Interval model for availability resolution.

All instants are naive UTC datetimes. Intervals are half-open for overlap
checks: two ranges that only touch at an endpoint do not overlap.
"""

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional


@dataclass(frozen=True, order=True)
class TimeRange:
    start: datetime
    end: datetime


def overlaps(a, b) -> bool:
    """True when two ranges share any time. Works on anything with start/end."""
    return a.start < b.end and a.end > b.start


def contains(window, point: datetime) -> bool:
    """Closed-interval membership, used for picking the windows relevant to a day."""
    return window.start <= point <= window.end


def clamp(window, range_start: datetime, range_end: datetime) -> Optional[TimeRange]:
    """Truncate a window to [range_start, range_end]. None when nothing is left."""
    start = max(window.start, range_start)
    end = min(window.end, range_end)
    if start >= end:
        return None
    return TimeRange(start, end)


def day_bounds(day: date) -> TimeRange:
    """Midnight to the following midnight."""
    start = datetime.combine(day, time.min)
    return TimeRange(start, start + timedelta(days=1))


def to_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)
