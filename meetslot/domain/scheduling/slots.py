"""Expands availability windows into fixed-duration candidate slots."""

from datetime import date, datetime, timedelta
from typing import Iterable, Iterator

from .intervals import TimeRange, clamp, contains, day_bounds


def windows_for_day(windows: Iterable, day: date) -> list:
    """
    Windows relevant to a day: the start or the end falls within the day,
    or the window spans the whole day.
    """
    bounds = day_bounds(day)
    return [
        w
        for w in windows
        if contains(bounds, w.start)
        or contains(bounds, w.end)
        or (w.start <= bounds.start and w.end >= bounds.end)
    ]


def generate_slots(
    windows: Iterable,
    range_start: datetime,
    range_end: datetime,
    slot_duration_minutes: int = 30,
) -> Iterator[TimeRange]:
    """
    Yield back-to-back slots of exactly ``slot_duration_minutes`` for every
    window, clamped to [range_start, range_end].

    Slots are aligned to the clamped window start, never to the wall clock.
    A trailing remainder shorter than the duration is dropped. Windows are
    handled independently, so overlapping windows yield overlapping slots.
    """
    if slot_duration_minutes <= 0:
        raise ValueError("slot_duration_minutes must be greater than 0")

    step = timedelta(minutes=slot_duration_minutes)
    for window in windows:
        clamped = clamp(window, range_start, range_end)
        if clamped is None:
            continue

        current = clamped.start
        while current + step <= clamped.end:
            yield TimeRange(current, current + step)
            current += step


def slots_for_day(windows: Iterable, day: date, slot_duration_minutes: int = 30) -> Iterator[TimeRange]:
    bounds = day_bounds(day)
    return generate_slots(windows_for_day(windows, day), bounds.start, bounds.end, slot_duration_minutes)
