"""Removes candidate slots that collide with bookings, busy times or the past."""

from datetime import datetime
from typing import Iterable, Optional

from ...models import BookingStatus
from .intervals import TimeRange, overlaps


class ConflictFilter:
    """
    Rules, applied together:
    - a slot overlapping any non-cancelled booking is rejected
    - a slot overlapping any busy interval is rejected
    - when ``now`` is given, a slot starting before it is rejected

    Leave ``now`` unset for single-slot re-validation at commit time.
    """

    def __init__(self, bookings: Iterable, busy: Iterable, now: Optional[datetime] = None):
        self.bookings = [
            TimeRange(b.start_time, b.end_time)
            for b in bookings
            if getattr(b, "status", BookingStatus.CONFIRMED) != BookingStatus.CANCELLED
        ]
        self.busy = list(busy)
        self.now = now

    def is_free(self, slot) -> bool:
        if self.now is not None and slot.start < self.now:
            return False
        if any(overlaps(slot, booking) for booking in self.bookings):
            return False
        return not any(overlaps(slot, busy) for busy in self.busy)

    def enumerate(self, slots: Iterable) -> list:
        """Every surviving slot, in input order."""
        return [slot for slot in slots if self.is_free(slot)]

    def probe(self, slots: Iterable) -> bool:
        """Stops at the first surviving slot."""
        return any(self.is_free(slot) for slot in slots)
