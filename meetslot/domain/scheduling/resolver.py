"""
Availability resolver - answers "which slots / which dates can a guest book"

Pulls the host's availability, confirmed bookings and Google Calendar busy
times, expands availability into slots and filters out conflicts. Calendar
problems never fail a query: busy times degrade to none, and a booking whose
guest status can't be read keeps blocking its slot.
"""

import asyncio
import logging
from datetime import date, datetime, timedelta
from typing import Iterable, Optional

from sqlalchemy.orm import Session

from ...config import DEFAULT_SLOT_DURATION_MINUTES
from ...errors import NotFound
from ...models import Booking, User
from .conflicts import ConflictFilter
from .intervals import TimeRange, day_bounds, utcnow
from .repository import SchedulingRepository
from .slots import generate_slots, windows_for_day

logger = logging.getLogger(__name__)

DECLINED = "declined"


class AvailabilityResolver:
    def __init__(self, db: Session, calendar, now: Optional[datetime] = None):
        self.db = db
        self.calendar = calendar
        self.repo = SchedulingRepository()
        self._now = now

    @property
    def now(self) -> datetime:
        return self._now or utcnow()

    def get_host(self, host_slug: str) -> User:
        host = self.repo.get_host_by_slug(self.db, host_slug)
        if not host:
            raise NotFound("Host not found")
        return host

    @staticmethod
    def host_windows(host: User) -> list[TimeRange]:
        return [TimeRange(w.start_time, w.end_time) for w in host.availability_windows]

    # ------------------------------------------------------------------
    # External calendar reads
    # ------------------------------------------------------------------

    async def busy_intervals(self, host: User, start: datetime, end: datetime) -> list[TimeRange]:
        account = self.repo.get_default_calendar_account(host)
        if account is None:
            return []

        try:
            return await self.calendar.list_busy_intervals(account, start, end)
        except Exception as e:
            logger.warning(f"⚠️ Busy times unavailable for host {host.id}, continuing without them: {e}")
            return []

    async def guest_statuses(self, host: User, bookings: Iterable[Booking]) -> dict[int, Optional[str]]:
        """
        Guest response status per booking id, looked up concurrently.
        Bookings without a calendar event, or whose lookup failed, map to None.
        """
        bookings = list(bookings)
        statuses: dict[int, Optional[str]] = {b.id: None for b in bookings}

        account = self.repo.get_default_calendar_account(host)
        if account is None:
            return statuses

        async def lookup(booking: Booking):
            try:
                return booking.id, await self.calendar.get_attendee_status(
                    account, booking.google_event_id, booking.guest_email
                )
            except Exception as e:
                logger.warning(f"⚠️ Attendee status lookup failed for booking {booking.id}: {e}")
                return booking.id, None

        results = await asyncio.gather(
            *(lookup(b) for b in bookings if b.google_event_id and b.guest_email)
        )
        statuses.update(results)
        return statuses

    async def active_bookings(self, host: User, bookings: Iterable[Booking]) -> list[Booking]:
        """Drop bookings whose guest declined the calendar invite; those slots open up again."""
        bookings = list(bookings)
        statuses = await self.guest_statuses(host, bookings)
        return [b for b in bookings if statuses.get(b.id) != DECLINED]

    # ------------------------------------------------------------------
    # Public queries
    # ------------------------------------------------------------------

    async def available_slots(
        self, host_slug: str, day: date, slot_duration_minutes: int = DEFAULT_SLOT_DURATION_MINUTES
    ) -> list[TimeRange]:
        if slot_duration_minutes <= 0:
            raise ValueError("slot_duration_minutes must be greater than 0")

        host = self.get_host(host_slug)
        bounds = day_bounds(day)

        windows = windows_for_day(self.host_windows(host), day)
        if not windows:
            return []

        bookings = self.repo.get_bookings_in_range(self.db, host.id, bounds.start, bounds.end)
        active, busy = await asyncio.gather(
            self.active_bookings(host, bookings),
            self.busy_intervals(host, bounds.start, bounds.end),
        )

        candidates = generate_slots(windows, bounds.start, bounds.end, slot_duration_minutes)
        free = ConflictFilter(active, busy, now=self.now).enumerate(candidates)

        # Overlapping windows can produce the same slot twice
        return sorted(set(free))

    async def available_dates(
        self,
        host_slug: str,
        start_date: date,
        end_date: date,
        slot_duration_minutes: int = DEFAULT_SLOT_DURATION_MINUTES,
    ) -> list[str]:
        if slot_duration_minutes <= 0:
            raise ValueError("slot_duration_minutes must be greater than 0")

        host = self.get_host(host_slug)
        if end_date < start_date:
            return []

        now = self.now
        range_start = day_bounds(start_date).start
        range_end = day_bounds(end_date).end

        bookings = self.repo.get_bookings_in_range(self.db, host.id, range_start, range_end)
        active, busy = await asyncio.gather(
            self.active_bookings(host, bookings),
            self.busy_intervals(host, range_start, range_end),
        )

        conflict_filter = ConflictFilter(active, busy, now=now)
        all_windows = self.host_windows(host)
        today = now.date()

        available = []
        current = start_date
        while current <= end_date:
            if current >= today:
                windows = windows_for_day(all_windows, current)
                if windows:
                    bounds = day_bounds(current)
                    candidates = generate_slots(windows, bounds.start, bounds.end, slot_duration_minutes)
                    if conflict_filter.probe(candidates):
                        available.append(current.isoformat())
            current += timedelta(days=1)

        return available

    async def is_slot_available(self, host: User, start: datetime, end: datetime) -> bool:
        """
        Commit-time re-check of one exact window against live bookings.
        Guests who declined don't block. Busy times and "now" are not applied here.
        """
        bookings = self.repo.get_bookings_in_range(self.db, host.id, start, end)
        active = await self.active_bookings(host, bookings)
        return ConflictFilter(active, []).is_free(TimeRange(start, end))
