"""
Booking service - commits a guest's booking

Commit order: host -> quota -> meeting type -> re-validate slot ->
best-effort calendar event -> persist. The re-validation narrows the race
between reading slots and booking one, it does not close it: two concurrent
commits for the same window can both pass before either is stored.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from ...errors import NotFound, QuotaExceeded, SlotUnavailable
from ...models import Booking, BookingStatus, User
from ...plan_limits import get_booking_quota
from ...services.google_calendar_service import CalendarEventRequest
from .intervals import TimeRange, utcnow
from .repository import SchedulingRepository
from .resolver import DECLINED, AvailabilityResolver
from .schemas import BookingCreate

logger = logging.getLogger(__name__)


class CalendarEventStatus:
    CREATED = "created"
    SKIPPED = "skipped"  # Host has no usable connected account
    DEGRADED = "degraded"  # The calendar call failed; booking stands without it


@dataclass
class BookingResult:
    booking_id: str
    calendar_status: str
    external_event_id: Optional[str] = None
    meeting_link: Optional[str] = None

    @property
    def confirmed_without_calendar_event(self) -> bool:
        return self.external_event_id is None


def build_event_summary(host_name: str, guest_name: str, meeting_type_name: Optional[str] = None) -> str:
    prefix = meeting_type_name or "Meeting"
    return f"{prefix}: {host_name} x {guest_name}"


class BookingService:
    """Service layer for booking creation and host-side booking management"""

    def __init__(self, db: Session, calendar, now: Optional[datetime] = None):
        self.db = db
        self.calendar = calendar
        self.repo = SchedulingRepository()
        self.resolver = AvailabilityResolver(db, calendar, now=now)
        self._now = now

    @property
    def now(self) -> datetime:
        return self._now or utcnow()

    async def create_booking(self, data: BookingCreate) -> BookingResult:
        logger.info(f"📅 Booking request for host {data.host_slug}: {data.start_time} - {data.end_time}")

        # 1. Host
        host = self.repo.get_host_by_slug(self.db, data.host_slug)
        if not host:
            raise NotFound("Host not found")

        # 2. Monthly quota
        quota = get_booking_quota(host, self.db, now=self.now)
        if quota.is_exceeded:
            logger.warning(f"⚠️ Host {host.id} reached booking limit: {quota.used}/{quota.limit}")
            raise QuotaExceeded("Host has reached their monthly booking limit")

        # 3. Meeting type, optional
        meeting_type = None
        if data.meeting_type_slug:
            meeting_type = self.repo.get_meeting_type_by_slugs(
                self.db, data.host_slug, data.meeting_type_slug
            )
            if not meeting_type:
                logger.info(f"ℹ️ Meeting type {data.meeting_type_slug} not found, booking without it")

        # 4. Re-validate against live state
        requested = TimeRange(data.start_time, data.end_time)
        if requested.start < self.now:
            raise SlotUnavailable("This time slot is in the past")
        if not any(
            w.start_time <= requested.start and requested.end <= w.end_time
            for w in host.availability_windows
        ):
            raise SlotUnavailable("This time slot is outside the host's availability")
        if not await self.resolver.is_slot_available(host, requested.start, requested.end):
            logger.warning(f"⚠️ Slot {requested.start} - {requested.end} taken for host {host.id}")
            raise SlotUnavailable()

        # 5. Calendar event, best effort
        calendar_status = CalendarEventStatus.SKIPPED
        event_id = None
        meet_link = None
        account = self.repo.get_default_calendar_account(host)
        if account is not None:
            event = CalendarEventRequest(
                summary=build_event_summary(
                    host.full_name or host.email, data.guest_name, meeting_type.name if meeting_type else None
                ),
                description=data.notes,
                start=requested.start,
                end=requested.end,
                attendees=[host.email, data.guest_email],
            )
            try:
                created = await self.calendar.create_event(account, event)
                event_id = created.event_id
                meet_link = created.meeting_link
                calendar_status = CalendarEventStatus.CREATED
            except Exception as e:
                logger.error(f"❌ Failed to create Google Calendar event, booking without it: {e}")
                calendar_status = CalendarEventStatus.DEGRADED

        # 6. Persist
        try:
            booking = self.repo.create_booking(
                self.db,
                user_id=host.id,
                meeting_type_id=meeting_type.id if meeting_type else None,
                start_time=requested.start,
                end_time=requested.end,
                guest_name=data.guest_name,
                guest_email=data.guest_email,
                notes=data.notes,
                google_event_id=event_id,
                meet_link=meet_link,
            )
        except Exception as e:
            self.db.rollback()
            logger.error(f"❌ Failed to save booking for host {host.id}: {e}")
            raise

        logger.info(f"✅ Booking {booking.public_id} confirmed (calendar event: {calendar_status})")
        return BookingResult(
            booking_id=booking.public_id,
            calendar_status=calendar_status,
            external_event_id=event_id,
            meeting_link=meet_link,
        )

    async def list_host_bookings(
        self, user: User, upcoming_only: bool = True
    ) -> list[tuple[Booking, Optional[str]]]:
        """Host's bookings paired with the guest's calendar response status"""
        bookings = self.repo.get_host_bookings(self.db, user.id, since=self.now if upcoming_only else None)
        confirmed = [b for b in bookings if b.status == BookingStatus.CONFIRMED]
        statuses = await self.resolver.guest_statuses(user, confirmed)
        return [(b, statuses.get(b.id)) for b in bookings]

    async def sync_declined_bookings(self, user: User) -> list[str]:
        """Cancel upcoming confirmed bookings whose guest declined the invite"""
        bookings = [
            b
            for b in self.repo.get_host_bookings(self.db, user.id, since=self.now)
            if b.status == BookingStatus.CONFIRMED
        ]
        statuses = await self.resolver.guest_statuses(user, bookings)
        declined = [b for b in bookings if statuses.get(b.id) == DECLINED]

        if declined:
            self.repo.mark_cancelled(self.db, declined, self.now)
            logger.info(f"🔄 Cancelled {len(declined)} declined bookings for host {user.id}")

        return [b.public_id for b in declined]

    def cancel_booking(self, user: User, booking_id: str) -> Booking:
        booking = self.repo.get_booking_for_host(self.db, booking_id, user.id)
        if not booking:
            raise NotFound("Booking not found")

        if booking.status != BookingStatus.CANCELLED:
            self.repo.mark_cancelled(self.db, [booking], self.now)
            logger.info(f"✅ Booking {booking.public_id} cancelled by host {user.id}")
        return booking
