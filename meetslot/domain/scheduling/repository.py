"""Scheduling repository - Database operations for hosts, availability and bookings"""

from datetime import datetime
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session, selectinload

from ...models import AvailabilityWindow, Booking, BookingStatus, MeetingType, User
from ...models_google_calendar import GoogleCalendarAccount


class SchedulingRepository:
    """Repository for scheduling database operations"""

    # Hosts
    @staticmethod
    def get_host_by_slug(db: Session, slug: str) -> Optional[User]:
        """Get a host with availability and connected accounts by public slug"""
        return (
            db.query(User)
            .options(selectinload(User.availability_windows), selectinload(User.calendar_accounts))
            .filter(User.slug == slug)
            .first()
        )

    @staticmethod
    def get_default_calendar_account(host: User) -> Optional[GoogleCalendarAccount]:
        """The account used for busy times and events; None when nothing usable is connected"""
        for account in host.calendar_accounts or []:
            if account.is_default and account.access_token and account.refresh_token:
                return account
        return None

    # Availability
    @staticmethod
    def get_availability(db: Session, user_id: int) -> list[AvailabilityWindow]:
        return (
            db.query(AvailabilityWindow)
            .filter(AvailabilityWindow.user_id == user_id)
            .order_by(AvailabilityWindow.start_time)
            .all()
        )

    @staticmethod
    def replace_availability(
        db: Session, user_id: int, windows: list[tuple[datetime, datetime]]
    ) -> list[AvailabilityWindow]:
        """Delete every window of the host and insert the given ones in one commit"""
        db.query(AvailabilityWindow).filter(AvailabilityWindow.user_id == user_id).delete(
            synchronize_session=False
        )
        created = [
            AvailabilityWindow(user_id=user_id, start_time=start, end_time=end) for start, end in windows
        ]
        db.add_all(created)
        db.commit()
        for window in created:
            db.refresh(window)
        return created

    # Bookings
    @staticmethod
    def get_bookings_in_range(
        db: Session, host_id: int, start: datetime, end: datetime
    ) -> list[Booking]:
        """Confirmed bookings of a host overlapping [start, end)"""
        return (
            db.query(Booking)
            .filter(
                Booking.user_id == host_id,
                Booking.status == BookingStatus.CONFIRMED,
                Booking.start_time < end,
                Booking.end_time > start,
            )
            .order_by(Booking.start_time)
            .all()
        )

    @staticmethod
    def count_bookings_in_range(db: Session, host_id: int, start: datetime, end: datetime) -> int:
        """Confirmed bookings whose start falls in [start, end)"""
        return (
            db.query(func.count(Booking.id))
            .filter(
                Booking.user_id == host_id,
                Booking.status == BookingStatus.CONFIRMED,
                Booking.start_time >= start,
                Booking.start_time < end,
            )
            .scalar()
        )

    @staticmethod
    def get_host_bookings(
        db: Session, host_id: int, since: Optional[datetime] = None
    ) -> list[Booking]:
        query = db.query(Booking).filter(Booking.user_id == host_id)
        if since is not None:
            query = query.filter(Booking.end_time >= since)
        return query.order_by(Booking.start_time).all()

    @staticmethod
    def get_booking_for_host(db: Session, public_id: str, host_id: int) -> Optional[Booking]:
        return (
            db.query(Booking)
            .filter(Booking.public_id == public_id, Booking.user_id == host_id)
            .first()
        )

    @staticmethod
    def create_booking(db: Session, **booking_data) -> Booking:
        booking = Booking(status=BookingStatus.CONFIRMED, **booking_data)
        db.add(booking)
        db.commit()
        db.refresh(booking)
        return booking

    @staticmethod
    def mark_cancelled(db: Session, bookings: list[Booking], when: datetime) -> None:
        for booking in bookings:
            booking.status = BookingStatus.CANCELLED
            booking.cancelled_at = when
        db.commit()

    # Meeting types
    @staticmethod
    def get_meeting_type_by_slugs(
        db: Session, host_slug: str, meeting_type_slug: str
    ) -> Optional[MeetingType]:
        return (
            db.query(MeetingType)
            .join(User, MeetingType.user_id == User.id)
            .filter(User.slug == host_slug, MeetingType.slug == meeting_type_slug)
            .first()
        )
