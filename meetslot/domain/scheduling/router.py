"""Scheduling router - public availability and booking endpoints, host availability and bookings"""

import logging
from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...config import BOOKING_RATE_LIMIT, DEFAULT_SLOT_DURATION_MINUTES, MAX_DATE_RANGE_DAYS
from ...database import get_db
from ...models import User
from ...rate_limiter import create_rate_limiter
from ...services.google_calendar_service import GoogleCalendarClient
from .availability_service import AvailabilityService
from .booking_service import BookingService
from .resolver import AvailabilityResolver
from .schemas import (
    AvailabilityWindowIn,
    BookingCreate,
    BookingCreatedResponse,
    HostBookingResponse,
    SavedWindow,
    SlotResponse,
    SyncDeclinedResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Scheduling"])

booking_rate_limit = create_rate_limiter(
    limit=BOOKING_RATE_LIMIT, window_seconds=3600, key_prefix="public_booking"
)


def get_calendar_client(db: Session = Depends(get_db)) -> GoogleCalendarClient:
    return GoogleCalendarClient(db)


def get_resolver(
    db: Session = Depends(get_db), calendar=Depends(get_calendar_client)
) -> AvailabilityResolver:
    return AvailabilityResolver(db, calendar)


def get_booking_service(
    db: Session = Depends(get_db), calendar=Depends(get_calendar_client)
) -> BookingService:
    return BookingService(db, calendar)


def get_availability_service(db: Session = Depends(get_db)) -> AvailabilityService:
    return AvailabilityService(db)


# ============================================================================
# PUBLIC (guest) ENDPOINTS
# ============================================================================


@router.get("/public/hosts/{host_slug}/slots", response_model=list[SlotResponse])
async def get_available_slots(
    host_slug: str,
    day: date = Query(..., alias="date", description="YYYY-MM-DD"),
    duration: int = Query(DEFAULT_SLOT_DURATION_MINUTES, gt=0, le=1440),
    resolver: AvailabilityResolver = Depends(get_resolver),
):
    slots = await resolver.available_slots(host_slug, day, duration)
    return [SlotResponse(start=s.start, end=s.end) for s in slots]


@router.get("/public/hosts/{host_slug}/dates", response_model=list[str])
async def get_available_dates(
    host_slug: str,
    start: date = Query(..., description="YYYY-MM-DD, inclusive"),
    end: date = Query(..., description="YYYY-MM-DD, inclusive"),
    duration: int = Query(DEFAULT_SLOT_DURATION_MINUTES, gt=0, le=1440),
    resolver: AvailabilityResolver = Depends(get_resolver),
):
    if (end - start).days > MAX_DATE_RANGE_DAYS:
        raise HTTPException(
            status_code=400, detail=f"Date range cannot exceed {MAX_DATE_RANGE_DAYS} days"
        )
    return await resolver.available_dates(host_slug, start, end, duration)


@router.post(
    "/public/bookings",
    response_model=BookingCreatedResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(booking_rate_limit)],
)
async def create_booking(
    data: BookingCreate,
    service: BookingService = Depends(get_booking_service),
):
    result = await service.create_booking(data)
    return BookingCreatedResponse(
        id=result.booking_id,
        status="confirmed",
        calendar_event=result.calendar_status,
        meet_link=result.meeting_link,
    )


# ============================================================================
# HOST ENDPOINTS
# ============================================================================


@router.get("/availability", response_model=list[SavedWindow])
async def get_availability(
    current_user: User = Depends(get_current_user),
    service: AvailabilityService = Depends(get_availability_service),
):
    return service.get_availability(current_user)


@router.put("/availability", response_model=list[SavedWindow])
async def save_availability(
    windows: list[AvailabilityWindowIn],
    current_user: User = Depends(get_current_user),
    service: AvailabilityService = Depends(get_availability_service),
):
    """Replace the whole availability set; send every window you want to keep"""
    return service.save_availability(current_user, windows)


@router.get("/bookings", response_model=list[HostBookingResponse])
async def list_bookings(
    upcoming: bool = Query(True),
    current_user: User = Depends(get_current_user),
    service: BookingService = Depends(get_booking_service),
):
    rows = await service.list_host_bookings(current_user, upcoming_only=upcoming)
    return [
        HostBookingResponse(
            id=b.public_id,
            start_time=b.start_time,
            end_time=b.end_time,
            guest_name=b.guest_name,
            guest_email=b.guest_email,
            status=b.status,
            meeting_type=b.meeting_type.name if b.meeting_type else None,
            notes=b.notes,
            meet_link=b.meet_link,
            guest_status=guest_status,
        )
        for b, guest_status in rows
    ]


@router.post("/bookings/sync-declined", response_model=SyncDeclinedResponse)
async def sync_declined_bookings(
    current_user: User = Depends(get_current_user),
    service: BookingService = Depends(get_booking_service),
):
    """Cancel bookings whose guest declined the calendar invite"""
    return SyncDeclinedResponse(cancelled=await service.sync_declined_bookings(current_user))


@router.post("/bookings/{booking_id}/cancel")
async def cancel_booking(
    booking_id: str,
    current_user: User = Depends(get_current_user),
    service: BookingService = Depends(get_booking_service),
):
    booking = service.cancel_booking(current_user, booking_id)
    return {"id": booking.public_id, "status": booking.status}
