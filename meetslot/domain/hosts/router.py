"""Host router - FastAPI endpoints for booking links, meeting types and quota"""

import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...models import MeetingType, User
from .schemas import (
    BookingLinkResponse,
    BookingQuotaResponse,
    MeetingTypeCreate,
    MeetingTypeLinkResponse,
    MeetingTypeResponse,
    PublicHostResponse,
)
from .service import HostService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Hosts"])


def get_host_service(db: Session = Depends(get_db)) -> HostService:
    """Dependency injection for HostService"""
    return HostService(db)


def to_meeting_type_response(mt: MeetingType) -> MeetingTypeResponse:
    return MeetingTypeResponse(
        id=mt.id,
        name=mt.name,
        slug=mt.slug,
        duration=mt.duration_minutes,
        description=mt.description,
        isDefault=mt.is_default,
    )


@router.get("/public/hosts/{host_slug}", response_model=PublicHostResponse)
async def get_public_host(host_slug: str, service: HostService = Depends(get_host_service)):
    """Public booking page header: host name and bookable meeting types"""
    host, meeting_types = service.get_public_profile(host_slug)
    return PublicHostResponse(
        name=host.full_name or "Host",
        slug=host.slug,
        meeting_types=[to_meeting_type_response(mt) for mt in meeting_types],
    )


@router.get("/meeting-types", response_model=list[MeetingTypeResponse])
async def list_meeting_types(
    current_user: User = Depends(get_current_user),
    service: HostService = Depends(get_host_service),
):
    return [to_meeting_type_response(mt) for mt in service.list_meeting_types(current_user)]


@router.post("/meeting-types", response_model=MeetingTypeResponse, status_code=status.HTTP_201_CREATED)
async def create_meeting_type(
    data: MeetingTypeCreate,
    current_user: User = Depends(get_current_user),
    service: HostService = Depends(get_host_service),
):
    return to_meeting_type_response(service.create_meeting_type(current_user, data))


@router.get("/booking-link", response_model=BookingLinkResponse)
async def get_booking_link(
    current_user: User = Depends(get_current_user),
    service: HostService = Depends(get_host_service),
):
    """The host's public booking page, creating the slug on first use"""
    return service.get_or_create_booking_link(current_user)


@router.get("/booking-link/{meeting_type_slug}", response_model=MeetingTypeLinkResponse)
async def get_meeting_type_booking_link(
    meeting_type_slug: str,
    current_user: User = Depends(get_current_user),
    service: HostService = Depends(get_host_service),
):
    return service.booking_link_for_meeting_type(current_user, meeting_type_slug)


@router.get("/booking-quota", response_model=BookingQuotaResponse)
async def get_booking_quota(
    current_user: User = Depends(get_current_user),
    service: HostService = Depends(get_host_service),
):
    quota = service.get_booking_quota(current_user)
    return BookingQuotaResponse(
        plan=quota.plan,
        used=quota.used,
        limit=quota.limit,
        remaining=quota.remaining,
        is_exceeded=quota.is_exceeded,
    )
