"""Scheduling domain schemas - Pydantic models for validation"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, field_validator, model_validator

from ...shared.validators import validate_email
from ...utils.sanitization import validate_and_sanitize_input
from .intervals import to_naive_utc


class AvailabilityWindowIn(BaseModel):
    """One contiguous bookable span. Aware datetimes are stored as UTC."""

    start: datetime
    end: datetime

    @field_validator("start", "end")
    @classmethod
    def normalize_utc(cls, v):
        return to_naive_utc(v)

    @model_validator(mode="after")
    def check_order(self):
        if self.start >= self.end:
            raise ValueError("Availability window must start before it ends")
        return self


class SavedWindow(BaseModel):
    id: str
    start: datetime
    end: datetime


class SlotResponse(BaseModel):
    start: datetime
    end: datetime


class BookingCreate(BaseModel):
    """Schema for a guest booking a slot"""

    host_slug: str
    meeting_type_slug: Optional[str] = None
    start_time: datetime
    end_time: datetime
    guest_name: str
    guest_email: str
    notes: Optional[str] = None

    @field_validator("start_time", "end_time")
    @classmethod
    def normalize_utc(cls, v):
        return to_naive_utc(v)

    @field_validator("guest_email")
    @classmethod
    def check_email(cls, v):
        v = validate_email(v)
        if not v:
            raise ValueError("Guest email is required")
        return v

    @field_validator("guest_name")
    @classmethod
    def check_name(cls, v):
        v = validate_and_sanitize_input(v, max_length=255)
        if not v:
            raise ValueError("Guest name is required")
        return v

    @field_validator("notes")
    @classmethod
    def check_notes(cls, v):
        return validate_and_sanitize_input(v, max_length=2000) or None

    @model_validator(mode="after")
    def check_order(self):
        if self.start_time >= self.end_time:
            raise ValueError("Booking must start before it ends")
        return self


class BookingCreatedResponse(BaseModel):
    id: str
    status: str
    calendar_event: str  # created, skipped, degraded
    meet_link: Optional[str] = None


class HostBookingResponse(BaseModel):
    id: str
    start_time: datetime
    end_time: datetime
    guest_name: str
    guest_email: str
    status: str
    meeting_type: Optional[str] = None
    notes: Optional[str] = None
    meet_link: Optional[str] = None
    guest_status: Optional[str] = None


class SyncDeclinedResponse(BaseModel):
    cancelled: list[str]
