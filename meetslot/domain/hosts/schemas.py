"""Host domain schemas - Pydantic models for validation"""

from typing import Literal, Optional

from pydantic import BaseModel, field_validator

from ...utils.sanitization import validate_and_sanitize_input

MeetingDuration = Literal[15, 30, 45, 60, 90]


class MeetingTypeCreate(BaseModel):
    name: str
    duration: MeetingDuration
    description: Optional[str] = None
    isDefault: bool = True

    @field_validator("name")
    @classmethod
    def check_name(cls, v):
        v = validate_and_sanitize_input(v, max_length=255)
        if not v:
            raise ValueError("Name is required")
        return v

    @field_validator("description")
    @classmethod
    def check_description(cls, v):
        return validate_and_sanitize_input(v, max_length=2000) or None


class MeetingTypeResponse(BaseModel):
    id: int
    name: str
    slug: str
    duration: int
    description: Optional[str] = None
    isDefault: bool


class BookingLinkResponse(BaseModel):
    slug: str
    url: str


class MeetingTypeLinkResponse(BaseModel):
    url: str


class PublicHostResponse(BaseModel):
    name: str
    slug: str
    meeting_types: list[MeetingTypeResponse]


class BookingQuotaResponse(BaseModel):
    plan: str
    used: int
    limit: Optional[int]  # None for unlimited
    remaining: Optional[int]
    is_exceeded: bool
