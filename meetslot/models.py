import uuid

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base


def generate_public_id():
    """Generate a unique public ID for secure public access"""
    return str(uuid.uuid4())


class BookingStatus:
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"


class User(Base):
    """A host: owns availability windows, meeting types, bookings and calendar accounts"""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    firebase_uid = Column(String(255), unique=True, index=True, nullable=False)
    full_name = Column(String(255), nullable=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    slug = Column(String(100), unique=True, index=True, nullable=True)  # Public booking page slug
    plan = Column(String(50), nullable=True)  # free, team, enterprise - null means free
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    availability_windows = relationship(
        "AvailabilityWindow",
        back_populates="user",
        cascade="all, delete-orphan",
        order_by="AvailabilityWindow.start_time",
    )
    meeting_types = relationship("MeetingType", back_populates="user", cascade="all, delete-orphan")
    calendar_accounts = relationship(
        "GoogleCalendarAccount", back_populates="user", cascade="all, delete-orphan"
    )


class AvailabilityWindow(Base):
    __tablename__ = "availability_windows"

    id = Column(Integer, primary_key=True, index=True)
    key = Column(String(36), unique=True, nullable=False, default=generate_public_id)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    start_time = Column(DateTime, nullable=False)  # UTC
    end_time = Column(DateTime, nullable=False)  # UTC

    user = relationship("User", back_populates="availability_windows")


class MeetingType(Base):
    __tablename__ = "meeting_types"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    slug = Column(String(100), nullable=False, index=True)
    duration_minutes = Column(Integer, nullable=False, default=30)  # 15, 30, 45, 60 or 90
    description = Column(Text, nullable=True)
    is_default = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, server_default=func.now())

    user = relationship("User", back_populates="meeting_types")


class Booking(Base):
    __tablename__ = "bookings"
    __table_args__ = (Index("ix_bookings_host_range", "user_id", "start_time", "end_time"),)

    id = Column(Integer, primary_key=True, index=True)
    public_id = Column(String(36), unique=True, index=True, default=generate_public_id)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)  # Host
    meeting_type_id = Column(Integer, ForeignKey("meeting_types.id"), nullable=True)
    start_time = Column(DateTime, nullable=False)  # UTC
    end_time = Column(DateTime, nullable=False)  # UTC
    guest_name = Column(String(255), nullable=False)
    guest_email = Column(String(255), nullable=False)
    notes = Column(Text, nullable=True)
    google_event_id = Column(String(255), nullable=True)  # Set when the calendar event was created
    meet_link = Column(String(500), nullable=True)
    status = Column(String(20), default=BookingStatus.CONFIRMED, nullable=False)
    cancelled_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    host = relationship("User")
    meeting_type = relationship("MeetingType")


# Registered here so relationship("GoogleCalendarAccount") resolves wherever User is used
from .models_google_calendar import GoogleCalendarAccount  # noqa: E402,F401
