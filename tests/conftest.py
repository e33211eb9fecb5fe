import inspect
import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("FIREBASE_PROJECT_ID", "meetslot-test")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("DB_LOG_SLOW_QUERIES", "false")

from datetime import datetime, timedelta  # noqa: E402

import httpx  # noqa: E402
import pytest  # noqa: E402

from meetslot.database import Base, SessionLocal, engine  # noqa: E402
from meetslot.errors import ExternalServiceDegraded  # noqa: E402
from meetslot.models import AvailabilityWindow, Booking, MeetingType, User  # noqa: E402
from meetslot.models_google_calendar import GoogleCalendarAccount  # noqa: E402
from meetslot.security_utils import encrypt_token  # noqa: E402
from meetslot.services.google_calendar_service import CreatedEvent  # noqa: E402


class FakeCalendar:
    """Stands in for GoogleCalendarClient; records calls and fails on request"""

    def __init__(self):
        self.busy = []
        self.statuses = {}  # event_id -> responseStatus
        self.fail_busy = False
        self.fail_create = False
        self.fail_status = False
        self.busy_calls = []
        self.created = []
        self.status_calls = []

    async def list_busy_intervals(self, account, start, end):
        self.busy_calls.append((start, end))
        if self.fail_busy:
            raise ExternalServiceDegraded("freeBusy failed")
        return list(self.busy)

    async def create_event(self, account, event):
        if self.fail_create:
            raise ExternalServiceDegraded("events.insert failed")
        self.created.append(event)
        return CreatedEvent(event_id=f"evt-{len(self.created)}", meeting_link="https://meet.google.com/abc-defg-hij")

    async def get_attendee_status(self, account, event_id, attendee_email):
        self.status_calls.append(event_id)
        if self.fail_status:
            raise ExternalServiceDegraded("events.get failed")
        return self.statuses.get(event_id)


@pytest.fixture
def db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def calendar():
    return FakeCalendar()


@pytest.fixture
def google(monkeypatch):
    """Routes every httpx.AsyncClient through a handler the test sets; handlers may be async"""
    state = {"handler": None, "requests": []}
    real_client = httpx.AsyncClient

    async def handle(request):
        state["requests"].append(request)
        response = state["handler"](request)
        if inspect.isawaitable(response):
            response = await response
        return response

    transport = httpx.MockTransport(handle)
    monkeypatch.setattr(httpx, "AsyncClient", lambda **kwargs: real_client(transport=transport, **kwargs))
    return state


def make_host(
    db,
    slug="ada",
    windows=(),
    plan=None,
    with_calendar=False,
    firebase_uid=None,
    email=None,
):
    host = User(
        firebase_uid=firebase_uid or f"uid-{slug}",
        email=email or f"{slug}@example.com",
        full_name=slug.capitalize(),
        slug=slug,
        plan=plan,
    )
    host.availability_windows = [AvailabilityWindow(start_time=s, end_time=e) for s, e in windows]
    if with_calendar:
        host.calendar_accounts = [
            GoogleCalendarAccount(
                access_token=encrypt_token("access"),
                refresh_token=encrypt_token("refresh"),
                token_expires_at=datetime(2100, 1, 1),
                google_user_email=host.email,
                google_calendar_id="primary",
                is_default=True,
            )
        ]
    db.add(host)
    db.commit()
    db.refresh(host)
    return host


def make_booking(db, host, start, minutes=30, status="confirmed", event_id=None, guest_email="guest@example.com"):
    booking = Booking(
        user_id=host.id,
        start_time=start,
        end_time=start + timedelta(minutes=minutes),
        guest_name="Guest",
        guest_email=guest_email,
        status=status,
        google_event_id=event_id,
    )
    db.add(booking)
    db.commit()
    db.refresh(booking)
    return booking


def make_meeting_type(db, host, name="Intro Call", slug="intro-call", duration=30):
    meeting_type = MeetingType(user_id=host.id, name=name, slug=slug, duration_minutes=duration)
    db.add(meeting_type)
    db.commit()
    db.refresh(meeting_type)
    return meeting_type
