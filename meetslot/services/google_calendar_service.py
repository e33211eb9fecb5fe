"""
Google Calendar Service
Busy-time lookups, event creation and attendee status checks for connected accounts
"""
import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Optional

import httpx
from dateutil import parser as date_parser
from sqlalchemy.orm import Session

from ..config import CALENDAR_TIMEOUT_SECONDS, GOOGLE_CLIENT_ID, GOOGLE_CLIENT_SECRET
from ..domain.scheduling.intervals import TimeRange, to_naive_utc, utcnow
from ..errors import ExternalServiceDegraded
from ..models_google_calendar import GoogleCalendarAccount
from ..security_utils import decrypt_token, encrypt_token, generate_secure_token

logger = logging.getLogger(__name__)

GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"  # noqa: S105 - OAuth endpoint URL
GOOGLE_CALENDAR_API = "https://www.googleapis.com/calendar/v3"


@dataclass
class CalendarEventRequest:
    summary: str
    start: datetime
    end: datetime
    attendees: list[str] = field(default_factory=list)
    description: Optional[str] = None


@dataclass
class CreatedEvent:
    event_id: str
    meeting_link: Optional[str] = None


def _isoformat_utc(value: datetime) -> str:
    return to_naive_utc(value).isoformat() + "Z"


async def get_valid_access_token(account: GoogleCalendarAccount, db: Session) -> Optional[str]:
    """
    Get a valid access token, refreshing if necessary
    Returns None if refresh fails
    """
    try:
        # Check if token is expired or about to expire (within 5 minutes)
        if account.token_expires_at <= utcnow() + timedelta(minutes=5):
            logger.info("🔄 Google Calendar token expired, refreshing...")

            refresh_token = decrypt_token(account.refresh_token)

            async with httpx.AsyncClient(timeout=CALENDAR_TIMEOUT_SECONDS) as client:
                response = await client.post(
                    GOOGLE_TOKEN_URL,
                    data={
                        "client_id": GOOGLE_CLIENT_ID,
                        "client_secret": GOOGLE_CLIENT_SECRET,
                        "refresh_token": refresh_token,
                        "grant_type": "refresh_token",
                    },
                )

            if response.status_code != 200:
                logger.error(f"❌ Token refresh failed: {response.text}")
                return None

            tokens = response.json()
            new_access_token = tokens.get("access_token")
            expires_in = tokens.get("expires_in", 3600)

            if not new_access_token:
                logger.error("❌ No access token in refresh response")
                return None

            account.access_token = encrypt_token(new_access_token)
            account.token_expires_at = utcnow() + timedelta(seconds=expires_in)
            db.commit()

            logger.info("✅ Google Calendar token refreshed successfully")
            return new_access_token

        return decrypt_token(account.access_token)

    except Exception as e:
        logger.error(f"❌ Error getting valid access token: {str(e)}")
        return None


class GoogleCalendarClient:
    """
    The three calendar operations scheduling depends on.

    Every failure (no token, transport error, non-2xx answer) is raised as
    ExternalServiceDegraded so the caller decides how to degrade.
    """

    def __init__(self, db: Session, timeout: float = CALENDAR_TIMEOUT_SECONDS):
        self.db = db
        self.timeout = timeout
        self._token_locks: dict[int, asyncio.Lock] = {}

    async def _token(self, account: GoogleCalendarAccount) -> str:
        # One refresh per account at a time; waiters re-check expiry and reuse the stored token
        lock = self._token_locks.setdefault(account.id, asyncio.Lock())
        async with lock:
            access_token = await get_valid_access_token(account, self.db)
        if not access_token:
            raise ExternalServiceDegraded(f"No valid access token for calendar account {account.id}")
        return access_token

    async def _request(self, account: GoogleCalendarAccount, method: str, path: str, **kwargs) -> dict:
        access_token = await self._token(account)
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.request(
                    method,
                    f"{GOOGLE_CALENDAR_API}{path}",
                    headers={"Authorization": f"Bearer {access_token}"},
                    **kwargs,
                )
        except httpx.HTTPError as e:
            raise ExternalServiceDegraded(f"Google Calendar request failed: {e}") from e

        if response.status_code not in (200, 201):
            raise ExternalServiceDegraded(
                f"Google Calendar {method} {path} returned {response.status_code}: {response.text[:200]}"
            )
        return response.json()

    async def list_busy_intervals(
        self, account: GoogleCalendarAccount, start: datetime, end: datetime
    ) -> list[TimeRange]:
        calendar_id = account.google_calendar_id or "primary"
        data = await self._request(
            account,
            "POST",
            "/freeBusy",
            json={
                "timeMin": _isoformat_utc(start),
                "timeMax": _isoformat_utc(end),
                "items": [{"id": calendar_id}],
            },
        )

        calendar = data.get("calendars", {}).get(calendar_id, {})
        if calendar.get("errors"):
            raise ExternalServiceDegraded(f"freeBusy errors for {calendar_id}: {calendar['errors']}")

        return [
            TimeRange(
                to_naive_utc(date_parser.isoparse(busy["start"])),
                to_naive_utc(date_parser.isoparse(busy["end"])),
            )
            for busy in calendar.get("busy", [])
        ]

    async def create_event(self, account: GoogleCalendarAccount, event: CalendarEventRequest) -> CreatedEvent:
        calendar_id = account.google_calendar_id or "primary"
        attendees = []
        for email in event.attendees:
            attendee = {"email": email}
            if email == account.google_user_email or email == account.user.email:
                attendee["responseStatus"] = "accepted"
            attendees.append(attendee)

        body = {
            "summary": event.summary,
            "start": {"dateTime": _isoformat_utc(event.start), "timeZone": "UTC"},
            "end": {"dateTime": _isoformat_utc(event.end), "timeZone": "UTC"},
            "attendees": attendees,
            "conferenceData": {
                "createRequest": {
                    "requestId": f"booking-{generate_secure_token(12)}",
                    "conferenceSolutionKey": {"type": "hangoutsMeet"},
                }
            },
        }
        if event.description:
            body["description"] = event.description

        created = await self._request(
            account,
            "POST",
            f"/calendars/{calendar_id}/events",
            params={"conferenceDataVersion": 1, "sendUpdates": "all"},
            json=body,
        )

        event_id = created.get("id")
        if not event_id:
            raise ExternalServiceDegraded("Google Calendar returned an event without an id")

        logger.info(f"✅ Google Calendar event created: {event_id}")
        return CreatedEvent(event_id=event_id, meeting_link=created.get("hangoutLink"))

    async def get_attendee_status(
        self, account: GoogleCalendarAccount, event_id: str, attendee_email: str
    ) -> Optional[str]:
        """accepted, declined, tentative, needsAction - or None if the guest isn't on the event"""
        calendar_id = account.google_calendar_id or "primary"
        event = await self._request(account, "GET", f"/calendars/{calendar_id}/events/{event_id}")

        for attendee in event.get("attendees", []):
            if (attendee.get("email") or "").lower() == attendee_email.lower():
                return attendee.get("responseStatus")
        return None
