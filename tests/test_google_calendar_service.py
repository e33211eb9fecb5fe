import asyncio
import json
from datetime import datetime

import httpx
import pytest

from conftest import make_booking, make_host
from meetslot.domain.scheduling.intervals import TimeRange
from meetslot.domain.scheduling.resolver import AvailabilityResolver
from meetslot.errors import ExternalServiceDegraded
from meetslot.services.google_calendar_service import CalendarEventRequest, GoogleCalendarClient


@pytest.fixture
def account(db):
    return make_host(db, with_calendar=True).calendar_accounts[0]


def test_busy_intervals_parsed_to_utc(db, google, account):
    google["handler"] = lambda request: httpx.Response(
        200,
        json={
            "calendars": {
                "primary": {
                    "busy": [
                        {"start": "2030-01-15T10:00:00+01:00", "end": "2030-01-15T11:00:00+01:00"},
                        {"start": "2030-01-15T13:00:00Z", "end": "2030-01-15T13:30:00Z"},
                    ]
                }
            }
        },
    )

    busy = asyncio.run(
        GoogleCalendarClient(db).list_busy_intervals(account, datetime(2030, 1, 15), datetime(2030, 1, 16))
    )

    assert busy == [
        TimeRange(datetime(2030, 1, 15, 9), datetime(2030, 1, 15, 10)),
        TimeRange(datetime(2030, 1, 15, 13), datetime(2030, 1, 15, 13, 30)),
    ]
    request = google["requests"][0]
    assert request.headers["Authorization"] == "Bearer access"
    assert json.loads(request.content)["timeMin"] == "2030-01-15T00:00:00Z"


def test_busy_lookup_error_status_is_degraded(db, google, account):
    google["handler"] = lambda request: httpx.Response(500, text="backend error")

    with pytest.raises(ExternalServiceDegraded):
        asyncio.run(
            GoogleCalendarClient(db).list_busy_intervals(account, datetime(2030, 1, 15), datetime(2030, 1, 16))
        )


def test_transport_error_is_degraded(db, google, account):
    def fail(request):
        raise httpx.ConnectError("connection refused", request=request)

    google["handler"] = fail

    with pytest.raises(ExternalServiceDegraded):
        asyncio.run(GoogleCalendarClient(db).get_attendee_status(account, "evt-1", "guest@example.com"))


def test_create_event_requests_meet_link(db, google, account):
    google["handler"] = lambda request: httpx.Response(
        200, json={"id": "evt-42", "hangoutLink": "https://meet.google.com/xyz"}
    )
    event = CalendarEventRequest(
        summary="Meeting: Ada x Grace",
        start=datetime(2030, 1, 15, 10),
        end=datetime(2030, 1, 15, 10, 30),
        attendees=["ada@example.com", "grace@example.com"],
    )

    created = asyncio.run(GoogleCalendarClient(db).create_event(account, event))

    assert created.event_id == "evt-42"
    assert created.meeting_link == "https://meet.google.com/xyz"
    request = google["requests"][0]
    assert request.url.params["conferenceDataVersion"] == "1"
    body = json.loads(request.content)
    assert body["conferenceData"]["createRequest"]["conferenceSolutionKey"] == {"type": "hangoutsMeet"}
    assert body["attendees"] == [
        {"email": "ada@example.com", "responseStatus": "accepted"},
        {"email": "grace@example.com"},
    ]


def test_attendee_status_matches_email_case_insensitively(db, google, account):
    google["handler"] = lambda request: httpx.Response(
        200, json={"attendees": [{"email": "Guest@Example.com", "responseStatus": "declined"}]}
    )

    status = asyncio.run(GoogleCalendarClient(db).get_attendee_status(account, "evt-1", "guest@example.com"))

    assert status == "declined"


def test_failed_token_refresh_is_degraded(db, google, account):
    account.token_expires_at = datetime(2000, 1, 1)
    db.commit()
    google["handler"] = lambda request: httpx.Response(400, json={"error": "invalid_grant"})

    with pytest.raises(ExternalServiceDegraded):
        asyncio.run(GoogleCalendarClient(db).get_attendee_status(account, "evt-1", "guest@example.com"))


def test_expired_token_refreshed_once_for_concurrent_lookups(db, google):
    host = make_host(
        db, windows=[(datetime(2030, 1, 15, 9), datetime(2030, 1, 15, 17))], with_calendar=True
    )
    host.calendar_accounts[0].token_expires_at = datetime(2000, 1, 1)
    db.commit()
    for hour in range(9, 14):
        make_booking(db, host, datetime(2030, 1, 15, hour), event_id=f"evt-{hour}")

    async def google_api(request):
        await asyncio.sleep(0.01)
        if request.url.host == "oauth2.googleapis.com":
            return httpx.Response(200, json={"access_token": "fresh", "expires_in": 3600})
        if request.url.path.endswith("/freeBusy"):
            return httpx.Response(200, json={"calendars": {"primary": {"busy": []}}})
        return httpx.Response(
            200, json={"attendees": [{"email": "guest@example.com", "responseStatus": "accepted"}]}
        )

    google["handler"] = google_api

    resolver = AvailabilityResolver(db, GoogleCalendarClient(db), now=datetime(2030, 1, 14, 12))
    slots = asyncio.run(resolver.available_slots("ada", datetime(2030, 1, 15).date(), 30))

    refreshes = [r for r in google["requests"] if r.url.host == "oauth2.googleapis.com"]
    calendar_calls = [r for r in google["requests"] if r.url.host == "www.googleapis.com"]
    assert len(refreshes) == 1
    assert len(calendar_calls) == 6  # five attendee lookups and one freeBusy
    assert all(r.headers["Authorization"] == "Bearer fresh" for r in calendar_calls)
    assert len(slots) == 11
