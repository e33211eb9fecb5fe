import asyncio
from datetime import date, datetime, timedelta

import pytest

from conftest import FakeCalendar, make_booking, make_host
from meetslot.domain.scheduling.intervals import TimeRange
from meetslot.domain.scheduling.resolver import AvailabilityResolver
from meetslot.errors import NotFound

DAY = date(2030, 1, 15)
NOW = datetime(2030, 1, 14, 12, 0)


def at(hour, minute=0, day=DAY):
    return datetime(day.year, day.month, day.day, hour, minute)


def slots(db, calendar, slug="ada", day=DAY, duration=30, now=NOW):
    return asyncio.run(AvailabilityResolver(db, calendar, now=now).available_slots(slug, day, duration))


def dates(db, calendar, start, end, slug="ada", duration=30, now=NOW):
    return asyncio.run(AvailabilityResolver(db, calendar, now=now).available_dates(slug, start, end, duration))


def test_open_day_returns_consecutive_slots(db, calendar):
    make_host(db, windows=[(at(9), at(17))])

    result = slots(db, calendar)

    assert len(result) == 16
    assert result[0] == TimeRange(at(9), at(9, 30))
    assert result[-1] == TimeRange(at(16, 30), at(17))


def test_booking_removes_exactly_its_slot(db, calendar):
    host = make_host(db, windows=[(at(9), at(17))])
    make_booking(db, host, at(10))

    result = slots(db, calendar)

    assert len(result) == 15
    assert TimeRange(at(10), at(10, 30)) not in result
    assert TimeRange(at(9, 30), at(10)) in result
    assert TimeRange(at(10, 30), at(11)) in result


def test_cancelled_booking_does_not_block(db, calendar):
    host = make_host(db, windows=[(at(9), at(10))])
    make_booking(db, host, at(9), status="cancelled")

    assert len(slots(db, calendar)) == 2


def test_past_slots_excluded_today(db, calendar):
    make_host(db, windows=[(at(9), at(10))])

    result = slots(db, calendar, now=at(9, 15))

    assert result == [TimeRange(at(9, 30), at(10))]


def test_busy_times_from_default_account_are_excluded(db, calendar):
    make_host(db, windows=[(at(9), at(11))], with_calendar=True)
    calendar.busy = [TimeRange(at(9, 45), at(10, 15))]

    result = slots(db, calendar)

    assert result == [TimeRange(at(9), at(9, 30)), TimeRange(at(10, 30), at(11))]
    assert calendar.busy_calls == [(at(0), at(0, day=DAY + timedelta(days=1)))]


def test_no_connected_account_means_no_busy_lookup(db, calendar):
    make_host(db, windows=[(at(9), at(10))])
    calendar.busy = [TimeRange(at(9), at(10))]

    assert len(slots(db, calendar)) == 2
    assert calendar.busy_calls == []


def test_busy_lookup_failure_degrades_to_no_busy_times(db, calendar):
    make_host(db, windows=[(at(9), at(10))], with_calendar=True)
    calendar.fail_busy = True

    assert len(slots(db, calendar)) == 2


def test_declined_guest_reopens_slot(db, calendar):
    host = make_host(db, windows=[(at(9), at(10))], with_calendar=True)
    make_booking(db, host, at(9), event_id="evt-declined")
    make_booking(db, host, at(9, 30), event_id="evt-accepted")
    calendar.statuses = {"evt-declined": "declined", "evt-accepted": "accepted"}

    result = slots(db, calendar)

    assert result == [TimeRange(at(9), at(9, 30))]
    assert sorted(calendar.status_calls) == ["evt-accepted", "evt-declined"]


def test_status_lookup_failure_keeps_booking_blocking(db, calendar):
    host = make_host(db, windows=[(at(9), at(10))], with_calendar=True)
    make_booking(db, host, at(9), event_id="evt-1")
    calendar.fail_status = True

    assert slots(db, calendar) == [TimeRange(at(9, 30), at(10))]


def test_overlapping_windows_do_not_duplicate_slots(db, calendar):
    make_host(db, windows=[(at(9), at(10)), (at(9), at(11))])

    result = slots(db, calendar)

    assert result == [
        TimeRange(at(9), at(9, 30)),
        TimeRange(at(9, 30), at(10)),
        TimeRange(at(10), at(10, 30)),
        TimeRange(at(10, 30), at(11)),
    ]


def test_result_never_overlaps_bookings_or_busy_times(db, calendar):
    host = make_host(db, windows=[(at(8), at(18))], with_calendar=True)
    bookings = [make_booking(db, host, at(9, 10), minutes=50), make_booking(db, host, at(14), minutes=90)]
    calendar.busy = [TimeRange(at(11, 5), at(12, 20))]

    result = slots(db, calendar, duration=20)

    assert result
    for slot in result:
        for b in bookings:
            assert not (slot.start < b.end_time and slot.end > b.start_time)
        for busy in calendar.busy:
            assert not (slot.start < busy.end and slot.end > busy.start)


def test_same_inputs_same_output(db, calendar):
    host = make_host(db, windows=[(at(9), at(17))])
    make_booking(db, host, at(13))

    assert slots(db, calendar) == slots(db, calendar)


def test_unknown_host_raises_not_found(db, calendar):
    with pytest.raises(NotFound):
        slots(db, calendar, slug="nobody")
    with pytest.raises(NotFound):
        dates(db, calendar, DAY, DAY, slug="nobody")


def test_dates_in_range_are_inclusive_and_ordered(db, calendar):
    make_host(
        db,
        windows=[
            (at(9, day=DAY), at(10, day=DAY)),
            (at(9, day=DAY + timedelta(days=2)), at(10, day=DAY + timedelta(days=2))),
            (at(9, day=DAY + timedelta(days=9)), at(10, day=DAY + timedelta(days=9))),
        ],
    )

    result = dates(db, calendar, DAY, DAY + timedelta(days=2))

    assert result == ["2030-01-15", "2030-01-17"]


def test_dates_skip_days_before_today(db, calendar):
    yesterday = DAY - timedelta(days=1)
    make_host(db, windows=[(at(9, day=yesterday), at(10, day=DAY))])

    result = dates(db, calendar, yesterday, DAY, now=at(0, 5))

    assert result == ["2030-01-15"]


def test_fully_booked_day_is_not_offered(db, calendar):
    host = make_host(
        db,
        windows=[(at(9), at(10)), (at(9, day=DAY + timedelta(days=1)), at(10, day=DAY + timedelta(days=1)))],
    )
    make_booking(db, host, at(9), minutes=60)

    assert dates(db, calendar, DAY, DAY + timedelta(days=1)) == ["2030-01-16"]


def test_dates_survive_busy_lookup_failure(db, calendar):
    host = make_host(
        db,
        windows=[(at(9), at(10)), (at(9, day=DAY + timedelta(days=1)), at(10, day=DAY + timedelta(days=1)))],
        with_calendar=True,
    )
    make_booking(db, host, at(9), minutes=60)
    calendar.fail_busy = True

    assert dates(db, calendar, DAY, DAY + timedelta(days=1)) == ["2030-01-16"]


def test_busy_times_apply_to_date_probe(db, calendar):
    make_host(db, windows=[(at(9), at(10))], with_calendar=True)
    calendar.busy = [TimeRange(at(8), at(11))]

    assert dates(db, calendar, DAY, DAY) == []


def test_reversed_range_is_empty(db, calendar):
    make_host(db, windows=[(at(9), at(10))])
    assert dates(db, calendar, DAY, DAY - timedelta(days=1)) == []


def test_status_lookups_and_busy_times_run_concurrently(db):
    class OrderedCalendar(FakeCalendar):
        """Attendee lookups wait until the busy-time query has started"""

        def __init__(self):
            super().__init__()
            self.busy_started = asyncio.Event()
            self.waited_for_busy = []

        async def list_busy_intervals(self, account, start, end):
            self.busy_started.set()
            return await super().list_busy_intervals(account, start, end)

        async def get_attendee_status(self, account, event_id, attendee_email):
            try:
                await asyncio.wait_for(self.busy_started.wait(), timeout=1)
                self.waited_for_busy.append(True)
            except asyncio.TimeoutError:
                self.waited_for_busy.append(False)
            return await super().get_attendee_status(account, event_id, attendee_email)

    host = make_host(db, windows=[(at(9), at(10))], with_calendar=True)
    make_booking(db, host, at(9), event_id="evt-1")
    calendar = OrderedCalendar()

    assert slots(db, calendar) == [TimeRange(at(9, 30), at(10))]
    assert calendar.waited_for_busy == [True]
