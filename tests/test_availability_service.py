from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from conftest import make_host
from meetslot.domain.scheduling.availability_service import AvailabilityService
from meetslot.domain.scheduling.schemas import AvailabilityWindowIn
from meetslot.models import AvailabilityWindow


def window(start, hours=1):
    return AvailabilityWindowIn(start=start, end=start + timedelta(hours=hours))


def test_saved_windows_read_back(db):
    host = make_host(db)
    service = AvailabilityService(db)

    saved = service.save_availability(
        host, [window(datetime(2030, 1, 16, 9)), window(datetime(2030, 1, 15, 9), hours=8)]
    )

    assert len(saved) == 2
    assert all(w.id for w in saved)
    loaded = service.get_availability(host)
    assert [(w.start, w.end) for w in loaded] == [
        (datetime(2030, 1, 15, 9), datetime(2030, 1, 15, 17)),
        (datetime(2030, 1, 16, 9), datetime(2030, 1, 16, 10)),
    ]


def test_save_replaces_everything(db):
    host = make_host(db, windows=[(datetime(2030, 1, 15, 9), datetime(2030, 1, 15, 17))])
    service = AvailabilityService(db)

    service.save_availability(host, [window(datetime(2030, 2, 1, 13))])

    loaded = service.get_availability(host)
    assert [(w.start, w.end) for w in loaded] == [(datetime(2030, 2, 1, 13), datetime(2030, 2, 1, 14))]


def test_empty_save_clears_availability(db):
    host = make_host(db, windows=[(datetime(2030, 1, 15, 9), datetime(2030, 1, 15, 17))])

    assert AvailabilityService(db).save_availability(host, []) == []
    assert db.query(AvailabilityWindow).count() == 0


def test_other_hosts_untouched(db):
    ada = make_host(db, slug="ada", windows=[(datetime(2030, 1, 15, 9), datetime(2030, 1, 15, 17))])
    alan = make_host(db, slug="alan", windows=[(datetime(2030, 1, 15, 9), datetime(2030, 1, 15, 12))])

    AvailabilityService(db).save_availability(ada, [])

    assert len(AvailabilityService(db).get_availability(alan)) == 1


def test_aware_datetimes_stored_as_utc():
    w = AvailabilityWindowIn(
        start=datetime(2030, 1, 15, 9, tzinfo=timezone(timedelta(hours=2))),
        end=datetime(2030, 1, 15, 10, tzinfo=timezone(timedelta(hours=2))),
    )
    assert w.start == datetime(2030, 1, 15, 7)
    assert w.start.tzinfo is None


def test_window_must_start_before_it_ends():
    with pytest.raises(ValidationError):
        AvailabilityWindowIn(start=datetime(2030, 1, 15, 10), end=datetime(2030, 1, 15, 10))
