from datetime import datetime, timedelta, timezone

import pytest

from vehicle_crawler.models import StoredRecord
from vehicle_crawler.spatial.regions import Region

T0 = datetime(2019, 6, 1, 12, 0, tzinfo=timezone.utc)


def api_item(index: int, lat: float = None, lon: float = None, **overrides) -> dict:
    """One raw vehicle item as served by the map endpoint."""
    attributes = {
        "generation": "4",
        "swappable_battery": False,
        "type_name": "scooter",
        "battery_level": "high",
        "last_three": f"{index % 1000:03d}",
        "latitude": 51.05 + index * 1e-4 if lat is None else lat,
        "longitude": 13.75 if lon is None else lon,
        "meter_range": 25_000,
        "last_activity_at": "2019-06-01T11:45:00.000Z",
        "plate_number": f"XYZ{index % 1000:03d}",
        "battery_percentage": 80,
        "brand": "lime",
        "status": "locked",
    }
    attributes.update(overrides)
    return {"id": f"ET-{index}", "type": "scooters", "attributes": attributes}


def page(start: int, size: int = 50) -> list:
    return [api_item(i) for i in range(start, start + size)]


class FakeApi:
    """Serves queued pages in order; an exception in the queue is raised instead."""

    def __init__(self, pages=None, default=None):
        self.pages = list(pages or [])
        self.default = default
        self.regions = []

    def vehicles(self, region, request_id=None):
        self.regions.append(region)
        response = self.pages.pop(0) if self.pages else self.default
        if isinstance(response, Exception):
            raise response
        if callable(response):
            return response()
        return response


class FakeStore:

    def __init__(self, error=None):
        self.writes = []
        self.error = error

    def write(self, samples, collection_name):
        if self.error is not None:
            raise self.error
        self.writes.append((set(samples), collection_name))
        return len(self.writes[-1][0])


class FakeClock:
    """Monotonic clock advanced only by the fake sleep."""

    def __init__(self):
        self.now = 0.0
        self.sleeps = []

    def __call__(self):
        return self.now

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def seed_region():
    return Region(
        north_east_lat=51.090157213909116,
        north_east_lon=13.809081655279853,
        south_west_lat=51.02319889010608,
        south_west_lon=13.686292542430092,
        zoom=15,
    )


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def make_record():
    counter = iter(range(1, 1_000_000))

    def _make(last_three="123", lat=51.05, lon=13.75, minutes=0, activity_minutes=None, **overrides):
        request_time = T0 + timedelta(minutes=minutes)
        fields = dict(
            id=f"{next(counter):024x}",
            last_three=last_three,
            latitude=lat,
            longitude=lon,
            last_activity_at=request_time - timedelta(minutes=1) if activity_minutes is None
            else T0 + timedelta(minutes=activity_minutes),
            request_time=request_time,
            meter_range=20_000,
            crawling_started=request_time,
            battery_percentage=70,
            plate_number=f"ABC{last_three}",
        )
        fields.update(overrides)
        return StoredRecord(**fields)

    return _make
