from datetime import datetime, timedelta, timezone

import pytest
from bson import ObjectId

from conftest import T0, api_item
from vehicle_crawler.exceptions import SchemaValidationError
from vehicle_crawler.models import StoredRecord, VehicleSample, dedup_key


def test_from_api_item_parses_all_fields():
    sample = VehicleSample.from_api_item(api_item(7, lat=51.0512, lon=13.7401), T0, T0)

    assert sample.id == "ET-7"
    assert sample.last_three == "007"
    assert sample.latitude == 51.0512
    assert sample.longitude == 13.7401
    assert sample.meter_range == 25_000
    assert sample.last_activity_at == datetime(2019, 6, 1, 11, 45, tzinfo=timezone.utc)
    assert sample.request_time == T0
    assert sample.to_document()["plate_number"] == "XYZ007"


@pytest.mark.parametrize("field", ["last_three", "latitude", "plate_number", "last_activity_at", "meter_range"])
def test_missing_required_field_fails(field):
    item = api_item(1)
    del item["attributes"][field]
    with pytest.raises(SchemaValidationError, match=field):
        VehicleSample.from_api_item(item, T0, T0)


def test_null_field_fails():
    with pytest.raises(SchemaValidationError):
        VehicleSample.from_api_item(api_item(1, battery_percentage=None), T0, T0)


def test_mistyped_fields_fail():
    with pytest.raises(SchemaValidationError):
        VehicleSample.from_api_item(api_item(1, latitude="51.05"), T0, T0)
    with pytest.raises(SchemaValidationError):
        VehicleSample.from_api_item(api_item(1, meter_range=True), T0, T0)
    with pytest.raises(SchemaValidationError):
        VehicleSample.from_api_item(api_item(1, last_activity_at="yesterday"), T0, T0)


def test_item_without_attributes_fails():
    with pytest.raises(SchemaValidationError):
        VehicleSample.from_api_item({"id": "ET-1", "type": "scooters"}, T0, T0)


def test_equality_ignores_request_time_and_id():
    first = VehicleSample.from_api_item(api_item(3), T0, T0)
    later = VehicleSample.from_api_item({**api_item(3), "id": "ET-other"}, T0 + timedelta(minutes=5), T0)
    moved = VehicleSample.from_api_item(api_item(3, lat=50.0), T0, T0)

    assert first == later
    assert hash(first) == hash(later)
    assert first != moved
    assert len({first, later, moved}) == 2


def test_dedup_key_format():
    assert dedup_key("123", 51.05, 13.7) == "123,51.05,13.7"
    assert dedup_key("123", 51, 13) == "123,51.0,13.0"
    assert VehicleSample.from_api_item(api_item(5, lat=51.1, lon=13.8), T0, T0).dedup_key == "005,51.1,13.8"


@pytest.mark.parametrize("timestamp", [
    "2019-06-01T14:00:00+02:00",
    "2019-06-01T12:00:00Z",
    "2019-06-01T12:00:00.0Z",
    "2019-06-01T12:00:00.00Z",
])
def test_last_activity_is_normalised_to_utc(timestamp):
    sample = VehicleSample.from_api_item(api_item(1, last_activity_at=timestamp), T0, T0)
    assert sample.last_activity_at == datetime(2019, 6, 1, 12, 0, tzinfo=timezone.utc)
    assert sample.last_activity_at.utcoffset() == timedelta(0)


def test_numeric_generation_is_kept_as_text():
    assert VehicleSample.from_api_item(api_item(1, generation=3), T0, T0).generation == "3"


def test_stored_record_accepts_object_id():
    object_id = ObjectId("5cf2a7d1e1b2c3d4e5f60718")
    document = {
        "_id": object_id,
        "last_three": "123",
        "latitude": 51,
        "longitude": 13.75,
        "last_activity_at": T0,
        "request_time": T0,
        "meter_range": 20_000,
        "crawling_started": T0,
        "battery_percentage": 70,
        "plate_number": "ABC123",
        "brand": "lime",
    }
    record = StoredRecord.from_document(document)
    assert record.id == "5cf2a7d1e1b2c3d4e5f60718"
    assert record.latitude == 51.0

    with pytest.raises(SchemaValidationError):
        StoredRecord.from_document({**document, "battery_percentage": "70"})


def test_stored_record_from_document():
    document = {
        "_id": "5cf2a7d1e1b2c3d4e5f60718",
        "last_three": "123",
        "latitude": 51.05,
        "longitude": 13.75,
        "last_activity_at": datetime(2019, 6, 1, 11, 0),
        "request_time": T0,
        "meter_range": 20_000,
        "crawling_started": T0,
        "battery_percentage": 70,
        "plate_number": "ABC123",
    }
    record = StoredRecord.from_document(document)

    assert record.id == "5cf2a7d1e1b2c3d4e5f60718"
    assert record.group_key == "123"
    # naive datetimes from the store are UTC
    assert record.last_activity_at == datetime(2019, 6, 1, 11, 0, tzinfo=timezone.utc)

    del document["_id"]
    with pytest.raises(SchemaValidationError):
        StoredRecord.from_document(document)
