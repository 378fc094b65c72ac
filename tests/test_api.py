import pytest
import requests

from conftest import page
from vehicle_crawler.core.api import VehicleApi
from vehicle_crawler.exceptions import ApiUnavailable


class FakeResponse:

    def __init__(self, status_code=200, body=None, invalid_json=False):
        self.status_code = status_code
        self.body = body
        self.invalid_json = invalid_json

    def json(self):
        if self.invalid_json:
            raise ValueError("Expecting value: line 1 column 1 (char 0)")
        return self.body


class FakeSession:

    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls = []

    def get(self, url, params=None, headers=None, timeout=None):
        self.calls.append({"url": url, "params": params, "headers": headers, "timeout": timeout})
        if self.error is not None:
            raise self.error
        return self.response


def map_body(bikes, level="block"):
    return {"data": {"id": "map", "type": "map_view", "attributes": {"current_level": level, "bikes": bikes}}}


def test_block_level_page_is_returned(seed_region):
    bikes = page(0)
    session = FakeSession(FakeResponse(body=map_body(bikes)))
    api = VehicleApi(auth_token="secret", url="https://example.test/map", timeout=30, session=session)

    assert api.vehicles(seed_region) == bikes

    call = session.calls[0]
    assert call["url"] == "https://example.test/map"
    assert call["headers"] == {"authorization": "Bearer secret"}
    assert call["timeout"] == 30
    assert call["params"]["zoom"] == 15
    assert call["params"]["ne_lat"] == seed_region.north_east_lat
    assert call["params"]["sw_lng"] == seed_region.south_west_lon
    assert call["params"]["user_latitude"] == pytest.approx(
        (seed_region.north_east_lat + seed_region.south_west_lat) / 2)


def test_wrong_level_is_unavailable(seed_region):
    api = VehicleApi(auth_token="t", session=FakeSession(FakeResponse(body=map_body([], level="cluster"))))
    with pytest.raises(ApiUnavailable, match="cluster"):
        api.vehicles(seed_region)


def test_non_200_is_unavailable(seed_region):
    api = VehicleApi(auth_token="t", session=FakeSession(FakeResponse(status_code=429, body={})))
    with pytest.raises(ApiUnavailable, match="429"):
        api.vehicles(seed_region)


def test_timeout_is_unavailable(seed_region):
    api = VehicleApi(auth_token="t", session=FakeSession(error=requests.Timeout("read timed out")))
    with pytest.raises(ApiUnavailable):
        api.vehicles(seed_region)


def test_connection_error_is_unavailable(seed_region):
    api = VehicleApi(auth_token="t", session=FakeSession(error=requests.ConnectionError("refused")))
    with pytest.raises(ApiUnavailable):
        api.vehicles(seed_region)


def test_undecodable_body_is_unavailable(seed_region):
    api = VehicleApi(auth_token="t", session=FakeSession(FakeResponse(invalid_json=True)))
    with pytest.raises(ApiUnavailable):
        api.vehicles(seed_region)


@pytest.mark.parametrize("body", [
    {},
    {"errors": [{"title": "Unauthorized"}]},
    {"data": {"attributes": {"current_level": "block"}}},
    {"data": {"attributes": {"current_level": "block", "bikes": None}}},
])
def test_missing_vehicle_list_is_unavailable(seed_region, body):
    api = VehicleApi(auth_token="t", session=FakeSession(FakeResponse(body=body)))
    with pytest.raises(ApiUnavailable):
        api.vehicles(seed_region)
