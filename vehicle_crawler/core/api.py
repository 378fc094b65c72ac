"""
Vehicle Map API Module
--------------------------------

This module queries the provider's rider map view for the vehicles inside one
rectangular region. One call maps one region to one page of raw vehicle items.

A page is only accepted when the provider answers with HTTP 200 and reports the
"block" level, i.e. single vehicles rather than zoomed-out clusters. Anything
else, including timeouts and connection faults, surfaces as ApiUnavailable so
the crawler only has to tell a usable page from a failed request.

Classes:
    VehicleApi: Sends one authorised GET per region and returns the `bikes` array.

Usage Example:
    ```python
    api = VehicleApi(auth_token="...")
    items = api.vehicles(region, request_id=1)
    ```
"""

import logging
import uuid
from typing import Any, Dict, List, Optional

import requests

from ..config import API_URL, REQUEST_TIMEOUT, REQUIRED_LEVEL
from ..exceptions import ApiUnavailable
from ..spatial.regions import Region

module_logger = logging.getLogger(__name__)


class VehicleApi:
    """Client for the vehicle map endpoint."""

    def __init__(
            self,
            auth_token: str,
            url: str = API_URL,
            timeout: float = REQUEST_TIMEOUT,
            required_level: str = REQUIRED_LEVEL,
            session: Optional[requests.Session] = None,
            logger: Optional[logging.Logger] = None,
            ) -> None:
        self.auth_token = auth_token
        self.url = url
        self.timeout = timeout
        self.required_level = required_level
        self.session = session if session is not None else requests.Session()
        self.logger = logger or module_logger

    @staticmethod
    def query(region: Region) -> Dict[str, Any]:
        return {
            "ne_lat": region.north_east_lat,
            "ne_lng": region.north_east_lon,
            "sw_lat": region.south_west_lat,
            "sw_lng": region.south_west_lon,
            "user_latitude": region.center_lat,
            "user_longitude": region.center_lon,
            "zoom": region.zoom,
        }

    def vehicles(self, region: Region, request_id: Optional[str] = None) -> List[Dict[str, Any]]:
        """
        Retrieve the raw vehicle items for one region.

        Args:
            region (Region):   The rectangle and zoom to query.
            request_id (str):  Correlation id for the logs; generated when omitted.

        Returns:
            list[dict]: The `data.attributes.bikes` array as sent by the provider.

        Raises:
            ApiUnavailable: On a non-200 status, a level other than the required one,
                a missing `bikes` array, an undecodable body or any network fault.
        """
        request_id = request_id or str(uuid.uuid4())[:8]
        params = self.query(region)

        self.logger.debug("Requesting vehicles", extra={
            "operation": "vehicle_request",
            "request_id": request_id,
            "region": region.as_log_dict()
        })

        try:
            response = self.session.get(
                self.url,
                params=params,
                headers={"authorization": f"Bearer {self.auth_token}"},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise ApiUnavailable(f"Vehicle request failed: {e}") from e

        if response.status_code != 200:
            raise ApiUnavailable(
                f"Vehicle request returned wrong HTTP status code. Expected 200! received {response.status_code}"
            )

        try:
            body = response.json()
        except ValueError as e:
            raise ApiUnavailable(f"Vehicle response is not valid JSON: {e}") from e

        attributes = self._attributes(body)
        level = attributes.get("current_level")
        if level != self.required_level:
            raise ApiUnavailable(
                f"Expected level '{self.required_level}' but received '{level}' "
                f"(zoom {region.zoom} may be too low for vehicle granularity)"
            )

        bikes = attributes.get("bikes")
        if not isinstance(bikes, list):
            raise ApiUnavailable(f"Response carries no vehicle list: {attributes.get('title', 'no title')}")

        self.logger.debug("Received vehicles", extra={
            "operation": "vehicle_request",
            "request_id": request_id,
            "results_count": len(bikes)
        })
        return bikes

    @staticmethod
    def _attributes(body: Any) -> Dict[str, Any]:
        data = body.get("data") if isinstance(body, dict) else None
        attributes = data.get("attributes") if isinstance(data, dict) else None
        if not isinstance(attributes, dict):
            raise ApiUnavailable("Response lacks the data.attributes object")
        return attributes
