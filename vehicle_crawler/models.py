"""
Data model shared by the crawler and the trip processor.

- VehicleSample: one vehicle item of one API response, plus the time of the
  request and the time the crawl started.
- StoredRecord: a persisted sample as read back from the document store.
- TripCandidate: two time-adjacent records of the same plate fragment.

Items are validated with pydantic. A missing, null or mistyped field raises
SchemaValidationError instead of silently becoming None.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Annotated, Any, Union

from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictInt, StrictStr, ValidationError, field_validator

from .exceptions import SchemaValidationError

Number = Union[int, float]

# Strict float still accepts ints, but never strings or bools
Coordinate = Annotated[float, Field(strict=True)]


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _schema_error(context: str, error: ValidationError) -> SchemaValidationError:
    problems = "; ".join(
        f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in error.errors()
    )
    return SchemaValidationError(f"{context}: {problems}")


class VehicleSample(BaseModel):
    """One vehicle as reported by the map endpoint."""

    model_config = ConfigDict(frozen=True)

    id: StrictStr
    type: StrictStr
    generation: StrictStr
    swappable_battery: StrictBool
    type_name: StrictStr
    battery_level: StrictStr
    last_three: StrictStr
    latitude: Coordinate
    longitude: Coordinate
    meter_range: StrictInt
    last_activity_at: datetime
    plate_number: StrictStr
    battery_percentage: StrictInt
    brand: StrictStr
    status: StrictStr
    request_time: datetime
    crawling_started: datetime

    @field_validator("generation", mode="before")
    @classmethod
    def _generation_as_text(cls, value: Any) -> Any:
        # Served as a number by some fleets
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value

    @field_validator("last_activity_at", "request_time", "crawling_started")
    @classmethod
    def _utc(cls, value: datetime) -> datetime:
        return _as_utc(value)

    @classmethod
    def from_api_item(cls, item: Mapping, request_time: datetime, crawling_started: datetime) -> "VehicleSample":
        if not isinstance(item, Mapping):
            raise SchemaValidationError(f"vehicle item: expected an object, got {type(item).__name__}")
        context = f"vehicle item {item.get('id')}"
        attributes = item.get("attributes")
        if not isinstance(attributes, Mapping):
            raise SchemaValidationError(f"{context}: missing required field 'attributes'")

        try:
            return cls.model_validate({
                **attributes,
                "id": item.get("id"),
                "type": item.get("type"),
                "request_time": request_time,
                "crawling_started": crawling_started,
            })
        except ValidationError as e:
            raise _schema_error(context, e) from e

    @property
    def dedup_key(self) -> str:
        # Truncated plates collide between vehicles, so the position is part of the key
        return dedup_key(self.last_three, self.latitude, self.longitude)

    def to_document(self) -> dict:
        return self.model_dump()

    def __eq__(self, other):
        if not isinstance(other, VehicleSample):
            return NotImplemented
        return (self.last_three, self.latitude, self.longitude) == (other.last_three, other.latitude, other.longitude)

    def __hash__(self):
        return hash((self.last_three, self.latitude, self.longitude))


def dedup_key(last_three: str, latitude: Number, longitude: Number) -> str:
    return f"{last_three},{float(latitude)},{float(longitude)}"


class StoredRecord(BaseModel):
    """A persisted sample, reduced to the fields trip inference needs."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: StrictStr = Field(..., alias="_id")
    last_three: StrictStr
    latitude: Coordinate
    longitude: Coordinate
    last_activity_at: datetime
    request_time: datetime
    meter_range: StrictInt
    crawling_started: datetime
    battery_percentage: StrictInt
    plate_number: StrictStr

    @field_validator("id", mode="before")
    @classmethod
    def _id_as_text(cls, value: Any) -> Any:
        # ObjectId from the store
        return value if value is None or isinstance(value, str) else str(value)

    @field_validator("last_activity_at", "request_time", "crawling_started")
    @classmethod
    def _utc(cls, value: datetime) -> datetime:
        return _as_utc(value)

    @property
    def group_key(self) -> str:
        return self.last_three

    @classmethod
    def from_document(cls, document: Mapping) -> "StoredRecord":
        context = f"stored document {document.get('_id') if isinstance(document, Mapping) else document!r}"
        try:
            return cls.model_validate(document)
        except ValidationError as e:
            raise _schema_error(context, e) from e


@dataclass(frozen=True)
class TripCandidate:
    source: StoredRecord
    destination: StoredRecord

    @property
    def elapsed_minutes(self) -> float:
        return (self.destination.request_time - self.source.request_time).total_seconds() / 60
