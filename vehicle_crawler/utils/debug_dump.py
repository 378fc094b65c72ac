"""
Debug Dump Module
------------------------------------------------------------------------------------
CSV outputs written only in debug mode. They are never read back by the crawler
or the processor and play no part in correctness.

Files (prefixed with the crawl start or processing time in epoch milliseconds):
    <ms>_requests.csv:  one row per crawl request
                        (request, timestamp, lat, lon, found, parentFound, zoom, queue)
    <ms>_plates.csv:    the dedup keys known at the end of a crawl
    <ms>_vehicles.csv:  the vehicle samples known at the end of a crawl
    <ms>_results.csv:   the source/destination relations found by the processor

Functions:
    epoch_millis: Timestamp prefix used for all dump files
    append_rows: Appends rows to a CSV file, writing the header only once
    dump_known_vehicles: Writes the plates and vehicles files of a crawl run
    dump_relations: Writes the results file of a processing run
"""

from datetime import datetime
from pathlib import Path
from typing import Dict, Iterable, List

import pandas as pd

from ..models import TripCandidate, VehicleSample

REQUEST_COLUMNS = ["request", "timestamp", "lat", "lon", "found", "parentFound", "zoom", "queue"]
VEHICLE_COLUMNS = ["plate_number", "lat", "lon", "meterRange", "status", "lastActivityAt",
                   "batteryLevel", "typeName", "requestTime"]
RESULT_COLUMNS = ["sourceLat", "sourceLon", "destinationLat", "destinationLon", "lastActivity",
                  "sourceRequest", "destinationRequest"]


def epoch_millis(moment: datetime) -> int:
    return int(moment.timestamp() * 1000)

# ----------------------------------------------------------------------------------------------------------

def append_rows(path: Path, rows: List[Dict], columns: List[str]) -> None:
    if not rows:
        return  # nothing to write

    df = pd.DataFrame(rows, columns=columns)

    mode = 'a' if path.exists() else 'w'
    header = (mode == 'w')
    df.to_csv(path, mode=mode, header=header, index=False)

# ----------------------------------------------------------------------------------------------------------

def request_log_path(directory: Path, crawl_started: datetime) -> Path:
    return Path(directory) / f"{epoch_millis(crawl_started)}_requests.csv"

# ----------------------------------------------------------------------------------------------------------

def dump_known_vehicles(
        directory: Path,
        crawl_started: datetime,
        known_keys: Iterable[str],
        known_vehicles: Iterable[VehicleSample]
        ) -> None:
    """Dump the dedup keys and vehicles known at the end of a crawl run."""
    directory = Path(directory)
    directory.mkdir(parents=True, exist_ok=True)
    prefix = epoch_millis(crawl_started)

    plates = [key.split(",") for key in sorted(known_keys)]
    pd.DataFrame(plates, columns=["plate_number", "lat", "lon"]).to_csv(
        directory / f"{prefix}_plates.csv", index=False)

    vehicles = [{
        "plate_number": v.plate_number,
        "lat": v.latitude,
        "lon": v.longitude,
        "meterRange": v.meter_range,
        "status": v.status,
        "lastActivityAt": v.last_activity_at.isoformat(),
        "batteryLevel": v.battery_level,
        "typeName": v.type_name,
        "requestTime": v.request_time.isoformat(),
    } for v in known_vehicles]
    pd.DataFrame(vehicles, columns=VEHICLE_COLUMNS).to_csv(directory / f"{prefix}_vehicles.csv", index=False)

# ----------------------------------------------------------------------------------------------------------

def dump_relations(directory: Path, processed_at: datetime, relations: Iterable[TripCandidate]) -> Path:
    """Dump the source/destination relations of a processing run."""
    directory = Path(directory)
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / f"{epoch_millis(processed_at)}_results.csv"

    rows = [{
        "sourceLat": r.source.latitude,
        "sourceLon": r.source.longitude,
        "destinationLat": r.destination.latitude,
        "destinationLon": r.destination.longitude,
        "lastActivity": r.destination.last_activity_at.isoformat(),
        "sourceRequest": r.source.request_time.isoformat(),
        "destinationRequest": r.destination.request_time.isoformat(),
    } for r in relations]
    pd.DataFrame(rows, columns=RESULT_COLUMNS).to_csv(path, index=False)
    return path
