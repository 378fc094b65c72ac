"""
Trip Inference Module
--------------------------------

Turns the stored vehicle samples into source/destination relations.

Records arrive sorted by plate fragment and request time. Within each plate
fragment, every two consecutive records form a trip candidate, which then
passes an ordered chain of filters:

    1. Plate collision veto: if any candidate of the group reports a later
       record with an earlier last activity than its predecessor, the plate
       fragment belongs to more than one physical vehicle and the whole
       group is discarded.
    2. Unchanged position: source and destination coordinates are identical.
    3. Crawling gap: more than `max_gap_minutes` between the two requests.
    4. Short displacement: great-circle distance below `min_distance_km`
       (GPS noise, round trips, manual repositioning).

A plate fragment only appears in the result if at least one candidate
survives. The filters do no I/O; malformed stored data fails loudly while the
records are loaded.

Functions:
    haversine_km: Great-circle distance on a spherical earth.
    group_records: Group sorted records by plate fragment.
    pair_records: Consecutive pairs of one group.

Classes:
    TripInference: The filter chain and its thresholds.
"""

import logging
import math
from itertools import groupby
from typing import Dict, Iterable, List, Optional

from ..config import MAX_CRAWLING_GAP_MINUTES, MIN_DISTANCE_KM
from ..models import StoredRecord, TripCandidate

module_logger = logging.getLogger(__name__)

EARTH_RADIUS_KM = 6371


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance in km between two points, assuming a spherical earth."""
    lat_diff = math.radians(lat2 - lat1)
    lon_diff = math.radians(lon2 - lon1)
    a = (math.sin(lat_diff / 2) ** 2
         + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(lon_diff / 2) ** 2)
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def group_records(records: Iterable[StoredRecord]) -> Dict[str, List[StoredRecord]]:
    """Group records, already sorted by (plate fragment, request time), by plate fragment."""
    grouped: Dict[str, List[StoredRecord]] = {}
    for key, group in groupby(records, key=lambda r: r.group_key):
        # Input must be sorted by fragment; a fragment split into several runs is merged
        grouped.setdefault(key, []).extend(group)
    return grouped


def pair_records(records: List[StoredRecord]) -> List[TripCandidate]:
    """(r0, r1), (r1, r2), ... for one group."""
    return [TripCandidate(records[i - 1], records[i]) for i in range(1, len(records))]


class TripInference:
    """Promote trip candidates to source/destination relations."""

    def __init__(
            self,
            max_gap_minutes: float = MAX_CRAWLING_GAP_MINUTES,
            min_distance_km: float = MIN_DISTANCE_KM,
            logger: Optional[logging.Logger] = None,
            ) -> None:
        self.max_gap_minutes = max_gap_minutes
        self.min_distance_km = min_distance_km
        self.logger = logger or module_logger

    @staticmethod
    def has_plate_collision(pairs: List[TripCandidate]) -> bool:
        return any(p.destination.last_activity_at < p.source.last_activity_at for p in pairs)

    @staticmethod
    def moved(pair: TripCandidate) -> bool:
        return (pair.source.latitude, pair.source.longitude) != (pair.destination.latitude, pair.destination.longitude)

    def within_gap(self, pair: TripCandidate) -> bool:
        return pair.elapsed_minutes <= self.max_gap_minutes

    def far_enough(self, pair: TripCandidate) -> bool:
        distance = haversine_km(pair.source.latitude, pair.source.longitude,
                                pair.destination.latitude, pair.destination.longitude)
        return distance >= self.min_distance_km

    def filter_pairs(self, pairs: List[TripCandidate]) -> List[TripCandidate]:
        """Per-pair filters, applied to a group that passed the collision veto."""
        pairs = [p for p in pairs if self.moved(p)]
        pairs = [p for p in pairs if self.within_gap(p)]
        pairs = [p for p in pairs if self.far_enough(p)]
        return pairs

    def run(self, records: Iterable[StoredRecord]) -> Dict[str, List[TripCandidate]]:
        """
        Infer trips from records sorted by (plate fragment, request time).

        Returns:
            dict: plate fragment -> surviving relations in time order. Fragments
                  without any surviving relation are left out.
        """
        grouped = group_records(records)
        result: Dict[str, List[TripCandidate]] = {}
        vetoed = 0

        for plate, group in grouped.items():
            pairs = pair_records(group)
            if self.has_plate_collision(pairs):
                vetoed += 1
                continue
            relations = self.filter_pairs(pairs)
            if relations:
                result[plate] = relations

        number_of_relations = sum(len(relations) for relations in result.values())
        self.logger.info(
            f"{number_of_relations} Source-Destination relations found from {len(result)} different plate numbers.",
            extra={
                "operation": "trip_inference",
                "plate_numbers": len(grouped),
                "vetoed_plate_numbers": vetoed,
                "relations": number_of_relations,
                "max_gap_minutes": self.max_gap_minutes,
                "min_distance_km": self.min_distance_km
            })
        return result


def flatten(result: Dict[str, List[TripCandidate]]) -> List[TripCandidate]:
    return [relation for relations in result.values() for relation in relations]
