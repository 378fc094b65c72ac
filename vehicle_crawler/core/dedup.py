"""
Per-run bookkeeping of the vehicles already seen.

The identity set holds dedup keys (plate fragment + coordinates); the sample
set holds one VehicleSample per key. Both live for exactly one crawl run.
"""

from typing import Iterable, List, Set

from ..models import VehicleSample


class Accumulator:

    def __init__(self) -> None:
        self.seen_keys: Set[str] = set()
        self.samples: Set[VehicleSample] = set()

    def __len__(self) -> int:
        return len(self.samples)

    def new_samples(self, samples: Iterable[VehicleSample]) -> List[VehicleSample]:
        """Samples whose key is not yet known, keeping the first sample per key."""
        fresh = {}
        for sample in samples:
            key = sample.dedup_key
            if key not in self.seen_keys and key not in fresh:
                fresh[key] = sample
        return list(fresh.values())

    def add(self, samples: Iterable[VehicleSample]) -> int:
        """Record a page of samples and return how many of them were newly found."""
        fresh = self.new_samples(samples)
        for sample in fresh:
            self.seen_keys.add(sample.dedup_key)
            self.samples.add(sample)
        return len(fresh)
