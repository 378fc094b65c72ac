"""
Vehicle Crawl Module
--------------------------------

This module runs one adaptive crawl over a seed region under a fixed request
budget. The provider returns at most one fixed-size page per region, so a
region that keeps yielding unseen vehicles is split into smaller regions and
queried again, while a region that yields nothing new is dropped.

Classes:
  CrawlRun:
    The mutable state of one run (region queue, accumulator, request counter,
    sticky error flag, metrics). A new run starts from scratch.

  VehicleCrawler:
    Drives the run one request per tick and persists every vehicle found in a
    single batch once the run stops.

Functions:
  utc_now() -> datetime:
    Default clock for request and crawl-start timestamps.
"""

import logging
import time
import uuid
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Deque, Optional

# Crawl modules
from .api import VehicleApi
from .dedup import Accumulator
from .schedule import run_fixed_rate
from ..spatial.regions import Region, slices_for_zoom, subdivide_region
from ..models import VehicleSample

# Configuration
from ..config import (
    DATA_DIR,
    DEBUG_MODE,
    MAX_REQUESTS_PER_CRAWL,
    MILLISECONDS_BETWEEN_REQUESTS,
    MONGO_COLLECTION,
    PAGE_SIZE,
)

# Utilities
from ..exceptions import ApiUnavailable, InvalidRegion, ProtocolViolation, SchemaValidationError
from ..utils.debug_dump import append_rows, dump_known_vehicles, request_log_path, REQUEST_COLUMNS
from ..utils.metrics import CrawlMetrics

module_logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class CrawlRun:
    """Everything that changes while one crawl runs. Never shared between runs."""

    crawl_started: datetime
    regions: Deque[Region] = field(default_factory=deque)
    accumulator: Accumulator = field(default_factory=Accumulator)
    request_count: int = 0
    error_received: bool = False
    finished: bool = False
    session_id: str = field(default_factory=lambda: str(uuid.uuid4())[:8])
    metrics: CrawlMetrics = field(default_factory=CrawlMetrics)


class VehicleCrawler:
    """
    VehicleCrawler finds all vehicles inside a seed region under a fixed request budget.

    The provider only returns a fixed-size page of vehicles per region, so one
    query never proves a region is exhausted. The crawl keeps a FIFO queue of
    regions, seeded with one region:

    1. Pop the head region and query it (one request per tick, ticks never overlap)
    2. Deduplicate the returned vehicles against everything seen in this run
    3. If the page held vehicles not seen before, split the region into two
       halves one zoom level deeper and append them to the queue; otherwise
       drop the region as exhausted
    4. Stop when the queue is empty, the request budget is spent, or a request
       failed on a previous tick, and persist all vehicles in one batch

    Attributes:
        api (VehicleApi): Client used for the region queries
        document_store: Sink offering `write(samples, collection_name)`
        collection (str): Collection the vehicles are written to
        seed_region (Region): Region the queue starts with
        max_requests_per_crawl (int): Request budget of one run
        milliseconds_between_requests (int): Tick interval
        page_size (int): Exact number of items of a valid page
        debug_mode (bool): Write the CSV debug outputs
        debug_dir (Path): Directory of the CSV debug outputs

    Usage:
        crawler = VehicleCrawler(api, MongoConnection(...), seed_region=seed)
        run = crawler.crawl()
    """

    def __init__(
            self,
            api: VehicleApi,
            document_store,
            seed_region: Region,
            collection: str = MONGO_COLLECTION,
            max_requests_per_crawl: int = MAX_REQUESTS_PER_CRAWL,
            milliseconds_between_requests: int = MILLISECONDS_BETWEEN_REQUESTS,
            page_size: int = PAGE_SIZE,
            debug_mode: bool = DEBUG_MODE,
            debug_dir: Path = DATA_DIR,
            logger: Optional[logging.Logger] = None,
            sleep: Callable[[float], None] = time.sleep,
            clock: Callable[[], float] = time.monotonic,
            now: Callable[[], datetime] = utc_now,
            ) -> None:

        self.api = api
        self.document_store = document_store
        self.seed_region: Region = seed_region
        self.collection: str = collection
        self.max_requests_per_crawl: int = max_requests_per_crawl
        self.milliseconds_between_requests: int = milliseconds_between_requests
        self.page_size: int = page_size
        self.debug_mode: bool = debug_mode
        self.debug_dir: Path = Path(debug_dir)
        self.logger = logger or module_logger

        self.sleep = sleep
        self.clock = clock
        self.now = now

# -------------------------------------------------- Run lifecycle ---------------------------------------------------------

    def new_run(self, seed_region: Optional[Region] = None) -> CrawlRun:
        run = CrawlRun(crawl_started=self.now())
        run.regions.append(seed_region or self.seed_region)
        return run

    def crawl(self, run: Optional[CrawlRun] = None) -> CrawlRun:
        """Run one crawl from the seed region until it stops, and return its final state."""
        run = run or self.new_run()

        self.logger.info("Starting vehicle crawl", extra={
            "operation": "crawl",
            "session_id": run.session_id,
            "collection": self.collection,
            "crawl_params": {
                "seed_region": self.seed_region.as_log_dict(),
                "max_requests_per_crawl": self.max_requests_per_crawl,
                "milliseconds_between_requests": self.milliseconds_between_requests,
                "page_size": self.page_size
            }
        })

        run_fixed_rate(
            lambda: self.tick(run),
            interval=self.milliseconds_between_requests / 1000,
            sleep=self.sleep,
            clock=self.clock,
        )
        return run

    def should_stop(self, run: CrawlRun) -> bool:
        return run.error_received or not run.regions or run.request_count >= self.max_requests_per_crawl

# -------------------------------------------------- Tick ---------------------------------------------------------

    def tick(self, run: CrawlRun) -> bool:
        """
        Advance the crawl by one request, or finish it.

        Returns:
            bool: True once the run has been persisted and no further tick is needed.
        """
        if run.finished:
            return True

        if self.should_stop(run):
            self.finish(run)
            return True

        region = run.regions.popleft()
        request_time = self.now()
        run.request_count += 1
        request_id = f"{run.session_id}-{run.request_count}"

        try:
            new_found = self.process_region(run, region, request_time, request_id)
        except (ApiUnavailable, SchemaValidationError, InvalidRegion) as e:
            # The run stops on the next tick; nothing of this request was recorded
            run.error_received = True
            self.logger.warning(f"Request failed, stopping crawl: {str(e)}", exc_info=True, extra={
                "operation": "crawl",
                "session_id": run.session_id,
                "request_id": request_id,
                "region": region.as_log_dict(),
                "error": str(e),
                "status": "error"
            })
            return False

        if self.debug_mode:
            self.log_request(run, region, request_time, new_found)
        return False

    def process_region(self, run: CrawlRun, region: Region, request_time: datetime, request_id: str) -> int:
        """Query one region, record its new vehicles and enqueue its children. Returns the number of new vehicles."""
        self.logger.info("Querying region", extra={
            "operation": "crawl",
            "session_id": run.session_id,
            "request_id": request_id,
            "request": run.request_count,
            "known_vehicles": len(run.accumulator),
            "queue": len(run.regions),
            "region": region.as_log_dict()
        })

        items = self.api.vehicles(region, request_id=request_id)
        if len(items) != self.page_size:
            raise ProtocolViolation(f"Expected a page of {self.page_size} vehicles, received {len(items)}")

        # Parse the whole page first so a bad item leaves the run untouched
        samples = [VehicleSample.from_api_item(item, request_time, run.crawl_started) for item in items]
        children = []
        new_found = len(run.accumulator.new_samples(samples))
        if new_found > 0:
            rows, cols = slices_for_zoom(region.zoom)
            children = subdivide_region(region, new_found, rows, cols)

        run.accumulator.add(samples)
        run.regions.extend(children)

        run.metrics.results_returned += len(items)
        run.metrics.unique_results += new_found
        if children:
            run.metrics.regions_subdivided += 1
        else:
            run.metrics.regions_dropped += 1

        self.logger.info(f"{new_found} new found", extra={
            "operation": "crawl",
            "session_id": run.session_id,
            "request_id": request_id,
            "new_found": new_found,
            "children": len(children),
            "queue": len(run.regions)
        })
        return new_found

# -------------------------------------------------- Persistence ---------------------------------------------------------

    def finish(self, run: CrawlRun) -> None:
        """Persist every vehicle of the run in one batch."""
        run.finished = True
        reason = "error" if run.error_received else ("queue_empty" if not run.regions else "request_limit")

        self.logger.info("Done crawling, persisting data", extra={
            "operation": "persist",
            "session_id": run.session_id,
            "reason": reason,
            "requests": run.request_count,
            "vehicles": len(run.accumulator),
            "remaining_regions": len(run.regions)
        })

        if self.debug_mode:
            dump_known_vehicles(self.debug_dir, run.crawl_started, run.accumulator.seen_keys, run.accumulator.samples)

        self.document_store.write(run.accumulator.samples, self.collection)

        run.metrics.log_metrics(self.logger, run.session_id, run.request_count)
        self.logger.info("Data persisted", extra={
            "operation": "persist",
            "session_id": run.session_id,
            "collection": self.collection,
            "vehicles": len(run.accumulator),
            "duration_sec": round((self.now() - run.crawl_started).total_seconds(), 2),
            "status": "completed"
        })

    def log_request(self, run: CrawlRun, region: Region, request_time: datetime, new_found: int) -> None:
        self.debug_dir.mkdir(parents=True, exist_ok=True)
        append_rows(request_log_path(self.debug_dir, run.crawl_started), [{
            "request": run.request_count,
            "timestamp": int(request_time.timestamp() * 1000),
            "lat": region.center_lat,
            "lon": region.center_lon,
            "found": new_found,
            "parentFound": region.found_by_parent,
            "zoom": region.zoom,
            "queue": len(run.regions),
        }], REQUEST_COLUMNS)
