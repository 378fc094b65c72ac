"""
vehicle_crawler
~~~~~~~~~~~~~~~

Adaptive, budget-bound crawling of a vehicle map API and source/destination
trip inference over the crawled vehicles.

This package provides the region crawl, the trip filter chain and the
document and relational store connections both of them write to.
"""

__version__ = "0.1.0"

# -------------------------------------------------------------------
# Crawl
# -------------------------------------------------------------------
from .core.api         import VehicleApi
from .core.crawler     import VehicleCrawler, CrawlRun
from .core.dedup       import Accumulator
from .core.schedule    import run_fixed_rate, run_cycle, seconds_between_crawls, initial_delay

# -------------------------------------------------------------------
# Spatial regions
# -------------------------------------------------------------------
from .spatial.regions  import Region, subdivide_region, slices_for_zoom

# -------------------------------------------------------------------
# Trip inference
# -------------------------------------------------------------------
from .processing.trips import TripInference, haversine_km

# -------------------------------------------------------------------
# Stores
# -------------------------------------------------------------------
from .storage.documents  import MongoConnection
from .storage.relational import PostgresConnection

# -------------------------------------------------------------------
# Public API
# -------------------------------------------------------------------
__all__ = [
    # crawl
    "VehicleApi",
    "VehicleCrawler",
    "CrawlRun",
    "Accumulator",
    "run_fixed_rate",
    "run_cycle",
    "seconds_between_crawls",
    "initial_delay",
    # spatial
    "Region",
    "subdivide_region",
    "slices_for_zoom",
    # processing
    "TripInference",
    "haversine_km",
    # storage
    "MongoConnection",
    "PostgresConnection",
]
