"""
Crawl Metrics Tracking Module

Keeps per-run counters for a single crawl and emits them as one structured
log record when the run ends:
  - total vehicle items returned by the API
  - unique vehicles retained after deduplication
  - regions subdivided and regions dropped as exhausted

The request counter itself lives on the crawl run and is passed in when
logging. Unlike a process-wide singleton, one instance belongs to exactly one
crawl run and is thrown away with it.
"""

import logging


class CrawlMetrics:
    """Track API usage metrics for one crawl run"""
    def __init__(self):
        self.results_returned: int = 0
        self.unique_results: int = 0
        self.regions_subdivided: int = 0
        self.regions_dropped: int = 0

    def efficiency_ratio(self) -> float:
        return round(self.unique_results / max(1, self.results_returned), 2)

    def log_metrics(self, logger: logging.Logger, session_id: str, total_requests: int) -> None:
        """Log current crawl metrics"""
        logger.info("Crawl Metrics Summary", extra={
            "operation": "crawl_metrics",
            "session_id": session_id,
            "metrics": {
                "total_requests": total_requests,
                "results_returned": self.results_returned,
                "unique_results": self.unique_results,
                "regions_subdivided": self.regions_subdivided,
                "regions_dropped": self.regions_dropped,
                "efficiency_ratio": self.efficiency_ratio()
            }
        })
