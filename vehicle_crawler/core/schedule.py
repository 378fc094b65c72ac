"""
Scheduling helpers for the crawler.

- run_fixed_rate: runs a task at a fixed rate without ever overlapping two
  executions. The next execution is only scheduled once the current one has
  returned; an overrunning execution delays the next one instead of causing a
  burst of catch-up executions.
- seconds_between_crawls / initial_delay: derive the crawl cadence from the
  hourly request budget, and the startup offset that lets several crawler
  instances share that cadence in disjoint time windows.
- run_cycle: runs the configured provider crawls one after another.
"""

import logging
import math
import time
from datetime import datetime
from typing import Callable, Optional, Sequence, Tuple

from ..exceptions import StartupError

module_logger = logging.getLogger(__name__)


def run_fixed_rate(
        task: Callable[[], bool],
        interval: float,
        initial_delay: float = 0.0,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
        ) -> int:
    """
    Call `task` every `interval` seconds until it returns True.

    Returns:
        int: Number of executions, the final (stopping) one included.
    """
    if initial_delay > 0:
        sleep(initial_delay)

    executions = 0
    due = clock()
    while True:
        executions += 1
        if task():
            return executions

        due += interval
        now = clock()
        if now < due:
            sleep(due - now)
        else:
            # Overran: start right away, and measure the next interval from now
            due = now


def seconds_between_crawls(max_requests_per_hour: int, max_requests_per_crawl: int) -> int:
    """Time between two crawl starts so that the hourly request budget holds."""
    if max_requests_per_hour <= 0 or max_requests_per_crawl <= 0:
        raise StartupError("Request budgets must be positive")
    crawls_per_hour = max_requests_per_hour / max_requests_per_crawl
    return math.ceil(60 / crawls_per_hour * 60)


def initial_delay(
        crawler_number: int,
        number_of_crawlers: int,
        seconds_between: int,
        now: Optional[datetime] = None,
        logger: Optional[logging.Logger] = None,
        ) -> int:
    """
    Seconds to wait before the first crawl of crawler `crawler_number` out of `number_of_crawlers`.

    Crawl windows are aligned to local midnight. Crawler k starts
    (k - 1) * (seconds_between // number_of_crawlers) seconds into each window.
    0 out of 0 means a single unaligned crawler which starts right away.
    """
    logger = logger or module_logger
    if crawler_number == 0 and number_of_crawlers == 0:
        return 0
    if not 1 <= crawler_number <= number_of_crawlers:
        raise StartupError(f"crawlerNumber out of Range: {crawler_number} != [1...{number_of_crawlers}]")

    now = now or datetime.now().astimezone()
    midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)
    seconds_since_midnight = int((now - midnight).total_seconds())

    next_window = math.ceil(seconds_since_midnight / seconds_between) * seconds_between
    crawler_shift = (seconds_between // number_of_crawlers) * (crawler_number - 1)
    delay = (next_window - seconds_since_midnight) + crawler_shift
    if delay > seconds_between:
        delay -= seconds_between
    if delay > seconds_between:
        raise StartupError(f"initialDelay {delay} > secondsBetweenCrawls {seconds_between}")

    logger.info("Scheduling initial crawl", extra={
        "operation": "schedule",
        "crawler_number": crawler_number,
        "number_of_crawlers": number_of_crawlers,
        "initial_delay_sec": delay
    })
    return delay


def run_cycle(crawls: Sequence[Tuple[str, Callable[[], object]]], logger: Optional[logging.Logger] = None) -> int:
    """
    Run the provider crawls in order. A failing crawl is logged and does not
    keep the following ones from running.

    Returns:
        int: Number of crawls that finished without raising.
    """
    logger = logger or module_logger
    succeeded = 0
    for name, crawl in crawls:
        try:
            crawl()
            succeeded += 1
        except Exception as e:
            logger.error(f"Crawl of provider {name} failed: {str(e)}", exc_info=True, extra={
                "operation": "crawl_cycle",
                "provider": name,
                "error": str(e),
                "status": "error"
            })
    return succeeded
