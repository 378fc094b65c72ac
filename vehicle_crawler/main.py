#!/usr/bin/env python3
"""
Entry points for the vehicle crawler and the trip processor.

    vehicle-crawler crawl   --auth-token ...    # crawl on a fixed cadence
    vehicle-crawler crawl   --once ...          # a single crawl cycle
    vehicle-crawler process ...                 # infer trips once and store them
"""

import argparse
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple

from . import config
from .core.api import VehicleApi
from .core.crawler import VehicleCrawler
from .core.schedule import initial_delay, run_cycle, run_fixed_rate, seconds_between_crawls
from .exceptions import StartupError
from .processing.trips import TripInference, flatten
from .spatial.regions import Region
from .storage.documents import MongoConnection
from .storage.relational import PostgresConnection
from .utils.debug_dump import dump_relations
from .utils.logger import setup_logger


def seed_region() -> Region:
    return Region(
        north_east_lat=config.SEED_NORTH_EAST_LAT,
        north_east_lon=config.SEED_NORTH_EAST_LON,
        south_west_lat=config.SEED_SOUTH_WEST_LAT,
        south_west_lon=config.SEED_SOUTH_WEST_LON,
        zoom=config.SEED_ZOOM,
    )


def mongo_connection(args: argparse.Namespace, logger: logging.Logger) -> MongoConnection:
    return MongoConnection(
        host=args.mongo_host,
        port=args.mongo_port,
        database=args.mongo_database,
        username=args.mongo_user,
        password=args.mongo_password,
        logger=logger,
    )


def build_crawls(args: argparse.Namespace, store: MongoConnection, logger: logging.Logger) -> List[Tuple[str, Callable[[], Any]]]:
    """The provider crawls of one cycle, primary provider first."""
    providers = [("primary", config.API_URL, args.auth_token, args.mongo_collection)]
    if args.secondary_auth_token:
        providers.append(("secondary", config.SECONDARY_API_URL, args.secondary_auth_token,
                          config.SECONDARY_MONGO_COLLECTION))

    crawls = []
    for name, url, token, collection in providers:
        def crawl(url=url, token=token, collection=collection):
            # A fresh crawler per cycle; nothing carries over between runs
            crawler = VehicleCrawler(
                api=VehicleApi(auth_token=token, url=url, logger=logger),
                document_store=store,
                seed_region=seed_region(),
                collection=collection,
                max_requests_per_crawl=args.max_requests_per_crawl,
                milliseconds_between_requests=args.milliseconds_between_requests,
                debug_mode=args.debug_mode,
                logger=logger,
            )
            return crawler.crawl()
        crawls.append((name, crawl))
    return crawls


def run_crawler(args: argparse.Namespace, logger: logging.Logger) -> Dict[str, Any]:
    if not args.auth_token:
        raise StartupError("An API auth token is required (--auth-token or VEHICLE_API_AUTH_TOKEN)")

    store = mongo_connection(args, logger)
    store.check(args.mongo_collection)
    crawls = build_crawls(args, store, logger)

    if args.once:
        succeeded = run_cycle(crawls, logger)
        return {'status': 'success', 'crawls': len(crawls), 'succeeded': succeeded}

    seconds_between = seconds_between_crawls(args.max_requests_per_hour, args.max_requests_per_crawl)
    delay = initial_delay(args.crawler_number, args.number_of_crawlers, seconds_between, logger=logger)

    logger.info("Starting crawl schedule", extra={
        "operation": "schedule",
        "seconds_between_crawls": seconds_between,
        "initial_delay_sec": delay,
        "providers": [name for name, _ in crawls]
    })

    def cycle() -> bool:
        run_cycle(crawls, logger)
        return False  # runs until the process is stopped

    run_fixed_rate(cycle, interval=seconds_between, initial_delay=delay)
    return {'status': 'stopped'}


def run_processor(args: argparse.Namespace, logger: logging.Logger) -> Dict[str, Any]:
    source = mongo_connection(args, logger)
    source.check(args.mongo_collection)
    records = source.records(args.mongo_collection)

    result = TripInference(
        max_gap_minutes=args.max_crawling_gap_minutes,
        min_distance_km=args.min_distance_km,
        logger=logger,
    ).run(records)
    relations = flatten(result)

    if args.debug_mode:
        path = dump_relations(config.DATA_DIR, datetime.now(timezone.utc), relations)
        logger.info("Dumped relations", extra={"operation": "debug_dump", "file": str(path)})

    inserted = PostgresConnection(url=args.postgres_url, logger=logger).write(relations, args.postgres_table)
    return {
        'status': 'success',
        'records': len(records),
        'plate_numbers': len(result),
        'relations': len(relations),
        'inserted': inserted
    }


def parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="vehicle-crawler", description="Vehicle crawler and trip processor")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log at DEBUG level")
    subparsers = parser.add_subparsers(dest="command", required=True)

    mongo = argparse.ArgumentParser(add_help=False)
    mongo.add_argument("-mh", "--mongo-host", default=config.MONGO_HOST)
    mongo.add_argument("-mp", "--mongo-port", type=int, default=config.MONGO_PORT)
    mongo.add_argument("-md", "--mongo-database", default=config.MONGO_DATABASE)
    mongo.add_argument("-mc", "--mongo-collection", default=config.MONGO_COLLECTION)
    mongo.add_argument("-mu", "--mongo-user", default=config.MONGO_USER)
    mongo.add_argument("-mpw", "--mongo-password", default=config.MONGO_PASSWORD)
    mongo.add_argument("-dm", "--debug-mode", action="store_true", default=config.DEBUG_MODE,
                       help="Write CSV debug outputs")

    crawl = subparsers.add_parser("crawl", parents=[mongo], help="Crawl the vehicle API")
    crawl.add_argument("-lt", "--auth-token", default=config.API_AUTH_TOKEN)
    crawl.add_argument("--secondary-auth-token", default=config.SECONDARY_API_AUTH_TOKEN)
    crawl.add_argument("-mbr", "--milliseconds-between-requests", type=int,
                       default=config.MILLISECONDS_BETWEEN_REQUESTS)
    crawl.add_argument("-mrc", "--max-requests-per-crawl", type=int, default=config.MAX_REQUESTS_PER_CRAWL)
    crawl.add_argument("-mrh", "--max-requests-per-hour", type=int, default=config.MAX_REQUESTS_PER_HOUR)
    crawl.add_argument("-cn", "--crawler-number", type=int, default=config.CRAWLER_NUMBER)
    crawl.add_argument("-noc", "--number-of-crawlers", type=int, default=config.NUMBER_OF_CRAWLERS)
    crawl.add_argument("--once", action="store_true", help="Run a single crawl cycle and exit")

    process = subparsers.add_parser("process", parents=[mongo], help="Infer trips from crawled vehicles")
    process.add_argument("-purl", "--postgres-url", default=config.POSTGRES_URL)
    process.add_argument("-pt", "--postgres-table", default=config.POSTGRES_TABLE)
    process.add_argument("--max-crawling-gap-minutes", type=float, default=config.MAX_CRAWLING_GAP_MINUTES)
    process.add_argument("--min-distance-km", type=float, default=config.MIN_DISTANCE_KM)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = parser().parse_args(argv)
    logger = setup_logger("vehicle_crawler", level=logging.DEBUG if args.verbose else logging.INFO)
    logger.info(f"Starting {args.command}", extra={"operation": args.command, "config": config.get_config()})

    try:
        if args.command == "crawl":
            result = run_crawler(args, logger)
        else:
            result = run_processor(args, logger)
    except StartupError as e:
        logger.error(f"Startup failed: {str(e)}", extra={"operation": args.command, "status": "error"})
        return 2
    except Exception as e:
        logger.error(f"Error in {args.command}: {str(e)}", exc_info=True, extra={
            "operation": args.command,
            "status": "error"
        })
        return 1

    logger.info(f"{args.command} finished", extra={"operation": args.command, **result})
    return 0


if __name__ == "__main__":
    sys.exit(main())
