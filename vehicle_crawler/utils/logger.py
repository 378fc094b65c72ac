"""
Vehicle Crawler Logger Module
-------------------------------------------

This module configures rotating, JSON-formatted loggers for the crawler and
the trip processor. Log records are written as one-line JSON entries with the
following core fields:

  - timestamp: ISO-formatted datetime string when the event occurred
  - level:     logging level name (DEBUG, INFO, WARNING, ERROR, CRITICAL)
  - logger:    the name of the logger that emitted the record
  - message:   the formatted log message

Any extra attributes you attach to log calls (via the `extra=` argument)
are automatically included in the JSON payload under their own keys.

Nothing is configured on import. Entry points call `setup_logger` once and
hand the returned logger to the crawler, the API client, the processor and
the store connections, which otherwise fall back to a plain module logger.

Usage:

        from vehicle_crawler.utils.logger import setup_logger

        logger = setup_logger("vehicle_crawler", log_file=Path("logs/crawler.log"))
        logger.info("Crawl finished", extra={"operation": "crawl", "session_id": sid})
"""

import json
import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from ..config import LOGS_DIR


class JsonFormatter(logging.Formatter):
    builtins = {
        "name", "msg", "args", "levelname", "levelno",
        "pathname", "filename", "module", "exc_info",
        "exc_text", "stack_info", "lineno", "funcName",
        "created", "msecs", "relativeCreated", "thread",
        "threadName", "processName", "process", "taskName",
        "message", "asctime"
    }

    def format(self, record):
        payload = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level":     record.levelname,
            "logger":    record.name,
            "message":   record.getMessage(),
        }
        # Pick up any extra attributes
        for key, value in record.__dict__.items():
            if key not in self.builtins:
                payload[key] = value
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)

# ----------------------------------------------------------------------------------------------------------

def setup_logger(
    name: str,
    level: int = logging.INFO,
    log_file: Optional[Path] = None
) -> logging.Logger:
    """
    Set up a logger with a console handler and a rotating JSON file handler.

    Calling it twice for the same name returns the already configured logger
    instead of stacking handlers.

    Args:
        name: Name of the logger
        level: Logging level (default: INFO)
        log_file: Optional path to log file (default: LOGS_DIR/name.log)

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)
    logger.setLevel(level)

    if logger.handlers:
        return logger

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    ))
    logger.addHandler(console_handler)

    if log_file is None:
        log_file = LOGS_DIR / f"{name}.log"
    log_file.parent.mkdir(parents=True, exist_ok=True)

    file_handler = RotatingFileHandler(
        filename=log_file,
        maxBytes=10_000_000,
        backupCount=5
    )
    file_handler.setFormatter(JsonFormatter())
    logger.addHandler(file_handler)

    return logger
