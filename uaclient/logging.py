"""
Centralized logging module for the OPC UA client system.

All modules log through the ``uaclient`` logger using the convenience
functions below. Records are written to stdout either as JSON objects
(one per line) or as plain text.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Optional

LOGGER_NAME = "uaclient"


class JsonFormatter(logging.Formatter):
    """
    Format log records as one JSON object per line.

    Records come from the main thread, the event loop thread and the HTTP
    request threads, so the emitting thread is part of every entry.
    """

    def format(self, record):
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "thread": record.threadName,
            "message": record.getMessage(),
        }
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry)


TEXT_FORMAT = "[%(levelname)s] %(asctime)s %(threadName)s - %(name)s - %(message)s"

_handler: Optional[logging.Handler] = None


def configure_logging(level: str = "INFO", fmt: str = "json") -> logging.Logger:
    """
    Configure the system logger.

    Safe to call more than once; the previous handler is replaced.

    Args:
        level: Logging level name (DEBUG, INFO, WARNING, ERROR)
        fmt: "json" or "text"

    Returns:
        The configured logger
    """
    global _handler

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level.upper())

    if _handler is not None:
        logger.removeHandler(_handler)

    _handler = logging.StreamHandler(sys.stdout)
    if fmt == "text":
        _handler.setFormatter(logging.Formatter(TEXT_FORMAT, datefmt="%H:%M:%S"))
    else:
        _handler.setFormatter(JsonFormatter())
    logger.addHandler(_handler)

    # asyncua logs every service call at INFO
    logging.getLogger("asyncua").setLevel(logging.WARNING)
    return logger


def get_logger() -> logging.Logger:
    """Get the system logger."""
    return logging.getLogger(LOGGER_NAME)


def log_debug(message: str) -> None:
    get_logger().debug(message)


def log_info(message: str) -> None:
    """Log an informational message."""
    get_logger().info(message)


def log_warn(message: str) -> None:
    """Log a warning message."""
    get_logger().warning(message)


def log_error(message: str, exc_info: bool = False) -> None:
    """Log an error message."""
    get_logger().error(message, exc_info=exc_info)
