"""Logging setup for the bridge process.

Bridge modules log through ``get_logger(__name__)``, so everything lands under
the ``ipc_bridge`` namespace. Chatty third-party loggers are held at WARNING
unless the bridge itself runs at DEBUG.
"""

import logging
import sys

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s:%(funcName)s:%(lineno)d | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# aiohttp.access writes one line per forwarded request; nats logs reconnect chatter.
LIBRARY_LOGGERS = ("aiohttp.access", "aiohttp.server", "nats")


def resolve_level(level: int | str) -> int:
    """Turn a level name such as "info" or a numeric level into a logging level."""
    if isinstance(level, int):
        return level

    resolved = logging.getLevelName(level.strip().upper())
    if not isinstance(resolved, int):
        raise ValueError(f"Unknown log level: {level!r}")
    return resolved


def setup_logging(level: int | str = logging.INFO) -> None:
    """
    Route all bridge logging to stdout at the given level.

    Replaces any handlers already on the root logger, so calling it twice
    does not duplicate output.

    Args:
        level: Level name from settings.log_level, or a numeric level
    """
    level = resolve_level(level)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    root_logger.addHandler(console_handler)

    library_level = level if level <= logging.DEBUG else max(level, logging.WARNING)
    for name in LIBRARY_LOGGERS:
        logging.getLogger(name).setLevel(library_level)


def get_logger(name: str) -> logging.Logger:
    """Logger for a bridge module (pass __name__)."""
    return logging.getLogger(name)
