"""
Logger factory.

All modules log through get_logger(__name__) so output shares one format:
    2025-01-01 12:00:00 | INFO     | bible_api.search | Got 5 results
"""

import logging
import sys

from bible_api.config import LOG_LEVEL

_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def get_logger(name: str) -> logging.Logger:
    """Return a named logger writing to stdout"""
    logger = logging.getLogger(name)

    # Loggers are process-wide; only attach the handler once
    if not logger.handlers:
        level = logging.getLevelName(LOG_LEVEL.upper())
        if not isinstance(level, int):
            level = logging.INFO
        logger.setLevel(level)

        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(fmt=_FORMAT, datefmt=_DATE_FORMAT))
        logger.addHandler(handler)
        logger.propagate = False

    return logger
