"""Logging setup for the PiDrive service."""

from __future__ import annotations

import logging
import sys

TRACE = 5

# same names uvicorn accepts for --log-level
LOG_LEVELS = {
    'critical': logging.CRITICAL,
    'error': logging.ERROR,
    'warning': logging.WARNING,
    'info': logging.INFO,
    'debug': logging.DEBUG,
    'trace': TRACE,
}

_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def setup_logging(level: str = 'info') -> logging.Logger:
    """Configure the ``pidrive`` logger to write to stdout.

    Raises ValueError for an unknown level name.
    """
    key = level.strip().lower()
    if key not in LOG_LEVELS:
        valid = ', '.join(sorted(LOG_LEVELS))
        raise ValueError(f"Invalid log level: '{level}'. Must be one of: {valid}")

    numeric_level = LOG_LEVELS[key]
    logger = logging.getLogger('pidrive')
    logger.setLevel(numeric_level)
    logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(numeric_level)
    handler.setFormatter(logging.Formatter(_FORMAT, datefmt='%Y-%m-%d %H:%M:%S'))
    logger.addHandler(handler)
    logger.propagate = False
    return logger
