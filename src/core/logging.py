"""
Incident Triage - Logging Configuration
One stdout handler for the API process; modules log through
``logging.getLogger(__name__)`` under the ``src`` namespace.
"""

import logging
import sys
from typing import Optional, Dict
from functools import lru_cache

from src.core.config import settings

APP_LOGGER = "src"
LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | %(message)s"

# Third-party loggers and their level outside debug mode
QUIET_LOGGERS: Dict[str, int] = {
    "sqlalchemy.engine": logging.WARNING,
    "alembic": logging.WARNING,
    "uvicorn.access": logging.WARNING,
    "multipart": logging.WARNING,
}


def _parse_level(level: str) -> int:
    value = logging.getLevelName(level.upper())
    if not isinstance(value, int):
        raise ValueError(f"Unknown log level: {level}")
    return value


def setup_logging(
    level: Optional[str] = None,
    format_string: Optional[str] = None,
    debug: Optional[bool] = None
) -> logging.Logger:
    """
    Configure and return the application logger.

    Safe to call more than once; the stdout handler is installed only on
    the first call.

    Args:
        level: Log level name, defaults to settings.log_level
        format_string: Custom format string for log messages
        debug: Echo SQL statements, defaults to settings.debug

    Returns:
        The ``src`` logger
    """
    log_level = _parse_level(level or settings.log_level)
    debug = settings.debug if debug is None else debug

    root = logging.getLogger()
    if not root.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(format_string or LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
        root.addHandler(handler)
    root.setLevel(log_level)

    logger = logging.getLogger(APP_LOGGER)
    logger.setLevel(log_level)

    for name, quiet_level in QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(logging.INFO if debug and name == "sqlalchemy.engine" else quiet_level)

    return logger


@lru_cache()
def get_logger(name: str = APP_LOGGER) -> logging.Logger:
    """Get a logger instance with the given name."""
    return logging.getLogger(name)
