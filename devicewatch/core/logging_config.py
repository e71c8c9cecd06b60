"""Logging setup for the DeviceWatch service.

All modules log under the ``devicewatch`` namespace (``devicewatch.email``,
``devicewatch.device_watch`` ...) so a single handler here covers them.
"""
import logging
import sys

from devicewatch.core.settings import settings

LOG_FORMAT = "[%(asctime)s] %(levelname)s - %(name)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging() -> logging.Logger:
    """Configure the ``devicewatch`` logger tree and return its root logger."""
    level = getattr(logging, settings.log_level.upper(), logging.INFO)

    logger = logging.getLogger("devicewatch")
    logger.setLevel(level)

    # Reconfiguring (e.g. reload in development) must not stack handlers
    logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT))
    logger.addHandler(handler)

    # SQLAlchemy echoes through its own logger when SQL_DEBUG is on
    if settings.sql_debug:
        logging.getLogger("sqlalchemy.engine").setLevel(logging.INFO)

    return logger
