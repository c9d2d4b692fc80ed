"""
Application logger.

Modules either import the shared ``logger`` from here or create their own
child logger with ``logging.getLogger(__name__)``.
"""

import logging
import sys

from app.core.config import get_settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def setup_logger(name: str = "app") -> logging.Logger:
    """Configure and return the application logger."""
    settings = get_settings()
    app_logger = logging.getLogger(name)
    app_logger.setLevel(settings.LOG_LEVEL)

    # Child loggers propagate to the "app" handler.
    if "." not in name and not app_logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        app_logger.addHandler(handler)
    return app_logger


logger = setup_logger()
