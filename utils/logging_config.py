"""Logging setup for the analyzer. Call setup_logging() once at startup."""

import logging
import logging.config
import os
from typing import Optional

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

LOGGING_CONFIG = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "default": {"format": LOG_FORMAT, "datefmt": "%H:%M:%S"},
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "default",
            "stream": "ext://sys.stdout",
        },
    },
    "loggers": {
        "PIL": {"level": "WARNING"},
        "urllib3": {"level": "WARNING"},
        "asyncio": {"level": "WARNING"},
    },
    "root": {"handlers": ["console"], "level": "INFO"},
}

_configured = False


def setup_logging(level: Optional[str] = None) -> logging.Logger:
    """
    Apply LOGGING_CONFIG. Idempotent.

    Level comes from `level`, else LOG_LEVEL env, else INFO.
    """
    global _configured
    root = logging.getLogger()
    target = (level or os.environ.get("LOG_LEVEL") or "INFO").upper()

    if not _configured:
        logging.config.dictConfig(LOGGING_CONFIG)
        _configured = True
    root.setLevel(target)
    return root
