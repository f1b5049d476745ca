"""Logging configuration for the Marginalia service."""

from __future__ import annotations

import logging
from logging.config import dictConfig

LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """Install a console handler for the ``marginalia`` logger tree.

    Safe to call more than once; the latest level wins.
    """
    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "default": {"format": LOG_FORMAT},
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "formatter": "default",
                },
            },
            "loggers": {
                "marginalia": {
                    "handlers": ["console"],
                    "level": level.upper(),
                },
            },
        }
    )
    logging.getLogger(__name__).debug("Logging configured at %s", level.upper())


def short_token(token: str, length: int = 8) -> str:
    """Return a log-safe prefix of an already-hashed token."""
    return token[:length]
