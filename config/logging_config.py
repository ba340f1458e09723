from __future__ import annotations

import logging
import logging.config
import os
from typing import Final

ROOT_LOGGER: Final[str] = "OpsClaw"
SIMPLE_FORMAT: Final[str] = "%(levelname)s - %(name)s - %(message)s"
DETAILED_FORMAT: Final[str] = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def resolve_log_level(default: str = "INFO") -> str:
    raw = os.getenv("OPSCLAW_LOG_LEVEL", default).strip().upper()
    if raw not in logging.getLevelNamesMapping():
        return default
    return raw


def configure_logging(level: str | None = None, *, detailed: bool = True) -> None:
    """Route every ``OpsClaw.*`` logger to a single stderr handler."""
    resolved = (level or resolve_log_level()).upper()
    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "default": {"format": DETAILED_FORMAT if detailed else SIMPLE_FORMAT},
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "formatter": "default",
                    "stream": "ext://sys.stderr",
                },
            },
            "loggers": {
                ROOT_LOGGER: {"handlers": ["console"], "level": resolved, "propagate": False},
                "aiohttp.access": {"handlers": ["console"], "level": "WARNING"},
            },
        }
    )
