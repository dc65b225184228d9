"""Logging configuration.

LOG_LEVEL selects the level (DEBUG, INFO, WARNING, ERROR, CRITICAL) and
defaults to INFO when unset or unknown. Safe to call more than once.
"""

import logging
import logging.config
import os


def get_log_level() -> int:
    level = getattr(logging, os.getenv("LOG_LEVEL", "INFO").upper(), None)
    if not isinstance(level, int):
        return logging.INFO
    return level


def setup_logging(level: int | None = None) -> None:
    """Configure the root logger with a single console handler."""
    if level is None:
        level = get_log_level()

    logging.config.dictConfig({
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "standard": {
                "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": level,
                "formatter": "standard",
                "stream": "ext://sys.stdout",
            },
        },
        "root": {"level": level, "handlers": ["console"]},
    })
