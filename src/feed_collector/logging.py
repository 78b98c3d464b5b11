"""Logging setup helpers for feed-collector."""

from __future__ import annotations

import logging
from typing import TextIO

LOGGER_NAME = "feed_collector"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def configure_logging(debug: bool = False, stream: TextIO | None = None) -> logging.Logger:
    """Attach one stderr handler to the package logger; repeat calls only adjust the level."""
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.DEBUG if debug else logging.INFO)
    if not any(getattr(handler, "_feedc_handler", False) for handler in logger.handlers):
        handler = logging.StreamHandler(stream)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._feedc_handler = True  # type: ignore[attr-defined]
        logger.addHandler(handler)
    return logger


def get_logger(name: str | None = None) -> logging.Logger:
    if name and not name.startswith(LOGGER_NAME):
        name = f"{LOGGER_NAME}.{name}"
    return logging.getLogger(name or LOGGER_NAME)
