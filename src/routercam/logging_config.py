"""Logging setup for the ``routercam`` logger namespace."""

from __future__ import annotations

import logging
import sys
from typing import Optional

LOGGER_NAME = "routercam"


def setup_logging(level: int = logging.INFO, log_file: Optional[str] = None) -> None:
    """Configure the package logger.

    Parameters
    ----------
    level:
        Logging level, e.g. ``logging.DEBUG``.
    log_file:
        Optional path that receives a copy of every record.
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)

    # Calling twice must not duplicate output
    if logger.hasHandlers():
        logger.handlers.clear()

    formatter = logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%H:%M:%S",
    )

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(level)
    console.setFormatter(formatter)
    logger.addHandler(console)

    if log_file:
        file_handler = logging.FileHandler(log_file, mode="w", encoding="utf-8")
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    logger.debug("Logging initialized")
