"""Structured logging for hub events (subscribe, publish, deliver, retire, flush)."""

import logging
import sys
from typing import Optional


def get_logger(name: str, level: Optional[int] = None) -> logging.Logger:
    """Return a configured logger; level defaults to PATSUB_LOG_LEVEL."""
    logger = logging.getLogger(name)
    if not logger.handlers:
        if level is None:
            from patsub.config import get_settings

            level = get_settings().log_level_value
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(
            logging.Formatter(
                "%(asctime)s | %(name)s | %(levelname)s | %(message)s"
            )
        )
        logger.addHandler(handler)
        logger.setLevel(level)
    return logger
