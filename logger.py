"""
logger.py
Shared logger helper so every module logs with the same format.
"""

from __future__ import annotations

import logging


def get_logger(name: str | None = None) -> logging.Logger:
    """
    Return a named logger with a stream handler and INFO level.
    The handler is attached once per logger name.
    """
    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler()
        formatter = logging.Formatter(
            fmt="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        handler.setFormatter(formatter)
        logger.addHandler(handler)
    logger.setLevel(logging.INFO)
    return logger
