"""Shared logging utilities for consistent request pipeline observability.

Usage example:
    from ep_data_pipeline.observability.logging import get_logger

    logger = get_logger("ep_data_pipeline.pipeline")
    logger.info("Fetched %s in %.1fms", endpoint, elapsed_ms)
"""

from __future__ import annotations

import logging
import os
import time

_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
_LOG_DATE_FORMAT = "%Y-%m-%dT%H:%M:%S%z"
_LEVEL_ENV_VAR = "EP_LOG_LEVEL"


def _resolve_level() -> int:
    name = os.getenv(_LEVEL_ENV_VAR, "").strip().upper()
    level = logging.getLevelNamesMapping().get(name) if name else None
    return level if level is not None else logging.INFO


def get_logger(name: str) -> logging.Logger:
    """Return a standard logger configured for UTC timestamps.

    Args:
        name: Logger name (use a stable module-qualified name).

    Returns:
        A logger with a single stream handler and a consistent UTC format. The
        level defaults to INFO and can be changed with EP_LOG_LEVEL.
    """
    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler()
        formatter = logging.Formatter(fmt=_LOG_FORMAT, datefmt=_LOG_DATE_FORMAT)
        formatter.converter = time.gmtime
        handler.setFormatter(formatter)
        logger.addHandler(handler)
        logger.setLevel(_resolve_level())
        logger.propagate = False
    return logger
