"""
Logging setup for applications embedding the Box client.

Library modules only create loggers under the ``box_sync`` namespace.
Applications that want output without configuring logging themselves can
call :func:`configure_logging` once at startup.
"""

from __future__ import annotations

import logging
import sys
from typing import Optional, TextIO

LOGGER_NAME = "box_sync"
LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def configure_logging(level: Optional[str] = None, *, stream: Optional[TextIO] = None) -> logging.Logger:
    """Attach a stream handler to the ``box_sync`` logger.

    ``level`` defaults to ``BOX_LOG_LEVEL``. Calling this again only updates
    the level; it never stacks a second handler.
    """
    if level is None:
        from box_sync.core.config import get_settings

        level = get_settings().log_level

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level.upper())
    if not any(getattr(handler, "_box_sync", False) for handler in logger.handlers):
        handler = logging.StreamHandler(stream or sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._box_sync = True  # type: ignore[attr-defined]
        logger.addHandler(handler)

    # httpx logs every request at INFO, which drowns out retry diagnostics.
    logging.getLogger("httpx").setLevel(logging.WARNING)
    return logger


__all__ = ["LOG_FORMAT", "LOGGER_NAME", "configure_logging"]
