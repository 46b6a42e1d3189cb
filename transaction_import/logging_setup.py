"""Centralized logging configuration for the ``transaction_import`` package.

Entrypoints (the CLI, or a host web application) call
``configure_logging(...)`` once at startup. Library modules only ever call
``get_logger("transaction_import.<module>")`` and never attach handlers.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import IO

_PKG_LOGGER_NAME = "transaction_import"
_LEVEL_ENV = "TXN_IMPORT_LOG_LEVEL"
_DEFAULT_FORMAT = "%(asctime)s %(name)s %(levelname)s %(message)s"
_configured_handler: logging.Handler | None = None


def _parse_level(level: int | str | None) -> int:
    if isinstance(level, int):
        return level
    if level is None:
        level = os.getenv(_LEVEL_ENV)
    if isinstance(level, str):
        text = level.strip().upper()
        if text.isdigit():
            return int(text)
        numeric = logging.getLevelName(text)
        if isinstance(numeric, int):
            return numeric
    return logging.INFO


def configure_logging(
    level: int | str | None = None,
    *,
    fmt: str | None = None,
    stream: IO[str] | None = None,
) -> logging.Logger:
    """Attach a single ``StreamHandler`` to the package root logger.

    Repeated calls reconfigure the same handler rather than stacking new ones,
    so the CLI and tests can both call this safely. ``level`` falls back to
    ``TXN_IMPORT_LOG_LEVEL`` and then ``INFO``.
    """

    global _configured_handler

    logger = logging.getLogger(_PKG_LOGGER_NAME)
    for h in list(logger.handlers):
        if isinstance(h, logging.NullHandler) or h is _configured_handler:
            logger.removeHandler(h)

    resolved = _parse_level(level)
    handler = logging.StreamHandler(stream if stream is not None else sys.stderr)
    handler.setLevel(resolved)
    handler.setFormatter(logging.Formatter(fmt or _DEFAULT_FORMAT))

    logger.setLevel(resolved)
    logger.addHandler(handler)
    logger.propagate = False
    _configured_handler = handler
    return logger


def get_logger(name: str) -> logging.Logger:
    """Return a logger, keeping the package silent until it is configured."""

    pkg_logger = logging.getLogger(_PKG_LOGGER_NAME)
    if not pkg_logger.handlers:
        pkg_logger.addHandler(logging.NullHandler())
    return logging.getLogger(name)


__all__ = ["configure_logging", "get_logger"]
