"""📝 Logging setup - Rich console output for the flowlineage logger tree."""

from __future__ import annotations

import logging

from rich.logging import RichHandler

from .config import get_settings

_CONFIGURED = False


def configure_logging(level: str | int | None = None) -> logging.Logger:
    """Attach a RichHandler to the ``flowlineage`` logger.

    Safe to call more than once; only the level is updated on later calls.

    Args:
        level: Log level name or number (default: LINEAGE_LOG_LEVEL)

    Returns:
        The configured package logger
    """
    global _CONFIGURED

    logger = logging.getLogger("flowlineage")
    resolved = _resolve_level(level if level is not None else get_settings().log_level)
    logger.setLevel(resolved)

    if _CONFIGURED:
        return logger

    handler = RichHandler(rich_tracebacks=True, show_path=False)
    handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))
    logger.addHandler(handler)
    logger.propagate = False

    _CONFIGURED = True
    return logger


def _resolve_level(level: str | int) -> int:
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(level.upper())
    if not isinstance(resolved, int):
        raise ValueError(f"Unknown log level: {level}")
    return resolved
