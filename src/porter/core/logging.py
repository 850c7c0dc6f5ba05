"""
porter.core.logging - structlog Setup
=======================================

Every porter module logs through ``structlog.get_logger()`` with
snake_case event names and key/value context. Hosts that do not configure
structlog themselves can call ``configure_logging`` once at startup.

Usage:
    >>> from porter.core.logging import configure_logging
    >>> configure_logging(config.log_level)
"""

from __future__ import annotations

import logging

import structlog


def configure_logging(level: str = "INFO", *, json: bool = False) -> None:
    """Configure structlog with a level filter and a console or JSON renderer.

    Args:
        level: Standard logging level name (DEBUG, INFO, WARNING, ...).
        json: Render JSON lines instead of the developer console format.

    Raises:
        ValueError: If ``level`` is not a known logging level name.
    """
    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        raise ValueError(f"Unknown log level: {level!r}")

    renderer = (
        structlog.processors.JSONRenderer()
        if json
        else structlog.dev.ConsoleRenderer(colors=False)
    )
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        cache_logger_on_first_use=False,
    )
