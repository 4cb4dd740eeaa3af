"""Structured logging configuration.

All modules log through structlog so that a run can be followed either by a
person at a terminal or by a log pipeline:
- RCS_LOG_FORMAT=text (default): colorized, human-readable console output
- RCS_LOG_FORMAT=json: one JSON object per line

Events are snake_case names with key/value context, e.g.:
  {"event": "truncation_retry", "level": "moderate", "files_truncated": 12}

Usage:
    from release_confidence.logging_config import setup_logging, get_logger

    setup_logging(log_format="json", log_level="info")
    logger = get_logger(__name__)
    logger.info("fetch_started", urls=3)
"""

from __future__ import annotations

import logging
import os
import sys
from typing import Any

import structlog

# RCS_LOG_LEVEL accepts "warn" as well as the stdlib names.
_LEVEL_ALIASES = {"warn": "WARNING"}


def _resolve_level(log_level: str) -> int:
    name = log_level.strip().lower()
    name = _LEVEL_ALIASES.get(name, name).upper()
    level = logging.getLevelName(name)
    if not isinstance(level, int):
        raise ValueError(f"Unknown log level: {log_level}")
    return level


def setup_logging(
    log_format: str | None = None,
    log_level: str | None = None,
) -> None:
    """Configure structlog and stdlib logging for the process.

    Args:
        log_format: "text" or "json". Reads RCS_LOG_FORMAT if not provided.
        log_level: debug, info, warn or error. Reads RCS_LOG_LEVEL if not
                   provided.

    Raises:
        ValueError: If the log level is not recognised.
    """
    fmt = (log_format or os.environ.get("RCS_LOG_FORMAT", "text")).lower()
    level = _resolve_level(log_level or os.environ.get("RCS_LOG_LEVEL", "info"))

    shared_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]

    if fmt == "json":
        renderer: Any = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )

    # Third-party libraries (httpx, openai) log through stdlib logging.
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=level,
    )


def get_logger(name: str) -> Any:
    """Get a structured logger instance.

    Args:
        name: Logger name (typically __name__)

    Returns:
        A structlog bound logger
    """
    return structlog.get_logger(name)
