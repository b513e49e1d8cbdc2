"""
Structured logging setup.

Every module logs through structlog with an event name plus key/value
context (user_id, bill_id, dialect, ...). Output is JSON in production and
a human-readable console format during development.
"""

import logging
import sys

import structlog


_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "critical": logging.CRITICAL,
}


def parse_level(level: str) -> int:
    """Map a level name to a stdlib level, defaulting to INFO."""
    return _LEVELS.get(level.strip().lower(), logging.INFO)


def configure_logging(level: str = "info", fmt: str = "json") -> None:
    """
    Configure structlog and the stdlib root logger.

    Call once at process start, before any request handling.
    """
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=parse_level(level),
        force=True,
    )

    if fmt.lower() in ("console", "text"):
        renderer = structlog.dev.ConsoleRenderer()
    else:
        renderer = structlog.processors.JSONRenderer()

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
