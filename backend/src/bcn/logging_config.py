"""Logging configuration.

structlog renders BCN events; the standard library logger carries output
from uvicorn, httpx and the Stripe SDK.
"""

import logging
import sys

import structlog

from bcn.settings import settings

# Per-request chatter from the HTTP clients used for Stripe and SendGrid
_CLIENT_LOGGERS = ("httpx", "httpcore", "stripe")


def configure_logging() -> None:
    """Configure structured logging."""
    level = settings.log_level.upper()

    shared_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
    ]

    if settings.log_format == "json":
        processors = shared_processors + [
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors = shared_processors + [
            structlog.processors.TimeStamper(fmt="%Y-%m-%d %H:%M:%S"),
            structlog.dev.ConsoleRenderer(),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(logging.getLevelName(level)),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, level),
    )

    # Request URLs and bodies only at DEBUG
    if level != "DEBUG":
        for name in _CLIENT_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> structlog.BoundLogger:
    """Get a logger instance."""
    return structlog.get_logger(name)
