"""
KINETIC BOARD - Structured Logging Utility
structlog configuration plus per-run context binding, so every event emitted
while a pipeline run is active carries its tag and correlation id.
"""
from contextlib import contextmanager
from typing import Iterator, Optional
import logging
import sys

import structlog

from kinetic_board.config.settings import AppSettings, get_settings


def setup_logging(settings: Optional[AppSettings] = None) -> None:
    """Configure structured logging for the entire application."""
    settings = settings or get_settings()
    log_level = getattr(logging, settings.log_level.upper(), logging.INFO)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer() if settings.debug else structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=log_level,
    )


def get_logger(name: str = None) -> structlog.BoundLogger:
    """Get a named structured logger."""
    return structlog.get_logger(name or "kinetic_board")


@contextmanager
def run_context(tag: str, correlation_id: str) -> Iterator[None]:
    """Bind tag and correlation id to every log event inside the block."""
    tokens = structlog.contextvars.bind_contextvars(tag=tag, correlation_id=correlation_id)
    try:
        yield
    finally:
        structlog.contextvars.reset_contextvars(**tokens)
