"""
Logging configuration module for vaultgraph.

Configures structlog with appropriate processors for development.
"""

import logging
import sys

import structlog

from .config import settings


def configure_logging(level: str | None = None) -> None:
    """Configure structlog for the application.

    Uses ConsoleRenderer for readable colored output in development.
    Logs go to stderr; the stdio tool server owns stdout.

    Args:
        level: Optional level name overriding settings.log_level
    """
    level_value = getattr(logging, (level or settings.log_level).upper(), logging.INFO)
    if not isinstance(level_value, int):
        level_value = logging.INFO

    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level_value),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )
