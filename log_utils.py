"""Structured logging setup shared by the engines, the loader and the CLI."""

import logging
import sys
from typing_extensions import *

import structlog

LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


def configure_logging(level: str = "warning", format_type: str = "text", stream: Any = None) -> None:
    """
    Configure structlog for the whole process.

    Args:
        level: debug, info, warning or error
        format_type: 'json' or 'text'
        stream: output stream (default: sys.stderr)
    """
    if stream is None:
        stream = sys.stderr

    log_level = LEVELS.get(level.lower(), logging.WARNING)

    logging.basicConfig(format="%(message)s", stream=stream, level=log_level)

    processors: List[Any] = [
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if format_type == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=False))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(stream),
        cache_logger_on_first_use=False,
    )


def get_logger(name: Optional[str] = None) -> Any:
    """Return a lazy structlog logger, tagged with `name` when given."""
    if name:
        return structlog.get_logger(logger_name=name)
    return structlog.get_logger()
