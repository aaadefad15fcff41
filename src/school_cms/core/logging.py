"""structlog configuration.

Every module logs through ``structlog.get_logger(__name__)`` with
dot-namespaced event names ("users.created", "files.uploaded").
configure_logging() picks the renderer once at startup.
"""

from __future__ import annotations

import logging

import structlog


def configure_logging(log_format: str = "console", level: int = logging.INFO) -> None:
    """Configure structlog processors and renderer.

    Args:
        log_format: "console" for human-readable output, "json" for
            one JSON object per line.
        level: Minimum log level.
    """
    renderer: structlog.types.Processor
    if log_format == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        cache_logger_on_first_use=False,
    )
