"""Structlog-based logging for Family Graph.

Library modules call ``structlog.get_logger(__name__)`` and emit dotted
event names; only the CLI configures output. No print() in library code.
"""
from __future__ import annotations

import logging
import sys
from typing import Literal, TextIO

import structlog

from .config import CONFIG

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


def configure_logging(
    level: LogLevel | str | None = None,
    json_output: bool = True,
    stream: TextIO | None = None,
) -> None:
    """Route structlog events to ``stream`` (stderr by default).

    Args:
        level: Minimum level; defaults to FAMILY_GRAPH_LOG_LEVEL
        json_output: JSON lines, or the human-readable console renderer
        stream: Output stream; the process stderr keeps CLI stdout clean for exports
    """
    name = (level or CONFIG.log_level).upper()
    numeric = logging.getLevelName(name)
    if not isinstance(numeric, int):
        numeric = logging.INFO

    renderer = structlog.processors.JSONRenderer() if json_output else structlog.dev.ConsoleRenderer()
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="ISO"),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(numeric),
        logger_factory=structlog.PrintLoggerFactory(stream or sys.__stderr__ or sys.stderr),
        cache_logger_on_first_use=True,
    )
