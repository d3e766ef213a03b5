"""
AgentScore — Structured logging.

structlog with ISO timestamps, level filtering and a JSON renderer for
production (LOG_FORMAT=json) or a console renderer for local work.
"""
import logging
import sys
from typing import Any, List, Optional

import structlog


def configure_logging(level: Optional[str] = None, fmt: Optional[str] = None) -> None:
    """Configure structlog once. Later calls reconfigure (tests rely on this)."""
    if level is None or fmt is None:
        from agentscore.config import get_settings
        settings = get_settings()
        level = level or settings.LOG_LEVEL
        fmt = fmt or settings.LOG_FORMAT

    level_value = getattr(logging, level.upper(), logging.INFO)

    processors: List[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]
    if fmt == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level_value),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=False,
    )
