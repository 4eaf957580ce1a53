"""Structured logging configuration.

Every module logs through `get_logger(__name__)`. Events are short snake_case
names with key/value context, e.g. ``logger.info("agent_run_done", intent=...)``.
"""

from __future__ import annotations

import logging
import os
import sys

import structlog
from structlog.types import Processor

SERVICE_NAME = "notes_agent"


def _add_service(
    logger: structlog.types.WrappedLogger,
    method_name: str,
    event_dict: structlog.types.EventDict,
) -> structlog.types.EventDict:
    event_dict.setdefault("service", SERVICE_NAME)
    return event_dict


def configure_logging(log_level: str | None = None, *, json_output: bool = True) -> None:
    """Configure structlog and the stdlib root logger.

    Args:
        log_level: Level name; defaults to ``NOTES_AGENT_LOG_LEVEL`` or INFO.
        json_output: Render JSON lines (production) instead of console output.
    """

    level_name = (log_level or os.getenv("NOTES_AGENT_LOG_LEVEL") or "INFO").upper()
    level = getattr(logging, level_name, logging.INFO)

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        _add_service,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]
    if json_output:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)
