"""
Logging configuration for the pipeline.
"""
import logging
import re
import sys
import traceback
from typing import Any

import structlog

from mtg_ingest.core.config import settings

# Patterns scrubbed from every rendered event value
_REDACTIONS = [
    (re.compile(r"api_key[=:]\s*[\"']?[^\"'\s,}&]+[\"']?", re.IGNORECASE), "api_key=[REDACTED]"),
    (re.compile(r"bearer\s+[a-zA-Z0-9_\-.]+", re.IGNORECASE), "bearer [REDACTED]"),
    (re.compile(r"secret[=:]\s*[\"']?[^\"'\s,}&]+[\"']?", re.IGNORECASE), "secret=[REDACTED]"),
    (re.compile(r"token[=:]\s*[\"']?[^\"'\s,}&]+[\"']?", re.IGNORECASE), "token=[REDACTED]"),
]

BACKTRACE_LINES = 5


def redact_value(value: str) -> str:
    for pattern, replacement in _REDACTIONS:
        value = pattern.sub(replacement, value)
    return value


def redact_secrets(logger, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    """structlog processor that masks credentials in string values."""
    for key, value in event_dict.items():
        if isinstance(value, str):
            event_dict[key] = redact_value(value)
    return event_dict


def setup_logging():
    """
    Configure structured logging for the pipeline.

    Called once per process: by the Celery worker on startup and by the
    manual-trigger CLI.
    """
    log_level = logging.DEBUG if settings.debug else logging.INFO

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso"),
            redact_secrets,
            # Use console renderer in debug mode, JSON otherwise
            structlog.dev.ConsoleRenderer()
            if settings.debug
            else structlog.processors.JSONRenderer(),
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

    # Reduce noise from libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


def format_backtrace(error: BaseException, limit: int = BACKTRACE_LINES) -> list[str]:
    """Return the innermost `limit` frames of an exception as short strings."""
    frames = traceback.extract_tb(error.__traceback__)[-limit:]
    return [f"{frame.filename}:{frame.lineno} in {frame.name}" for frame in frames]


def log_error(logger, error: BaseException, **context: Any) -> None:
    """
    Log an `error_occurred` event with the error class, message and a
    partial backtrace.
    """
    logger.error(
        "error_occurred",
        error_class=type(error).__name__,
        error_message=str(error),
        backtrace=format_backtrace(error),
        **context,
    )
