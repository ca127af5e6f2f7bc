"""
ProSync Suite - Structured Logging Configuration
================================================
JSON-formatted structured logging with request context.

Features:
- JSON output for log aggregation
- Request-scoped context (request_id, user_id, client_ip, endpoint)
- Performance tracking (duration_ms)
- Log level and format selection via environment (LOG_LEVEL, LOG_FORMAT)

Usage:
    from prosync.logging_config import get_logger, log_event

    logger = get_logger(__name__)
    logger.info("task_created", extra={"task_id": task["id"]})

    # Or use the helper
    log_event("budget_threshold_crossed", project_id=project_id, percent_used=84.0)
"""

from __future__ import annotations

import json
import logging
import os
import sys
import time
import traceback
from contextvars import ContextVar
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from prosync.config import settings


# =============================================================================
# Request context
# =============================================================================

_CONTEXT_FIELDS = ("request_id", "user_id", "client_ip", "endpoint")
_context: ContextVar[dict[str, Any] | None] = ContextVar("prosync_log_context", default=None)


class LogContext:
    """
    Request-scoped log context.

    Backed by a ContextVar so that concurrent requests served from the
    same event loop never see each other's fields.
    """

    @staticmethod
    def _current() -> dict[str, Any]:
        current = _context.get()
        if current is None:
            current = {}
            _context.set(current)
        return current

    @classmethod
    def set(cls, **fields: Any) -> None:
        """Set one or more context fields (request_id, user_id, ...)."""
        updated = dict(cls._current())
        for key, value in fields.items():
            if key not in _CONTEXT_FIELDS:
                raise KeyError(f"Unknown log context field: {key}")
            updated[key] = value
        _context.set(updated)

    @classmethod
    def get(cls, key: str) -> Any:
        return cls._current().get(key)

    @classmethod
    def get_request_id(cls) -> str | None:
        return cls.get("request_id")

    @classmethod
    def clear(cls) -> None:
        _context.set({})

    @classmethod
    def get_all(cls) -> dict[str, Any]:
        """Return the populated context fields."""
        return {k: v for k, v in cls._current().items() if v is not None}


# =============================================================================
# Formatters
# =============================================================================

_STANDARD_ATTRS = frozenset(
    {
        "name", "msg", "args", "levelname", "levelno", "pathname",
        "filename", "module", "lineno", "funcName", "created", "msecs",
        "relativeCreated", "thread", "threadName", "processName",
        "process", "exc_info", "exc_text", "stack_info", "taskName",
    }
)

# Keys Logger.makeRecord refuses in ``extra``.
_RESERVED_ATTRS = _STANDARD_ATTRS | {"message", "asctime"}


def _iso_timestamp(created: float) -> str:
    dt = datetime.fromtimestamp(created, tz=timezone.utc)
    return dt.strftime("%Y-%m-%dT%H:%M:%S.%fZ")


class StructuredFormatter(logging.Formatter):
    """
    JSON formatter for structured logging.

    Every line carries timestamp, level, logger, message, service name,
    the request context and whatever was passed via ``extra=``.
    """

    def __init__(self, *, service_name: str = "prosync", include_extra_fields: bool = True) -> None:
        super().__init__()
        self.service_name = service_name
        self.include_extra_fields = include_extra_fields

    def format(self, record: logging.LogRecord) -> str:
        """Format a log record as JSON."""
        log_entry: dict[str, Any] = {
            "timestamp": _iso_timestamp(record.created),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "service": self.service_name,
        }

        if record.pathname:
            log_entry["file"] = Path(record.pathname).name
            log_entry["line"] = record.lineno

        if record.exc_info:
            exc_type, exc_value, _ = record.exc_info
            log_entry["exception"] = {
                "type": exc_type.__name__ if exc_type else None,
                "message": str(exc_value) if exc_value else None,
                "traceback": "".join(traceback.format_exception(*record.exc_info)),
            }

        log_entry.update(LogContext.get_all())

        if self.include_extra_fields:
            for key, value in record.__dict__.items():
                if key not in _STANDARD_ATTRS and not key.startswith("_") and key != "message":
                    log_entry[key] = value

        return json.dumps(log_entry, default=self._json_serializer, ensure_ascii=False)

    @staticmethod
    def _json_serializer(obj: Any) -> str:
        if isinstance(obj, datetime):
            return obj.isoformat()
        return str(obj)


class ConsoleFormatter(logging.Formatter):
    """Human-readable formatter for local development."""

    LEVEL_COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        level_color = self.LEVEL_COLORS.get(record.levelname, "")
        request_id = LogContext.get_request_id() or "-"
        line = (
            f"{level_color}{record.levelname:<8}{self.RESET} "
            f"{_iso_timestamp(record.created)} "
            f"[{request_id}] "
            f"{record.name}: "
            f"{record.getMessage()}"
        )
        if record.exc_info:
            line += "\n" + "".join(traceback.format_exception(*record.exc_info))
        return line


# =============================================================================
# Configuration
# =============================================================================


def _get_log_level() -> int:
    level_str = os.environ.get("LOG_LEVEL", "INFO").upper()
    return getattr(logging, level_str, logging.INFO)


def _convert_level(level: str | int) -> int:
    if isinstance(level, int):
        return level
    return getattr(logging, str(level).upper(), logging.INFO)


def _should_use_json() -> bool:
    log_format = os.environ.get("LOG_FORMAT", "").lower()
    if log_format == "console":
        return False
    if log_format == "json":
        return True
    return not settings.debug_mode


_configured = False


def configure_logging(
    *,
    level: str | int | None = None,
    log_format: str | None = None,
) -> None:
    """
    Configure the root logger with structured logging.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: Format type ("json" or "console")
    """
    global _configured

    resolved_level = _get_log_level() if level is None else _convert_level(level)
    root = logging.getLogger()
    root.setLevel(resolved_level)
    root.handlers.clear()

    use_json = _should_use_json() if log_format is None else log_format == "json"
    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(resolved_level)
    if use_json:
        handler.setFormatter(StructuredFormatter())
    else:
        handler.setFormatter(ConsoleFormatter())

    root.addHandler(handler)
    _configured = True


def get_logger(name: str) -> logging.Logger:
    """Get a logger, configuring structured output on first use."""
    if not _configured:
        configure_logging()
    return logging.getLogger(name)


# =============================================================================
# Helpers
# =============================================================================


def safe_extra(fields: dict[str, Any]) -> dict[str, Any]:
    """Prefix keys that would overwrite LogRecord attributes with ``extra_``."""
    return {(f"extra_{key}" if key in _RESERVED_ATTRS else key): value for key, value in fields.items()}


def log_event(
    event_name: str,
    level: str = "INFO",
    **extra_fields: Any,
) -> None:
    """
    Log a structured event with additional fields.

    Example:
        log_event("notification_created", notification_id=n["id"], type="warning")
    """
    logger = get_logger("prosync.event")
    log_func = getattr(logger, str(level).lower(), logger.info)
    log_func(event_name, extra=safe_extra(extra_fields))


def log_error(
    event_name: str,
    exc: BaseException | None = None,
    **extra_fields: Any,
) -> None:
    """Log an error event, attaching the traceback when an exception is given."""
    logger = get_logger("prosync.error")
    exc_info = (type(exc), exc, exc.__traceback__) if exc is not None else None
    logger.error(event_name, exc_info=exc_info, extra=safe_extra(extra_fields))


class PerformanceTracker:
    """
    Context manager for tracking operation performance.

    Example:
        with PerformanceTracker("capacity_report", user_id=user_id):
            report = service.capacity_report(user_id)
    """

    def __init__(self, operation: str, **extra_fields: Any) -> None:
        self.operation = operation
        self.extra = extra_fields
        self._start_time: float | None = None

    def __enter__(self) -> PerformanceTracker:
        self._start_time = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if self._start_time is None:
            return
        self.extra["duration_ms"] = round((time.perf_counter() - self._start_time) * 1000, 2)
        logger = get_logger("prosync.performance")
        if exc_type is not None:
            self.extra["error"] = str(exc)
            logger.warning(f"{self.operation}_failed", extra=safe_extra(self.extra))
        else:
            logger.info(f"{self.operation}_completed", extra=safe_extra(self.extra))


# Auto-configure on import if not already configured
if not _configured:
    configure_logging()
