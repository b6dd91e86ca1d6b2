"""Structured logging and metric hooks.

Every log line is a JSON object carrying the request-scoped context
(request id, operation, bucket) set by :class:`RequestContext`.
"""

import json
import logging
import sys
import time
import uuid
from contextvars import ContextVar
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable

request_id_var: ContextVar[str | None] = ContextVar("request_id", default=None)
operation_var: ContextVar[str | None] = ContextVar("operation", default=None)
bucket_var: ContextVar[str | None] = ContextVar("bucket", default=None)

ROOT_LOGGER = "bucketview"


class LogLevel(str, Enum):
    """Log levels matching Python's logging module."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


@dataclass
class LogContext:
    """Request-scoped fields attached to every log entry."""

    request_id: str | None = None
    operation: str | None = None
    bucket: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def current(cls) -> "LogContext":
        """Snapshot the context variables of the running task."""
        return cls(
            request_id=request_id_var.get(),
            operation=operation_var.get(),
            bucket=bucket_var.get(),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary, skipping unset fields."""
        result: dict[str, Any] = {}
        for name in ("request_id", "operation", "bucket"):
            value = getattr(self, name)
            if value:
                result[name] = value
        result.update(self.extra)
        return result


@dataclass
class LogEntry:
    """A structured log entry."""

    level: LogLevel
    message: str
    timestamp: str
    logger: str
    context: dict[str, Any] = field(default_factory=dict)
    error: dict[str, Any] | None = None
    duration_ms: float | None = None

    def to_json(self) -> str:
        """Serialize to a single JSON line."""
        data: dict[str, Any] = {
            "level": self.level.value,
            "message": self.message,
            "timestamp": self.timestamp,
            "logger": self.logger,
        }
        if self.context:
            data["context"] = self.context
        if self.error:
            data["error"] = self.error
        if self.duration_ms is not None:
            data["duration_ms"] = round(self.duration_ms, 3)
        return json.dumps(data, default=str)


class StructuredFormatter(logging.Formatter):
    """Formats log records as structured JSON."""

    def format(self, record: logging.LogRecord) -> str:
        context = LogContext.current().to_dict()
        if isinstance(getattr(record, "context", None), dict):
            context.update(record.context)

        error = None
        if record.exc_info and record.exc_info[0] is not None:
            exc_type, exc_value = record.exc_info[0], record.exc_info[1]
            error = {"type": exc_type.__name__, "message": str(exc_value)}
            status_code = getattr(exc_value, "status_code", None)
            if status_code is not None:
                error["status_code"] = status_code

        entry = LogEntry(
            level=LogLevel(record.levelname),
            message=record.getMessage(),
            timestamp=datetime.now(timezone.utc).isoformat(),
            logger=record.name,
            context=context,
            error=error,
            duration_ms=getattr(record, "duration_ms", None),
        )
        return entry.to_json()


class StructuredLogger:
    """Thin wrapper around a stdlib logger that accepts context and durations.

    Example:
        logger = get_logger(__name__)
        logger.info("Listing page built", context={"items": 50}, duration_ms=12.5)
        logger.error("Rename aborted", error=exc)
    """

    def __init__(self, name: str) -> None:
        self.logger = logging.getLogger(name)

    def _log(
        self,
        level: LogLevel,
        message: str,
        context: dict[str, Any] | None = None,
        error: BaseException | None = None,
        duration_ms: float | None = None,
    ) -> None:
        extra: dict[str, Any] = {}
        if context:
            extra["context"] = context
        if duration_ms is not None:
            extra["duration_ms"] = duration_ms

        log_func = getattr(self.logger, level.value.lower())
        if error is not None:
            log_func(message, exc_info=(type(error), error, error.__traceback__), extra=extra)
        else:
            log_func(message, extra=extra)

    def debug(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        duration_ms: float | None = None,
    ) -> None:
        self._log(LogLevel.DEBUG, message, context, duration_ms=duration_ms)

    def info(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        duration_ms: float | None = None,
    ) -> None:
        self._log(LogLevel.INFO, message, context, duration_ms=duration_ms)

    def warning(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        error: BaseException | None = None,
        duration_ms: float | None = None,
    ) -> None:
        self._log(LogLevel.WARNING, message, context, error, duration_ms)

    def error(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        error: BaseException | None = None,
        duration_ms: float | None = None,
    ) -> None:
        self._log(LogLevel.ERROR, message, context, error, duration_ms)


class RequestContext:
    """Context manager binding request-scoped logging fields.

    Example:
        async with RequestContext(operation="stats", bucket="media"):
            logger.info("Aggregating")
    """

    def __init__(
        self,
        request_id: str | None = None,
        operation: str | None = None,
        bucket: str | None = None,
    ) -> None:
        self.request_id = request_id or uuid.uuid4().hex
        self.operation = operation
        self.bucket = bucket
        self._tokens: list[tuple[ContextVar, Any]] = []

    @classmethod
    def bind(cls, operation: str | None = None, bucket: str | None = None) -> "RequestContext":
        """Context for a nested operation that keeps the current request id."""
        return cls(request_id=request_id_var.get(), operation=operation, bucket=bucket)

    def __enter__(self) -> "RequestContext":
        self._tokens.append((request_id_var, request_id_var.set(self.request_id)))
        if self.operation:
            self._tokens.append((operation_var, operation_var.set(self.operation)))
        if self.bucket:
            self._tokens.append((bucket_var, bucket_var.set(self.bucket)))
        return self

    def __exit__(self, *args: Any) -> None:
        for var, token in reversed(self._tokens):
            var.reset(token)
        self._tokens.clear()

    async def __aenter__(self) -> "RequestContext":
        return self.__enter__()

    async def __aexit__(self, *args: Any) -> None:
        self.__exit__(*args)


class Timer:
    """Wall-clock timer usable as a sync or async context manager.

    ``elapsed_ms`` can be read while the timer is still running.
    """

    def __init__(self) -> None:
        self.start_time: float = 0
        self.end_time: float | None = None

    @property
    def duration_ms(self) -> float:
        end = self.end_time if self.end_time is not None else time.perf_counter()
        return (end - self.start_time) * 1000

    @property
    def elapsed_ms(self) -> int:
        """Duration truncated to whole milliseconds."""
        return int(self.duration_ms)

    def __enter__(self) -> "Timer":
        self.start_time = time.perf_counter()
        self.end_time = None
        return self

    def __exit__(self, *args: Any) -> None:
        self.end_time = time.perf_counter()

    async def __aenter__(self) -> "Timer":
        return self.__enter__()

    async def __aexit__(self, *args: Any) -> None:
        self.__exit__(*args)


# Metric collection hook: callback(name, value, labels)
MetricCallback = Callable[[str, float, dict[str, Any]], None]

_metric_callbacks: list[MetricCallback] = []


def register_metric_callback(callback: MetricCallback) -> None:
    """Register a callback to receive metric events."""
    _metric_callbacks.append(callback)


def clear_metric_callbacks() -> None:
    """Remove every registered metric callback."""
    _metric_callbacks.clear()


def emit_metric(name: str, value: float, labels: dict[str, Any] | None = None) -> None:
    """Emit a metric to all registered callbacks.

    Args:
        name: Metric name, e.g. ``listing.fetches``
        value: Metric value
        labels: Optional dimensions; the current bucket is added when known
    """
    labels = dict(labels or {})
    bucket = bucket_var.get()
    if bucket:
        labels.setdefault("bucket", bucket)

    for callback in _metric_callbacks:
        try:
            callback(name, value, labels)
        except Exception:
            # A broken metrics sink must not fail the request
            logging.getLogger(ROOT_LOGGER).debug("Metric callback failed", exc_info=True)


def emit_counter(name: str, labels: dict[str, Any] | None = None) -> None:
    """Emit a counter metric (increment by 1)."""
    emit_metric(name, 1.0, labels)


def emit_timer(name: str, duration_ms: float, labels: dict[str, Any] | None = None) -> None:
    """Emit a timer metric."""
    emit_metric(name, duration_ms, labels)


def configure_logging(
    level: LogLevel | str = LogLevel.INFO,
    format: str = "json",
) -> None:
    """Install a stdout handler on the package logger.

    Args:
        level: Minimum log level
        format: Output format ("json" or "text")
    """
    level = LogLevel(level.upper() if isinstance(level, str) else level)
    root_logger = logging.getLogger(ROOT_LOGGER)
    root_logger.setLevel(level.value)
    root_logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    if format == "json":
        handler.setFormatter(StructuredFormatter())
    else:
        handler.setFormatter(logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        ))
    root_logger.addHandler(handler)


def get_logger(name: str) -> StructuredLogger:
    """Get a structured logger for a module."""
    return StructuredLogger(name)
