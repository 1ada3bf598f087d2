"""
Observability module for structured logging, correlation IDs, and metrics.

Two context variables ride along with every log record: the request
correlation ID (set by the HTTP middleware, copied onto emitted events)
and the tenant context (user_id plus whatever the caller adds, e.g. the
period being recomputed).

Usage:
    from core.observability import setup_logging, get_logger, tenant_context

    # In app startup:
    setup_logging()

    # In services:
    logger = get_logger(__name__)

    with tenant_context(user_id, period=period):
        logger.info("Recomputing analytics")
"""
import asyncio
import functools
import json
import logging
import time
import uuid
from collections import Counter, deque
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Callable, Deque, Dict, Optional

from core.config import config

_correlation_id: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)

# Tenant fields merged into every record (user_id, period, ...)
_log_context: ContextVar[Dict[str, Any]] = ContextVar("log_context", default={})

# Attributes every LogRecord carries; anything else came in through extra=
_RECORD_ATTRS = frozenset(
    logging.LogRecord("", logging.INFO, "", 0, "", (), None).__dict__
) | {"message", "asctime", "taskName"}

# Loggers that drown out the app at INFO
NOISY_LOGGERS = ("uvicorn.access", "redis", "watchfiles", "duckdb")


def get_correlation_id() -> Optional[str]:
    return _correlation_id.get()


def set_correlation_id(correlation_id: str) -> None:
    _correlation_id.set(correlation_id)


def generate_correlation_id() -> str:
    """Short random ID; long enough to be unique within a day of logs."""
    return uuid.uuid4().hex[:12]


class correlation_context:
    """Bind a correlation ID (given or freshly generated) for the block."""

    def __init__(self, correlation_id: Optional[str] = None):
        self.correlation_id = correlation_id or generate_correlation_id()
        self.token = None

    def __enter__(self) -> str:
        self.token = _correlation_id.set(self.correlation_id)
        return self.correlation_id

    def __exit__(self, *args):
        _correlation_id.reset(self.token)


class tenant_context:
    """Attach user_id (and extras) to every log line emitted inside the block."""

    def __init__(self, user_id: str, **extra: Any):
        self.values = {"user_id": user_id, **extra}
        self.token = None

    def __enter__(self):
        self.token = _log_context.set({**_log_context.get(), **self.values})
        return self

    def __exit__(self, *args):
        _log_context.reset(self.token)


def _fields(record: logging.LogRecord) -> Dict[str, Any]:
    """Tenant context overlaid with the record's own extra= fields."""
    fields = dict(_log_context.get())
    fields.update(
        (k, v) for k, v in record.__dict__.items()
        if k not in _RECORD_ATTRS and not k.startswith("_")
    )
    return fields


def _record_time(record: logging.LogRecord) -> datetime:
    return datetime.fromtimestamp(record.created, tz=timezone.utc)


class StructuredFormatter(logging.Formatter):
    """One JSON object per line, for log shippers."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": _record_time(record).isoformat(timespec="milliseconds").replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        correlation_id = get_correlation_id()
        if correlation_id:
            entry["correlation_id"] = correlation_id

        entry.update(_fields(record))

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


class HumanReadableFormatter(logging.Formatter):
    """
    Format: TIMESTAMP - LEVEL - LOGGER [CORRELATION_ID] - MESSAGE | fields
    """

    def format(self, record: logging.LogRecord) -> str:
        correlation_id = get_correlation_id()
        line = " - ".join((
            _record_time(record).strftime("%Y-%m-%d %H:%M:%S"),
            f"{record.levelname:8}",
            record.name + (f" [{correlation_id}]" if correlation_id else ""),
            record.getMessage(),
        ))

        fields = _fields(record)
        if fields:
            line += " | " + " ".join(f"{k}={v}" for k, v in fields.items())

        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)

        return line


def setup_logging(
    level: Optional[str] = None,
    json_format: Optional[bool] = None,
    include_libs: bool = False
) -> None:
    """
    Configure the root logger.

    Args:
        level: Log level name; defaults to config.logging.level
        json_format: JSON lines instead of human-readable; defaults to config.logging.json_format
        include_libs: Leave third-party loggers at the root level
    """
    level = level or config.logging.level
    if json_format is None:
        json_format = config.logging.json_format

    handler = logging.StreamHandler()
    handler.setFormatter(StructuredFormatter() if json_format else HumanReadableFormatter())

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level.upper())

    if not include_libs:
        for name in NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


# ═══════════════════════════════════════════════════════════════════════════════
# TIMING
# ═══════════════════════════════════════════════════════════════════════════════

class Timer:
    """
    Context manager measuring wall time in milliseconds.

    Usage:
        with Timer("health_check_db") as t:
            await store.get_stats()
        latency = t.elapsed_ms

    With a logger, the duration is logged on exit (WARNING past slow_ms).
    """

    def __init__(self, name: str, logger: Optional[logging.Logger] = None, slow_ms: float = 1000):
        self.name = name
        self.logger = logger
        self.slow_ms = slow_ms
        self.start_time: float = 0
        self.elapsed_ms: float = 0

    def __enter__(self) -> "Timer":
        self.start_time = time.perf_counter()
        return self

    def __exit__(self, *args):
        self.elapsed_ms = (time.perf_counter() - self.start_time) * 1000
        if self.logger:
            self.logger.log(
                logging.WARNING if self.elapsed_ms > self.slow_ms else logging.DEBUG,
                f"{self.name} took {self.elapsed_ms:.0f}ms",
                extra={"duration_ms": round(self.elapsed_ms, 2)},
            )


def timed(name: Optional[str] = None, warn_threshold_ms: float = 1000):
    """
    Record an async function's duration in the global metrics, even on failure.

    Args:
        name: Timing key (defaults to the function name)
        warn_threshold_ms: Log at WARNING when slower than this
    """
    def decorator(func: Callable) -> Callable:
        if not asyncio.iscoroutinefunction(func):
            raise TypeError(f"@timed requires an async function, got {func.__name__}")

        operation = name or func.__name__
        func_logger = get_logger(func.__module__)

        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            start = time.perf_counter()
            try:
                return await func(*args, **kwargs)
            finally:
                elapsed_ms = (time.perf_counter() - start) * 1000
                metrics.record_timing(operation, elapsed_ms)
                func_logger.log(
                    logging.WARNING if elapsed_ms > warn_threshold_ms else logging.DEBUG,
                    f"{operation} took {elapsed_ms:.0f}ms",
                    extra={"duration_ms": round(elapsed_ms, 2)},
                )

        return wrapper

    return decorator


# ═══════════════════════════════════════════════════════════════════════════════
# METRICS COLLECTOR (in-memory, per process)
# ═══════════════════════════════════════════════════════════════════════════════

class MetricsCollector:
    """
    Counters and bounded timing samples served by GET /api/metrics.

    Errors are keyed by kind: exception class names, HTTP_<status>,
    REQUEST_TIMEOUT, and extractor.<metric> for isolated extractor failures.
    """

    def __init__(self, max_samples: int = 100):
        self._requests: Counter = Counter()
        self._errors: Counter = Counter()
        self._timings: Dict[str, Deque[float]] = {}
        self._max_samples = max_samples

    def record_request(self, endpoint: str) -> None:
        self._requests[endpoint] += 1

    def record_error(self, error_type: str) -> None:
        self._errors[error_type] += 1

    def record_extractor_failure(self, metric: str) -> None:
        self.record_error(f"extractor.{metric}")

    def record_timing(self, operation: str, duration_ms: float) -> None:
        samples = self._timings.get(operation)
        if samples is None:
            samples = self._timings[operation] = deque(maxlen=self._max_samples)
        samples.append(duration_ms)

    def error_count(self, error_type: str) -> int:
        return self._errors[error_type]

    @staticmethod
    def _summarize(samples: Deque[float]) -> Dict[str, Any]:
        ordered = sorted(samples)
        return {
            "count": len(ordered),
            "avg_ms": round(sum(ordered) / len(ordered), 2),
            "min_ms": round(ordered[0], 2),
            "max_ms": round(ordered[-1], 2),
            "p50_ms": round(ordered[len(ordered) // 2], 2),
        }

    def get_stats(self) -> Dict[str, Any]:
        return {
            "requests": dict(self._requests),
            "errors": dict(self._errors),
            "timing": {op: self._summarize(s) for op, s in self._timings.items() if s},
        }

    def reset(self) -> None:
        self._requests.clear()
        self._errors.clear()
        self._timings.clear()


metrics = MetricsCollector()
