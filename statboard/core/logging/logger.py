"""
Statboard Logging Subsystem

Purpose
-------
One logging stack for the whole engine. Every record a leaderboard
operation emits is stamped with the operation's context (entity type,
field, addressing mode, correlation id) and handed to a background
listener, so handler I/O never runs on the event loop.

Responsibilities
----------------
- `setup_logging()` / `shutdown_logging()`: install and tear down the
  root queue handler and its listener thread
- `ContextFilter`: copy the bound `LogContext` onto each record
- `JSONFormatter` (production, `LOG_JSON`) and `ConsoleFormatter`
  (plain or colored text)
- Drop-on-full accounting for the bounded queue, reported by
  `get_logging_health()`

Design Notes
------------
- Settings are read from `Config` once, at setup time
- Context lives in a ContextVar, so concurrent queries on one loop keep
  their own correlation ids
- Extra fields passed via `logger.info("msg", extra={...})` land under
  "extra" in JSON output
"""

from __future__ import annotations

import json
import logging
import queue
import sys
import uuid
from contextvars import ContextVar, Token
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from logging import Logger
from logging.handlers import QueueHandler, QueueListener, TimedRotatingFileHandler
from pathlib import Path
from typing import Any, Dict, FrozenSet, List, Optional, Tuple

__all__ = [
    "CONTEXT_FIELDS",
    "LoggerSettings",
    "LoggingMetrics",
    "LoggingHealth",
    "ContextFilter",
    "ConsoleFormatter",
    "JSONFormatter",
    "StatboardQueueHandler",
    "StatboardQueueListener",
    "LogContext",
    "setup_logging",
    "shutdown_logging",
    "get_logging_health",
    "get_logger",
    "get_log_context",
]

CONTEXT_FIELDS: Tuple[str, ...] = (
    "entity_type",
    "field",
    "mode",
    "correlation_id",
    "request_id",
    "component",
    "operation",
)

_UNSET = "N/A"

_log_context: ContextVar[Dict[str, Any]] = ContextVar("statboard_log_context", default={})


# ============================================================================
# SETTINGS
# ============================================================================


@dataclass(frozen=True)
class LoggerSettings:
    """Resolved logging settings. `from_config()` reads them from `Config`."""

    level: int = logging.INFO
    environment: str = "development"
    json_output: bool = False
    colors: bool = False
    to_file: bool = False
    logs_dir: Path = Path("logs")
    queue_max_size: int = 10_000
    daily_basename: str = "statboard_daily.json.log"
    daily_backup_count: int = 1

    console_format: str = "%(asctime)s | %(levelname)-8s | %(name)-36s | %(message)s"
    date_format: str = "%Y-%m-%d %H:%M:%S"

    @classmethod
    def from_config(cls) -> "LoggerSettings":
        from statboard.core.config.config import Config

        environment = str(getattr(Config, "ENVIRONMENT", "development")).lower()
        level = logging.getLevelName(str(getattr(Config, "LOG_LEVEL", "INFO")).upper())
        if not isinstance(level, int):
            level = logging.INFO

        json_flag = getattr(Config, "LOG_JSON", None)
        json_output = environment == "production" if json_flag is None else bool(json_flag)

        return cls(
            level=level,
            environment=environment,
            json_output=json_output,
            colors=not json_output and sys.stdout.isatty(),
            to_file=bool(getattr(Config, "LOG_TO_FILE", False)),
            logs_dir=Path(Config.LOGS_DIR).resolve(),
        )


# ============================================================================
# METRICS / HEALTH
# ============================================================================


@dataclass
class LoggingMetrics:
    records_enqueued: int = 0
    records_dropped: int = 0
    listener_errors: int = 0


@dataclass(frozen=True)
class LoggingHealth:
    initialized: bool
    queue_size: int
    queue_max_size: int
    records_enqueued: int
    records_dropped: int
    listener_errors: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


# ============================================================================
# FILTERS & FORMATTERS
# ============================================================================


class ContextFilter(logging.Filter):
    """
    Stamp the bound `LogContext` onto each record.

    Unbound fields read "N/A", except `component`, which falls back to the
    top-level package of the logger name.
    """

    def filter(self, record: logging.LogRecord) -> bool:  # type: ignore[override]
        context = _log_context.get()

        for name in CONTEXT_FIELDS:
            setattr(record, name, context.get(name) or _UNSET)

        if record.correlation_id == _UNSET and record.request_id != _UNSET:
            record.correlation_id = record.request_id
        if record.request_id == _UNSET:
            record.request_id = record.correlation_id
        if record.component == _UNSET:
            record.component = record.name.split(".", 1)[0]
        return True


class ConsoleFormatter(logging.Formatter):
    """Human-readable console lines, with ANSI level colors when enabled."""

    LEVEL_COLORS: Dict[str, str] = {
        "DEBUG": "\033[90m",
        "INFO": "\033[94m",
        "WARNING": "\033[93m",
        "ERROR": "\033[91m",
        "CRITICAL": "\033[91m\033[1m",
    }
    RESET = "\033[0m"

    def __init__(self, settings: LoggerSettings, colors: bool = False) -> None:
        super().__init__(fmt=settings.console_format, datefmt=settings.date_format)
        self.colors = colors

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        color = self.LEVEL_COLORS.get(record.levelname) if self.colors else None
        if color is None:
            return super().format(record)

        levelname = record.levelname
        record.levelname = f"{color}{levelname}{self.RESET}"
        try:
            return super().format(record)
        finally:
            record.levelname = levelname


class JSONFormatter(logging.Formatter):
    """One JSON object per record: core fields, bound context, then `extra`."""

    RESERVED: FrozenSet[str] = frozenset(logging.makeLogRecord({}).__dict__) | {
        "message",
        "asctime",
        "taskName",
    }

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        payload: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        for name in CONTEXT_FIELDS:
            value = getattr(record, name, None)
            if value not in (None, _UNSET):
                payload[name] = value

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        extra = {
            key: value
            for key, value in record.__dict__.items()
            if key not in self.RESERVED and key not in CONTEXT_FIELDS and not key.startswith("_")
        }
        if extra:
            payload["extra"] = extra

        return json.dumps(payload, ensure_ascii=False, default=str)


# ============================================================================
# QUEUE HANDLER & LISTENER
# ============================================================================


class StatboardQueueHandler(QueueHandler):
    """Non-blocking enqueue; a full queue drops the record and counts it."""

    def __init__(self, log_queue: "queue.Queue[logging.LogRecord]", metrics: LoggingMetrics) -> None:
        super().__init__(log_queue)
        self.metrics = metrics

    def enqueue(self, record: logging.LogRecord) -> None:  # type: ignore[override]
        self.metrics.records_enqueued += 1
        try:
            self.queue.put_nowait(record)
        except queue.Full:
            self.metrics.records_dropped += 1
            # First drop of a burst only; the count is in get_logging_health()
            if self.metrics.records_dropped == 1 or self.metrics.records_dropped % 1000 == 0:
                sys.stderr.write(
                    f"statboard: log queue full, {self.metrics.records_dropped} record(s) dropped\n"
                )


class StatboardQueueListener(QueueListener):
    """Listener thread that counts handler failures instead of dying on them."""

    def __init__(
        self,
        log_queue: "queue.Queue[logging.LogRecord]",
        *handlers: logging.Handler,
        metrics: LoggingMetrics,
    ) -> None:
        super().__init__(log_queue, *handlers, respect_handler_level=True)
        self.metrics = metrics

    def handle(self, record: logging.LogRecord) -> None:  # type: ignore[override]
        try:
            super().handle(record)
        except Exception as exc:
            self.metrics.listener_errors += 1
            sys.stderr.write(f"statboard: log handler failed: {type(exc).__name__}: {exc}\n")


# ============================================================================
# SETUP / TEARDOWN
# ============================================================================


@dataclass
class _LoggingRuntime:
    metrics: LoggingMetrics = field(default_factory=LoggingMetrics)
    log_queue: Optional["queue.Queue[logging.LogRecord]"] = None
    listener: Optional[StatboardQueueListener] = None
    handler: Optional[StatboardQueueHandler] = None

    @property
    def initialized(self) -> bool:
        return self.handler is not None


_runtime = _LoggingRuntime()


def _build_handlers(settings: LoggerSettings) -> List[logging.Handler]:
    console = logging.StreamHandler(sys.stdout)
    console.setLevel(settings.level)
    if settings.json_output:
        console.setFormatter(JSONFormatter())
    else:
        console.setFormatter(ConsoleFormatter(settings, colors=settings.colors))
    handlers: List[logging.Handler] = [console]

    if settings.to_file:
        settings.logs_dir.mkdir(parents=True, exist_ok=True)
        daily = TimedRotatingFileHandler(
            filename=str(settings.logs_dir / settings.daily_basename),
            when="midnight",
            backupCount=settings.daily_backup_count,
            encoding="utf-8",
            utc=True,
        )
        daily.setLevel(settings.level)
        daily.setFormatter(JSONFormatter())
        handlers.append(daily)

    return handlers


def setup_logging(settings: Optional[LoggerSettings] = None) -> None:
    """
    Install the queue handler on the root logger and start the listener.

    Idempotent: a second call while logging is up does nothing. Metrics
    start from zero on each fresh setup.
    """
    if _runtime.initialized:
        return

    settings = settings or LoggerSettings.from_config()
    metrics = LoggingMetrics()
    log_queue: "queue.Queue[logging.LogRecord]" = queue.Queue(settings.queue_max_size)

    listener = StatboardQueueListener(log_queue, *_build_handlers(settings), metrics=metrics)
    listener.start()

    handler = StatboardQueueHandler(log_queue, metrics)
    handler.setLevel(settings.level)
    # Context must be read on the emitting task, before the record crosses threads
    handler.addFilter(ContextFilter())

    root = logging.getLogger()
    root.setLevel(settings.level)
    root.addHandler(handler)
    logging.getLogger("asyncio").setLevel(logging.WARNING)
    logging.getLogger("redis").setLevel(logging.WARNING)

    _runtime.metrics = metrics
    _runtime.log_queue = log_queue
    _runtime.listener = listener
    _runtime.handler = handler

    logging.getLogger(__name__).info(
        "Logging initialized",
        extra={
            "environment": settings.environment,
            "log_level": logging.getLevelName(settings.level),
            "json": settings.json_output,
            "file": settings.to_file,
            "queue_max_size": settings.queue_max_size,
        },
    )


def shutdown_logging() -> None:
    """Flush the queue, stop the listener and detach the root handler."""
    if not _runtime.initialized:
        return

    logging.getLogger(__name__).info("Shutting down logging subsystem")

    handler = _runtime.handler
    listener = _runtime.listener
    _runtime.handler = None
    _runtime.listener = None

    logging.getLogger().removeHandler(handler)
    if listener is not None:
        listener.stop()
    handler.close()

    _runtime.log_queue = None


def get_logging_health() -> LoggingHealth:
    log_queue = _runtime.log_queue
    return LoggingHealth(
        initialized=_runtime.initialized,
        queue_size=log_queue.qsize() if log_queue is not None else 0,
        queue_max_size=log_queue.maxsize if log_queue is not None else 0,
        records_enqueued=_runtime.metrics.records_enqueued,
        records_dropped=_runtime.metrics.records_dropped,
        listener_errors=_runtime.metrics.listener_errors,
    )


# ============================================================================
# PUBLIC API
# ============================================================================


def get_logger(name: str) -> Logger:
    return logging.getLogger(name)


def get_log_context() -> Dict[str, Any]:
    """Return a copy of the context bound to the current task."""
    return dict(_log_context.get())


class LogContext:
    """
    Bind leaderboard context for the duration of a block.

    Works as a sync and an async context manager. Without a correlation or
    request id a short random one is generated. Nested contexts replace the
    outer one and restore it on exit.

    Example:
        >>> async with LogContext(entity_type="Player", field="wins", operation="get_leaderboard"):
        ...     logger.info("Leaderboard query")
    """

    def __init__(
        self,
        entity_type: Optional[str] = None,
        field: Optional[str] = None,
        mode: Optional[str] = None,
        component: Optional[str] = None,
        operation: Optional[str] = None,
        correlation_id: Optional[str] = None,
        request_id: Optional[str] = None,
        **extra: Any,
    ) -> None:
        correlation_id = correlation_id or request_id or uuid.uuid4().hex[:8]
        self.context: Dict[str, Any] = {
            "entity_type": entity_type or _UNSET,
            "field": field or _UNSET,
            "mode": mode or _UNSET,
            "component": component,
            "operation": operation,
            "correlation_id": correlation_id,
            "request_id": request_id or correlation_id,
            **extra,
        }
        self._token: Optional[Token[Dict[str, Any]]] = None

    def __enter__(self) -> "LogContext":
        self._token = _log_context.set(self.context)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._token is not None:
            _log_context.reset(self._token)
            self._token = None

    async def __aenter__(self) -> "LogContext":
        return self.__enter__()

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        self.__exit__(exc_type, exc_val, exc_tb)


setup_logging()
