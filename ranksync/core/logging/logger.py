"""
Structured logging for ranksync.

Records are stamped on the emitting task with the ambient sync-job context
(`job`, `operation`, `player_id`, `correlation_id`) and handed to a bounded
queue. A listener thread writes them to stdout and to a daily JSON file, so
a multi-million-row rebuild never waits on log I/O inside the event loop.

    async with LogContext(job="delta_sync"):
        logger.info("Delta pass complete", extra={"appended": 42})

JSON goes to the console in production or when LOG_JSON is set; otherwise
the console gets one readable line per record. The daily file is always JSON.
Settings are read lazily because the config package logs through here.
"""

from __future__ import annotations

import copy
import json
import logging
import queue
import sys
import uuid
from contextvars import ContextVar, Token
from dataclasses import dataclass
from datetime import datetime, timezone
from logging import Logger
from logging.handlers import QueueHandler, QueueListener, TimedRotatingFileHandler
from pathlib import Path
from typing import Any, Dict, List, Optional

CONTEXT_FIELDS = ("job", "operation", "player_id", "correlation_id")
QUEUE_MAX_SIZE = 10_000
DAILY_LOG_NAME = "ranksync_daily.json.log"
TEXT_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | job=%(job)s | %(message)s"
NOISY_LOGGERS = ("asyncio", "apscheduler", "sqlalchemy.engine")

_sync_context: ContextVar[Dict[str, str]] = ContextVar("ranksync_log_context", default={})

# Attributes every LogRecord carries; anything else came from `extra=`
_RECORD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {
    "message",
    "asctime",
}


@dataclass(frozen=True, slots=True)
class LoggingHealth:
    initialized: bool
    queue_size: int
    queue_max_size: int
    records_enqueued: int
    records_dropped: int


@dataclass
class _LoggingState:
    log_queue: Optional["queue.Queue[logging.LogRecord]"] = None
    listener: Optional[QueueListener] = None
    handler: Optional[QueueHandler] = None
    enqueued: int = 0
    dropped: int = 0


_state = _LoggingState()


def _settings() -> Dict[str, Any]:
    from ranksync.core.config.config import Config

    json_flag = Config.LOG_JSON
    return {
        "level": getattr(logging, str(Config.LOG_LEVEL).upper(), logging.INFO),
        "json": Config.is_production() if json_flag is None else bool(json_flag),
        "logs_dir": Path(Config.LOGS_DIR),
    }


# ============================================================================
# Filter & formatter
# ============================================================================


class ContextFilter(logging.Filter):
    """Copy the ambient sync-job context onto each record; `extra=` values win."""

    def filter(self, record: logging.LogRecord) -> bool:  # type: ignore[override]
        context = _sync_context.get()
        for name in CONTEXT_FIELDS:
            if not hasattr(record, name):
                setattr(record, name, context.get(name, "-"))
        return True


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        payload: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "location": f"{record.module}:{record.funcName}:{record.lineno}",
        }

        for name in CONTEXT_FIELDS:
            value = getattr(record, name, "-")
            if value != "-":
                payload[name] = value

        extra = {
            key: value
            for key, value in vars(record).items()
            if key not in _RECORD_ATTRS and key not in CONTEXT_FIELDS and not key.startswith("_")
        }
        if extra:
            payload["extra"] = extra

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        elif record.exc_text:
            payload["exception"] = record.exc_text

        return json.dumps(payload, ensure_ascii=False, default=str)


# ============================================================================
# Queue plumbing
# ============================================================================


class _DroppingQueueHandler(QueueHandler):
    """A full queue drops the record and counts it instead of blocking the loop."""

    def prepare(self, record: logging.LogRecord) -> logging.LogRecord:  # type: ignore[override]
        # Resolve args and the traceback here; the listener thread gets plain text
        prepared = copy.copy(record)
        prepared.msg = prepared.getMessage()
        prepared.args = None
        if prepared.exc_info:
            prepared.exc_text = logging.Formatter().formatException(prepared.exc_info)
            prepared.exc_info = None
        return prepared

    def enqueue(self, record: logging.LogRecord) -> None:  # type: ignore[override]
        try:
            self.queue.put_nowait(record)
        except queue.Full:
            _state.dropped += 1
            return
        _state.enqueued += 1


def _build_handlers(settings: Dict[str, Any]) -> List[logging.Handler]:
    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(JSONFormatter() if settings["json"] else logging.Formatter(TEXT_FORMAT))
    handlers: List[logging.Handler] = [console]

    logs_dir: Path = settings["logs_dir"]
    try:
        logs_dir.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        sys.stderr.write(f"ranksync: {logs_dir} unavailable ({exc}); file logging disabled\n")
        return handlers

    daily = TimedRotatingFileHandler(
        filename=str(logs_dir / DAILY_LOG_NAME),
        when="midnight",
        backupCount=1,
        encoding="utf-8",
        utc=True,
        delay=True,
    )
    daily.setFormatter(JSONFormatter())
    handlers.append(daily)
    return handlers


# ============================================================================
# Lifecycle
# ============================================================================


def setup_logging() -> None:
    """Route the root logger through the bounded queue (idempotent)."""
    if _state.listener is not None:
        return

    settings = _settings()
    log_queue: "queue.Queue[logging.LogRecord]" = queue.Queue(QUEUE_MAX_SIZE)
    listener = QueueListener(log_queue, *_build_handlers(settings), respect_handler_level=True)
    listener.start()

    # Context is read on the emitting task, before the record changes threads
    handler = _DroppingQueueHandler(log_queue)
    handler.addFilter(ContextFilter())

    root = logging.getLogger()
    root.setLevel(settings["level"])
    root.addHandler(handler)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    _state.log_queue, _state.listener, _state.handler = log_queue, listener, handler
    _state.enqueued = _state.dropped = 0

    logging.getLogger(__name__).info(
        "Logging initialized",
        extra={
            "log_level": logging.getLevelName(settings["level"]),
            "json": settings["json"],
            "logs_dir": str(settings["logs_dir"]),
        },
    )


def shutdown_logging() -> None:
    """Flush queued records and close the handlers. Safe to call twice."""
    if _state.listener is None:
        return

    logging.getLogger(__name__).info("Logging shutting down")
    logging.getLogger().removeHandler(_state.handler)
    _state.listener.stop()
    for handler in _state.listener.handlers:
        handler.close()

    _state.log_queue = None
    _state.listener = None
    _state.handler = None


def get_logging_health() -> LoggingHealth:
    log_queue = _state.log_queue
    return LoggingHealth(
        initialized=_state.listener is not None,
        queue_size=log_queue.qsize() if log_queue is not None else 0,
        queue_max_size=log_queue.maxsize if log_queue is not None else 0,
        records_enqueued=_state.enqueued,
        records_dropped=_state.dropped,
    )


def get_logger(name: str) -> Logger:
    return logging.getLogger(name)


class LogContext:
    """
    Bind sync-job context to every record emitted inside the block.

    Nested blocks inherit the outer correlation id, so every line of one
    rebuild, including the loader's per-page logs, can be grouped together.
    """

    def __init__(
        self,
        job: Optional[str] = None,
        operation: Optional[str] = None,
        player_id: Optional[int] = None,
        correlation_id: Optional[str] = None,
    ) -> None:
        outer = _sync_context.get()
        context = dict(outer)
        context["correlation_id"] = (
            correlation_id or outer.get("correlation_id") or uuid.uuid4().hex[:8]
        )
        if job is not None:
            context["job"] = job
        if operation is not None:
            context["operation"] = operation
        if player_id is not None:
            context["player_id"] = str(player_id)

        self.context = context
        self._token: Optional[Token[Dict[str, str]]] = None

    def __enter__(self) -> "LogContext":
        self._token = _sync_context.set(self.context)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._token is not None:
            _sync_context.reset(self._token)
            self._token = None

    async def __aenter__(self) -> "LogContext":
        return self.__enter__()

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        self.__exit__(exc_type, exc_val, exc_tb)


setup_logging()
