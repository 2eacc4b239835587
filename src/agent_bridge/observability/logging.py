"""Process logging for agent-bridge.

Module code logs through structlog bound loggers. Each call is rendered into a
stdlib ``LogRecord`` (event keys travel as ``extra``), handed to a bounded
queue, and written by a listener thread as one JSON object per line. Stdout is
reserved for results, so the default sink is stderr; a file sink is optional.

Correlation fields (``invocation_id`` and ``tool``) are structlog context
variables, merged into the event at call time so they survive the thread hop.
"""

from __future__ import annotations

import atexit
import logging
import logging.handlers
import queue
import re
import sys
import threading
import time
from collections.abc import Iterator, Mapping, MutableMapping
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path, PurePath
from typing import IO, Any, Final, cast

import structlog

ROOT_LOGGER_NAME: Final[str] = "agent_bridge"
REDACTED: Final[str] = "***REDACTED***"

_CORRELATION_KEYS: Final[frozenset[str]] = frozenset({"invocation_id", "tool"})

_SENSITIVE_KEY_TERMS: Final[tuple[str, ...]] = (
    "secret",
    "token",
    "password",
    "passphrase",
    "api_key",
    "apikey",
    "authorization",
    "credential",
    "cookie",
    "private_key",
)

# (pattern, replacement) pairs applied in order to every string value.
_TEXT_SCRUBBERS: Final[tuple[tuple[re.Pattern[str], str], ...]] = (
    (
        re.compile(
            r"(?i)\b(api[_-]?key|token|password|secret|client_secret|authorization)\b\s*([:=])\s*([^\s,;]+)"
        ),
        rf"\1\2{REDACTED}",
    ),
    (re.compile(r"(?i)\bbearer\s+[A-Za-z0-9._~+/-]+=*"), f"Bearer {REDACTED}"),
    (re.compile(r"\b(?:sk|key)-[A-Za-z0-9_-]{12,}\b"), REDACTED),
)

# Attributes every LogRecord carries; anything else arrived through ``extra``.
_RECORD_ATTRIBUTES: Final[frozenset[str]] = frozenset(
    logging.LogRecord("", logging.INFO, "", 0, "", (), None).__dict__
) | {"message", "asctime"}

_state_lock = threading.Lock()
_active: StructuredLoggingHandle | None = None
_atexit_hooked = False


@dataclass(frozen=True, slots=True)
class LoggingConfig:
    """Sinks and threshold for one structured logging setup."""

    level: int | str = "INFO"
    logger_name: str = ROOT_LOGGER_NAME
    queue_size: int = 4096
    log_file: Path | str | None = None
    stream: IO[str] | None = None


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Return a structlog logger bound to the stdlib logger ``name``."""

    return cast(
        "structlog.stdlib.BoundLogger",
        structlog.wrap_logger(
            logging.getLogger(name),
            processors=[
                structlog.stdlib.filter_by_level,
                structlog.contextvars.merge_contextvars,
                structlog.stdlib.render_to_log_kwargs,
            ],
            wrapper_class=structlog.stdlib.BoundLogger,
        ),
    )


@contextmanager
def correlation_scope(**fields: str) -> Iterator[None]:
    """Bind ``invocation_id`` and/or ``tool`` to every record logged inside the block."""

    unknown = sorted(set(fields) - _CORRELATION_KEYS)
    if unknown:
        raise ValueError(f"unsupported correlation key {unknown[0]!r}")
    with structlog.contextvars.bound_contextvars(**fields):
        yield


def get_correlation_context() -> dict[str, str]:
    bound = structlog.contextvars.get_contextvars()
    return {key: value for key, value in bound.items() if key in _CORRELATION_KEYS}


def redact_text(text: str) -> str:
    """Mask inline credentials (``token=...``, bearer tokens, provider keys)."""

    for pattern, replacement in _TEXT_SCRUBBERS:
        text = pattern.sub(replacement, text)
    return text


def _scrub(value: Any, key: str | None = None) -> Any:
    if key is not None and any(term in key.lower() for term in _SENSITIVE_KEY_TERMS):
        return REDACTED
    if isinstance(value, str):
        return redact_text(value)
    if isinstance(value, PurePath):
        return redact_text(str(value))
    if isinstance(value, Mapping):
        return {str(k): _scrub(v, str(k)) for k, v in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_scrub(item) for item in value]
    return value


def _merge_record_extras(
    _logger: Any, _method: str, event_dict: MutableMapping[str, Any]
) -> MutableMapping[str, Any]:
    record = event_dict.get("_record")
    if isinstance(record, logging.LogRecord):
        for key, value in record.__dict__.items():
            if key not in _RECORD_ATTRIBUTES and not key.startswith("_"):
                event_dict.setdefault(key, value)
    return event_dict


def _redact_event(
    _logger: Any, _method: str, event_dict: MutableMapping[str, Any]
) -> MutableMapping[str, Any]:
    return {key: _scrub(value, None if key == "event" else key) for key, value in event_dict.items()}


def _json_formatter() -> logging.Formatter:
    return structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=[
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            _merge_record_extras,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
        ],
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            _redact_event,
            structlog.processors.JSONRenderer(
                sort_keys=True, separators=(",", ":"), ensure_ascii=False
            ),
        ],
    )


class _DroppingQueueHandler(logging.handlers.QueueHandler):
    """Never blocks the caller; records that do not fit are counted and dropped."""

    def __init__(self, log_queue: queue.Queue[Any]) -> None:
        super().__init__(log_queue)
        self.dropped = 0
        self._drop_lock = threading.Lock()

    def enqueue(self, record: logging.LogRecord) -> None:
        try:
            self.queue.put_nowait(record)
        except queue.Full:
            with self._drop_lock:
                self.dropped += 1


class StructuredLoggingHandle:
    """An installed logging setup: the queue front end plus its sink thread."""

    def __init__(
        self,
        logger: logging.Logger,
        front: _DroppingQueueHandler,
        listener: logging.handlers.QueueListener,
        sinks: tuple[logging.Handler, ...],
        log_path: Path | None,
    ) -> None:
        self.logger = logger
        self.log_path = log_path
        self._front = front
        self._listener = listener
        self._sinks = sinks
        self._close_lock = threading.Lock()
        self._closed = False

    @property
    def dropped_records(self) -> int:
        return self._front.dropped

    @property
    def is_shutdown(self) -> bool:
        return self._closed

    def shutdown(self, *, timeout_seconds: float = 2.0) -> None:
        with self._close_lock:
            if self._closed:
                return
            self._closed = True
            # The listener needs one free slot for its stop sentinel.
            deadline = time.monotonic() + max(timeout_seconds, 0.0)
            while self._front.queue.full() and time.monotonic() < deadline:
                time.sleep(0.01)
            self._listener.stop()
            self.logger.removeHandler(self._front)
            self._front.close()
            for sink in self._sinks:
                sink.flush()
                if isinstance(sink, logging.FileHandler):
                    sink.close()


def setup_structured_logging(config: LoggingConfig) -> StructuredLoggingHandle:
    """Install queue-backed JSON logging on ``config.logger_name``.

    Any previously installed setup is shut down first.
    """

    global _active, _atexit_hooked

    if config.queue_size <= 0:
        raise ValueError("queue_size must be > 0")
    level = _coerce_level(config.level)
    shutdown_logging()

    formatter = _json_formatter()
    sinks: list[logging.Handler] = [logging.StreamHandler(config.stream or sys.stderr)]
    log_path = Path(config.log_file) if config.log_file is not None else None
    if log_path is not None:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        sinks.append(logging.FileHandler(log_path, encoding="utf-8"))
    for sink in sinks:
        sink.setLevel(level)
        sink.setFormatter(formatter)

    logger = logging.getLogger(config.logger_name)
    for stale in list(logger.handlers):
        logger.removeHandler(stale)
        stale.close()
    logger.setLevel(level)
    logger.propagate = False

    front = _DroppingQueueHandler(queue.Queue(maxsize=config.queue_size))
    front.setLevel(level)
    listener = logging.handlers.QueueListener(front.queue, *sinks, respect_handler_level=True)
    listener.start()
    logger.addHandler(front)

    handle = StructuredLoggingHandle(logger, front, listener, tuple(sinks), log_path)
    with _state_lock:
        _active = handle
        if not _atexit_hooked:
            atexit.register(shutdown_logging)
            _atexit_hooked = True
    return handle


def setup_logging(*, debug: bool = False, log_file: Path | str | None = None) -> StructuredLoggingHandle:
    """CLI preset: ``debug`` (``DEBUG_CURSOR_MCP``) lowers the threshold to DEBUG."""

    return setup_structured_logging(
        LoggingConfig(level="DEBUG" if debug else "WARNING", log_file=log_file)
    )


def shutdown_logging(handle: StructuredLoggingHandle | None = None, *, timeout_seconds: float = 2.0) -> None:
    """Stop ``handle`` (default: the active setup) after its queue drains."""

    global _active

    with _state_lock:
        target = handle if handle is not None else _active
        if target is _active:
            _active = None
    if target is not None:
        target.shutdown(timeout_seconds=timeout_seconds)


def _coerce_level(value: int | str) -> int:
    if isinstance(value, int):
        return value
    resolved = logging.getLevelName(value.strip().upper())
    if not isinstance(resolved, int):
        raise ValueError(f"unsupported logging level {value!r}")
    return resolved


__all__ = [
    "LoggingConfig",
    "REDACTED",
    "ROOT_LOGGER_NAME",
    "StructuredLoggingHandle",
    "correlation_scope",
    "get_correlation_context",
    "get_logger",
    "redact_text",
    "setup_logging",
    "setup_structured_logging",
    "shutdown_logging",
]
