"""Per-invocation activity log.

A plain-text side file that records what a single invocation did: the launch,
each progress message, and the terminal outcome. Each record is one line of
the form ``[2026-01-31T12:00:00.000Z] message``.

Acquisition and writes are best-effort. When the file cannot be created the
invocation simply runs without one; a write failure after acquisition stops
further writes but keeps the path, since the file already exists.
"""

from __future__ import annotations

import os
import tempfile
from datetime import UTC, datetime
from types import TracebackType
from typing import TextIO

from agent_bridge.constants import ACTIVITY_LOG_PREFIX
from agent_bridge.observability.logging import get_logger

logger = get_logger(__name__)


class ActivityLog:
    def __init__(self, path: str, handle: TextIO) -> None:
        self.path = path
        self._handle: TextIO | None = handle

    @property
    def is_open(self) -> bool:
        return self._handle is not None

    def write(self, message: str) -> None:
        handle = self._handle
        if handle is None:
            return
        line = f"[{_timestamp()}] {message.rstrip()}\n"
        try:
            handle.write(line)
            handle.flush()
        except (OSError, ValueError) as exc:
            logger.debug("activity_log_write_failed", path=self.path, error=str(exc))
            self._release()

    def close(self) -> None:
        self._release()

    def _release(self) -> None:
        handle, self._handle = self._handle, None
        if handle is None:
            return
        try:
            handle.close()
        except OSError as exc:
            logger.debug("activity_log_close_failed", path=self.path, error=str(exc))

    def __enter__(self) -> ActivityLog:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()


def open_activity_log(directory: str | None = None) -> ActivityLog | None:
    """Create a fresh activity log file; ``None`` when that is not possible."""

    target = directory or tempfile.gettempdir()
    stamp = datetime.now(tz=UTC).strftime("%Y%m%dT%H%M%S")
    try:
        fd, path = tempfile.mkstemp(
            prefix=f"{ACTIVITY_LOG_PREFIX}{stamp}-", suffix=".log", dir=target, text=True
        )
    except OSError as exc:
        logger.debug("activity_log_unavailable", directory=target, error=str(exc))
        return None
    try:
        handle = os.fdopen(fd, "a", encoding="utf-8")
    except OSError as exc:
        os.close(fd)
        logger.debug("activity_log_unavailable", directory=target, error=str(exc))
        return None
    return ActivityLog(path, handle)


def _timestamp() -> str:
    now = datetime.now(tz=UTC)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


__all__ = [
    "ActivityLog",
    "open_activity_log",
]
