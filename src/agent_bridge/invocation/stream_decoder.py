"""Incremental decoder for the ``stream-json`` protocol.

``cursor-agent --output-format stream-json --stream-partial-output`` writes one
JSON object per line. Chunks arrive at arbitrary byte boundaries, so the
decoder keeps an incremental UTF-8 decoder plus a carry-over line buffer.
Malformed lines are dropped; partial or interleaved output is expected.
"""

from __future__ import annotations

import codecs
import json
from collections.abc import Mapping
from typing import Any

from agent_bridge.invocation.models import ProgressConsumer, ProgressEvent, ProgressKind
from agent_bridge.observability.logging import get_logger

logger = get_logger(__name__)


class StreamEventDecoder:
    """Turns raw stdout chunks into :class:`ProgressEvent` notifications.

    Consumer exceptions are logged and swallowed; a broken progress consumer
    must never change the invocation outcome.
    """

    def __init__(self, consumer: ProgressConsumer) -> None:
        self._consumer = consumer
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._partial = ""
        self._chars = 0
        self._tool_count = 0
        self._flushed = False

    @property
    def characters_seen(self) -> int:
        return self._chars

    @property
    def tool_count(self) -> int:
        return self._tool_count

    def feed(self, chunk: bytes) -> None:
        if self._flushed:
            return
        data = self._partial + self._decoder.decode(chunk)
        lines = data.split("\n")
        self._partial = lines.pop()
        for line in lines:
            self._handle_line(line)

    def flush(self) -> None:
        """Decode any buffered partial line once; later calls are no-ops."""
        if self._flushed:
            return
        self._flushed = True
        leftover = self._partial + self._decoder.decode(b"", final=True)
        self._partial = ""
        if leftover.strip():
            self._handle_line(leftover)

    def _handle_line(self, line: str) -> None:
        text = line.strip()
        if not text:
            return
        try:
            event = json.loads(text)
        except (ValueError, RecursionError):
            logger.debug("stream_line_unparseable", preview=text[:100])
            return
        if isinstance(event, Mapping):
            self._dispatch(event)

    def _dispatch(self, event: Mapping[str, Any]) -> None:
        event_type = event.get("type")
        subtype = event.get("subtype")

        if event_type == "system":
            if subtype == "init":
                model = event.get("model") or "unknown"
                self._emit(
                    ProgressKind.INIT, 0, f"Initializing cursor-agent (model: {model})..."
                )
        elif event_type == "assistant":
            delta = _assistant_text(event)
            if delta:
                self._chars += len(delta)
                self._emit(ProgressKind.TEXT_DELTA, self._chars, delta)
        elif event_type == "tool_call":
            tool_call = event.get("tool_call")
            if not isinstance(tool_call, Mapping):
                tool_call = {}
            if subtype == "started":
                self._tool_count += 1
                self._emit(ProgressKind.TOOL_STARTED, self._tool_count, self._started(tool_call))
            elif subtype == "completed":
                self._emit(
                    ProgressKind.TOOL_COMPLETED, self._tool_count, self._completed(tool_call)
                )
        elif event_type == "result":
            duration = event.get("duration_ms") or 0
            self._emit(ProgressKind.FINAL, 100, f"Completed in {duration}ms", total=100)

    def _started(self, tool_call: Mapping[str, Any]) -> str:
        write = _section(tool_call, "writeToolCall")
        if write is not None:
            return f"Writing file: {_path(write)}"
        read = _section(tool_call, "readToolCall")
        if read is not None:
            return f"Reading file: {_path(read)}"
        return f"Executing tool #{self._tool_count}..."

    def _completed(self, tool_call: Mapping[str, Any]) -> str:
        write_ok = _success(_section(tool_call, "writeToolCall"))
        if write_ok is not None:
            lines = write_ok.get("linesCreated") or 0
            size = write_ok.get("fileSize") or 0
            return f"✅ Created {lines} lines ({size} bytes)"
        read_ok = _success(_section(tool_call, "readToolCall"))
        if read_ok is not None:
            return f"✅ Read {read_ok.get('totalLines') or 0} lines"
        return f"✅ Tool #{self._tool_count} completed"

    def _emit(self, kind: ProgressKind, progress: int, message: str, *, total: int | None = None) -> None:
        event = ProgressEvent(kind=kind, progress=progress, message=message, total=total)
        try:
            self._consumer(event)
        except Exception as exc:  # noqa: BLE001
            logger.debug("progress_consumer_failed", kind=kind.value, error=repr(exc))


def _assistant_text(event: Mapping[str, Any]) -> str:
    message = event.get("message")
    if not isinstance(message, Mapping):
        return ""
    content = message.get("content")
    if not isinstance(content, list) or not content:
        return ""
    first = content[0]
    if not isinstance(first, Mapping):
        return ""
    text = first.get("text")
    return text if isinstance(text, str) else ""


def _section(tool_call: Mapping[str, Any], key: str) -> Mapping[str, Any] | None:
    value = tool_call.get(key)
    return value if isinstance(value, Mapping) else None


def _path(section: Mapping[str, Any]) -> str:
    args = section.get("args")
    if isinstance(args, Mapping) and args.get("path"):
        return str(args["path"])
    return "unknown"


def _success(section: Mapping[str, Any] | None) -> Mapping[str, Any] | None:
    if section is None:
        return None
    result = section.get("result")
    if not isinstance(result, Mapping):
        return None
    success = result.get("success")
    return success if isinstance(success, Mapping) else None


__all__ = ["StreamEventDecoder"]
