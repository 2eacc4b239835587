"""Unit tests for the incremental stream-json decoder."""

from __future__ import annotations

import json
from typing import Any

from agent_bridge.invocation.models import ProgressEvent, ProgressKind
from agent_bridge.invocation.stream_decoder import StreamEventDecoder


def _line(event: dict[str, Any]) -> bytes:
    return (json.dumps(event, ensure_ascii=False) + "\n").encode("utf-8")


def _assistant(text: str) -> dict[str, Any]:
    return {"type": "assistant", "message": {"content": [{"type": "text", "text": text}]}}


def _collect() -> tuple[list[ProgressEvent], StreamEventDecoder]:
    events: list[ProgressEvent] = []
    return events, StreamEventDecoder(events.append)


def test_text_deltas_are_never_concatenated() -> None:
    events, decoder = _collect()

    decoder.feed(_line(_assistant("Hello")))
    decoder.feed(_line(_assistant(" world")))

    assert [(event.kind, event.progress, event.message) for event in events] == [
        (ProgressKind.TEXT_DELTA, 5, "Hello"),
        (ProgressKind.TEXT_DELTA, 11, " world"),
    ]
    assert decoder.characters_seen == 11


def test_init_event_reports_model() -> None:
    events, decoder = _collect()
    decoder.feed(_line({"type": "system", "subtype": "init", "model": "gpt-5"}))

    assert events == [
        ProgressEvent(ProgressKind.INIT, 0, "Initializing cursor-agent (model: gpt-5)...")
    ]


def test_init_without_model_uses_unknown() -> None:
    events, decoder = _collect()
    decoder.feed(_line({"type": "system", "subtype": "init"}))
    assert events[0].message == "Initializing cursor-agent (model: unknown)..."


def test_lines_split_across_chunks_are_reassembled() -> None:
    events, decoder = _collect()
    payload = _line(_assistant("chunked"))

    decoder.feed(payload[:7])
    assert events == []
    decoder.feed(payload[7:])

    assert [event.message for event in events] == ["chunked"]


def test_multibyte_characters_split_across_chunks() -> None:
    events, decoder = _collect()
    payload = _line(_assistant("héllo ✅"))
    split_at = payload.index("✅".encode()) + 1

    decoder.feed(payload[:split_at])
    decoder.feed(payload[split_at:])

    assert events[0].message == "héllo ✅"


def test_malformed_and_blank_lines_are_dropped() -> None:
    events, decoder = _collect()

    decoder.feed(b"not json\n\n   \n[1, 2]\n")
    decoder.feed(_line({"type": "result", "duration_ms": 10}))

    assert [event.kind for event in events] == [ProgressKind.FINAL]


def test_deeply_nested_line_is_dropped_and_decoding_continues() -> None:
    events, decoder = _collect()

    decoder.feed(b"[" * 100_000 + b"\n")
    decoder.feed(_line(_assistant("still here")))

    assert [event.message for event in events] == ["still here"]


def test_tool_lifecycle_messages_share_the_counter() -> None:
    events, decoder = _collect()
    write_call = {"writeToolCall": {"args": {"path": "src/app.py"}}}
    read_call = {"readToolCall": {"args": {"path": "README.md"}}}

    decoder.feed(_line({"type": "tool_call", "subtype": "started", "tool_call": write_call}))
    decoder.feed(
        _line(
            {
                "type": "tool_call",
                "subtype": "completed",
                "tool_call": {
                    "writeToolCall": {"result": {"success": {"linesCreated": 12, "fileSize": 340}}}
                },
            }
        )
    )
    decoder.feed(_line({"type": "tool_call", "subtype": "started", "tool_call": read_call}))
    decoder.feed(
        _line(
            {
                "type": "tool_call",
                "subtype": "completed",
                "tool_call": {"readToolCall": {"result": {"success": {"totalLines": 80}}}},
            }
        )
    )
    decoder.feed(_line({"type": "tool_call", "subtype": "started", "tool_call": {"grepToolCall": {}}}))
    decoder.feed(
        _line({"type": "tool_call", "subtype": "completed", "tool_call": {"grepToolCall": {}}})
    )

    assert [(event.kind, event.progress, event.message) for event in events] == [
        (ProgressKind.TOOL_STARTED, 1, "Writing file: src/app.py"),
        (ProgressKind.TOOL_COMPLETED, 1, "✅ Created 12 lines (340 bytes)"),
        (ProgressKind.TOOL_STARTED, 2, "Reading file: README.md"),
        (ProgressKind.TOOL_COMPLETED, 2, "✅ Read 80 lines"),
        (ProgressKind.TOOL_STARTED, 3, "Executing tool #3..."),
        (ProgressKind.TOOL_COMPLETED, 3, "✅ Tool #3 completed"),
    ]
    assert decoder.tool_count == 3


def test_failed_write_uses_generic_completion() -> None:
    events, decoder = _collect()
    decoder.feed(_line({"type": "tool_call", "subtype": "started", "tool_call": {}}))
    decoder.feed(
        _line(
            {
                "type": "tool_call",
                "subtype": "completed",
                "tool_call": {"writeToolCall": {"result": {"error": {"message": "denied"}}}},
            }
        )
    )
    assert events[-1].message == "✅ Tool #1 completed"


def test_result_event_is_final_with_total() -> None:
    events, decoder = _collect()
    decoder.feed(_line({"type": "result", "subtype": "success", "duration_ms": 1234}))

    assert events == [ProgressEvent(ProgressKind.FINAL, 100, "Completed in 1234ms", total=100)]


def test_flush_decodes_trailing_partial_line_once() -> None:
    events, decoder = _collect()
    decoder.feed(json.dumps({"type": "result", "duration_ms": 5}).encode("utf-8"))

    assert events == []
    decoder.flush()
    decoder.flush()
    decoder.feed(_line(_assistant("late")))

    assert [event.message for event in events] == ["Completed in 5ms"]


def test_consumer_exceptions_are_contained() -> None:
    seen: list[str] = []

    def consumer(event: ProgressEvent) -> None:
        seen.append(event.message)
        raise RuntimeError("consumer broke")

    decoder = StreamEventDecoder(consumer)
    decoder.feed(_line(_assistant("one")) + _line(_assistant("two")))

    assert seen == ["one", "two"]
    assert decoder.characters_seen == 6
