"""Unit tests for the CLI output renderer."""

from __future__ import annotations

import io

from agent_bridge.invocation.models import (
    InvocationResult,
    ProgressEvent,
    ProgressKind,
    TextContent,
)
from agent_bridge.ui.render import CLIRenderer


def _renderer() -> tuple[CLIRenderer, io.StringIO, io.StringIO]:
    out, err = io.StringIO(), io.StringIO()
    return CLIRenderer(no_color=True, stdout=out, stderr=err), out, err


def test_deltas_stream_inline_and_result_goes_to_stdout() -> None:
    renderer, out, err = _renderer()

    renderer.progress(ProgressEvent(ProgressKind.TEXT_DELTA, 5, "Hello"))
    renderer.progress(ProgressEvent(ProgressKind.TEXT_DELTA, 11, " world"))
    renderer.progress(ProgressEvent(ProgressKind.FINAL, 100, "Completed in 7ms", total=100))
    renderer.result(InvocationResult(content=(TextContent("answer"),), is_error=False))

    assert err.getvalue() == "Hello world\n[100/100] Completed in 7ms\n"
    assert out.getvalue() == "answer\n"


def test_result_closes_an_open_delta_line() -> None:
    renderer, out, err = _renderer()

    renderer.progress(ProgressEvent(ProgressKind.TEXT_DELTA, 3, "abc"))
    renderer.result(InvocationResult(content=(TextContent("one"), TextContent("two")), is_error=True))

    assert err.getvalue() == "abc\n"
    assert out.getvalue() == "one\ntwo\n"


def test_json_is_compact_and_sorted() -> None:
    renderer, out, _ = _renderer()
    renderer.json({"b": 1, "a": "é"})
    assert out.getvalue() == '{"a":"é","b":1}\n'
