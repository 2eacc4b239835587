"""Shared fixtures: a scriptable stand-in for the ``cursor-agent`` CLI."""

from __future__ import annotations

import json
import os
import stat
import sys
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

from agent_bridge.config.schema import BridgeSettings
from agent_bridge.invocation.invoker import AgentInvoker
from agent_bridge.observability.logging import shutdown_logging

STREAM_EVENTS: tuple[dict[str, Any], ...] = (
    {"type": "system", "subtype": "init", "model": "gpt-5"},
    {"type": "assistant", "message": {"content": [{"type": "text", "text": "Hello"}]}},
    {"type": "assistant", "message": {"content": [{"type": "text", "text": " world"}]}},
    {
        "type": "tool_call",
        "subtype": "started",
        "tool_call": {"writeToolCall": {"args": {"path": "notes.md"}}},
    },
    {
        "type": "tool_call",
        "subtype": "completed",
        "tool_call": {
            "writeToolCall": {
                "args": {"path": "notes.md"},
                "result": {"success": {"linesCreated": 3, "fileSize": 42}},
            }
        },
    },
    {"type": "result", "subtype": "success", "duration_ms": 1234},
)

# The mode is chosen by the last argv token (the prompt).
_FAKE_AGENT_BODY = """
import json
import os
import sys
import time

args = sys.argv[1:]
mode = args[-1] if args else ""
with open("invocations.log", "a", encoding="utf-8") as handle:
    handle.write(json.dumps(args) + "\\n")

if mode == "echo-args":
    print(json.dumps(args))
elif mode == "env":
    print(json.dumps(dict(os.environ)))
elif mode == "fail":
    sys.stderr.write("boom\\n")
    sys.exit(3)
elif mode == "fail-quiet":
    sys.exit(5)
elif mode == "sleep":
    time.sleep(30)
elif mode == "idle":
    sys.stdout.write("partial output\\n")
    sys.stdout.flush()
    time.sleep(30)
elif mode == "stream":
    for line in STREAM_LINES:
        sys.stdout.write(line + "\\n")
        sys.stdout.flush()
else:
    print("ok: " + mode)
"""


def _fake_agent_source() -> str:
    lines = [json.dumps(event) for event in STREAM_EVENTS]
    lines.insert(3, "this line is not json")
    return f"#!{sys.executable}\nSTREAM_LINES = {lines!r}\n{_FAKE_AGENT_BODY}"


@pytest.fixture(autouse=True)
def _reset_logging() -> Any:
    yield
    shutdown_logging()


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    root = tmp_path / "workspace"
    root.mkdir()
    return root


@pytest.fixture
def fake_agent(tmp_path: Path) -> Path:
    path = tmp_path / "bin" / "fake-cursor-agent"
    path.parent.mkdir()
    path.write_text(_fake_agent_source(), encoding="utf-8")
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return path


@pytest.fixture
def child_environ() -> dict[str, str]:
    """Minimal ambient environment handed to the invoker under test."""

    return {"PATH": os.environ.get("PATH", os.defpath)}


@pytest.fixture
def make_invoker(
    fake_agent: Path, workspace: Path, child_environ: dict[str, str]
) -> Callable[..., AgentInvoker]:
    def _factory(**overrides: Any) -> AgentInvoker:
        fields: dict[str, Any] = {
            "executable_override": str(fake_agent),
            "activity_log_enabled": False,
        }
        fields.update(overrides)
        return AgentInvoker(
            settings=BridgeSettings(**fields),
            environ=child_environ,
            base_dir=str(workspace),
        )

    return _factory


@pytest.fixture
def invocations(workspace: Path) -> Callable[[], list[list[str]]]:
    """Argv lists the fake agent recorded, one per run, in order."""

    def _read() -> list[list[str]]:
        log = workspace / "invocations.log"
        if not log.exists():
            return []
        return [json.loads(line) for line in log.read_text(encoding="utf-8").splitlines()]

    return _read
