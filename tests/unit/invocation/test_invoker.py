"""Unit tests for launch-plan construction and pre-spawn validation."""

from __future__ import annotations

import os
from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest

from agent_bridge.config.loader import SettingsCache
from agent_bridge.config.schema import BridgeSettings
from agent_bridge.errors import InvalidExecutableError, PathEscapeError
from agent_bridge.invocation.invoker import AgentInvoker
from agent_bridge.invocation.models import InvocationRequest, OutputFormat


def _invoker(tmp_path: Path, **settings: object) -> AgentInvoker:
    return AgentInvoker(
        settings=BridgeSettings(**settings),  # type: ignore[arg-type]
        environ={"PATH": "/usr/bin", "AWS_SECRET_ACCESS_KEY": "leak"},
        base_dir=str(tmp_path),
    )


def test_build_plan_resolves_everything_before_spawn(tmp_path: Path) -> None:
    (tmp_path / "sub").mkdir()
    invoker = _invoker(tmp_path, default_model="gpt-5", timeout_ms=1500)

    plan = invoker.build_plan(InvocationRequest(argv=("explain",), cwd="sub"))

    assert plan.executable == "cursor-agent"
    assert plan.cwd == os.path.join(str(tmp_path), "sub")
    assert plan.argv == ("--print", "--output-format", "text", "--model", "gpt-5", "explain")
    assert plan.timeout_ms == 1500
    assert plan.idle_exit_ms == 0
    assert "AWS_SECRET_ACCESS_KEY" not in plan.env
    assert plan.env["CURSOR_AGENT_MODEL"] == "gpt-5"
    assert plan.command[0] == "cursor-agent"


def test_request_coerces_argv_and_output_format() -> None:
    request = InvocationRequest(argv=["a", "b"], output_format="json")  # type: ignore[arg-type]

    assert request.argv == ("a", "b")
    assert request.output_format is OutputFormat.JSON
    assert request.stream_progress is False


def test_request_rejects_unknown_output_format() -> None:
    with pytest.raises(ValueError, match="output_format must be one of: text, json, markdown"):
        InvocationRequest(argv=("x",), output_format="yaml")  # type: ignore[arg-type]


@pytest.mark.asyncio
async def test_invalid_executable_raises_before_spawn(tmp_path: Path) -> None:
    spawn = AsyncMock()
    with patch("asyncio.create_subprocess_exec", spawn), pytest.raises(InvalidExecutableError):
        await _invoker(tmp_path).invoke(InvocationRequest(argv=("hi",), executable="/bin/sh"))
    spawn.assert_not_called()


@pytest.mark.asyncio
async def test_escaping_cwd_raises_before_spawn(tmp_path: Path) -> None:
    spawn = AsyncMock()
    with patch("asyncio.create_subprocess_exec", spawn), pytest.raises(PathEscapeError):
        await _invoker(tmp_path).invoke(InvocationRequest(argv=("hi",), cwd="../.."))
    spawn.assert_not_called()


def test_settings_come_from_cache_when_not_fixed(tmp_path: Path) -> None:
    environ = {"CURSOR_AGENT_MODEL": "first"}
    invoker = AgentInvoker(
        settings_cache=SettingsCache(environ=environ), environ=environ, base_dir=str(tmp_path)
    )

    assert invoker.settings.default_model == "first"
    environ["CURSOR_AGENT_MODEL"] = "second"
    assert invoker.settings.default_model == "second"
