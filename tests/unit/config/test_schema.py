"""
agent-bridge — unit tests for the settings schema

File: tests/unit/config/test_schema.py

Purpose
- Validate structured issue reporting, effective timer defaults, and redaction.
"""

from __future__ import annotations

import os

import pytest

from agent_bridge.config.schema import (
    DEFAULT_SETTINGS,
    BridgeSettings,
    ConfigValidationError,
    assert_valid_settings,
    redact_settings,
    validate_settings,
)


def _issue_map(payload: dict[str, object]) -> dict[str, str]:
    result = validate_settings(payload)
    return {issue.path: issue.message for issue in result.issues}


def test_defaults_use_thirty_second_timeout_and_disabled_idle_kill() -> None:
    assert DEFAULT_SETTINGS.effective_timeout_ms == 30_000
    assert DEFAULT_SETTINGS.effective_idle_exit_ms == 0
    assert DEFAULT_SETTINGS.timeout_ms is None
    assert DEFAULT_SETTINGS.activity_log_enabled is True


@pytest.mark.parametrize("raw", [0, None])
def test_non_positive_timeout_falls_back_to_default(raw: int | None) -> None:
    assert BridgeSettings(timeout_ms=raw).effective_timeout_ms == 30_000


def test_valid_payload_builds_settings() -> None:
    settings = assert_valid_settings(
        {
            "executing_client": "claude",
            "executable_override": "/opt/cursor/bin/cursor-agent",
            "default_model": "  gpt-5  ",
            "force": True,
            "timeout_ms": 1500,
            "idle_exit_ms": 200,
        }
    )

    assert settings.executing_client == "claude"
    assert settings.executable_override == "/opt/cursor/bin/cursor-agent"
    assert settings.default_model == "gpt-5"
    assert settings.force is True
    assert settings.effective_timeout_ms == 1500
    assert settings.effective_idle_exit_ms == 200


def test_unknown_fields_and_bad_types_are_all_reported() -> None:
    issues = _issue_map(
        {
            "verbose": True,
            "debug": "yes",
            "timeout_ms": -1,
            "idle_exit_ms": True,
            "executing_client": "vscode",
        }
    )

    assert issues["verbose"] == "unknown field"
    assert issues["debug"] == "expected boolean, got str"
    assert issues["timeout_ms"] == "must be >= 0"
    assert issues["idle_exit_ms"] == "expected integer, got bool"
    assert "expected one of: claude, cursor" in issues["executing_client"]


@pytest.mark.parametrize(
    "override",
    [
        "../bin/cursor-agent",
        "bin/cursor-agent",
        "/opt/../etc/cursor-agent",
        "tools\\..\\cursor-agent",
    ],
)
def test_executable_override_rejects_traversal(override: str) -> None:
    assert _issue_map({"executable_override": override}) == {
        "executable_override": "contains invalid path traversal"
    }


def test_executable_override_accepts_bare_command_name() -> None:
    settings = assert_valid_settings({"executable_override": "cursor-agent-nightly"})
    assert settings.executable_override == "cursor-agent-nightly"


def test_blank_strings_are_rejected() -> None:
    assert _issue_map({"default_model": "   "}) == {"default_model": "must not be empty"}


def test_assert_valid_settings_raises_with_every_issue() -> None:
    with pytest.raises(ConfigValidationError) as excinfo:
        assert_valid_settings({"force": 1, "timeout_ms": "10"})

    paths = [issue.path for issue in excinfo.value.issues]
    assert paths == ["force", "timeout_ms"]
    assert "invalid configuration" in str(excinfo.value)


def test_redact_settings_hides_home_directory() -> None:
    home = os.path.expanduser("~")
    settings = BridgeSettings(activity_log_dir=os.path.join(home, "agent-logs"))

    redacted = redact_settings(settings)

    assert redacted["activity_log_dir"] == "~" + os.sep + "agent-logs"
    assert list(redacted) == sorted(redacted)
