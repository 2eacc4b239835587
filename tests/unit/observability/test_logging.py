"""
agent-bridge — unit tests for observability logging

File: tests/unit/observability/test_logging.py

Purpose
- Validate JSON-lines output, redaction, correlation fields, and the
  structlog front end.
"""

from __future__ import annotations

import io
import json
import logging
import logging.handlers
from pathlib import Path
from uuid import uuid4

import pytest

from agent_bridge.observability.logging import (
    LoggingConfig,
    correlation_scope,
    get_correlation_context,
    get_logger,
    redact_text,
    setup_logging,
    setup_structured_logging,
    shutdown_logging,
)


def _logger_name() -> str:
    return f"agent_bridge.tests.logging.{uuid4().hex}"


def _read_json_lines(text: str) -> list[dict[str, object]]:
    return [json.loads(line) for line in text.splitlines() if line.strip()]


def test_structlog_events_render_as_json_with_fields_and_correlation() -> None:
    stream = io.StringIO()
    name = _logger_name()
    handle = setup_structured_logging(LoggingConfig(level="DEBUG", logger_name=name, stream=stream))

    with correlation_scope(invocation_id="abc123", tool="cursor_agent_chat"):
        get_logger(f"{name}.child").debug("spawn", executable="cursor-agent", argv=["--print"])

    shutdown_logging(handle)

    [record] = _read_json_lines(stream.getvalue())
    assert record["event"] == "spawn"
    assert record["level"] == "debug"
    assert record["logger"].endswith(".child")
    assert record["invocation_id"] == "abc123"
    assert record["tool"] == "cursor_agent_chat"
    assert record["executable"] == "cursor-agent"
    assert record["argv"] == ["--print"]
    assert "timestamp" in record


def test_secrets_are_redacted_in_messages_and_fields(tmp_path: Path) -> None:
    name = _logger_name()
    log_file = tmp_path / "bridge.jsonl"
    handle = setup_structured_logging(
        LoggingConfig(logger_name=name, stream=io.StringIO(), log_file=log_file)
    )

    get_logger(name).warning(
        "failed with token=tok-FAKE and sk-FAKE123456789012345",
        api_key="sk-SHOULD-NOT-APPEAR",
    )
    shutdown_logging(handle)

    content = log_file.read_text(encoding="utf-8")
    assert "tok-FAKE" not in content
    assert "sk-FAKE" not in content
    assert "SHOULD-NOT-APPEAR" not in content
    assert "***REDACTED***" in content


def test_records_below_level_are_filtered() -> None:
    stream = io.StringIO()
    name = _logger_name()
    handle = setup_structured_logging(LoggingConfig(level="WARNING", logger_name=name, stream=stream))

    get_logger(name).debug("quiet")
    get_logger(name).warning("loud")
    shutdown_logging(handle)

    assert [record["event"] for record in _read_json_lines(stream.getvalue())] == ["loud"]


def test_setup_logging_debug_flag_sets_level() -> None:
    handle = setup_logging(debug=True)
    try:
        assert handle.logger.level == logging.DEBUG
        assert any(
            isinstance(item, logging.handlers.QueueHandler) for item in handle.logger.handlers
        )
    finally:
        shutdown_logging(handle)

    quiet = setup_logging()
    try:
        assert quiet.logger.level == logging.WARNING
    finally:
        shutdown_logging(quiet)


def test_correlation_scope_restores_previous_context() -> None:
    with correlation_scope(tool="outer"):
        with correlation_scope(invocation_id="inner"):
            assert get_correlation_context() == {"tool": "outer", "invocation_id": "inner"}
        assert get_correlation_context() == {"tool": "outer"}
    assert get_correlation_context() == {}


def test_correlation_scope_rejects_unknown_keys() -> None:
    with pytest.raises(ValueError, match="unsupported correlation key"):
        with correlation_scope(run_id="x"):
            pass


def test_redact_text_masks_bearer_tokens() -> None:
    assert redact_text("sent Bearer abc.def upstream") == "sent Bearer ***REDACTED*** upstream"


def test_plain_stdlib_records_keep_extra_fields_and_render_paths(tmp_path: Path) -> None:
    stream = io.StringIO()
    name = _logger_name()
    handle = setup_structured_logging(LoggingConfig(level="INFO", logger_name=name, stream=stream))

    logging.getLogger(name).info("wrote %s", "log", extra={"path": tmp_path / "a.log"})
    shutdown_logging(handle)

    [record] = _read_json_lines(stream.getvalue())
    assert record["event"] == "wrote log"
    assert record["level"] == "info"
    assert record["path"] == str(tmp_path / "a.log")


def test_shutdown_is_idempotent() -> None:
    handle = setup_structured_logging(LoggingConfig(logger_name=_logger_name(), stream=io.StringIO()))
    shutdown_logging(handle)
    shutdown_logging(handle)
    assert handle.is_shutdown
    assert handle.dropped_records == 0
