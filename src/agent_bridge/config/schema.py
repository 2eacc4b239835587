"""
agent-bridge — configuration schema and validation.

File: src/agent_bridge/config/schema.py

Purpose
- Define the immutable settings snapshot consumed by the invocation engine.
- Validate raw payloads (already coerced from env/TOML) and report structured issues.

Functional requirements
- Validation returns every issue with a deterministic field path.
- The executable override is either a bare command name or a normalized
  absolute path; traversal segments are rejected.
"""

from __future__ import annotations

import os
from collections.abc import Mapping, Sequence
from dataclasses import asdict, dataclass
from typing import Any, Final

from agent_bridge.constants import (
    DEFAULT_IDLE_EXIT_MS,
    DEFAULT_TIMEOUT_MS,
    EXECUTING_CLIENTS,
)

SETTINGS_FIELDS: Final[tuple[str, ...]] = (
    "executing_client",
    "executable_override",
    "debug",
    "echo_prompt",
    "default_model",
    "force",
    "idle_exit_ms",
    "timeout_ms",
    "activity_log_enabled",
    "activity_log_dir",
)

_SENSITIVE_KEY_TOKENS: Final[frozenset[str]] = frozenset(
    {"secret", "token", "password", "passwd", "apikey", "credential", "credentials", "auth"}
)


@dataclass(frozen=True, slots=True)
class BridgeSettings:
    """Validated, immutable configuration snapshot.

    ``idle_exit_ms`` and ``timeout_ms`` stay ``None`` when never configured so
    the environment sanitizer only forwards values that were actually set; use
    the ``effective_*`` properties for runtime decisions.
    """

    executing_client: str | None = None
    executable_override: str | None = None
    debug: bool = False
    echo_prompt: bool = False
    default_model: str | None = None
    force: bool = False
    idle_exit_ms: int | None = None
    timeout_ms: int | None = None
    activity_log_enabled: bool = True
    activity_log_dir: str | None = None

    @property
    def effective_timeout_ms(self) -> int:
        if self.timeout_ms is None or self.timeout_ms <= 0:
            return DEFAULT_TIMEOUT_MS
        return self.timeout_ms

    @property
    def effective_idle_exit_ms(self) -> int:
        if self.idle_exit_ms is None:
            return DEFAULT_IDLE_EXIT_MS
        return self.idle_exit_ms

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


DEFAULT_SETTINGS: Final[BridgeSettings] = BridgeSettings()


@dataclass(frozen=True, slots=True)
class ConfigValidationIssue:
    """One rejected field and the reason it was rejected."""

    path: str
    message: str


@dataclass(frozen=True, slots=True)
class ConfigValidationResult:
    """Validation result with settings when no issues were found."""

    settings: BridgeSettings | None
    issues: tuple[ConfigValidationIssue, ...]

    @property
    def is_valid(self) -> bool:
        return self.settings is not None and not self.issues


class ConfigValidationError(ValueError):
    """Raised when strict settings validation fails."""

    def __init__(self, issues: Sequence[ConfigValidationIssue]) -> None:
        self.issues = tuple(issues)
        if not self.issues:
            rendered = "unknown validation failure"
        else:
            rendered = "\n".join(f"- {item.path}: {item.message}" for item in self.issues)
        super().__init__(f"invalid configuration:\n{rendered}")


class _IssueCollector:
    __slots__ = ("_items",)

    def __init__(self) -> None:
        self._items: list[ConfigValidationIssue] = []

    def add(self, path: str, message: str) -> None:
        self._items.append(ConfigValidationIssue(path=path, message=message))

    def items(self) -> tuple[ConfigValidationIssue, ...]:
        return tuple(self._items)

    @property
    def has_issues(self) -> bool:
        return bool(self._items)


def validate_settings(payload: Mapping[str, object]) -> ConfigValidationResult:
    """Validate a coerced payload and return structured issues."""

    issues = _IssueCollector()
    for key in sorted(payload):
        if key not in SETTINGS_FIELDS:
            issues.add(key, "unknown field")

    values: dict[str, Any] = {}

    client = payload.get("executing_client")
    if client is not None:
        values["executing_client"] = _as_enum(
            client, "executing_client", issues, allowed_values=EXECUTING_CLIENTS
        )

    override = payload.get("executable_override")
    if override is not None:
        values["executable_override"] = _as_executable(override, "executable_override", issues)

    model = payload.get("default_model")
    if model is not None:
        values["default_model"] = _as_str(model, "default_model", issues)

    log_dir = payload.get("activity_log_dir")
    if log_dir is not None:
        values["activity_log_dir"] = _as_path_text(log_dir, "activity_log_dir", issues)

    for flag in ("debug", "echo_prompt", "force", "activity_log_enabled"):
        raw = payload.get(flag)
        if raw is not None:
            values[flag] = _as_bool(raw, flag, issues)

    for millis in ("idle_exit_ms", "timeout_ms"):
        raw = payload.get(millis)
        if raw is not None:
            values[millis] = _as_int(raw, millis, issues, minimum=0)

    if issues.has_issues:
        return ConfigValidationResult(settings=None, issues=issues.items())
    return ConfigValidationResult(settings=BridgeSettings(**values), issues=())


def assert_valid_settings(payload: Mapping[str, object]) -> BridgeSettings:
    """Validate settings and raise ``ConfigValidationError`` on failure."""

    result = validate_settings(payload)
    if result.settings is None:
        raise ConfigValidationError(result.issues)
    return result.settings


def redact_settings(settings: BridgeSettings) -> dict[str, Any]:
    """Return a deterministic representation safe for logs and CLI dumps.

    Sensitive-looking keys are masked and the user's home directory is shown
    as ``~`` inside path values.
    """

    home = os.path.expanduser("~")
    out: dict[str, Any] = {}
    for key, value in sorted(settings.to_dict().items()):
        if _key_is_sensitive(key):
            out[key] = "<redacted>"
        elif isinstance(value, str) and home not in ("", os.sep) and value.startswith(home + os.sep):
            out[key] = "~" + value[len(home) :]
        else:
            out[key] = value
    return out


def _key_is_sensitive(key: str) -> bool:
    tokens = set(key.lower().split("_"))
    return bool(tokens & _SENSITIVE_KEY_TOKENS)


def _as_str(value: object, path: str, issues: _IssueCollector) -> str | None:
    if not isinstance(value, str):
        issues.add(path, f"expected string, got {type(value).__name__}")
        return None
    parsed = value.strip()
    if not parsed:
        issues.add(path, "must not be empty")
        return None
    return parsed


def _as_path_text(value: object, path: str, issues: _IssueCollector) -> str | None:
    parsed = _as_str(value, path, issues)
    if parsed is None:
        return None
    if "\x00" in parsed:
        issues.add(path, "must not contain NUL bytes")
        return None
    return parsed


def _as_executable(value: object, path: str, issues: _IssueCollector) -> str | None:
    parsed = _as_path_text(value, path, issues)
    if parsed is None:
        return None
    segments = parsed.replace("\\", "/").split("/")
    is_absolute = os.path.isabs(parsed)
    if ".." in segments or (not is_absolute and len(segments) > 1):
        issues.add(path, "contains invalid path traversal")
        return None
    return os.path.normpath(parsed) if is_absolute else parsed


def _as_bool(value: object, path: str, issues: _IssueCollector) -> bool | None:
    if isinstance(value, bool):
        return value
    issues.add(path, f"expected boolean, got {type(value).__name__}")
    return None


def _as_int(
    value: object,
    path: str,
    issues: _IssueCollector,
    *,
    minimum: int | None = None,
) -> int | None:
    if isinstance(value, bool) or not isinstance(value, int):
        issues.add(path, f"expected integer, got {type(value).__name__}")
        return None
    if minimum is not None and value < minimum:
        issues.add(path, f"must be >= {minimum}")
        return None
    return value


def _as_enum(
    value: object,
    path: str,
    issues: _IssueCollector,
    *,
    allowed_values: tuple[str, ...],
) -> str | None:
    parsed = _as_str(value, path, issues)
    if parsed is None:
        return None
    if parsed not in allowed_values:
        expected = ", ".join(sorted(allowed_values))
        issues.add(path, f"invalid value {parsed!r}; expected one of: {expected}")
        return None
    return parsed


__all__ = [
    "DEFAULT_SETTINGS",
    "SETTINGS_FIELDS",
    "BridgeSettings",
    "ConfigValidationError",
    "ConfigValidationIssue",
    "ConfigValidationResult",
    "assert_valid_settings",
    "redact_settings",
    "validate_settings",
]
