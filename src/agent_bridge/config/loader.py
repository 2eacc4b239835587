"""
agent-bridge — runtime settings loader.

File: src/agent_bridge/config/loader.py

Purpose
- Load effective settings from defaults, an optional TOML file, and env vars.

What should be included in this file
- Precedence logic: env > file (``[agent]`` table) > defaults.
- TOML loading via ``tomllib``.
- Lenient environment coercion: flags accept ``1/true/yes/on`` and anything
  else is false; millisecond values that are not non-negative integers fall
  back to the default.
- A snapshot-keyed cache that recomputes only when recognized inputs change.

Non-functional requirements
- Keep loading deterministic and reproducible.
"""

from __future__ import annotations

import json
import os
import re
import threading
import tomllib
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Final

from agent_bridge.config.schema import (
    BridgeSettings,
    assert_valid_settings,
    redact_settings,
)
from agent_bridge.constants import (
    ENV_ACTIVITY_LOG_DIR,
    ENV_AGENT_PATH,
    ENV_DEBUG,
    ENV_ECHO_PROMPT,
    ENV_EXECUTING_CLIENT,
    ENV_FORCE,
    ENV_IDLE_EXIT_MS,
    ENV_MODEL,
    ENV_TIMEOUT_MS,
    RECOGNIZED_ENV_VARS,
)

CONFIG_SECTION: Final[str] = "agent"

_BOOLEAN_TRUE: Final[frozenset[str]] = frozenset({"1", "true", "yes", "on"})
_LEADING_DIGITS: Final[re.Pattern[str]] = re.compile(r"^\s*([+-]?\d+)")

_STRING_BINDINGS: Final[tuple[tuple[str, str], ...]] = (
    (ENV_EXECUTING_CLIENT, "executing_client"),
    (ENV_AGENT_PATH, "executable_override"),
    (ENV_MODEL, "default_model"),
    (ENV_ACTIVITY_LOG_DIR, "activity_log_dir"),
)
_FLAG_BINDINGS: Final[tuple[tuple[str, str], ...]] = (
    (ENV_DEBUG, "debug"),
    (ENV_ECHO_PROMPT, "echo_prompt"),
    (ENV_FORCE, "force"),
)
_MILLIS_BINDINGS: Final[tuple[tuple[str, str], ...]] = (
    (ENV_IDLE_EXIT_MS, "idle_exit_ms"),
    (ENV_TIMEOUT_MS, "timeout_ms"),
)


class ConfigLoadError(ValueError):
    """Raised when the settings file cannot be read or parsed."""


def load_settings(
    environ: Mapping[str, str] | None = None,
    *,
    config_path: str | Path | None = None,
) -> BridgeSettings:
    """Load effective settings with deterministic precedence: env > file > defaults."""

    env_map = os.environ if environ is None else environ
    merged: dict[str, Any] = {}
    if config_path is not None:
        merged.update(_file_section(_load_toml_file(Path(config_path).expanduser(), required=True)))
    merged.update(_collect_env_overrides(env_map))
    return assert_valid_settings(merged)


def parse_flag(raw: str | None) -> bool:
    """Interpret an env flag; only ``1/true/yes/on`` (case-insensitive) are true."""

    if raw is None:
        return False
    return raw.strip().lower() in _BOOLEAN_TRUE


def parse_millis(raw: str | None) -> int | None:
    """Parse a millisecond env value; ``None`` when absent, invalid, or negative."""

    if raw is None:
        return None
    match = _LEADING_DIGITS.match(raw)
    if match is None:
        return None
    value = int(match.group(1))
    if value < 0:
        return None
    return value


def dump_effective_settings(settings: BridgeSettings) -> str:
    """Return deterministic JSON dump of redacted effective settings."""

    return json.dumps(
        redact_settings(settings), sort_keys=True, separators=(",", ":"), ensure_ascii=False
    )


class SettingsCache:
    """Memoizes ``load_settings`` for an unchanged snapshot of recognized inputs.

    The key covers every recognized environment variable plus the config file's
    modification time, so a changed environment is picked up on the next call.
    Concurrent recomputation is harmless: the last writer wins and every value
    is an immutable snapshot.
    """

    def __init__(
        self,
        *,
        config_path: str | Path | None = None,
        environ: Mapping[str, str] | None = None,
    ) -> None:
        self._config_path = None if config_path is None else Path(config_path).expanduser()
        self._environ = environ
        self._lock = threading.Lock()
        self._key: tuple[object, ...] | None = None
        self._value: BridgeSettings | None = None
        self._loads = 0

    @property
    def load_count(self) -> int:
        return self._loads

    def get(self) -> BridgeSettings:
        env_map = os.environ if self._environ is None else self._environ
        key = self._snapshot_key(env_map)
        with self._lock:
            if self._value is not None and self._key == key:
                return self._value
        value = load_settings(env_map, config_path=self._config_path)
        with self._lock:
            self._key = key
            self._value = value
            self._loads += 1
        return value

    def invalidate(self) -> None:
        with self._lock:
            self._key = None
            self._value = None

    def _snapshot_key(self, env_map: Mapping[str, str]) -> tuple[object, ...]:
        env_part = tuple((name, env_map.get(name)) for name in RECOGNIZED_ENV_VARS)
        if self._config_path is None:
            return (env_part, None)
        try:
            mtime: int | None = self._config_path.stat().st_mtime_ns
        except OSError:
            mtime = None
        return (env_part, str(self._config_path), mtime)


def _load_toml_file(path: Path, *, required: bool) -> dict[str, Any]:
    if not path.exists():
        if required:
            raise ConfigLoadError(f"config file not found: {path}")
        return {}

    try:
        with path.open("rb") as handle:
            parsed = tomllib.load(handle)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigLoadError(f"invalid TOML in {path}: {exc}") from exc
    except OSError as exc:
        raise ConfigLoadError(f"unable to read config file {path}: {exc}") from exc

    if not isinstance(parsed, dict):
        raise ConfigLoadError(f"config root must be an object: {path}")

    return parsed


def _file_section(payload: Mapping[str, object]) -> dict[str, Any]:
    section = payload.get(CONFIG_SECTION, {})
    if not isinstance(section, Mapping):
        raise ConfigLoadError(f"[{CONFIG_SECTION}] must be a table")
    return {key: section[key] for key in sorted(section)}


def _collect_env_overrides(environ: Mapping[str, str]) -> dict[str, Any]:
    overrides: dict[str, Any] = {}
    for env_name, field in _STRING_BINDINGS:
        raw = environ.get(env_name)
        if raw is None or not raw.strip():
            continue
        overrides[field] = raw.strip()
    for env_name, field in _FLAG_BINDINGS:
        raw = environ.get(env_name)
        if raw is None:
            continue
        overrides[field] = parse_flag(raw)
    for env_name, field in _MILLIS_BINDINGS:
        parsed = parse_millis(environ.get(env_name))
        if parsed is None:
            continue
        overrides[field] = parsed
    return overrides


__all__ = [
    "CONFIG_SECTION",
    "ConfigLoadError",
    "SettingsCache",
    "dump_effective_settings",
    "load_settings",
    "parse_flag",
    "parse_millis",
]
