"""
agent-bridge — executable and path validation.

File: src/agent_bridge/security/path_policy.py

Purpose
- Decide which executable token may be launched and which directories/files a
  request may point at, before any process exists.

Functional requirements
- The executable is either the PATH-lookup sentinel or the exact configured
  override; nothing else is launchable.
- Paths resolve lexically against a base directory (process cwd by default)
  and must be the base itself or a strict descendant. Containment is checked
  on separator boundaries so ``/a/bc`` is never treated as inside ``/a/b``.

Non-functional requirements
- Pure functions; no filesystem access, no symlink resolution.
"""

from __future__ import annotations

import os

from agent_bridge.config.schema import BridgeSettings
from agent_bridge.constants import AGENT_SENTINEL
from agent_bridge.errors import (
    InvalidExecutableError,
    MissingPathError,
    PathEscapeError,
)


def validate_executable(explicit: str | None, *, settings: BridgeSettings) -> str:
    """Return the executable token to launch or raise ``InvalidExecutableError``."""

    override = settings.executable_override
    requested = (explicit or "").strip()
    if not requested:
        return override or AGENT_SENTINEL
    if requested == AGENT_SENTINEL:
        return AGENT_SENTINEL
    if override is not None and requested == override:
        return override
    raise InvalidExecutableError(
        f"executable must be {AGENT_SENTINEL!r} or the configured CURSOR_AGENT_PATH"
    )


def validate_working_directory(raw: str | None, *, base_dir: str | None = None) -> str:
    """Return an absolute working directory contained in the base directory."""

    base = _base(base_dir)
    if raw is None or not raw.strip():
        return base
    candidate = _resolve(raw, base)
    if not is_contained(candidate, base):
        raise PathEscapeError("working directory escapes the allowed base directory")
    return candidate


def validate_file_path(raw: str | None, *, base_dir: str | None = None) -> str:
    """Return an absolute file path contained in the base directory."""

    if raw is None or not raw.strip():
        raise MissingPathError("file path is required")
    base = _base(base_dir)
    candidate = _resolve(raw, base)
    if not is_contained(candidate, base):
        raise PathEscapeError("file path escapes the allowed base directory")
    return candidate


def is_contained(candidate: str, base: str) -> bool:
    """Separator-bounded containment of two absolute, normalized paths."""

    if candidate == base:
        return True
    prefix = base if base.endswith(os.sep) else base + os.sep
    return candidate.startswith(prefix)


def _base(base_dir: str | None) -> str:
    return os.path.abspath(base_dir if base_dir is not None else os.getcwd())


def _resolve(raw: str, base: str) -> str:
    if "\x00" in raw:
        raise PathEscapeError("path must not contain NUL bytes")
    return os.path.abspath(os.path.join(base, raw.strip()))


__all__ = [
    "is_contained",
    "validate_executable",
    "validate_file_path",
    "validate_working_directory",
]
