"""Stable constants shared across the invocation engine."""

from __future__ import annotations

from typing import Final

# Executable token resolved through the child's PATH lookup.
AGENT_SENTINEL: Final[str] = "cursor-agent"

# Timer defaults in milliseconds. Idle-kill is disabled when 0.
DEFAULT_TIMEOUT_MS: Final[int] = 30_000
DEFAULT_IDLE_EXIT_MS: Final[int] = 0

# Recognized configuration variables.
ENV_EXECUTING_CLIENT: Final[str] = "EXECUTING_CLIENT"
ENV_AGENT_PATH: Final[str] = "CURSOR_AGENT_PATH"
ENV_DEBUG: Final[str] = "DEBUG_CURSOR_MCP"
ENV_ECHO_PROMPT: Final[str] = "CURSOR_AGENT_ECHO_PROMPT"
ENV_MODEL: Final[str] = "CURSOR_AGENT_MODEL"
ENV_FORCE: Final[str] = "CURSOR_AGENT_FORCE"
ENV_IDLE_EXIT_MS: Final[str] = "CURSOR_AGENT_IDLE_EXIT_MS"
ENV_TIMEOUT_MS: Final[str] = "CURSOR_AGENT_TIMEOUT_MS"
ENV_ACTIVITY_LOG_DIR: Final[str] = "CURSOR_AGENT_ACTIVITY_LOG_DIR"

RECOGNIZED_ENV_VARS: Final[tuple[str, ...]] = (
    ENV_EXECUTING_CLIENT,
    ENV_AGENT_PATH,
    ENV_DEBUG,
    ENV_ECHO_PROMPT,
    ENV_MODEL,
    ENV_FORCE,
    ENV_IDLE_EXIT_MS,
    ENV_TIMEOUT_MS,
    ENV_ACTIVITY_LOG_DIR,
)

EXECUTING_CLIENTS: Final[tuple[str, ...]] = ("cursor", "claude")

# Child environment allow-list.
SYSTEM_ENV_ALLOWLIST: Final[frozenset[str]] = frozenset(
    {
        "PATH",
        "HOME",
        "USER",
        "USERNAME",
        "SHELL",
        "TMPDIR",
        "TEMP",
        "TMP",
        "LANG",
        "LANGUAGE",
        ENV_EXECUTING_CLIENT,
    }
)
ENV_ALLOWED_PREFIXES: Final[tuple[str, ...]] = ("CURSOR_AGENT_", "NPM_CONFIG_", "LC_")

# Activity log.
ACTIVITY_LOG_PREFIX: Final[str] = "cursor-agent-progress-"
ACTIVITY_LOG_SEPARATOR: Final[str] = "\n\nSub agent activity log: "

NO_OUTPUT_MARKER: Final[str] = "(no output)"

__all__ = [
    "ACTIVITY_LOG_PREFIX",
    "ACTIVITY_LOG_SEPARATOR",
    "AGENT_SENTINEL",
    "DEFAULT_IDLE_EXIT_MS",
    "DEFAULT_TIMEOUT_MS",
    "ENV_ACTIVITY_LOG_DIR",
    "ENV_AGENT_PATH",
    "ENV_ALLOWED_PREFIXES",
    "ENV_DEBUG",
    "ENV_ECHO_PROMPT",
    "ENV_EXECUTING_CLIENT",
    "ENV_FORCE",
    "ENV_IDLE_EXIT_MS",
    "ENV_MODEL",
    "ENV_TIMEOUT_MS",
    "EXECUTING_CLIENTS",
    "NO_OUTPUT_MARKER",
    "RECOGNIZED_ENV_VARS",
    "SYSTEM_ENV_ALLOWLIST",
]
