"""Child-process environment construction.

The child never inherits the ambient environment wholesale. It receives the
validated settings written back as strings, then only those ambient keys that
appear in a fixed allow-list or carry an allowed prefix.
"""

from __future__ import annotations

from collections.abc import Mapping

from agent_bridge.config.schema import BridgeSettings
from agent_bridge.constants import (
    ENV_AGENT_PATH,
    ENV_ALLOWED_PREFIXES,
    ENV_DEBUG,
    ENV_ECHO_PROMPT,
    ENV_EXECUTING_CLIENT,
    ENV_FORCE,
    ENV_IDLE_EXIT_MS,
    ENV_MODEL,
    ENV_TIMEOUT_MS,
    SYSTEM_ENV_ALLOWLIST,
)


def is_allowed_key(key: str) -> bool:
    return key in SYSTEM_ENV_ALLOWLIST or key.startswith(ENV_ALLOWED_PREFIXES)


def settings_to_environment(settings: BridgeSettings) -> dict[str, str]:
    """Render configured settings back into their environment variables."""

    env: dict[str, str] = {}
    if settings.executing_client is not None:
        env[ENV_EXECUTING_CLIENT] = settings.executing_client
    if settings.executable_override is not None:
        env[ENV_AGENT_PATH] = settings.executable_override
    if settings.debug:
        env[ENV_DEBUG] = "1"
    if settings.echo_prompt:
        env[ENV_ECHO_PROMPT] = "1"
    if settings.default_model is not None:
        env[ENV_MODEL] = settings.default_model
    if settings.force:
        env[ENV_FORCE] = "1"
    if settings.idle_exit_ms is not None:
        env[ENV_IDLE_EXIT_MS] = str(settings.idle_exit_ms)
    if settings.timeout_ms is not None:
        env[ENV_TIMEOUT_MS] = str(settings.timeout_ms)
    return env


def build_safe_environment(
    ambient: Mapping[str, str], settings: BridgeSettings
) -> dict[str, str]:
    """Build the sanitized child environment.

    Settings written back first take precedence over ambient values of the
    same name.
    """

    env = settings_to_environment(settings)
    for key in sorted(ambient):
        if key in env or not is_allowed_key(key):
            continue
        value = ambient[key]
        if isinstance(value, str):
            env[key] = value
    return env


__all__ = [
    "build_safe_environment",
    "is_allowed_key",
    "settings_to_environment",
]
