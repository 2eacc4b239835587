"""
agent-bridge config package public API.

File: src/agent_bridge/config/__init__.py

Purpose
- Export settings loading/validation entrypoints and public error types.

Functional requirements
- Support loading from an optional TOML file plus ``CURSOR_AGENT_*`` env vars.
- Fail fast with clear structured validation/load errors.
"""

from agent_bridge.config.loader import (
    CONFIG_SECTION,
    ConfigLoadError,
    SettingsCache,
    dump_effective_settings,
    load_settings,
    parse_flag,
    parse_millis,
)
from agent_bridge.config.schema import (
    DEFAULT_SETTINGS,
    SETTINGS_FIELDS,
    BridgeSettings,
    ConfigValidationError,
    ConfigValidationIssue,
    ConfigValidationResult,
    assert_valid_settings,
    redact_settings,
    validate_settings,
)

__all__ = [
    "CONFIG_SECTION",
    "DEFAULT_SETTINGS",
    "SETTINGS_FIELDS",
    "BridgeSettings",
    "ConfigLoadError",
    "ConfigValidationError",
    "ConfigValidationIssue",
    "ConfigValidationResult",
    "SettingsCache",
    "assert_valid_settings",
    "dump_effective_settings",
    "load_settings",
    "parse_flag",
    "parse_millis",
    "redact_settings",
    "validate_settings",
]
