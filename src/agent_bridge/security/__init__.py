"""Pre-spawn security policy: executable identity, path containment, child env."""

from agent_bridge.security.environment import (
    build_safe_environment,
    is_allowed_key,
    settings_to_environment,
)
from agent_bridge.security.path_policy import (
    is_contained,
    validate_executable,
    validate_file_path,
    validate_working_directory,
)

__all__ = [
    "build_safe_environment",
    "is_allowed_key",
    "is_contained",
    "settings_to_environment",
    "validate_executable",
    "validate_file_path",
    "validate_working_directory",
]
