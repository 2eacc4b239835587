"""Error taxonomy for the invocation engine.

Validation errors are raised before any process exists. Everything that goes
wrong after spawn begins is described by an :class:`OutcomeKind` and surfaced
as an error result rather than an exception.
"""

from __future__ import annotations

from enum import Enum


class InvocationError(Exception):
    """Base class for invocation failures with a stable machine-readable code."""

    code: str = "invocation_error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InvocationValidationError(InvocationError):
    """A request was rejected before any process was created."""

    code = "invalid_request"


class InvalidExecutableError(InvocationValidationError):
    code = "invalid_executable"


class PathEscapeError(InvocationValidationError):
    code = "path_escape"


class MissingPathError(InvocationValidationError):
    code = "missing_path"


class OutcomeKind(str, Enum):
    """Terminal classification of a supervised invocation."""

    SUCCEEDED = "succeeded"
    SPAWN_FAILURE = "spawn_failure"
    OUTPUT_FAILURE = "output_failure"
    NON_ZERO_EXIT = "non_zero_exit"
    TIMEOUT = "timeout"
    IDLE_KILLED = "idle_killed"
    CANCELLED = "cancelled"

    @property
    def is_error(self) -> bool:
        return self is not OutcomeKind.SUCCEEDED


__all__ = [
    "InvalidExecutableError",
    "InvocationError",
    "InvocationValidationError",
    "MissingPathError",
    "OutcomeKind",
    "PathEscapeError",
]
