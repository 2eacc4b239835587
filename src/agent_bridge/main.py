"""Process entrypoint: run the CLI and map every outcome onto a fixed exit code."""

from __future__ import annotations

import sys
import traceback
from collections.abc import Iterator, Sequence
from enum import IntEnum
from typing import Final

from agent_bridge.config.loader import ConfigLoadError
from agent_bridge.config.schema import ConfigValidationError
from agent_bridge.errors import InvocationValidationError


class ExitCode(IntEnum):
    """Exit codes the ``agent-bridge`` command can return."""

    SUCCESS = 0
    ERROR_RESULT = 1
    CONFIG_ERROR = 2
    INTERNAL_ERROR = 4


# Failures the user can fix by changing settings, paths or arguments.
_USER_FIXABLE: Final[tuple[type[BaseException], ...]] = (
    ConfigLoadError,
    ConfigValidationError,
    InvocationValidationError,
    FileNotFoundError,
    NotADirectoryError,
    PermissionError,
)


def cli_entrypoint(argv: Sequence[str] | None = None) -> int:
    """Run the CLI with ``argv`` and return an ``ExitCode`` value; never raises."""

    from agent_bridge.ui.cli import run_cli

    try:
        outcome: object = run_cli(argv)
    except SystemExit as exc:
        outcome = exc.code
    except KeyboardInterrupt:
        print("interrupted", file=sys.stderr)
        return ExitCode.ERROR_RESULT
    except Exception as exc:  # noqa: BLE001
        return _report_crash(exc)
    return _coerce_exit_code(outcome)


def script_entrypoint() -> None:
    """Console-script target."""

    raise SystemExit(cli_entrypoint())


def _coerce_exit_code(outcome: object) -> int:
    if outcome is None:
        return ExitCode.SUCCESS
    if isinstance(outcome, int) and outcome in ExitCode._value2member_map_:
        return outcome
    if isinstance(outcome, str) and outcome.strip():
        print(outcome.strip(), file=sys.stderr)
    return ExitCode.INTERNAL_ERROR


def _report_crash(exc: BaseException) -> int:
    if any(isinstance(link, _USER_FIXABLE) for link in _causes(exc)):
        print(str(exc).strip() or type(exc).__name__, file=sys.stderr)
        return ExitCode.CONFIG_ERROR
    traceback.print_exception(exc, file=sys.stderr)
    return ExitCode.INTERNAL_ERROR


def _causes(exc: BaseException) -> Iterator[BaseException]:
    """Yield ``exc`` and the exceptions it was raised from, without cycling."""

    visited: set[int] = set()
    current: BaseException | None = exc
    while current is not None and id(current) not in visited:
        visited.add(id(current))
        yield current
        if current.__cause__ is not None:
            current = current.__cause__
        elif current.__suppress_context__:
            current = None
        else:
            current = current.__context__


__all__ = ["ExitCode", "cli_entrypoint", "script_entrypoint"]
