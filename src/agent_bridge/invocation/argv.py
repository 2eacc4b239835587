"""Final argument-vector composition for ``cursor-agent``.

Order: print/format flags, caller tokens (minus the held prompt), implicit
``-f``, implicit ``--model <m>``, then the prompt. The prompt always ends up
last so the CLI never mistakes it for a flag value.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Final

from agent_bridge.config.schema import BridgeSettings
from agent_bridge.invocation.models import OutputFormat

STREAM_FORMAT: Final[str] = "stream-json"

_MODEL_FLAGS: Final[frozenset[str]] = frozenset({"-m", "--model"})
_MODEL_PREFIXES: Final[tuple[str, ...]] = ("-m=", "--model=")
_FORCE_FLAGS: Final[frozenset[str]] = frozenset({"-f", "--force"})
_FORCE_PREFIXES: Final[tuple[str, ...]] = ("-f=", "--force=")


@dataclass(frozen=True, slots=True)
class ArgvOptions:
    output_format: OutputFormat = OutputFormat.TEXT
    print_output: bool = True
    stream_progress: bool = False
    model: str | None = None
    force: bool | None = None


def has_model_flag(tokens: Sequence[str]) -> bool:
    return any(token in _MODEL_FLAGS or token.startswith(_MODEL_PREFIXES) for token in tokens)


def has_force_flag(tokens: Sequence[str]) -> bool:
    return any(token in _FORCE_FLAGS or token.startswith(_FORCE_PREFIXES) for token in tokens)


def split_prompt(tokens: Sequence[str]) -> tuple[list[str], str | None]:
    """Hold aside the last token as the prompt when it is not a flag."""

    items = list(tokens)
    if items and items[-1] and not items[-1].startswith("-"):
        return items[:-1], items[-1]
    return items, None


def effective_model(options: ArgvOptions, settings: BridgeSettings) -> str | None:
    explicit = (options.model or "").strip()
    return explicit or settings.default_model


def effective_force(options: ArgvOptions, settings: BridgeSettings) -> bool:
    if options.force is not None:
        return options.force
    return settings.force


def compose_argv(
    raw_args: Sequence[str],
    options: ArgvOptions,
    settings: BridgeSettings,
) -> list[str]:
    """Return the final argv (executable excluded)."""

    tokens = [str(token) for token in raw_args]
    rest, prompt = split_prompt(tokens)

    argv: list[str] = []
    if options.print_output:
        fmt = STREAM_FORMAT if options.stream_progress else options.output_format.value
        argv.extend(["--print", "--output-format", fmt])
        if options.stream_progress:
            argv.append("--stream-partial-output")
    argv.extend(rest)
    if effective_force(options, settings) and not has_force_flag(tokens):
        argv.append("-f")
    model = effective_model(options, settings)
    if model and not has_model_flag(tokens):
        argv.extend(["--model", model])
    if prompt is not None:
        argv.append(prompt)
    return argv


__all__ = [
    "STREAM_FORMAT",
    "ArgvOptions",
    "compose_argv",
    "effective_force",
    "effective_model",
    "has_force_flag",
    "has_model_flag",
    "split_prompt",
]
