"""Immutable data types exchanged by the invocation engine."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Literal

from agent_bridge.utils.concurrency import CancellationToken


class OutputFormat(str, Enum):
    TEXT = "text"
    JSON = "json"
    MARKDOWN = "markdown"

    @classmethod
    def parse(cls, raw: str | OutputFormat | None) -> OutputFormat:
        if raw is None:
            return cls.TEXT
        if isinstance(raw, OutputFormat):
            return raw
        try:
            return cls(raw)
        except ValueError as exc:
            allowed = ", ".join(item.value for item in cls)
            raise ValueError(f"output_format must be one of: {allowed}") from exc


class ProgressKind(str, Enum):
    INIT = "init"
    TEXT_DELTA = "text_delta"
    TOOL_STARTED = "tool_started"
    TOOL_COMPLETED = "tool_completed"
    FINAL = "final"


@dataclass(frozen=True, slots=True)
class ProgressEvent:
    """One progress notification emitted while the child is running.

    For ``TEXT_DELTA`` events ``message`` is only the new fragment and
    ``progress`` is the cumulative character count seen so far.
    """

    kind: ProgressKind
    progress: int
    message: str
    total: int | None = None


ProgressConsumer = Callable[[ProgressEvent], None]


@dataclass(frozen=True, slots=True)
class InvocationRequest:
    argv: tuple[str, ...]
    output_format: OutputFormat = OutputFormat.TEXT
    cwd: str | None = None
    executable: str | None = None
    model: str | None = None
    force: bool | None = None
    print_output: bool = True
    cancel_token: CancellationToken | None = None
    on_progress: ProgressConsumer | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "argv", tuple(self.argv))
        object.__setattr__(self, "output_format", OutputFormat.parse(self.output_format))

    @property
    def stream_progress(self) -> bool:
        return self.on_progress is not None


@dataclass(frozen=True, slots=True)
class LaunchPlan:
    """Everything validated before spawn: what to run, where, with which env."""

    executable: str
    cwd: str
    env: Mapping[str, str]
    argv: tuple[str, ...]
    timeout_ms: int
    idle_exit_ms: int

    @property
    def command(self) -> tuple[str, ...]:
        return (self.executable, *self.argv)


@dataclass(frozen=True, slots=True)
class TextContent:
    text: str
    type: Literal["text"] = "text"

    def to_dict(self) -> dict[str, str]:
        return {"type": self.type, "text": self.text}


@dataclass(frozen=True, slots=True)
class InvocationResult:
    content: tuple[TextContent, ...]
    is_error: bool = False
    progress_log_file: str | None = None
    metadata: Mapping[str, Any] = field(default_factory=dict, compare=False)

    @property
    def text(self) -> str:
        return "\n".join(part.text for part in self.content)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"content": [part.to_dict() for part in self.content]}
        if self.is_error:
            payload["isError"] = True
        if self.progress_log_file is not None:
            payload["progressLogFile"] = self.progress_log_file
        return payload


__all__ = [
    "InvocationRequest",
    "InvocationResult",
    "LaunchPlan",
    "OutputFormat",
    "ProgressConsumer",
    "ProgressEvent",
    "ProgressKind",
    "TextContent",
]
