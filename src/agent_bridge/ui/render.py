"""Output rendering for the agent-bridge CLI.

File: src/agent_bridge/ui/render.py

Purpose
- Print invocation results and settings dumps to stdout.
- Stream progress events to stderr through ``rich`` so stdout stays clean.
- Respect the NO_COLOR environment variable and the ``--no-color`` flag.
"""

from __future__ import annotations

import json
import os
import sys
from collections.abc import Mapping
from typing import TextIO

from rich.console import Console
from rich.text import Text

from agent_bridge.invocation.models import InvocationResult, ProgressEvent, ProgressKind

_KIND_STYLES: dict[ProgressKind, str] = {
    ProgressKind.INIT: "bold cyan",
    ProgressKind.TEXT_DELTA: "",
    ProgressKind.TOOL_STARTED: "bold blue",
    ProgressKind.TOOL_COMPLETED: "green",
    ProgressKind.FINAL: "bold green",
}


def _color_allowed(no_color_flag: bool, stream: TextIO) -> bool:
    """Check whether color output should be attempted."""

    if no_color_flag:
        return False
    if os.environ.get("NO_COLOR", ""):
        return False
    return hasattr(stream, "isatty") and stream.isatty()


class CLIRenderer:
    """Thin CLI output renderer; results go to stdout, progress to stderr."""

    def __init__(
        self,
        *,
        no_color: bool = False,
        stdout: TextIO | None = None,
        stderr: TextIO | None = None,
    ) -> None:
        self._stdout = stdout or sys.stdout
        stderr_stream = stderr or sys.stderr
        self._progress = Console(
            file=stderr_stream,
            no_color=not _color_allowed(no_color, stderr_stream),
            highlight=False,
            soft_wrap=True,
        )
        self._mid_delta = False

    def text(self, line: str) -> None:
        print(line, file=self._stdout)

    def json(self, payload: Mapping[str, object]) -> None:
        """Emit a JSON payload with deterministic formatting."""

        print(
            json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False),
            file=self._stdout,
        )

    def result(self, result: InvocationResult) -> None:
        self.end_progress()
        for part in result.content:
            print(part.text, file=self._stdout)

    def progress(self, event: ProgressEvent) -> None:
        """Render one progress event; text deltas are streamed inline."""

        if event.kind is ProgressKind.TEXT_DELTA:
            self._progress.print(Text(event.message), end="")
            self._mid_delta = True
            return
        self.end_progress()
        label = f"[{event.progress}/{event.total}]" if event.total is not None else f"[{event.progress}]"
        self._progress.print(Text(f"{label} {event.message}", style=_KIND_STYLES[event.kind]))

    def end_progress(self) -> None:
        if self._mid_delta:
            self._progress.print()
            self._mid_delta = False


def create_renderer(*, no_color: bool = False) -> CLIRenderer:
    """Create a CLI renderer with the given settings."""

    return CLIRenderer(no_color=no_color)


__all__ = ["CLIRenderer", "create_renderer"]
