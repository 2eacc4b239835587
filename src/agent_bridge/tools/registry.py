"""
agent-bridge — tool surface over the invocation engine.

File: src/agent_bridge/tools/registry.py

Purpose
- Expose the named ``cursor_agent_*`` tools a host can call with loosely typed
  argument mappings, and turn each call into an :class:`InvocationRequest`.

What should be included in this file
- Per-tool argument validation (required fields, output-format enum, list
  coercion for paths and globs). Hosts that nest parameters under
  ``arguments`` are flattened first.
- ``run_prompt``: the single-shot path shared by the prompt-based tools,
  including the optional ``Prompt used:`` echo.

Functional requirements
- When the executing client is ``cursor`` only chat and raw are registered.
- Validation failures, path-policy errors included, come back as
  ``Invalid params: <message>`` error results rather than exceptions.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Final

from agent_bridge.config.loader import ConfigLoadError
from agent_bridge.config.schema import ConfigValidationError
from agent_bridge.errors import InvocationValidationError
from agent_bridge.invocation.invoker import AgentInvoker
from agent_bridge.invocation.models import (
    InvocationRequest,
    InvocationResult,
    OutputFormat,
    ProgressConsumer,
)
from agent_bridge.invocation.result import error_result, prepend_text
from agent_bridge.observability.logging import correlation_scope, get_logger
from agent_bridge.security.path_policy import validate_file_path
from agent_bridge.tools.prompts import PromptComposer, PromptTemplateError
from agent_bridge.utils.concurrency import CancellationToken

logger = get_logger(__name__)

_PROMPT_PREVIEW_CHARS: Final[int] = 400

CHAT: Final[str] = "cursor_agent_chat"
RAW: Final[str] = "cursor_agent_raw"
EDIT_FILE: Final[str] = "cursor_agent_edit_file"
ANALYZE_FILES: Final[str] = "cursor_agent_analyze_files"
SEARCH_REPO: Final[str] = "cursor_agent_search_repo"
PLAN_TASK: Final[str] = "cursor_agent_plan_task"
RUN: Final[str] = "cursor_agent_run"

CURSOR_CLIENT_TOOLS: Final[tuple[str, ...]] = (CHAT, RAW)

# Metadata reason attached to argument-validation error results.
INVALID_PARAMS: Final[str] = "invalid_params"


class ToolParamsError(ValueError):
    """Raised when tool arguments are missing or malformed."""


@dataclass(frozen=True, slots=True)
class CommonParams:
    """Options every tool accepts on top of its own fields."""

    output_format: OutputFormat = OutputFormat.TEXT
    extra_args: tuple[str, ...] = ()
    cwd: str | None = None
    executable: str | None = None
    model: str | None = None
    force: bool | None = None
    echo_prompt: bool = False

    @classmethod
    def from_params(cls, params: Mapping[str, object]) -> CommonParams:
        raw_format = _optional_str(params, "output_format")
        try:
            output_format = OutputFormat.parse(raw_format)
        except ValueError as exc:
            raise ToolParamsError(str(exc)) from exc
        return cls(
            output_format=output_format,
            extra_args=tuple(_str_list(params, "extra_args", allow_scalar=False)),
            cwd=_optional_str(params, "cwd"),
            executable=_optional_str(params, "executable"),
            model=_optional_str(params, "model"),
            force=_optional_bool(params, "force"),
            echo_prompt=bool(_optional_bool(params, "echo_prompt")),
        )


ToolHandler = Callable[
    [Mapping[str, object], ProgressConsumer | None, CancellationToken | None],
    Awaitable[InvocationResult],
]


@dataclass(frozen=True, slots=True)
class ToolSpec:
    name: str
    description: str
    handler: ToolHandler


def flatten_arguments(arguments: Mapping[str, object] | None) -> dict[str, object]:
    """Lift parameters nested under ``arguments`` to the top level.

    Top-level values win over nested ones with the same name.
    """

    if arguments is None:
        return {}
    if not isinstance(arguments, Mapping):
        raise ToolParamsError("tool arguments must be an object")
    flat: dict[str, object] = {}
    nested = arguments.get("arguments")
    if isinstance(nested, Mapping):
        flat.update(nested)
    for key, value in arguments.items():
        if key == "arguments" and isinstance(value, Mapping):
            continue
        if value is not None or key not in flat:
            flat[key] = value
    return flat


async def run_prompt(
    invoker: AgentInvoker,
    prompt: str,
    common: CommonParams,
    *,
    on_progress: ProgressConsumer | None = None,
    cancel_token: CancellationToken | None = None,
) -> InvocationResult:
    """Single-shot run: ``[*extra_args, prompt]`` with an optional prompt echo."""

    logger.debug(
        "prompt",
        preview=prompt[:_PROMPT_PREVIEW_CHARS].replace("\n", "\\n"),
        extra_args=list(common.extra_args),
        model=common.model,
        force=common.force,
    )
    result = await invoker.invoke(
        InvocationRequest(
            argv=(*common.extra_args, prompt),
            output_format=common.output_format,
            cwd=common.cwd,
            executable=common.executable,
            model=common.model,
            force=common.force,
            cancel_token=cancel_token,
            on_progress=on_progress,
        )
    )
    if invoker.settings.echo_prompt or common.echo_prompt:
        result = prepend_text(result, f"Prompt used:\n{prompt}")
    return result


class ToolRegistry:
    """Named tools bound to one :class:`AgentInvoker`."""

    def __init__(
        self,
        invoker: AgentInvoker,
        *,
        composer: PromptComposer | None = None,
    ) -> None:
        self._invoker = invoker
        self._composer = composer or PromptComposer()
        all_specs = (
            ToolSpec(
                CHAT,
                "Chat with cursor-agent using a prompt and optional model/force/output_format.",
                self._chat,
            ),
            ToolSpec(
                RAW,
                "Pass a raw argv array to cursor-agent; implicit --print is off unless print=true.",
                self._raw,
            ),
            ToolSpec(EDIT_FILE, "Edit a file with an instruction.", self._edit_file),
            ToolSpec(ANALYZE_FILES, "Analyze one or more paths; optional prompt.", self._analyze_files),
            ToolSpec(SEARCH_REPO, "Search repository code with include/exclude globs.", self._search_repo),
            ToolSpec(PLAN_TASK, "Generate a plan for a goal with optional constraints.", self._plan_task),
            ToolSpec(RUN, "Run cursor-agent with a prompt (legacy single-shot).", self._run),
        )
        if invoker.settings.executing_client == "cursor":
            all_specs = tuple(spec for spec in all_specs if spec.name in CURSOR_CLIENT_TOOLS)
        self._specs: dict[str, ToolSpec] = {spec.name: spec for spec in all_specs}

    @property
    def names(self) -> tuple[str, ...]:
        return tuple(self._specs)

    def specs(self) -> tuple[ToolSpec, ...]:
        return tuple(self._specs.values())

    def instructions(self) -> str:
        lines = ["Tools:"]
        lines.extend(f"- {spec.name}: {spec.description}" for spec in self._specs.values())
        return "\n".join(lines)

    async def call(
        self,
        name: str,
        arguments: Mapping[str, object] | None = None,
        *,
        on_progress: ProgressConsumer | None = None,
        cancel_token: CancellationToken | None = None,
    ) -> InvocationResult:
        spec = self._specs.get(name)
        if spec is None:
            return error_result(f"Invalid params: unknown tool {name!r}", reason=INVALID_PARAMS)
        with correlation_scope(tool=name):
            try:
                params = flatten_arguments(arguments)
                return await spec.handler(params, on_progress, cancel_token)
            except (
                ToolParamsError,
                InvocationValidationError,
                PromptTemplateError,
                ConfigValidationError,
                ConfigLoadError,
            ) as exc:
                logger.debug("tool_params_rejected", error=str(exc))
                return error_result(f"Invalid params: {exc}", reason=INVALID_PARAMS)

    async def _chat(
        self,
        params: Mapping[str, object],
        on_progress: ProgressConsumer | None,
        cancel_token: CancellationToken | None,
    ) -> InvocationResult:
        prompt = _require_str(params, "prompt")
        return await run_prompt(
            self._invoker,
            prompt,
            CommonParams.from_params(params),
            on_progress=on_progress,
            cancel_token=cancel_token,
        )

    _run = _chat

    async def _raw(
        self,
        params: Mapping[str, object],
        on_progress: ProgressConsumer | None,
        cancel_token: CancellationToken | None,
    ) -> InvocationResult:
        argv = _str_list(params, "argv", allow_scalar=False)
        if not argv:
            raise ToolParamsError("argv must contain at least one element")
        common = CommonParams.from_params(params)
        return await self._invoker.invoke(
            InvocationRequest(
                argv=tuple(argv),
                output_format=common.output_format,
                cwd=common.cwd,
                executable=common.executable,
                model=common.model,
                force=common.force,
                print_output=bool(_optional_bool(params, "print")),
                cancel_token=cancel_token,
                on_progress=on_progress,
            )
        )

    async def _edit_file(
        self,
        params: Mapping[str, object],
        on_progress: ProgressConsumer | None,
        cancel_token: CancellationToken | None,
    ) -> InvocationResult:
        file = validate_file_path(_require_str(params, "file"), base_dir=self._invoker.base_dir)
        prompt = self._composer.edit_file(
            file=file,
            instruction=_require_str(params, "instruction"),
            apply=bool(_optional_bool(params, "apply")),
            dry_run=bool(_optional_bool(params, "dry_run")),
            prompt=_optional_str(params, "prompt"),
        )
        return await run_prompt(
            self._invoker,
            prompt,
            CommonParams.from_params(params),
            on_progress=on_progress,
            cancel_token=cancel_token,
        )

    async def _analyze_files(
        self,
        params: Mapping[str, object],
        on_progress: ProgressConsumer | None,
        cancel_token: CancellationToken | None,
    ) -> InvocationResult:
        paths = _str_list(params, "paths", allow_scalar=True)
        if not paths:
            raise ToolParamsError("paths must contain at least one path")
        validated = [validate_file_path(path, base_dir=self._invoker.base_dir) for path in paths]
        prompt = self._composer.analyze_files(paths=validated, prompt=_optional_str(params, "prompt"))
        return await run_prompt(
            self._invoker,
            prompt,
            CommonParams.from_params(params),
            on_progress=on_progress,
            cancel_token=cancel_token,
        )

    async def _search_repo(
        self,
        params: Mapping[str, object],
        on_progress: ProgressConsumer | None,
        cancel_token: CancellationToken | None,
    ) -> InvocationResult:
        prompt = self._composer.search_repo(
            query=_require_str(params, "query"),
            include=_str_list(params, "include", allow_scalar=True),
            exclude=_str_list(params, "exclude", allow_scalar=True),
        )
        return await run_prompt(
            self._invoker,
            prompt,
            CommonParams.from_params(params),
            on_progress=on_progress,
            cancel_token=cancel_token,
        )

    async def _plan_task(
        self,
        params: Mapping[str, object],
        on_progress: ProgressConsumer | None,
        cancel_token: CancellationToken | None,
    ) -> InvocationResult:
        prompt = self._composer.plan_task(
            goal=_require_str(params, "goal"),
            constraints=_str_list(params, "constraints", allow_scalar=False),
        )
        return await run_prompt(
            self._invoker,
            prompt,
            CommonParams.from_params(params),
            on_progress=on_progress,
            cancel_token=cancel_token,
        )


def _require_str(params: Mapping[str, object], key: str) -> str:
    value = params.get(key)
    if not isinstance(value, str) or not value:
        raise ToolParamsError(f"{key} is required")
    return value


def _optional_str(params: Mapping[str, object], key: str) -> str | None:
    value = params.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ToolParamsError(f"{key} must be a string")
    return value


def _optional_bool(params: Mapping[str, object], key: str) -> bool | None:
    value = params.get(key)
    if value is None:
        return None
    if not isinstance(value, bool):
        raise ToolParamsError(f"{key} must be a boolean")
    return value


def _str_list(params: Mapping[str, object], key: str, *, allow_scalar: bool) -> list[str]:
    value: Any = params.get(key)
    if value is None:
        return []
    if isinstance(value, str):
        if allow_scalar:
            return [value]
        raise ToolParamsError(f"{key} must be an array of strings")
    if not isinstance(value, Sequence) or not all(isinstance(item, str) for item in value):
        raise ToolParamsError(f"{key} must be an array of strings")
    return list(value)


__all__ = [
    "ANALYZE_FILES",
    "CHAT",
    "CURSOR_CLIENT_TOOLS",
    "EDIT_FILE",
    "INVALID_PARAMS",
    "PLAN_TASK",
    "RAW",
    "RUN",
    "SEARCH_REPO",
    "CommonParams",
    "ToolParamsError",
    "ToolRegistry",
    "ToolSpec",
    "flatten_arguments",
    "run_prompt",
]
