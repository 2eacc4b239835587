"""Host-facing ``cursor_agent_*`` tools built on the invocation engine."""

from agent_bridge.tools.prompts import PromptComposer, PromptTemplateError
from agent_bridge.tools.registry import (
    INVALID_PARAMS,
    CommonParams,
    ToolParamsError,
    ToolRegistry,
    ToolSpec,
    flatten_arguments,
    run_prompt,
)

__all__ = [
    "INVALID_PARAMS",
    "CommonParams",
    "PromptComposer",
    "PromptTemplateError",
    "ToolParamsError",
    "ToolRegistry",
    "ToolSpec",
    "flatten_arguments",
    "run_prompt",
]
