"""Mapping of supervisor outcomes to the public result shape."""

from __future__ import annotations

import json
from dataclasses import replace

from agent_bridge.constants import (
    ACTIVITY_LOG_SEPARATOR,
    AGENT_SENTINEL,
    ENV_AGENT_PATH,
    NO_OUTPUT_MARKER,
)
from agent_bridge.errors import OutcomeKind
from agent_bridge.invocation.models import InvocationResult, LaunchPlan, TextContent
from agent_bridge.invocation.supervisor import SupervisorOutcome


def outcome_text(outcome: SupervisorOutcome, plan: LaunchPlan) -> str:
    kind = outcome.kind
    if kind is OutcomeKind.SUCCEEDED:
        return outcome.stdout or NO_OUTPUT_MARKER
    if kind is OutcomeKind.NON_ZERO_EXIT:
        detail = outcome.stderr or outcome.stdout or NO_OUTPUT_MARKER
        return f"{AGENT_SENTINEL} exited with code {outcome.exit_code}\n{detail}"
    if kind is OutcomeKind.TIMEOUT:
        return f"{AGENT_SENTINEL} timed out after {plan.timeout_ms}ms"
    if kind is OutcomeKind.IDLE_KILLED:
        text = f"{AGENT_SENTINEL} was stopped after {plan.idle_exit_ms}ms without output"
        if outcome.stderr:
            text = f"{text}\n{outcome.stderr}"
        return text
    if kind is OutcomeKind.CANCELLED:
        return f"{AGENT_SENTINEL} invocation cancelled: {outcome.reason or 'operation cancelled'}"
    if kind is OutcomeKind.OUTPUT_FAILURE:
        detail = outcome.stderr or outcome.stdout or NO_OUTPUT_MARKER
        return f"{AGENT_SENTINEL} output could not be read: {outcome.reason}\n{detail}"
    text = (
        f'Failed to start "{plan.executable}": {outcome.reason}\n'
        f"Args: {json.dumps(list(plan.argv))}\n"
    )
    override = plan.env.get(ENV_AGENT_PATH)
    if override:
        text += f"{ENV_AGENT_PATH}={override}\n"
    return text


def assemble_result(
    outcome: SupervisorOutcome,
    plan: LaunchPlan,
    *,
    activity_log_path: str | None = None,
) -> InvocationResult:
    result = InvocationResult(
        content=(TextContent(outcome_text(outcome, plan)),),
        is_error=outcome.kind.is_error,
        metadata={
            "state": outcome.state.value,
            "exit_code": outcome.exit_code,
            "duration_ms": outcome.duration_ms,
        },
    )
    return annotate_activity_log(result, activity_log_path)


def annotate_activity_log(result: InvocationResult, path: str | None) -> InvocationResult:
    """Append the activity-log pointer to the last content part."""

    if path is None:
        return result
    parts = list(result.content) or [TextContent("")]
    last = parts[-1]
    parts[-1] = replace(last, text=f"{last.text}{ACTIVITY_LOG_SEPARATOR}{path}")
    return replace(result, content=tuple(parts), progress_log_file=path)


def error_result(message: str, *, reason: str | None = None) -> InvocationResult:
    metadata = {} if reason is None else {"reason": reason}
    return InvocationResult(content=(TextContent(message),), is_error=True, metadata=metadata)


def prepend_text(result: InvocationResult, text: str) -> InvocationResult:
    return replace(result, content=(TextContent(text), *result.content))


__all__ = [
    "annotate_activity_log",
    "assemble_result",
    "error_result",
    "outcome_text",
    "prepend_text",
]
