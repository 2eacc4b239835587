"""Secure invocation engine for the ``cursor-agent`` CLI."""

from agent_bridge.invocation.argv import ArgvOptions, compose_argv
from agent_bridge.invocation.invoker import AgentInvoker
from agent_bridge.invocation.models import (
    InvocationRequest,
    InvocationResult,
    LaunchPlan,
    OutputFormat,
    ProgressConsumer,
    ProgressEvent,
    ProgressKind,
    TextContent,
)
from agent_bridge.invocation.stream_decoder import StreamEventDecoder
from agent_bridge.invocation.supervisor import (
    InvocationState,
    ProcessSupervisor,
    SupervisorOutcome,
)

__all__ = [
    "AgentInvoker",
    "ArgvOptions",
    "InvocationRequest",
    "InvocationResult",
    "InvocationState",
    "LaunchPlan",
    "OutputFormat",
    "ProcessSupervisor",
    "ProgressConsumer",
    "ProgressEvent",
    "ProgressKind",
    "StreamEventDecoder",
    "SupervisorOutcome",
    "TextContent",
    "compose_argv",
]
