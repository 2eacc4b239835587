"""Observability: structured process logging and per-invocation activity logs."""

from agent_bridge.observability.activity_log import ActivityLog, open_activity_log
from agent_bridge.observability.logging import (
    LoggingConfig,
    StructuredLoggingHandle,
    correlation_scope,
    get_logger,
    setup_logging,
    setup_structured_logging,
    shutdown_logging,
)

__all__ = [
    "ActivityLog",
    "LoggingConfig",
    "StructuredLoggingHandle",
    "correlation_scope",
    "get_logger",
    "open_activity_log",
    "setup_logging",
    "setup_structured_logging",
    "shutdown_logging",
]
