"""Utility exports for concurrency helpers."""

from agent_bridge.utils.concurrency import CancellationToken, CancelListener

__all__ = [
    "CancelListener",
    "CancellationToken",
]
