"""Cancellation primitive shared by the CLI, the tools and the supervisor."""

from __future__ import annotations

from collections.abc import Callable
from typing import Final

_DEFAULT_REASON: Final[str] = "operation cancelled"

CancelListener = Callable[[str], None]


class CancellationToken:
    """Cooperative, one-shot cancellation signal.

    Listeners registered with :meth:`subscribe` are invoked synchronously, once,
    with the cancellation reason. The returned callable removes the listener and
    is safe to call more than once.
    """

    def __init__(self) -> None:
        self._cancelled = False
        self._reason: str | None = None
        self._listeners: list[CancelListener] = []

    def cancel(self, reason: str | None = None) -> None:
        if self._cancelled:
            return
        self._cancelled = True
        self._reason = reason or _DEFAULT_REASON
        listeners, self._listeners = self._listeners, []
        for listener in listeners:
            listener(self._reason)

    @property
    def is_cancelled(self) -> bool:
        return self._cancelled

    @property
    def reason(self) -> str | None:
        return self._reason

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def subscribe(self, listener: CancelListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            # Identity comparison; the same callable may be registered twice.
            for index, item in enumerate(self._listeners):
                if item is listener:
                    del self._listeners[index]
                    return

        return _unsubscribe


__all__ = [
    "CancelListener",
    "CancellationToken",
]
