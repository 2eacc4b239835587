"""
agent-bridge — child process supervision.

File: src/agent_bridge/invocation/supervisor.py

Purpose
- Run one ``cursor-agent`` process and drive it to exactly one terminal state.

What should be included in this file
- Spawn through ``asyncio.create_subprocess_exec`` (never a shell) with the
  validated cwd and sanitized environment; stdin is closed immediately.
- Output pumps that accumulate stdout/stderr, rearm the idle timer, and feed
  the stream decoder.
- Hard-timeout and idle timers, plus a cancellation-token subscription.

Functional requirements
- Completion is a race between process exit, spawn error, the hard timer,
  the idle timer, and cancellation. A single future settles it; later
  sources are ignored.
- On any terminal transition every timer is cancelled and the cancellation
  listener is removed before the outcome is returned.
- Idle-kill followed by exit counts as success when any stdout was seen.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable
from contextlib import suppress
from dataclasses import dataclass
from enum import Enum
from typing import Final

from agent_bridge.errors import OutcomeKind
from agent_bridge.invocation.models import LaunchPlan
from agent_bridge.invocation.stream_decoder import StreamEventDecoder
from agent_bridge.observability.logging import get_logger
from agent_bridge.utils.concurrency import CancellationToken

logger = get_logger(__name__)

_READ_CHUNK: Final[int] = 8192
_REAP_TIMEOUT_SECONDS: Final[float] = 5.0


class InvocationState(str, Enum):
    SPAWNING = "spawning"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    TIMED_OUT = "timed_out"
    IDLE_KILLED = "idle_killed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self not in (InvocationState.SPAWNING, InvocationState.RUNNING)


@dataclass(frozen=True, slots=True)
class SupervisorOutcome:
    """Terminal snapshot handed to the result assembler."""

    state: InvocationState
    kind: OutcomeKind
    stdout: str = ""
    stderr: str = ""
    exit_code: int | None = None
    reason: str | None = None
    duration_ms: int = 0
    killed_by_idle: bool = False


class ProcessSupervisor:
    """Owns one child process, its timers, and its cancellation subscription.

    Instances are single-use: call :meth:`run` once.
    """

    def __init__(
        self,
        plan: LaunchPlan,
        *,
        cancel_token: CancellationToken | None = None,
        decoder: StreamEventDecoder | None = None,
    ) -> None:
        self._plan = plan
        self._token = cancel_token
        self._decoder = decoder
        self._state = InvocationState.SPAWNING
        self._stdout = bytearray()
        self._stderr = bytearray()
        self._killed_by_idle = False
        self._started = 0.0
        self._proc: asyncio.subprocess.Process | None = None
        self._settlement: asyncio.Future[SupervisorOutcome] | None = None
        self._hard_timer: asyncio.TimerHandle | None = None
        self._idle_timer: asyncio.TimerHandle | None = None
        self._unsubscribe: Callable[[], None] | None = None
        self._pump: asyncio.Task[None] | None = None
        self._used = False

    @property
    def state(self) -> InvocationState:
        return self._state

    @property
    def pid(self) -> int | None:
        return None if self._proc is None else self._proc.pid

    async def run(self) -> SupervisorOutcome:
        if self._used:
            raise RuntimeError("ProcessSupervisor.run() may only be called once")
        self._used = True
        loop = asyncio.get_running_loop()
        self._settlement = loop.create_future()
        self._started = time.perf_counter()

        token = self._token
        if token is not None and token.is_cancelled:
            self._settle(InvocationState.CANCELLED, OutcomeKind.CANCELLED, reason=token.reason)
            return self._settlement.result()

        try:
            await self._spawn()
        except (OSError, ValueError) as exc:
            logger.debug("spawn_failed", executable=self._plan.executable, error=str(exc))
            self._settle(InvocationState.FAILED, OutcomeKind.SPAWN_FAILURE, reason=str(exc))
            return self._settlement.result()

        self._state = InvocationState.RUNNING
        self._hard_timer = loop.call_later(self._plan.timeout_ms / 1000, self._on_hard_timeout)
        if token is not None:
            self._unsubscribe = token.subscribe(self._on_cancel)
            if token.is_cancelled:
                self._on_cancel(token.reason or "operation cancelled")
        self._arm_idle()
        self._pump = asyncio.create_task(self._pump_output())

        try:
            return await asyncio.shield(self._settlement)
        except asyncio.CancelledError:
            self._settle(
                InvocationState.CANCELLED, OutcomeKind.CANCELLED, reason="invocation task cancelled"
            )
            raise
        finally:
            await self._teardown()

    async def _spawn(self) -> None:
        plan = self._plan
        logger.debug("spawn", executable=plan.executable, argv=list(plan.argv), cwd=plan.cwd)
        self._proc = await asyncio.create_subprocess_exec(
            plan.executable,
            *plan.argv,
            stdin=asyncio.subprocess.PIPE,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=plan.cwd,
            env=dict(plan.env),
        )
        if self._proc.stdin is not None:
            self._proc.stdin.close()

    async def _pump_output(self) -> None:
        proc = self._proc
        assert proc is not None  # noqa: S101
        try:
            await asyncio.gather(self._read_stdout(proc), self._read_stderr(proc))
            code = await proc.wait()
        except Exception as exc:  # noqa: BLE001
            logger.warning("output_pump_failed", error=repr(exc))
            self._kill()
            self._settle(InvocationState.FAILED, OutcomeKind.OUTPUT_FAILURE, reason=str(exc))
            return
        self._decode(None)
        self._on_exit(code)

    async def _read_stdout(self, proc: asyncio.subprocess.Process) -> None:
        assert proc.stdout is not None  # noqa: S101
        while True:
            chunk = await proc.stdout.read(_READ_CHUNK)
            if not chunk:
                break
            self._stdout.extend(chunk)
            self._arm_idle()
            self._decode(chunk)

    def _decode(self, chunk: bytes | None) -> None:
        """Feed the progress decoder, or flush it at EOF when ``chunk`` is None.

        A decoder that raises is detached for the rest of the run.
        """
        decoder = self._decoder
        if decoder is None:
            return
        try:
            if chunk is None:
                decoder.flush()
            else:
                decoder.feed(chunk)
        except Exception as exc:  # noqa: BLE001
            logger.debug("progress_decoder_failed", error=repr(exc))
            self._decoder = None

    async def _read_stderr(self, proc: asyncio.subprocess.Process) -> None:
        assert proc.stderr is not None  # noqa: S101
        while True:
            chunk = await proc.stderr.read(_READ_CHUNK)
            if not chunk:
                break
            self._stderr.extend(chunk)

    def _arm_idle(self) -> None:
        idle_ms = self._plan.idle_exit_ms
        if idle_ms <= 0 or self._is_settled():
            return
        if self._idle_timer is not None:
            self._idle_timer.cancel()
        loop = asyncio.get_running_loop()
        self._idle_timer = loop.call_later(idle_ms / 1000, self._on_idle)

    def _on_idle(self) -> None:
        if self._is_settled():
            return
        logger.debug("idle_kill", idle_exit_ms=self._plan.idle_exit_ms, stdout_bytes=len(self._stdout))
        self._killed_by_idle = True
        self._kill()

    def _on_hard_timeout(self) -> None:
        self._kill()
        if self._settle(InvocationState.TIMED_OUT, OutcomeKind.TIMEOUT):
            logger.debug("hard_timeout", timeout_ms=self._plan.timeout_ms)

    def _on_cancel(self, reason: str) -> None:
        if self._is_settled():
            return
        self._kill()
        self._settle(InvocationState.CANCELLED, OutcomeKind.CANCELLED, reason=reason)
        logger.debug("cancelled", reason=reason)

    def _on_exit(self, code: int) -> None:
        logger.debug(
            "exit",
            exit_code=code,
            stdout_bytes=len(self._stdout),
            stderr_bytes=len(self._stderr),
        )
        if code == 0 or (self._killed_by_idle and self._stdout):
            self._settle(InvocationState.SUCCEEDED, OutcomeKind.SUCCEEDED, exit_code=code)
        elif self._killed_by_idle:
            self._settle(InvocationState.IDLE_KILLED, OutcomeKind.IDLE_KILLED, exit_code=code)
        else:
            self._settle(InvocationState.FAILED, OutcomeKind.NON_ZERO_EXIT, exit_code=code)

    def _settle(
        self,
        state: InvocationState,
        kind: OutcomeKind,
        *,
        exit_code: int | None = None,
        reason: str | None = None,
    ) -> bool:
        settlement = self._settlement
        if settlement is None or settlement.done():
            return False
        self._state = state
        self._cancel_timers()
        self._drop_subscription()
        settlement.set_result(
            SupervisorOutcome(
                state=state,
                kind=kind,
                stdout=self._stdout.decode("utf-8", errors="replace"),
                stderr=self._stderr.decode("utf-8", errors="replace"),
                exit_code=exit_code,
                reason=reason,
                duration_ms=int((time.perf_counter() - self._started) * 1000),
                killed_by_idle=self._killed_by_idle,
            )
        )
        return True

    def _is_settled(self) -> bool:
        return self._settlement is not None and self._settlement.done()

    def _kill(self) -> None:
        proc = self._proc
        if proc is None or proc.returncode is not None:
            return
        with suppress(ProcessLookupError):
            proc.kill()

    def _cancel_timers(self) -> None:
        for timer in (self._hard_timer, self._idle_timer):
            if timer is not None:
                timer.cancel()
        self._hard_timer = None
        self._idle_timer = None

    def _drop_subscription(self) -> None:
        unsubscribe, self._unsubscribe = self._unsubscribe, None
        if unsubscribe is not None:
            unsubscribe()

    async def _teardown(self) -> None:
        self._cancel_timers()
        self._drop_subscription()
        self._kill()

        pump = self._pump
        if pump is not None and not pump.done():
            pump.cancel()
            with suppress(asyncio.CancelledError):
                await pump

        proc = self._proc
        if proc is not None and proc.returncode is None:
            try:
                await asyncio.wait_for(proc.wait(), timeout=_REAP_TIMEOUT_SECONDS)
            except TimeoutError:
                logger.warning("reap_timeout", pid=proc.pid)


__all__ = [
    "InvocationState",
    "ProcessSupervisor",
    "SupervisorOutcome",
]
