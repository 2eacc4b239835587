"""Orchestration entrypoint: request in, exactly one result out."""

from __future__ import annotations

import json
import os
import uuid
from collections.abc import Mapping

from agent_bridge.config.loader import SettingsCache
from agent_bridge.config.schema import BridgeSettings
from agent_bridge.invocation.argv import ArgvOptions, compose_argv
from agent_bridge.invocation.models import (
    InvocationRequest,
    InvocationResult,
    LaunchPlan,
    ProgressConsumer,
    ProgressEvent,
)
from agent_bridge.invocation.result import assemble_result
from agent_bridge.invocation.stream_decoder import StreamEventDecoder
from agent_bridge.invocation.supervisor import ProcessSupervisor
from agent_bridge.observability.activity_log import ActivityLog, open_activity_log
from agent_bridge.observability.logging import correlation_scope, get_logger
from agent_bridge.security.environment import build_safe_environment
from agent_bridge.security.path_policy import validate_executable, validate_working_directory

logger = get_logger(__name__)


class AgentInvoker:
    """Validates requests, supervises ``cursor-agent``, and assembles results.

    Validation problems raise :class:`~agent_bridge.errors.InvocationValidationError`
    before anything is spawned. Once spawning begins, :meth:`invoke` always
    returns an :class:`InvocationResult`; failures are reported with
    ``is_error=True``.
    """

    def __init__(
        self,
        *,
        settings: BridgeSettings | None = None,
        settings_cache: SettingsCache | None = None,
        environ: Mapping[str, str] | None = None,
        base_dir: str | None = None,
    ) -> None:
        self._fixed_settings = settings
        self._environ = environ
        self._cache = settings_cache or SettingsCache(environ=environ)
        self._base_dir = base_dir

    @property
    def base_dir(self) -> str | None:
        return self._base_dir

    @property
    def settings(self) -> BridgeSettings:
        if self._fixed_settings is not None:
            return self._fixed_settings
        return self._cache.get()

    def build_plan(
        self, request: InvocationRequest, settings: BridgeSettings | None = None
    ) -> LaunchPlan:
        active = settings or self.settings
        executable = validate_executable(request.executable, settings=active)
        cwd = validate_working_directory(request.cwd, base_dir=self._base_dir)
        ambient = os.environ if self._environ is None else self._environ
        argv = compose_argv(
            request.argv,
            ArgvOptions(
                output_format=request.output_format,
                print_output=request.print_output,
                stream_progress=request.stream_progress,
                model=request.model,
                force=request.force,
            ),
            active,
        )
        return LaunchPlan(
            executable=executable,
            cwd=cwd,
            env=build_safe_environment(ambient, active),
            argv=tuple(argv),
            timeout_ms=active.effective_timeout_ms,
            idle_exit_ms=active.effective_idle_exit_ms,
        )

    async def invoke(self, request: InvocationRequest) -> InvocationResult:
        settings = self.settings
        plan = self.build_plan(request, settings)

        with correlation_scope(invocation_id=uuid.uuid4().hex[:12]):
            activity = (
                open_activity_log(settings.activity_log_dir)
                if settings.activity_log_enabled
                else None
            )
            try:
                if activity is not None:
                    activity.write(
                        f"Starting {plan.executable} {json.dumps(list(plan.argv))} in {plan.cwd}"
                    )
                decoder = None
                if request.on_progress is not None:
                    decoder = StreamEventDecoder(_recording_consumer(request.on_progress, activity))
                supervisor = ProcessSupervisor(
                    plan, cancel_token=request.cancel_token, decoder=decoder
                )
                outcome = await supervisor.run()
                if activity is not None:
                    activity.write(
                        f"Finished: {outcome.state.value} exit_code={outcome.exit_code} "
                        f"duration={outcome.duration_ms}ms stdout={len(outcome.stdout)} "
                        f"stderr={len(outcome.stderr)}"
                    )
                    if outcome.stderr:
                        activity.write(f"stderr: {outcome.stderr}")
            finally:
                if activity is not None:
                    activity.close()

            logger.debug(
                "invocation_finished",
                state=outcome.state.value,
                exit_code=outcome.exit_code,
                duration_ms=outcome.duration_ms,
            )
            return assemble_result(
                outcome, plan, activity_log_path=activity.path if activity is not None else None
            )


def _recording_consumer(
    consumer: ProgressConsumer, activity: ActivityLog | None
) -> ProgressConsumer:
    if activity is None:
        return consumer

    def _forward(event: ProgressEvent) -> None:
        activity.write(event.message)
        consumer(event)

    return _forward


__all__ = ["AgentInvoker"]
