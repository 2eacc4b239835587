"""Command-line interface router for agent-bridge."""

from __future__ import annotations

import argparse
import asyncio
import signal
import sys
from collections.abc import Mapping, Sequence
from contextlib import suppress
from dataclasses import dataclass

from agent_bridge.config.loader import SettingsCache, dump_effective_settings
from agent_bridge.config.schema import redact_settings
from agent_bridge.invocation.invoker import AgentInvoker
from agent_bridge.invocation.models import InvocationResult, OutputFormat
from agent_bridge.observability.logging import setup_logging, shutdown_logging
from agent_bridge.tools import registry as tools
from agent_bridge.ui.render import CLIRenderer, create_renderer
from agent_bridge.utils.concurrency import CancellationToken


@dataclass(frozen=True, slots=True)
class CLIError(RuntimeError):
    """User-facing command failure carrying the exit code to return."""

    message: str
    exit_code: int = 1

    def __str__(self) -> str:
        return self.message


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    """Return the parser for every agent-bridge subcommand."""

    parser = argparse.ArgumentParser(
        prog="agent-bridge",
        description=(
            "agent-bridge — run the cursor-agent CLI with validated arguments,\n"
            "a sanitized environment, and supervised timeouts.\n\n"
            "Common workflows:\n"
            "  agent-bridge chat \"explain src/app.py\"     Single prompt\n"
            "  agent-bridge plan \"add caching\" --progress  Stream progress to stderr\n"
            "  agent-bridge raw -- --help                  Pass argv through unchanged\n"
            "  agent-bridge config                         Show effective settings\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--config",
        dest="config_path",
        default=None,
        help="Optional TOML settings file with an [agent] table.",
    )
    common.add_argument(
        "--no-color",
        action="store_true",
        default=False,
        help="Plain output without ANSI styling (NO_COLOR is honoured too).",
    )
    common.add_argument("--json", action="store_true", help="Emit the result as JSON")

    invoke = argparse.ArgumentParser(add_help=False)
    invoke.add_argument("--cwd", default=None, help="Working directory inside the current one.")
    invoke.add_argument(
        "--executable",
        default=None,
        help="cursor-agent, or exactly the configured CURSOR_AGENT_PATH.",
    )
    invoke.add_argument("--model", "-m", default=None, help="Model passed as --model.")
    invoke.add_argument(
        "--force",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Pass -f (default: CURSOR_AGENT_FORCE).",
    )
    invoke.add_argument(
        "--output-format",
        choices=[item.value for item in OutputFormat],
        default=OutputFormat.TEXT.value,
        help="Output format requested from cursor-agent.",
    )
    invoke.add_argument(
        "--extra-arg",
        dest="extra_args",
        action="append",
        default=None,
        help="Extra cursor-agent token placed before the prompt (repeatable).",
    )
    invoke.add_argument(
        "--progress",
        action="store_true",
        default=False,
        help="Stream progress events to stderr.",
    )
    invoke.add_argument(
        "--echo-prompt",
        action="store_true",
        default=False,
        help="Prepend the prompt that was sent to the output.",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    # chat ----------------------------------------------------------------
    chat_parser = subparsers.add_parser(
        "chat", parents=[common, invoke], help="Send a single prompt to cursor-agent"
    )
    chat_parser.add_argument("prompt", help="Prompt text")
    chat_parser.set_defaults(handler=_cmd_tool, tool=tools.CHAT)

    # edit ----------------------------------------------------------------
    edit_parser = subparsers.add_parser(
        "edit", parents=[common, invoke], help="Ask cursor-agent to edit one file"
    )
    edit_parser.add_argument("file", help="File inside the current directory")
    edit_parser.add_argument("instruction", help="What to change")
    edit_parser.add_argument("--apply", action="store_true", help="Apply changes if safe")
    edit_parser.add_argument("--dry-run", action="store_true", help="Do not write to disk")
    edit_parser.add_argument("--prompt", default=None, help="Additional context")
    edit_parser.set_defaults(handler=_cmd_tool, tool=tools.EDIT_FILE)

    # analyze -------------------------------------------------------------
    analyze_parser = subparsers.add_parser(
        "analyze", parents=[common, invoke], help="Analyze one or more paths"
    )
    analyze_parser.add_argument("paths", nargs="+", help="Paths inside the current directory")
    analyze_parser.add_argument("--prompt", default=None, help="Additional prompt")
    analyze_parser.set_defaults(handler=_cmd_tool, tool=tools.ANALYZE_FILES)

    # search --------------------------------------------------------------
    search_parser = subparsers.add_parser(
        "search", parents=[common, invoke], help="Search repository code"
    )
    search_parser.add_argument("query", help="What to look for")
    search_parser.add_argument("--include", action="append", default=None, help="Include glob")
    search_parser.add_argument("--exclude", action="append", default=None, help="Exclude glob")
    search_parser.set_defaults(handler=_cmd_tool, tool=tools.SEARCH_REPO)

    # plan ----------------------------------------------------------------
    plan_parser = subparsers.add_parser(
        "plan", parents=[common, invoke], help="Generate a step-by-step plan"
    )
    plan_parser.add_argument("goal", help="Goal to plan for")
    plan_parser.add_argument(
        "--constraint", dest="constraints", action="append", default=None, help="Constraint"
    )
    plan_parser.set_defaults(handler=_cmd_tool, tool=tools.PLAN_TASK)

    # raw -----------------------------------------------------------------
    raw_parser = subparsers.add_parser(
        "raw",
        parents=[common, invoke],
        help="Pass argv to cursor-agent unchanged",
        description=(
            "Pass argv to cursor-agent without the implicit --print flags.\n\n"
            "Examples:\n"
            "  agent-bridge raw -- --help\n"
            "  agent-bridge raw --print -- \"summarize README.md\"\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    raw_parser.add_argument(
        "--print", dest="print_output", action="store_true", help="Keep the implicit --print"
    )
    raw_parser.add_argument("argv", nargs=argparse.REMAINDER, help="Tokens for cursor-agent")
    raw_parser.set_defaults(handler=_cmd_tool, tool=tools.RAW)

    # tools ---------------------------------------------------------------
    tools_parser = subparsers.add_parser(
        "tools", parents=[common], help="List the tools available to this client"
    )
    tools_parser.set_defaults(handler=_cmd_tools)

    # config --------------------------------------------------------------
    config_parser = subparsers.add_parser(
        "config",
        parents=[common],
        help="Show effective settings (redacted)",
        description=(
            "Display effective settings after merging defaults, file, and env.\n\n"
            "Examples:\n"
            "  agent-bridge config\n"
            "  agent-bridge config --json\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    config_parser.set_defaults(handler=_cmd_config)

    return parser


# ---------------------------------------------------------------------------
# Entrypoints
# ---------------------------------------------------------------------------


def run_cli(argv: Sequence[str] | None = None) -> int:
    """Dispatch ``argv`` to its subcommand handler and return the exit code."""

    parser = build_parser()
    namespace = parser.parse_args(list(argv) if argv is not None else None)
    handler = getattr(namespace, "handler", None)
    if not callable(handler):
        parser.print_help(sys.stderr)
        return 2

    try:
        result = handler(namespace)
    except CLIError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return exc.exit_code
    return int(result)


# ---------------------------------------------------------------------------
# Command handlers
# ---------------------------------------------------------------------------


def _cmd_tool(args: argparse.Namespace) -> int:
    invoker = _build_invoker(args)
    settings = invoker.settings
    registry = tools.ToolRegistry(invoker)
    name = str(args.tool)
    if name not in registry.names:
        raise CLIError(
            f"{name} is not available when EXECUTING_CLIENT={settings.executing_client}",
            exit_code=2,
        )
    renderer = _get_renderer(args)
    logging_handle = setup_logging(debug=settings.debug)
    try:
        result = asyncio.run(
            _call_tool(registry, name, _tool_arguments(args), renderer if args.progress else None)
        )
    finally:
        shutdown_logging(logging_handle)

    if _flag(args, "json"):
        renderer.json(result.to_dict())
    else:
        renderer.result(result)
    return _exit_code_for(result)


def _cmd_tools(args: argparse.Namespace) -> int:
    registry = tools.ToolRegistry(_build_invoker(args))
    renderer = _get_renderer(args)
    if _flag(args, "json"):
        renderer.json({"command": "tools", "tools": list(registry.names)})
        return 0
    renderer.text(registry.instructions())
    return 0


def _cmd_config(args: argparse.Namespace) -> int:
    settings = _build_invoker(args).settings
    renderer = _get_renderer(args)
    if _flag(args, "json"):
        renderer.json({"command": "config", "settings": redact_settings(settings)})
        return 0
    renderer.text(dump_effective_settings(settings))
    return 0


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


async def _call_tool(
    registry: tools.ToolRegistry,
    name: str,
    arguments: Mapping[str, object],
    renderer: CLIRenderer | None,
) -> InvocationResult:
    token = CancellationToken()
    loop = asyncio.get_running_loop()
    installed = False
    with suppress(NotImplementedError, RuntimeError):
        loop.add_signal_handler(signal.SIGINT, token.cancel, "interrupted by user")
        installed = True
    try:
        return await registry.call(
            name,
            arguments,
            on_progress=renderer.progress if renderer is not None else None,
            cancel_token=token,
        )
    finally:
        if installed:
            loop.remove_signal_handler(signal.SIGINT)


def _build_invoker(args: argparse.Namespace) -> AgentInvoker:
    return AgentInvoker(settings_cache=SettingsCache(config_path=args.config_path))


def _tool_arguments(args: argparse.Namespace) -> dict[str, object]:
    payload: dict[str, object] = {
        "output_format": args.output_format,
        "extra_args": list(args.extra_args or []),
        "cwd": args.cwd,
        "executable": args.executable,
        "model": args.model,
        "force": args.force,
        "echo_prompt": True if args.echo_prompt else None,
    }
    tool = args.tool
    if tool == tools.CHAT:
        payload["prompt"] = args.prompt
    elif tool == tools.EDIT_FILE:
        payload.update(
            file=args.file,
            instruction=args.instruction,
            apply=args.apply,
            dry_run=args.dry_run,
            prompt=args.prompt,
        )
    elif tool == tools.ANALYZE_FILES:
        payload.update(paths=list(args.paths), prompt=args.prompt)
    elif tool == tools.SEARCH_REPO:
        payload.update(query=args.query, include=args.include, exclude=args.exclude)
    elif tool == tools.PLAN_TASK:
        payload.update(goal=args.goal, constraints=args.constraints)
    elif tool == tools.RAW:
        argv = list(args.argv)
        if argv and argv[0] == "--":
            argv = argv[1:]
        payload.update(argv=argv, print=args.print_output)
    return payload


def _exit_code_for(result: InvocationResult) -> int:
    if not result.is_error:
        return 0
    if result.metadata.get("reason") == tools.INVALID_PARAMS:
        return 2
    return 1


def _get_renderer(args: argparse.Namespace) -> CLIRenderer:
    return create_renderer(no_color=_flag(args, "no_color"))


def _flag(args: argparse.Namespace, name: str) -> bool:
    return bool(getattr(args, name, False))


__all__ = ["CLIError", "build_parser", "run_cli"]
