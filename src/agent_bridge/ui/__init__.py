"""UI package exports for the CLI and its rendering layer."""

from agent_bridge.ui.cli import build_parser, run_cli
from agent_bridge.ui.render import CLIRenderer, create_renderer

__all__ = [
    "CLIRenderer",
    "build_parser",
    "create_renderer",
    "run_cli",
]
