"""
agent-bridge — supervised, sandboxed invocation of the ``cursor-agent`` CLI.

Purpose
- Package root. Defines public package-level metadata and import boundaries.

Import boundary rules
- No side effects at import time (no config loading, no logging init).
- Heavy submodules (jinja2 templates, rich rendering) are imported lazily by
  the CLI and tool layers.
"""

from __future__ import annotations

__version__ = "0.1.0"

__all__ = ["__version__"]
