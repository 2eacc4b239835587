"""
agent-bridge — intent prompt templates.

File: src/agent_bridge/tools/prompts.py

Purpose
- Render the fixed natural-language prompts used by the edit/analyze/search/plan
  tools from strict jinja2 templates.

Functional requirements
- Rendering is deterministic for the same inputs.
- Every variable a template references must be supplied (``StrictUndefined``).
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Final

from jinja2 import Environment, StrictUndefined, Template, UndefinedError


class PromptTemplateError(RuntimeError):
    """Base error for prompt template rendering."""


class PromptTemplateVariableError(PromptTemplateError, ValueError):
    """Raised when a template variable is missing."""


EDIT_FILE_TEMPLATE: Final[str] = (
    "Edit the repository file:\n"
    "- File: {{ file }}\n"
    "- Instruction: {{ instruction }}\n"
    "{% if apply %}- Apply changes if safe.\n"
    "{% else %}- Propose a patch/diff without applying.\n{% endif %}"
    "{% if dry_run %}- Treat as dry-run; do not write to disk.\n{% endif %}"
    "{% if prompt %}- Additional context: {{ prompt }}\n{% endif %}"
)

ANALYZE_FILES_TEMPLATE: Final[str] = (
    "Analyze the following paths in the repository:\n"
    "{% for path in paths %}- {{ path }}\n{% endfor %}"
    "{% if prompt %}Additional prompt: {{ prompt }}\n{% endif %}"
)

SEARCH_REPO_TEMPLATE: Final[str] = (
    "Search the repository for occurrences relevant to:\n"
    "- Query: {{ query }}\n"
    "{% if include %}- Include globs:\n{% for glob in include %}  - {{ glob }}\n{% endfor %}{% endif %}"
    "{% if exclude %}- Exclude globs:\n{% for glob in exclude %}  - {{ glob }}\n{% endfor %}{% endif %}"
    "Return concise findings with file paths and line references."
)

PLAN_TASK_TEMPLATE: Final[str] = (
    "Create a step-by-step plan to accomplish the following goal:\n"
    "- Goal: {{ goal }}\n"
    "{% if constraints %}- Constraints:\n"
    "{% for item in constraints %}  - {{ item }}\n{% endfor %}{% endif %}"
    "Provide a numbered list of actions."
)

TEMPLATES: Final[Mapping[str, str]] = {
    "edit_file": EDIT_FILE_TEMPLATE,
    "analyze_files": ANALYZE_FILES_TEMPLATE,
    "search_repo": SEARCH_REPO_TEMPLATE,
    "plan_task": PLAN_TASK_TEMPLATE,
}


class PromptComposer:
    """Compiles the intent templates once and renders them on demand."""

    def __init__(self, templates: Mapping[str, str] | None = None) -> None:
        self._environment = Environment(
            undefined=StrictUndefined,
            autoescape=False,
            trim_blocks=False,
            lstrip_blocks=False,
            newline_sequence="\n",
            keep_trailing_newline=True,
        )
        source = TEMPLATES if templates is None else templates
        self._templates: dict[str, Template] = {
            name: self._environment.from_string(text) for name, text in source.items()
        }

    @property
    def names(self) -> tuple[str, ...]:
        return tuple(sorted(self._templates))

    def render(self, name: str, variables: Mapping[str, object]) -> str:
        template = self._templates.get(name)
        if template is None:
            raise PromptTemplateError(f"unknown prompt template: {name}")
        try:
            return template.render(**dict(variables))
        except UndefinedError as exc:
            raise PromptTemplateVariableError(f"{name}: {exc.message}") from exc

    def edit_file(
        self,
        *,
        file: str,
        instruction: str,
        apply: bool = False,
        dry_run: bool = False,
        prompt: str | None = None,
    ) -> str:
        return self.render(
            "edit_file",
            {
                "file": file,
                "instruction": instruction,
                "apply": apply,
                "dry_run": dry_run,
                "prompt": prompt,
            },
        )

    def analyze_files(self, *, paths: list[str], prompt: str | None = None) -> str:
        return self.render("analyze_files", {"paths": paths, "prompt": prompt})

    def search_repo(
        self, *, query: str, include: list[str] | None = None, exclude: list[str] | None = None
    ) -> str:
        return self.render(
            "search_repo",
            {"query": query, "include": include or [], "exclude": exclude or []},
        )

    def plan_task(self, *, goal: str, constraints: list[str] | None = None) -> str:
        return self.render("plan_task", {"goal": goal, "constraints": constraints or []})


__all__ = [
    "ANALYZE_FILES_TEMPLATE",
    "EDIT_FILE_TEMPLATE",
    "PLAN_TASK_TEMPLATE",
    "SEARCH_REPO_TEMPLATE",
    "TEMPLATES",
    "PromptComposer",
    "PromptTemplateError",
    "PromptTemplateVariableError",
]
