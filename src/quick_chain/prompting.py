"""Prompt composition helpers."""

from __future__ import annotations

import yaml

from quick_chain.models.step_result import StepError
from quick_chain.models.step_spec import StepSpec


def excerpt(text: str, limit: int) -> str:
    """Returns at most ``limit`` trailing characters of ``text``."""
    if limit <= 0:
        return ""
    if len(text) <= limit:
        return text
    return "..." + text[-limit:]


def with_context(prompt: str, previous_output: str | None, limit: int) -> str:
    if not previous_output or limit <= 0:
        return prompt
    lines = [
        "## Context From Previous Step",
        excerpt(previous_output, limit),
        "",
        prompt,
    ]
    return "\n".join(lines)


def make_recovery_prompt(
    step: StepSpec,
    error: StepError,
    log_entries: list[str],
    original_input: str,
) -> str:
    """
    Builds the single recovery attempt prompt for a failed step.
    Keeps the preamble stable; variable fields are appended below.
    """
    description = step.description or f"Complete the step named {step.name}."
    lines: list[str] = [
        "# Recovery",
        "A previous attempt at this task failed. Produce the result the task asks for.",
        "",
        "## Task",
        description,
        "",
        "## Failure",
        f"{error.kind.value}: {error.message}",
    ]
    if log_entries:
        log_yaml = yaml.safe_dump(
            log_entries,
            allow_unicode=False,
            default_flow_style=False,
            width=4096,
        ).rstrip()
        lines.extend(["", "## Recent Log (YAML)", log_yaml])
    lines.extend(["", "## Original Input", original_input])
    return "\n".join(lines).rstrip() + "\n"
