from pathlib import Path

import pytest

from quick_chain.chain_registry import ChainRegistry
from quick_chain.models import ChainKind
from quick_chain.models.loaded_chain_file import (
    LoadedChainFile,
    classify_section_header,
    parse_chain_sections,
)

PACKAGE_CHAINS = Path(__file__).resolve().parents[1] / "quick_chain" / "chains"

CHAIN_MD = """---
name: review
kind: conditional
steps:
  - name: classify
    branches:
      - key: bug
        next: triage
      - key: default
        next: reply
  - name: triage
  - name: reply
    prompt: "Reply politely to: {{ input }}"
---

# Instructions

Be concise.

## step:classify

Classify the ticket as bug or question.

{{ input }}

## step:triage

Write a triage note for {{ input }}.

## step:reply

This section is overridden by the inline prompt.
"""


def test_parse_chain_sections_splits_instructions_and_steps() -> None:
    sections = parse_chain_sections(CHAIN_MD.split("---", 2)[2])

    assert sections.instructions == "Be concise."
    assert set(sections.step_prompts) == {"step:classify", "step:triage", "step:reply"}
    assert sections.step_prompts["step:triage"] == "Write a triage note for {{ input }}."


@pytest.mark.parametrize(
    ("header", "expected"),
    [
        ("step:extract", ("step", "step:extract")),
        ("Step: extract", ("step", "step:extract")),
        ("Instructions", ("instructions", "instructions")),
        ("step:bad name", None),
        ("Notes", None),
    ],
)
def test_classify_section_header(header: str, expected: tuple[str, str] | None) -> None:
    assert classify_section_header(header) == expected


def test_loaded_chain_file_merges_sections_into_steps(tmp_path: Path) -> None:
    path = tmp_path / "review.md"
    path.write_text(CHAIN_MD, encoding="utf-8")

    loaded = LoadedChainFile(path)

    assert loaded.source == str(path)
    assert loaded.spec.kind == ChainKind.CONDITIONAL
    assert loaded.spec.instructions == "Be concise."
    classify = loaded.spec.step("classify")
    assert classify.prompt.startswith("Classify the ticket")
    assert loaded.spec.step("reply").prompt == "Reply politely to: {{ input }}"
    assert [branch.key for branch in classify.branches] == ["bug", "default"]


def test_inline_chain_defaults_its_name() -> None:
    loaded = LoadedChainFile(
        "---\nsteps:\n  - name: only\n    prompt: \"Echo {{ input }}\"\n---\n"
    )

    assert loaded.source == "<inline>"
    assert loaded.spec.name == "inline"
    assert loaded.spec.kind == ChainKind.LINEAR


def test_step_without_prompt_is_rejected(tmp_path: Path) -> None:
    path = tmp_path / "broken.md"
    path.write_text("---\nsteps:\n  - name: lonely\n---\n\nNo sections here.\n", encoding="utf-8")

    with pytest.raises(ValueError, match="lonely"):
        LoadedChainFile(path)


def test_registry_lists_and_loads_chains(tmp_path: Path) -> None:
    (tmp_path / "review.md").write_text(CHAIN_MD, encoding="utf-8")
    nested = tmp_path / "nested"
    nested.mkdir()
    (nested / "echo.md").write_text(
        "---\nsteps:\n  - name: only\n    prompt: \"Echo {{ input }}\"\n---\n", encoding="utf-8"
    )
    registry = ChainRegistry([tmp_path])

    assert registry.list_chains() == ["echo", "review"]
    first = registry.get("echo")
    assert registry.get("echo") is first
    assert first.spec.name == "echo"

    registry.reload()
    assert registry.get("echo") is not first


def test_first_root_wins_for_duplicate_ids(tmp_path: Path) -> None:
    primary = tmp_path / "primary"
    fallback = tmp_path / "fallback"
    primary.mkdir()
    fallback.mkdir()
    (primary / "echo.md").write_text(
        "---\nsteps:\n  - name: only\n    prompt: \"Primary {{ input }}\"\n---\n", encoding="utf-8"
    )
    (fallback / "echo.md").write_text(
        "---\nsteps:\n  - name: only\n    prompt: \"Fallback {{ input }}\"\n---\n", encoding="utf-8"
    )

    loaded = ChainRegistry([primary, fallback]).get("echo")

    assert loaded.spec.steps[0].prompt.startswith("Primary")


def test_missing_chain_raises(tmp_path: Path) -> None:
    registry = ChainRegistry([tmp_path / "does-not-exist"])

    assert registry.list_chains() == []
    with pytest.raises(FileNotFoundError):
        registry.get("nope")


def test_bundled_summarize_chain_loads() -> None:
    loaded = ChainRegistry([PACKAGE_CHAINS]).get("summarize")

    assert loaded.spec.deterministic is True
    assert loaded.spec.context_chars == 0
    assert [step.name for step in loaded.spec.steps] == ["extract", "summarize"]
    assert "{{ input }}" in loaded.spec.step("summarize").prompt
    assert loaded.spec.instructions.startswith("You are a careful analyst.")
