"""Loaded chain markdown plus parsed metadata."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import frontmatter

from quick_chain.models.chain_spec import ChainSpec


logger = logging.getLogger(__name__)

SECTION_HEADER_RE = re.compile(r"^(#{1,6})\s+(.+?)\s*$", re.MULTILINE)
STEP_ID_RE = re.compile(r"^[A-Za-z0-9_-]+$")


@dataclass
class LoadedChainFile:
    spec: ChainSpec
    source: str
    step_prompts: dict[str, str]  # "step:<name>" -> markdown chunk

    def __init__(self, chain: Path | str) -> None:
        post, source_label = load_chain_frontmatter(chain)
        sections = parse_chain_sections(post.content)
        metadata: dict[str, Any] = dict(post.metadata)
        if "name" not in metadata:
            metadata["name"] = Path(source_label).stem if source_label != "<inline>" else "inline"
        metadata["steps"] = merge_step_prompts(metadata.get("steps") or [], sections.step_prompts, source_label)
        if sections.instructions and not metadata.get("instructions"):
            metadata["instructions"] = sections.instructions
        self.spec = ChainSpec.model_validate(metadata)
        self.source = source_label
        self.step_prompts = sections.step_prompts


@dataclass(frozen=True)
class ParsedChainSections:
    instructions: str
    step_prompts: dict[str, str]


def load_chain_frontmatter(chain: Path | str) -> tuple[frontmatter.Post, str]:
    if isinstance(chain, Path):
        post = frontmatter.load(str(chain))
        return post, str(chain)
    chain_path = Path(chain)
    if "\n" not in chain and chain_path.exists():
        post = frontmatter.load(str(chain_path))
        return post, str(chain_path)
    post = frontmatter.loads(chain)
    return post, "<inline>"


def merge_step_prompts(
    steps: list[dict[str, Any]],
    step_prompts: dict[str, str],
    source_label: str,
) -> list[dict[str, Any]]:
    merged: list[dict[str, Any]] = []
    used: set[str] = set()
    for raw_step in steps:
        step = dict(raw_step)
        key = f"step:{step.get('name', '')}"
        if not step.get("prompt"):
            if key not in step_prompts:
                raise ValueError(f"Step {step.get('name')!r} in {source_label} has no prompt or '## {key}' section.")
            step["prompt"] = step_prompts[key]
        used.add(key)
        merged.append(step)
    for unused in sorted(set(step_prompts) - used):
        logger.warning("Ignored section %s in %s: no step with that name", unused, source_label)
    return merged


def classify_section_header(header_text: str) -> tuple[str, str] | None:
    header = header_text.strip()
    if ":" in header:
        prefix, step_id = header.split(":", 1)
        if prefix.strip().lower() == "step":
            step_id = step_id.strip()
            if step_id and STEP_ID_RE.match(step_id):
                return ("step", f"step:{step_id}")
    if re.sub(r"\s+", " ", header.lower().replace("_", " ")) == "instructions":
        return ("instructions", "instructions")
    return None


def parse_chain_sections(markdown_body: str) -> ParsedChainSections:
    recognized: list[tuple[str, str, int, int]] = []
    for match in SECTION_HEADER_RE.finditer(markdown_body):
        classified = classify_section_header(match.group(2))
        if classified is None:
            continue
        kind, key = classified
        recognized.append((kind, key, match.start(), match.end()))

    instructions = ""
    step_prompts: dict[str, str] = {}
    for index, (kind, key, _start, end) in enumerate(recognized):
        next_index = index + 1
        section_end = recognized[next_index][2] if next_index < len(recognized) else len(markdown_body)
        content = markdown_body[end:section_end].strip()
        if kind == "instructions":
            if not instructions:
                instructions = content
        else:
            step_prompts[key] = content

    return ParsedChainSections(instructions=instructions, step_prompts=step_prompts)
