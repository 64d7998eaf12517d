"""Input helpers."""

from __future__ import annotations

import json
from pathlib import Path

from quick_chain.models.run_input import RunInput


def load_input(path: Path) -> RunInput:
    resolved = path.expanduser().resolve(strict=False)
    if not resolved.exists():
        raise FileNotFoundError(resolved)

    if resolved.suffix.lower() == ".json":
        raw = json.loads(resolved.read_text(encoding="utf-8"))
        data = raw if isinstance(raw, dict) else None
        return RunInput(source_path=str(resolved), kind="json", text=json.dumps(raw, indent=2), data=data)
    txt = resolved.read_text(encoding="utf-8")
    return RunInput(source_path=str(resolved), kind="text", text=txt, data=None)
