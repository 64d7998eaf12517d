"""Pydantic model for the initial input of a chain run."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict


class RunInput(BaseModel):
    model_config = ConfigDict(frozen=True)

    source_path: str
    kind: Literal["json", "text"]
    text: str  # what the first step sees as {{ input }}
    data: dict[str, Any] | None = None
