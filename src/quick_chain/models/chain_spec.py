"""Pydantic model for a chain definition."""

from __future__ import annotations

import hashlib

from pydantic import BaseModel, ConfigDict, Field

from quick_chain.models.kinds import ChainKind, FailureMode
from quick_chain.models.model_spec import ModelSpec
from quick_chain.models.retry_policy import RetryPolicy
from quick_chain.models.step_spec import StepSpec


class ChainSpec(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    description: str = ""
    kind: ChainKind = ChainKind.LINEAR
    steps: list[StepSpec]
    entry: str | None = None  # conditional chains; defaults to the first step
    fan_out: list[str] = Field(default_factory=list)  # parallel branch step names
    aggregate: str | None = None  # parallel aggregation step name
    deterministic: bool = False
    failure_mode: FailureMode = FailureMode.LENIENT
    recovery: bool = True
    recovery_log_entries: int = Field(default=3, ge=0)
    context_chars: int = Field(default=0, ge=0)
    deadline: float | None = Field(default=None, gt=0)
    retry: RetryPolicy = Field(default_factory=RetryPolicy)
    model: ModelSpec = Field(default_factory=ModelSpec)
    instructions: str = ""

    def fingerprint(self) -> str:
        return hashlib.sha256(self.model_dump_json().encode("utf-8")).hexdigest()

    def step(self, name: str) -> StepSpec:
        for step in self.steps:
            if step.name == name:
                return step
        raise KeyError(f"Step {name!r} not found in chain {self.name!r}.")
