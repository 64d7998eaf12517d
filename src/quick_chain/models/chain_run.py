"""Pydantic models for completed chain runs and dispatcher outcomes."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from quick_chain.models.kinds import ChainStatus, ErrorKind
from quick_chain.models.step_result import StepResult


class ChainRun(BaseModel):
    model_config = ConfigDict(frozen=True)

    chain_name: str
    spec_hash: str
    initial_input: str
    results: list[StepResult] = Field(default_factory=list)
    execution_path: list[str] = Field(default_factory=list)
    status: ChainStatus
    final_output: str = ""
    duration: float = Field(default=0.0, ge=0)

    def result_for(self, name: str) -> StepResult | None:
        for result in self.results:
            if result.name == name:
                return result
        return None


class ChainOutcome(BaseModel):
    status: ChainStatus
    final_output: str | None = None
    partial_result: str | None = None
    error_kind: ErrorKind | None = None
    recovery_suggestion: str | None = None
    run: ChainRun | None = None
    cache_hit: bool = False
