"""Pydantic models for the outcome of one executed step."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, model_validator

from quick_chain.models.kinds import StepFailureKind


class StepError(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: StepFailureKind
    message: str


class StepResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    rendered_input: str
    output: str = ""
    duration: float = Field(default=0.0, ge=0)
    success: bool
    error: StepError | None = None
    attempts: int = Field(default=0, ge=0)
    recovered: bool = False

    @model_validator(mode="after")
    def _error_matches_success(self) -> "StepResult":
        if self.success and self.error is not None:
            raise ValueError(f"Successful step {self.name!r} cannot carry an error.")
        if not self.success and self.error is None:
            raise ValueError(f"Failed step {self.name!r} must carry an error.")
        return self
