"""Exception hierarchy for chain construction and execution."""

from __future__ import annotations

from enum import Enum

from quick_chain.models.kinds import StepFailureKind


class ChainError(Exception):
    """Base class for every error raised by quick_chain."""


class ProviderErrorKind(str, Enum):
    TIMEOUT = "timeout"
    RATE_LIMITED = "rate_limited"
    CONTENT_FILTERED = "content_filtered"
    TRANSIENT_NETWORK = "transient_network"
    UNKNOWN = "unknown"


RETRYABLE_KINDS = frozenset(
    {
        ProviderErrorKind.TIMEOUT,
        ProviderErrorKind.RATE_LIMITED,
        ProviderErrorKind.TRANSIENT_NETWORK,
    }
)


class ProviderError(ChainError):
    def __init__(self, kind: ProviderErrorKind, message: str = "") -> None:
        super().__init__(f"{kind.value}: {message}" if message else kind.value)
        self.kind = kind
        self.message = message or kind.value

    @property
    def retryable(self) -> bool:
        return self.kind in RETRYABLE_KINDS

    @property
    def failure_kind(self) -> StepFailureKind:
        return StepFailureKind(self.kind.value)


class ValidationFailure(ChainError):
    """A provider call succeeded but the step's validation predicate rejected the output."""

    def __init__(self, step_name: str, output: str) -> None:
        super().__init__(f"Output of step {step_name!r} failed validation.")
        self.step_name = step_name
        self.output = output


class MissingVariable(ChainError, KeyError):
    def __init__(self, name: str) -> None:
        super().__init__(f"Template variable {name!r} is not defined.")
        self.name = name

    def __str__(self) -> str:
        return str(self.args[0])


class ConstructionErrorKind(str, Enum):
    CYCLIC_CHAIN = "cyclic_chain"
    MISSING_DEFAULT_BRANCH = "missing_default_branch"
    DUPLICATE_STEP_NAME = "duplicate_step_name"
    UNKNOWN_STEP = "unknown_step"
    INVALID_ENTRY = "invalid_entry"
    INVALID_LAYOUT = "invalid_layout"
    INVALID_TEMPLATE = "invalid_template"


class ConstructionError(ChainError):
    """Raised while building a chain; never deferred to execution time."""

    def __init__(self, kind: ConstructionErrorKind, message: str) -> None:
        super().__init__(f"{kind.value}: {message}")
        self.kind = kind
        self.message = message
