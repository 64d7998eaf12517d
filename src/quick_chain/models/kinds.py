"""Enumerations shared by chain models and errors."""

from __future__ import annotations

from enum import Enum


class ChainKind(str, Enum):
    LINEAR = "linear"
    CONDITIONAL = "conditional"
    PARALLEL = "parallel"


class FailureMode(str, Enum):
    LENIENT = "lenient"
    STRICT = "strict"


class ChainStatus(str, Enum):
    SUCCESS = "success"
    PARTIAL = "partial"
    FAILURE = "failure"
    CANCELLED = "cancelled"


class StepFailureKind(str, Enum):
    TIMEOUT = "timeout"
    RATE_LIMITED = "rate_limited"
    CONTENT_FILTERED = "content_filtered"
    TRANSIENT_NETWORK = "transient_network"
    UNKNOWN = "unknown"
    VALIDATION_FAILED = "validation_failed"
    MISSING_VARIABLE = "missing_variable"


class ErrorKind(str, Enum):
    """Failure taxonomy reported to callers by the dispatcher."""

    TIMEOUT = "timeout"
    CONTENT_FILTERED = "content_filtered"
    RATE_LIMITED = "rate_limited"
    VALIDATION_FAILED = "validation_failed"
    UNKNOWN = "unknown"
