"""Packages chain runs into structured outcomes that never raise at runtime."""

from __future__ import annotations

import logging

from quick_chain.errors import ConstructionError, ProviderError, ValidationFailure
from quick_chain.models.chain_run import ChainOutcome, ChainRun
from quick_chain.models.kinds import ChainStatus, ErrorKind, StepFailureKind
from quick_chain.models.step_result import StepError, StepResult
from quick_chain.run_control import CancelToken
from quick_chain.runners.base import ChainRunner

logger = logging.getLogger(__name__)

FAILURE_KIND_TO_ERROR_KIND: dict[StepFailureKind, ErrorKind] = {
    StepFailureKind.TIMEOUT: ErrorKind.TIMEOUT,
    StepFailureKind.RATE_LIMITED: ErrorKind.RATE_LIMITED,
    StepFailureKind.CONTENT_FILTERED: ErrorKind.CONTENT_FILTERED,
    StepFailureKind.VALIDATION_FAILED: ErrorKind.VALIDATION_FAILED,
    StepFailureKind.TRANSIENT_NETWORK: ErrorKind.UNKNOWN,
    StepFailureKind.MISSING_VARIABLE: ErrorKind.UNKNOWN,
    StepFailureKind.UNKNOWN: ErrorKind.UNKNOWN,
}

RECOVERY_SUGGESTIONS: dict[ErrorKind, str] = {
    ErrorKind.TIMEOUT: "Raise the step timeout or chain deadline, or shorten the prompt.",
    ErrorKind.CONTENT_FILTERED: "Rephrase the input or prompt template; the provider refused the content.",
    ErrorKind.RATE_LIMITED: "Wait before running again or lower request concurrency.",
    ErrorKind.VALIDATION_FAILED: "Adjust the prompt so the output satisfies the step's validation predicate.",
    ErrorKind.UNKNOWN: "Inspect the failed step errors; check connectivity and template variables.",
}
CANCELLED_SUGGESTION = "The run was cancelled before completion; submit it again to finish."


def classify(error: StepError | BaseException | None) -> ErrorKind:
    if isinstance(error, StepError):
        return FAILURE_KIND_TO_ERROR_KIND[error.kind]
    if isinstance(error, ProviderError):
        return FAILURE_KIND_TO_ERROR_KIND[error.failure_kind]
    if isinstance(error, ValidationFailure):
        return ErrorKind.VALIDATION_FAILED
    if isinstance(error, TimeoutError):
        return ErrorKind.TIMEOUT
    return ErrorKind.UNKNOWN


def decisive_failure(run: ChainRun) -> StepResult | None:
    for result in reversed(run.results):
        if not result.success:
            return result
    return None


def last_good_output(run: ChainRun) -> str | None:
    for result in reversed(run.results):
        if result.success:
            return result.output
    return None


class ErrorAwareDispatcher:
    async def dispatch(
        self,
        runner: ChainRunner,
        initial_input: str,
        *,
        cancel: CancelToken | None = None,
        deadline: float | None = None,
    ) -> ChainOutcome:
        try:
            run, cache_hit = await runner.run_with_cache(initial_input, cancel=cancel, deadline=deadline)
        except ConstructionError:
            raise
        except Exception as exc:
            logger.exception("Chain %s failed outside of step handling", runner.spec.name)
            kind = classify(exc)
            return ChainOutcome(
                status=ChainStatus.FAILURE,
                error_kind=kind,
                recovery_suggestion=RECOVERY_SUGGESTIONS[kind],
            )
        return package(run, cache_hit=cache_hit)


def package(run: ChainRun, *, cache_hit: bool = False) -> ChainOutcome:
    if run.status == ChainStatus.SUCCESS:
        return ChainOutcome(status=run.status, final_output=run.final_output, run=run, cache_hit=cache_hit)
    if run.status == ChainStatus.CANCELLED:
        return ChainOutcome(
            status=run.status,
            partial_result=last_good_output(run),
            recovery_suggestion=CANCELLED_SUGGESTION,
            run=run,
            cache_hit=cache_hit,
        )
    failed = decisive_failure(run)
    kind = classify(failed.error if failed is not None else None)
    if run.status == ChainStatus.PARTIAL:
        return ChainOutcome(
            status=run.status,
            final_output=run.final_output,
            partial_result=run.final_output,
            error_kind=kind,
            recovery_suggestion=RECOVERY_SUGGESTIONS[kind],
            run=run,
            cache_hit=cache_hit,
        )
    return ChainOutcome(
        status=run.status,
        partial_result=last_good_output(run),
        error_kind=kind,
        recovery_suggestion=RECOVERY_SUGGESTIONS[kind],
        run=run,
        cache_hit=cache_hit,
    )
