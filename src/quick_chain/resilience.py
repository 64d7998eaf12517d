"""Output validation and single-shot recovery around the retry executor."""

from __future__ import annotations

import logging
import time

from quick_chain.errors import ProviderError, ValidationFailure
from quick_chain.models.kinds import StepFailureKind
from quick_chain.models.step_result import StepError, StepResult
from quick_chain.models.step_spec import StepSpec
from quick_chain.prompting import make_recovery_prompt
from quick_chain.providers import CompletionProvider
from quick_chain.retry import RetryExecutor
from quick_chain.run_control import Deadline, RunLog

logger = logging.getLogger(__name__)


class ResilientStepExecutor:
    def __init__(
        self,
        provider: CompletionProvider,
        retry_executor: RetryExecutor,
        *,
        recovery: bool = True,
        recovery_log_entries: int = 3,
    ) -> None:
        self._provider: CompletionProvider = provider
        self._retry: RetryExecutor = retry_executor
        self.recovery: bool = recovery
        self.recovery_log_entries: int = recovery_log_entries

    async def execute(
        self,
        step: StepSpec,
        prompt: str,
        *,
        original_input: str,
        log: RunLog,
        deadline: Deadline | None = None,
    ) -> StepResult:
        started = time.perf_counter()
        outcome = await self._retry.run(step, prompt, deadline=deadline, log=log)
        attempts = outcome.attempts
        if outcome.error is not None:
            error = step_error_from(outcome.error)
        else:
            output = outcome.output or ""
            error = self._validate(step, output)
            if error is None:
                log.record(f"step {step.name} succeeded after {attempts} attempt(s)")
                return StepResult(
                    name=step.name,
                    rendered_input=prompt,
                    output=output,
                    duration=time.perf_counter() - started,
                    success=True,
                    attempts=attempts,
                )
            log.record(f"step {step.name} output failed validation")

        if self.recovery:
            recovered, called = await self._recover(
                step, error, original_input=original_input, log=log, deadline=deadline
            )
            if called:
                attempts += 1
            if isinstance(recovered, str):
                return StepResult(
                    name=step.name,
                    rendered_input=prompt,
                    output=recovered,
                    duration=time.perf_counter() - started,
                    success=True,
                    attempts=attempts,
                    recovered=True,
                )
            # the original failure stays decisive
            error = StepError(
                kind=error.kind,
                message=f"{error.message} (recovery failed: {recovered.kind.value})",
            )

        log.record(f"step {step.name} failed permanently: {error.kind.value}")
        return StepResult(
            name=step.name,
            rendered_input=prompt,
            duration=time.perf_counter() - started,
            success=False,
            error=error,
            attempts=attempts,
        )

    def _validate(self, step: StepSpec, output: str) -> StepError | None:
        if step.validation is None or step.validation.evaluate(output, True):
            return None
        failure = ValidationFailure(step.name, output)
        return StepError(kind=StepFailureKind.VALIDATION_FAILED, message=str(failure))

    async def _recover(
        self,
        step: StepSpec,
        error: StepError,
        *,
        original_input: str,
        log: RunLog,
        deadline: Deadline | None,
    ) -> tuple[str | StepError, bool]:
        prompt = make_recovery_prompt(step, error, log.tail(self.recovery_log_entries), original_input)
        timeout = step.timeout if deadline is None else deadline.budget(step.timeout)
        if timeout <= 0:
            return StepError(kind=StepFailureKind.TIMEOUT, message="Chain deadline exhausted before recovery"), False
        logger.info("Attempting recovery for step %s after %s", step.name, error.kind.value)
        try:
            output = await self._provider.invoke(prompt, timeout)
        except ProviderError as exc:
            log.record(f"step {step.name} recovery failed: {exc}")
            return step_error_from(exc), True
        validation_error = self._validate(step, output)
        if validation_error is not None:
            log.record(f"step {step.name} recovery output failed validation")
            return validation_error, True
        log.record(f"step {step.name} recovered")
        return output, True


def step_error_from(exc: ProviderError) -> StepError:
    return StepError(kind=exc.failure_kind, message=exc.message)
