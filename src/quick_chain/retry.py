"""Bounded retry with exponential backoff around one step invocation."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Awaitable, Callable

import anyio

from quick_chain.errors import ProviderError, ProviderErrorKind
from quick_chain.models.retry_policy import RetryPolicy
from quick_chain.models.step_spec import StepSpec
from quick_chain.providers import CompletionProvider
from quick_chain.run_control import Deadline, RunLog

logger = logging.getLogger(__name__)

SleepFn = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class AttemptOutcome:
    output: str | None
    error: ProviderError | None
    attempts: int

    @property
    def success(self) -> bool:
        return self.error is None


class RetryExecutor:
    def __init__(
        self,
        provider: CompletionProvider,
        policy: RetryPolicy | None = None,
        *,
        sleep: SleepFn = anyio.sleep,
    ) -> None:
        self._provider: CompletionProvider = provider
        self.policy: RetryPolicy = policy or RetryPolicy()
        self._sleep: SleepFn = sleep

    async def run(
        self,
        step: StepSpec,
        prompt: str,
        *,
        deadline: Deadline | None = None,
        log: RunLog | None = None,
    ) -> AttemptOutcome:
        total = step.max_attempts
        last_error: ProviderError | None = None
        attempt = 0
        while attempt < total:
            timeout = step.timeout if deadline is None else deadline.budget(step.timeout)
            if timeout <= 0:
                last_error = ProviderError(ProviderErrorKind.TIMEOUT, "Chain deadline exhausted")
                break
            attempt += 1
            try:
                output = await self._provider.invoke(prompt, timeout)
            except ProviderError as exc:
                last_error = exc
                if log is not None:
                    log.record(f"step {step.name} attempt {attempt}/{total} failed: {exc}")
                if not exc.retryable:
                    logger.warning("Step %s failed with non-retryable %s", step.name, exc.kind.value)
                    break
                if attempt >= total:
                    break
                delay = self.policy.delay_for(attempt)
                if deadline is not None:
                    delay = min(delay, deadline.remaining())
                logger.warning(
                    "Step %s attempt %d/%d failed with %s; retrying in %.2fs",
                    step.name,
                    attempt,
                    total,
                    exc.kind.value,
                    delay,
                )
                await self._sleep(delay)
                continue
            return AttemptOutcome(output=output, error=None, attempts=attempt)

        if last_error is None:
            last_error = ProviderError(ProviderErrorKind.UNKNOWN, "No attempt was made")
        return AttemptOutcome(output=None, error=last_error, attempts=attempt)
