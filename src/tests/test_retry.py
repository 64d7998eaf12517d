import anyio
import pytest

from provider_fakes import ScriptedProvider, SleepRecorder, provider_error, transient
from quick_chain.errors import ProviderErrorKind
from quick_chain.models import RetryPolicy, StepSpec
from quick_chain.providers import FunctionProvider
from quick_chain.retry import RetryExecutor
from quick_chain.run_control import Deadline, RunLog


def _step(**kwargs: object) -> StepSpec:
    return StepSpec.model_validate({"name": "work", "prompt": "WORK: {{ input }}", **kwargs})


def test_retry_policy_delay_doubles_and_caps() -> None:
    policy = RetryPolicy(base_delay=0.5, max_delay=3.0)

    assert [policy.delay_for(n) for n in range(1, 6)] == [0.5, 1.0, 2.0, 3.0, 3.0]


@pytest.mark.anyio
async def test_success_on_first_attempt_does_not_sleep() -> None:
    provider = ScriptedProvider({"WORK": ["done"]})
    sleeper = SleepRecorder()
    executor = RetryExecutor(provider, sleep=sleeper)

    outcome = await executor.run(_step(), "WORK: x")

    assert outcome.success
    assert outcome.output == "done"
    assert outcome.attempts == 1
    assert sleeper.delays == []


@pytest.mark.anyio
async def test_retryable_errors_back_off_exponentially() -> None:
    provider = ScriptedProvider({"WORK": [transient(), provider_error(ProviderErrorKind.RATE_LIMITED), "done"]})
    sleeper = SleepRecorder()
    executor = RetryExecutor(provider, RetryPolicy(base_delay=1.0, max_delay=30.0), sleep=sleeper)
    log = RunLog("test")

    outcome = await executor.run(_step(max_retries=3), "WORK: x", log=log)

    assert outcome.success
    assert outcome.attempts == 3
    assert sleeper.delays == [1.0, 2.0]
    assert len(log.entries) == 2
    assert "attempt 1/3" in log.entries[0]


@pytest.mark.anyio
async def test_backoff_is_capped() -> None:
    provider = ScriptedProvider({"WORK": [transient()]})
    sleeper = SleepRecorder()
    executor = RetryExecutor(provider, RetryPolicy(base_delay=1.0, max_delay=3.0), sleep=sleeper)

    outcome = await executor.run(_step(max_retries=5), "WORK: x")

    assert not outcome.success
    assert outcome.attempts == 5
    assert sleeper.delays == [1.0, 2.0, 3.0, 3.0]
    assert outcome.error is not None
    assert outcome.error.kind == ProviderErrorKind.TRANSIENT_NETWORK


@pytest.mark.anyio
async def test_zero_max_retries_makes_exactly_one_attempt_without_backoff() -> None:
    provider = ScriptedProvider({"WORK": [transient()]})
    sleeper = SleepRecorder()
    executor = RetryExecutor(provider, sleep=sleeper)

    outcome = await executor.run(_step(max_retries=0), "WORK: x")

    assert not outcome.success
    assert outcome.attempts == 1
    assert len(provider.calls) == 1
    assert sleeper.delays == []


@pytest.mark.anyio
@pytest.mark.parametrize("kind", [ProviderErrorKind.CONTENT_FILTERED, ProviderErrorKind.UNKNOWN])
async def test_non_retryable_errors_fail_fast(kind: ProviderErrorKind) -> None:
    provider = ScriptedProvider({"WORK": [provider_error(kind), "never"]})
    sleeper = SleepRecorder()
    executor = RetryExecutor(provider, sleep=sleeper)

    outcome = await executor.run(_step(max_retries=3), "WORK: x")

    assert not outcome.success
    assert outcome.attempts == 1
    assert outcome.error is not None
    assert outcome.error.kind == kind
    assert sleeper.delays == []


@pytest.mark.anyio
async def test_provider_timeout_is_classified_and_retried() -> None:
    calls: list[str] = []

    async def slow(prompt: str) -> str:
        calls.append(prompt)
        await anyio.sleep(5)
        return "late"

    sleeper = SleepRecorder()
    executor = RetryExecutor(FunctionProvider(slow), sleep=sleeper)

    outcome = await executor.run(_step(max_retries=2, timeout=0.01), "WORK: x")

    assert outcome.error is not None
    assert outcome.error.kind == ProviderErrorKind.TIMEOUT
    assert outcome.attempts == 2
    assert len(calls) == 2


@pytest.mark.anyio
async def test_exhausted_deadline_skips_the_call() -> None:
    now = [100.0]
    deadline = Deadline(1.0, clock=lambda: now[0])
    now[0] = 102.0
    provider = ScriptedProvider({"WORK": ["done"]})
    executor = RetryExecutor(provider, sleep=SleepRecorder())

    outcome = await executor.run(_step(), "WORK: x", deadline=deadline)

    assert outcome.error is not None
    assert outcome.error.kind == ProviderErrorKind.TIMEOUT
    assert outcome.attempts == 0
    assert provider.calls == []


@pytest.mark.anyio
async def test_deadline_clamps_the_backoff_delay() -> None:
    now = [0.0]
    deadline = Deadline(1.5, clock=lambda: now[0])
    provider = ScriptedProvider({"WORK": [transient()]})
    sleeper = SleepRecorder()
    executor = RetryExecutor(provider, RetryPolicy(base_delay=10.0), sleep=sleeper)

    outcome = await executor.run(_step(max_retries=2), "WORK: x", deadline=deadline)

    assert sleeper.delays == [1.5]
    assert outcome.attempts == 2
