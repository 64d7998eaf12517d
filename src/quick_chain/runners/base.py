"""Shared machinery for chain runners."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Callable

import anyio

from quick_chain.cache import ResultCache, cache_key
from quick_chain.errors import ConstructionError, ConstructionErrorKind, MissingVariable
from quick_chain.graph import ChainGraph
from quick_chain.models.chain_run import ChainRun
from quick_chain.models.chain_spec import ChainSpec
from quick_chain.models.kinds import ChainKind, ChainStatus, FailureMode, StepFailureKind
from quick_chain.models.retry_policy import RetryPolicy
from quick_chain.models.step_result import StepError, StepResult
from quick_chain.models.step_spec import StepSpec
from quick_chain.prompting import excerpt, with_context
from quick_chain.providers import CompletionProvider
from quick_chain.resilience import ResilientStepExecutor
from quick_chain.retry import RetryExecutor, SleepFn
from quick_chain.run_control import CancelToken, Deadline, RunLog
from quick_chain.templating import placeholders, render

logger = logging.getLogger(__name__)

ContentFilter = Callable[[str], str]
ALLOWED_CATEGORY = "allowed"


@dataclass
class RunContext:
    initial_input: str
    log: RunLog
    cancel: CancelToken | None = None
    deadline: Deadline | None = None

    @property
    def cancelled(self) -> bool:
        return self.cancel is not None and self.cancel.cancelled


@dataclass
class Execution:
    results: list[StepResult] = field(default_factory=list)
    execution_path: list[str] = field(default_factory=list)
    last_output: str | None = None
    final_step: str | None = None  # mandatory step that decides success
    cancelled: bool = False
    aborted: bool = False

    def record(self, result: StepResult) -> None:
        self.results.append(result)
        self.execution_path.append(result.name)
        if result.success:
            self.last_output = result.output


class ChainRunner:
    kind: ChainKind

    def __init__(
        self,
        spec: ChainSpec,
        provider: CompletionProvider,
        *,
        cache: ResultCache | None = None,
        retry_policy: RetryPolicy | None = None,
        sleep: SleepFn = anyio.sleep,
        content_filter: ContentFilter | None = None,
    ) -> None:
        if spec.kind != self.kind:
            raise ConstructionError(
                ConstructionErrorKind.INVALID_LAYOUT,
                f"{type(self).__name__} cannot run {spec.kind.value} chain {spec.name!r}.",
            )
        self.graph: ChainGraph = ChainGraph(spec)
        self.spec: ChainSpec = spec
        self.spec_hash: str = spec.fingerprint()
        self.provider: CompletionProvider = provider
        self.cache: ResultCache | None = cache
        self._retry: RetryExecutor = RetryExecutor(provider, retry_policy or spec.retry, sleep=sleep)
        self._executor: ResilientStepExecutor = ResilientStepExecutor(
            provider,
            self._retry,
            recovery=spec.recovery,
            recovery_log_entries=spec.recovery_log_entries,
        )
        self._content_filter: ContentFilter | None = content_filter

    @property
    def strict(self) -> bool:
        return self.spec.failure_mode == FailureMode.STRICT

    @property
    def cacheable(self) -> bool:
        return self.spec.deterministic and self.cache is not None

    def cached_run(self, initial_input: str) -> ChainRun | None:
        if not self.cacheable or self.cache is None:
            return None
        self.cache.bind(self.spec.name, self.spec_hash)
        return self.cache.get(cache_key(self.spec_hash, initial_input))

    async def run(
        self,
        initial_input: str,
        *,
        cancel: CancelToken | None = None,
        deadline: float | None = None,
    ) -> ChainRun:
        run, _cache_hit = await self.run_with_cache(initial_input, cancel=cancel, deadline=deadline)
        return run

    async def run_with_cache(
        self,
        initial_input: str,
        *,
        cancel: CancelToken | None = None,
        deadline: float | None = None,
    ) -> tuple[ChainRun, bool]:
        """Runs the chain unless a cached run exists; the flag reports a cache hit."""
        cached = self.cached_run(initial_input)
        if cached is not None:
            logger.info("Cache hit for chain %s", self.spec.name)
            return cached, True

        seconds = deadline if deadline is not None else self.spec.deadline
        ctx = RunContext(
            initial_input=initial_input,
            log=RunLog(self.spec.name),
            cancel=cancel,
            deadline=Deadline(seconds) if seconds is not None else None,
        )
        logger.info("Running %s chain %s", self.spec.kind.value, self.spec.name)
        started = time.perf_counter()
        execution = await self._execute(ctx)
        status = self._status(execution)
        final_output = ""
        if status in (ChainStatus.SUCCESS, ChainStatus.PARTIAL) and execution.last_output is not None:
            final_output = execution.last_output
        run = ChainRun(
            chain_name=self.spec.name,
            spec_hash=self.spec_hash,
            initial_input=initial_input,
            results=execution.results,
            execution_path=execution.execution_path,
            status=status,
            final_output=final_output,
            duration=time.perf_counter() - started,
        )
        logger.info("Chain %s finished with status %s in %.3fs", self.spec.name, status.value, run.duration)
        if self.cacheable and self.cache is not None and status == ChainStatus.SUCCESS:
            self.cache.put(cache_key(self.spec_hash, initial_input), run)
        return run, False

    async def _execute(self, ctx: RunContext) -> Execution:
        raise NotImplementedError("ChainRunner._execute must be implemented by subclasses.")

    def _variables(self, current_input: str, ctx: RunContext, **extra: str) -> dict[str, str]:
        variables = {
            "input": current_input,
            "original": ctx.initial_input,
        }
        variables.update(extra)
        return variables

    async def _run_step(
        self,
        step: StepSpec,
        variables: dict[str, str],
        ctx: RunContext,
        *,
        previous_output: str | None = None,
    ) -> StepResult:
        context = excerpt(previous_output or "", self.spec.context_chars)
        variables = {**variables, "context": context}
        try:
            prompt = render(step.prompt, variables)
        except MissingVariable as exc:
            ctx.log.record(f"step {step.name} could not render its prompt: {exc}")
            return self._failed(step, step.prompt, StepFailureKind.MISSING_VARIABLE, str(exc))
        if "context" not in placeholders(step.prompt):
            prompt = with_context(prompt, previous_output, self.spec.context_chars)
        if self._content_filter is not None:
            category = self._content_filter(prompt)
            if category != ALLOWED_CATEGORY:
                ctx.log.record(f"step {step.name} prompt blocked by content policy: {category}")
                return self._failed(
                    step, prompt, StepFailureKind.CONTENT_FILTERED, f"Prompt classified as {category!r}"
                )
        logger.debug("Executing step %s of chain %s", step.name, self.spec.name)
        return await self._executor.execute(
            step,
            prompt,
            original_input=ctx.initial_input,
            log=ctx.log,
            deadline=ctx.deadline,
        )

    def _failed(self, step: StepSpec, rendered: str, kind: StepFailureKind, message: str) -> StepResult:
        return StepResult(
            name=step.name,
            rendered_input=rendered,
            success=False,
            error=StepError(kind=kind, message=message),
            attempts=0,
        )

    def _check_cancelled(self, ctx: RunContext, execution: Execution) -> bool:
        if not ctx.cancelled:
            return False
        reason = ctx.cancel.reason if ctx.cancel is not None else None
        ctx.log.record(f"run cancelled{': ' + reason if reason else ''}")
        execution.cancelled = True
        return True

    def _status(self, execution: Execution) -> ChainStatus:
        if execution.cancelled:
            return ChainStatus.CANCELLED
        if not execution.results or execution.aborted:
            return ChainStatus.FAILURE
        failed = {result.name for result in execution.results if not result.success}
        if not failed:
            return ChainStatus.SUCCESS
        mandatory = {name for name in failed if self.graph.step(name).mandatory}
        if execution.final_step is not None and execution.final_step in failed:
            mandatory.add(execution.final_step)
        if mandatory or self.strict:
            return ChainStatus.FAILURE
        if any(result.success for result in execution.results):
            return ChainStatus.PARTIAL
        return ChainStatus.FAILURE
