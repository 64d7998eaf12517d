"""Concurrent fan-out runner with an aggregation step."""

from __future__ import annotations

import logging
from typing import cast

import anyio

from quick_chain.models.kinds import ChainKind
from quick_chain.models.step_result import StepResult
from quick_chain.models.step_spec import StepSpec
from quick_chain.runners.base import ChainRunner, Execution, RunContext

logger = logging.getLogger(__name__)

BRANCH_SEPARATOR = "\n\n"


class ParallelChainRunner(ChainRunner):
    """
    Runs every fan_out step concurrently on the initial input and waits for all of them.
    Successful outputs are joined in declaration order and passed to the aggregate step,
    which runs even when no branch succeeded.
    """

    kind = ChainKind.PARALLEL

    async def _execute(self, ctx: RunContext) -> Execution:
        # ChainGraph has already rejected parallel chains without an aggregate step
        aggregate = self.graph.step(cast(str, self.spec.aggregate))
        execution = Execution(final_step=aggregate.name)
        if self._check_cancelled(ctx, execution):
            return execution

        branches = [self.graph.step(name) for name in self.spec.fan_out]
        slots: list[StepResult | None] = [None] * len(branches)

        async def run_branch(index: int, step: StepSpec) -> None:
            slots[index] = await self._run_step(step, self._variables(ctx.initial_input, ctx), ctx)

        async with anyio.create_task_group() as tg:
            for index, step in enumerate(branches):
                tg.start_soon(run_branch, index, step)

        branch_results = [result for result in slots if result is not None]
        for result in branch_results:
            execution.record(result)
        outputs = [result.output for result in branch_results if result.success]
        logger.info("Fan-out of %s settled: %d/%d branch(es) succeeded", self.spec.name, len(outputs), len(branches))

        if self.strict and len(outputs) != len(branches):
            execution.aborted = True
            return execution
        if self._check_cancelled(ctx, execution):
            return execution

        joined = BRANCH_SEPARATOR.join(outputs)
        result = await self._run_step(aggregate, self._variables(joined, ctx, branches=joined), ctx)
        execution.record(result)
        return execution
