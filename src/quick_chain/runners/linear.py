"""Sequential chain runner."""

from __future__ import annotations

import logging

from quick_chain.models.kinds import ChainKind
from quick_chain.runners.base import ChainRunner, Execution, RunContext

logger = logging.getLogger(__name__)


class LinearChainRunner(ChainRunner):
    """
    Runs steps in declaration order, feeding each step the last successful output.

    In lenient mode a failed step is recorded and the next step reuses the
    carried output; only a failure of the final step fails the run. Strict
    mode stops at the first failure.
    """

    kind = ChainKind.LINEAR

    async def _execute(self, ctx: RunContext) -> Execution:
        steps = self.spec.steps
        execution = Execution(final_step=steps[-1].name)
        carried = ctx.initial_input
        for step in steps:
            if self._check_cancelled(ctx, execution):
                break
            result = await self._run_step(
                step,
                self._variables(carried, ctx),
                ctx,
                previous_output=execution.last_output,
            )
            execution.record(result)
            if result.success:
                carried = result.output
                continue
            if self.strict:
                logger.warning("Step %s failed; strict chain %s stops", step.name, self.spec.name)
                execution.aborted = True
                break
            if step.name != execution.final_step:
                logger.warning("Step %s failed; continuing with the last good output", step.name)
        return execution
