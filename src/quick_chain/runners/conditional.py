"""Chain runner that picks the next step from each step's branch map."""

from __future__ import annotations

import logging
from typing import Mapping

from quick_chain.graph import ChainGraph
from quick_chain.models.chain_spec import ChainSpec
from quick_chain.models.kinds import ChainKind
from quick_chain.models.step_result import StepResult
from quick_chain.models.step_spec import StepSpec
from quick_chain.runners.base import ChainRunner, Execution, RunContext

logger = logging.getLogger(__name__)


def select_branch(step: StepSpec, result: StepResult) -> str | None:
    """
    Returns the next step name, or None when ``step`` is terminal.
    Non-default branches are tried in declaration order; ``default`` catches the rest.
    """
    if not step.branches:
        return None
    fallback: str | None = None
    for branch in step.branches:
        if branch.is_default:
            fallback = branch.next
            continue
        if branch.predicate().evaluate(result.output, result.success):
            return branch.next
    return fallback


def replay_path(spec: ChainSpec, results: Mapping[str, StepResult]) -> list[str]:
    """Re-derives the execution path of a conditional chain from recorded step results."""
    graph = ChainGraph(spec)
    path: list[str] = []
    current: str | None = graph.entry
    while current is not None:
        path.append(current)
        result = results.get(current)
        if result is None:
            break
        current = select_branch(graph.step(current), result)
    return path


class ConditionalChainRunner(ChainRunner):
    kind = ChainKind.CONDITIONAL

    async def _execute(self, ctx: RunContext) -> Execution:
        execution = Execution()
        carried = ctx.initial_input
        current: str | None = self.graph.entry
        while current is not None:
            if self._check_cancelled(ctx, execution):
                break
            step = self.graph.step(current)
            result = await self._run_step(
                step,
                self._variables(carried, ctx),
                ctx,
                previous_output=execution.last_output,
            )
            execution.record(result)
            if result.success:
                carried = result.output
            elif self.strict:
                logger.warning("Step %s failed; strict chain %s stops", step.name, self.spec.name)
                execution.aborted = True
                break
            current = select_branch(step, result)
            if current is None:
                execution.final_step = step.name
            else:
                ctx.log.record(f"step {step.name} branched to {current}")
        return execution
