"""Chain runners, one per chain kind."""

from __future__ import annotations

from quick_chain.models.chain_spec import ChainSpec
from quick_chain.models.kinds import ChainKind
from quick_chain.runners.base import ChainRunner
from quick_chain.runners.conditional import ConditionalChainRunner, replay_path, select_branch
from quick_chain.runners.linear import LinearChainRunner
from quick_chain.runners.parallel import ParallelChainRunner

RUNNERS: dict[ChainKind, type[ChainRunner]] = {
    ChainKind.LINEAR: LinearChainRunner,
    ChainKind.CONDITIONAL: ConditionalChainRunner,
    ChainKind.PARALLEL: ParallelChainRunner,
}


def runner_class_for(spec: ChainSpec) -> type[ChainRunner]:
    return RUNNERS[spec.kind]


__all__ = [
    "ChainRunner",
    "ConditionalChainRunner",
    "LinearChainRunner",
    "ParallelChainRunner",
    "RUNNERS",
    "replay_path",
    "runner_class_for",
    "select_branch",
]
