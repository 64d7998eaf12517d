"""Build-time validation of a chain's step graph."""

from __future__ import annotations

from collections import deque

from jinja2 import TemplateSyntaxError

from quick_chain.errors import ConstructionError, ConstructionErrorKind
from quick_chain.models.chain_spec import ChainSpec
from quick_chain.models.kinds import ChainKind
from quick_chain.models.step_spec import StepSpec
from quick_chain.templating import check_syntax


class ChainGraph:
    """
    Validated view of a ChainSpec.

    Raises ConstructionError for duplicate names, unknown step references,
    branch maps without a ``default`` entry, cycles, unparsable prompts and
    layouts that do not fit the chain kind. Nothing here calls a provider.
    """

    def __init__(self, spec: ChainSpec) -> None:
        if not spec.steps:
            raise ConstructionError(ConstructionErrorKind.INVALID_LAYOUT, f"Chain {spec.name!r} has no steps.")
        self.spec: ChainSpec = spec
        self.steps: dict[str, StepSpec] = index_steps(spec.steps)
        check_templates(spec.steps)
        if spec.kind == ChainKind.LINEAR:
            self.edges = self._linear_edges()
        elif spec.kind == ChainKind.CONDITIONAL:
            self.edges = self._conditional_edges()
        else:
            self.edges = self._parallel_edges()
        self.order: list[str] = topological_order(self.edges)
        self.entry: str = self._resolve_entry()

    def step(self, name: str) -> StepSpec:
        return self.steps[name]

    def _require_no_branches(self) -> None:
        for step in self.spec.steps:
            if step.branches:
                raise ConstructionError(
                    ConstructionErrorKind.INVALID_LAYOUT,
                    f"Step {step.name!r} declares branches but chain {self.spec.name!r} is {self.spec.kind.value}.",
                )

    def _require_known(self, name: str, referrer: str) -> None:
        if name not in self.steps:
            raise ConstructionError(
                ConstructionErrorKind.UNKNOWN_STEP,
                f"{referrer} references unknown step {name!r}. Known steps: {sorted(self.steps)}",
            )

    def _linear_edges(self) -> dict[str, list[str]]:
        self._require_no_branches()
        if self.spec.fan_out or self.spec.aggregate:
            raise ConstructionError(
                ConstructionErrorKind.INVALID_LAYOUT, "Linear chains cannot declare fan_out or aggregate."
            )
        names = [step.name for step in self.spec.steps]
        edges: dict[str, list[str]] = {name: [] for name in names}
        for current, following in zip(names, names[1:]):
            edges[current].append(following)
        return edges

    def _conditional_edges(self) -> dict[str, list[str]]:
        if self.spec.fan_out or self.spec.aggregate:
            raise ConstructionError(
                ConstructionErrorKind.INVALID_LAYOUT, "Conditional chains cannot declare fan_out or aggregate."
            )
        edges: dict[str, list[str]] = {name: [] for name in self.steps}
        for step in self.spec.steps:
            if not step.branches:
                continue
            keys = [branch.key for branch in step.branches]
            if len(set(keys)) != len(keys):
                dupes = sorted({key for key in keys if keys.count(key) > 1})
                raise ConstructionError(
                    ConstructionErrorKind.INVALID_LAYOUT,
                    f"Step {step.name!r} repeats branch keys: {dupes}",
                )
            if not any(branch.is_default for branch in step.branches):
                raise ConstructionError(
                    ConstructionErrorKind.MISSING_DEFAULT_BRANCH,
                    f"Branch map of step {step.name!r} has no 'default' entry.",
                )
            for branch in step.branches:
                self._require_known(branch.next, f"Branch {branch.key!r} of step {step.name!r}")
                if branch.next not in edges[step.name]:
                    edges[step.name].append(branch.next)
        return edges

    def _parallel_edges(self) -> dict[str, list[str]]:
        self._require_no_branches()
        spec = self.spec
        if not spec.fan_out:
            raise ConstructionError(ConstructionErrorKind.INVALID_LAYOUT, "Parallel chains need fan_out steps.")
        if spec.aggregate is None:
            raise ConstructionError(ConstructionErrorKind.INVALID_LAYOUT, "Parallel chains need an aggregate step.")
        if len(set(spec.fan_out)) != len(spec.fan_out):
            raise ConstructionError(ConstructionErrorKind.INVALID_LAYOUT, "fan_out lists a step more than once.")
        for name in spec.fan_out:
            self._require_known(name, "fan_out")
        self._require_known(spec.aggregate, "aggregate")
        if spec.aggregate in spec.fan_out:
            raise ConstructionError(
                ConstructionErrorKind.INVALID_LAYOUT, f"Aggregate step {spec.aggregate!r} is also a fan_out step."
            )
        unused = sorted(set(self.steps) - set(spec.fan_out) - {spec.aggregate})
        if unused:
            raise ConstructionError(ConstructionErrorKind.INVALID_LAYOUT, f"Steps never executed: {unused}")
        edges: dict[str, list[str]] = {name: [] for name in self.steps}
        for name in spec.fan_out:
            edges[name].append(spec.aggregate)
        return edges

    def _resolve_entry(self) -> str:
        spec = self.spec
        if spec.kind == ChainKind.PARALLEL:
            if spec.entry is not None:
                raise ConstructionError(ConstructionErrorKind.INVALID_ENTRY, "Parallel chains have no entry step.")
            return spec.fan_out[0]
        entry = spec.entry or spec.steps[0].name
        self._require_known(entry, "entry")
        indegree = {name: 0 for name in self.steps}
        for targets in self.edges.values():
            for target in targets:
                indegree[target] += 1
        roots = sorted(name for name, degree in indegree.items() if degree == 0)
        if roots != [entry]:
            raise ConstructionError(
                ConstructionErrorKind.INVALID_ENTRY,
                f"Chain {spec.name!r} must have exactly one entry step {entry!r}; found roots {roots}.",
            )
        return entry


def index_steps(steps: list[StepSpec]) -> dict[str, StepSpec]:
    names = [step.name for step in steps]
    if len(set(names)) != len(names):
        dupes = sorted({name for name in names if names.count(name) > 1})
        raise ConstructionError(ConstructionErrorKind.DUPLICATE_STEP_NAME, f"Duplicate step names found: {dupes}")
    return {step.name: step for step in steps}


def check_templates(steps: list[StepSpec]) -> None:
    for step in steps:
        try:
            check_syntax(step.prompt)
        except TemplateSyntaxError as exc:
            raise ConstructionError(
                ConstructionErrorKind.INVALID_TEMPLATE,
                f"Prompt of step {step.name!r} does not parse: {exc.message} (line {exc.lineno})",
            ) from exc


def topological_order(edges: dict[str, list[str]]) -> list[str]:
    indegree = {name: 0 for name in edges}
    for targets in edges.values():
        for target in targets:
            indegree[target] += 1
    queue = deque(name for name in edges if indegree[name] == 0)
    order: list[str] = []
    while queue:
        node = queue.popleft()
        order.append(node)
        for child in edges[node]:
            indegree[child] -= 1
            if indegree[child] == 0:
                queue.append(child)
    if len(order) != len(edges):
        stuck = sorted(name for name, degree in indegree.items() if degree > 0)
        raise ConstructionError(ConstructionErrorKind.CYCLIC_CHAIN, f"Chain has a cycle. Stuck steps: {stuck}")
    return order
