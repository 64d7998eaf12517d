"""Helper for running chains."""

from __future__ import annotations

from pathlib import Path
from typing import Callable

from quick_chain.cache import ResultCache
from quick_chain.chain_registry import ChainRegistry
from quick_chain.dispatcher import ErrorAwareDispatcher
from quick_chain.input_adaptors import InputAdaptor, as_adaptor
from quick_chain.models.chain_run import ChainOutcome
from quick_chain.models.chain_spec import ChainSpec
from quick_chain.providers import CompletionProvider, PydanticAIProvider
from quick_chain.run_control import CancelToken
from quick_chain.runners import ChainRunner, runner_class_for
from quick_chain.runners.base import ContentFilter

ProviderFactory = Callable[[ChainSpec], CompletionProvider]


def default_provider_factory(spec: ChainSpec) -> CompletionProvider:
    return PydanticAIProvider(spec.model, instructions=spec.instructions)


class Orchestrator:
    def __init__(
        self,
        chain_roots: list[Path] | None = None,
        *,
        provider_factory: ProviderFactory | None = None,
        cache: ResultCache | None = None,
        content_filter: ContentFilter | None = None,
    ) -> None:
        self.registry: ChainRegistry = ChainRegistry(chain_roots or [])
        self.provider_factory: ProviderFactory = provider_factory or default_provider_factory
        self.cache: ResultCache = cache if cache is not None else ResultCache()
        self.dispatcher: ErrorAwareDispatcher = ErrorAwareDispatcher()
        self._content_filter: ContentFilter | None = content_filter

    def build_runner(self, spec: ChainSpec) -> ChainRunner:
        runner_cls = runner_class_for(spec)
        return runner_cls(
            spec,
            self.provider_factory(spec),
            cache=self.cache,
            content_filter=self._content_filter,
        )

    async def run(
        self,
        chain_id: str,
        input_data: InputAdaptor | Path | str,
        *,
        cancel: CancelToken | None = None,
        deadline: float | None = None,
    ) -> ChainOutcome:
        loaded = self.registry.get(chain_id)
        return await self.run_spec(loaded.spec, input_data, cancel=cancel, deadline=deadline)

    async def run_spec(
        self,
        spec: ChainSpec,
        input_data: InputAdaptor | Path | str,
        *,
        cancel: CancelToken | None = None,
        deadline: float | None = None,
    ) -> ChainOutcome:
        runner = self.build_runner(spec)
        run_input = as_adaptor(input_data).load()
        return await self.dispatcher.dispatch(runner, run_input.text, cancel=cancel, deadline=deadline)
