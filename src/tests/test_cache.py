import threading
from typing import Any

import pytest

from provider_fakes import ScriptedProvider, SleepRecorder, provider_error, step
from quick_chain.cache import EvictionPolicy, ResultCache, cache_key, canonicalize_input
from quick_chain.errors import ProviderErrorKind
from quick_chain.models import ChainRun, ChainSpec, ChainStatus
from quick_chain.runners import LinearChainRunner


def _run(name: str = "chain", spec_hash: str = "h1", output: str = "out") -> ChainRun:
    return ChainRun(
        chain_name=name,
        spec_hash=spec_hash,
        initial_input="in",
        status=ChainStatus.SUCCESS,
        final_output=output,
    )


def _chain(**kwargs: Any) -> ChainSpec:
    return ChainSpec.model_validate(
        {"name": "det", "steps": [step("answer", "ANSWER: {{ input }}")], "deterministic": True, **kwargs}
    )


def test_put_and_get() -> None:
    cache = ResultCache()
    run = _run()

    assert cache.get("k") is None
    assert cache.put("k", run) is True
    assert cache.get("k") is run
    assert "k" in cache
    assert len(cache) == 1
    assert (cache.hits, cache.misses) == (1, 1)


def test_lru_evicts_least_recently_used() -> None:
    cache = ResultCache(capacity=2, eviction=EvictionPolicy.LRU)
    cache.put("a", _run(output="a"))
    cache.put("b", _run(output="b"))
    cache.get("a")

    cache.put("c", _run(output="c"))

    assert "a" in cache
    assert "b" not in cache
    assert "c" in cache


def test_no_eviction_policy_rejects_when_full() -> None:
    cache = ResultCache(capacity=1, eviction=EvictionPolicy.NONE)

    assert cache.put("a", _run()) is True
    assert cache.put("b", _run()) is False
    assert cache.put("a", _run(output="new")) is True
    assert "b" not in cache
    stored = cache.get("a")
    assert stored is not None and stored.final_output == "new"


def test_capacity_must_be_positive() -> None:
    with pytest.raises(ValueError):
        ResultCache(capacity=0)


def test_changed_chain_hash_drops_entries_of_that_chain() -> None:
    cache = ResultCache()
    cache.put("a", _run(name="one", spec_hash="h1"))
    cache.put("b", _run(name="two", spec_hash="h1"))

    cache.bind("one", "h2")

    assert "a" not in cache
    assert "b" in cache


def test_canonical_input_ignores_json_key_order_and_whitespace() -> None:
    assert canonicalize_input('{"b": 1, "a": 2}') == canonicalize_input('  {"a":2,"b":1}\n')
    assert canonicalize_input("  text\r\nmore ") == "text\nmore"
    assert cache_key("h", '{"b": 1, "a": 2}') == cache_key("h", '{"a": 2, "b": 1}')
    assert cache_key("h1", "x") != cache_key("h2", "x")


def test_concurrent_writers_do_not_corrupt_the_map() -> None:
    cache = ResultCache(capacity=50)

    def writer(offset: int) -> None:
        for index in range(200):
            cache.put(f"{offset}-{index}", _run())
            cache.get(f"{offset}-{index // 2}")

    threads = [threading.Thread(target=writer, args=(n,)) for n in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(cache) == 50


@pytest.mark.anyio
async def test_deterministic_chain_hits_cache_on_identical_input() -> None:
    provider = ScriptedProvider({"ANSWER": ["42"]})
    cache = ResultCache()
    runner = LinearChainRunner(_chain(), provider, cache=cache, sleep=SleepRecorder())

    first = await runner.run("question")
    second = await runner.run("question")

    assert second is first
    assert second.model_dump_json() == first.model_dump_json()
    assert len(provider.calls) == 1


@pytest.mark.anyio
async def test_non_deterministic_chain_is_never_cached() -> None:
    provider = ScriptedProvider({"ANSWER": ["42"]})
    cache = ResultCache()
    runner = LinearChainRunner(_chain(deterministic=False), provider, cache=cache, sleep=SleepRecorder())

    await runner.run("question")
    await runner.run("question")

    assert len(provider.calls) == 2
    assert len(cache) == 0


@pytest.mark.anyio
async def test_failed_runs_are_not_cached() -> None:
    provider = ScriptedProvider({"ANSWER": [provider_error(ProviderErrorKind.UNKNOWN), "42"]})
    cache = ResultCache()
    runner = LinearChainRunner(_chain(), provider, cache=cache, sleep=SleepRecorder())

    failed = await runner.run("question")
    succeeded = await runner.run("question")

    assert failed.status == ChainStatus.FAILURE
    assert succeeded.status == ChainStatus.SUCCESS
    assert len(cache) == 1


@pytest.mark.anyio
async def test_edited_chain_misses_and_replaces_old_entries() -> None:
    provider = ScriptedProvider({"ANSWER": ["42"]})
    cache = ResultCache()
    original = LinearChainRunner(_chain(), provider, cache=cache, sleep=SleepRecorder())
    edited = LinearChainRunner(_chain(description="edited"), provider, cache=cache, sleep=SleepRecorder())

    await original.run("question")
    await edited.run("question")

    assert len(provider.calls) == 2
    assert len(cache) == 1
    assert original.spec_hash != edited.spec_hash
    assert original.cached_run("question") is None


def test_separate_caches_are_isolated() -> None:
    first, second = ResultCache(), ResultCache()
    first.put("k", _run())

    assert second.get("k") is None
