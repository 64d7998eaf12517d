"""In-memory result cache for deterministic chains."""

from __future__ import annotations

import hashlib
import json
import logging
import threading
import unicodedata
from collections import OrderedDict
from dataclasses import dataclass
from enum import Enum

from quick_chain.models.chain_run import ChainRun

logger = logging.getLogger(__name__)


class EvictionPolicy(str, Enum):
    NONE = "none"  # a full cache rejects new entries
    LRU = "lru"


@dataclass(frozen=True)
class CacheEntry:
    key: str
    chain_name: str
    spec_hash: str
    run: ChainRun


def canonicalize_input(text: str) -> str:
    """JSON input is re-serialized with sorted keys; text input is NFC-normalized and trimmed."""
    stripped = text.strip()
    try:
        parsed = json.loads(stripped)
    except ValueError:
        normalized = unicodedata.normalize("NFC", stripped)
        return normalized.replace("\r\n", "\n")
    return json.dumps(parsed, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def cache_key(spec_hash: str, initial_input: str) -> str:
    digest = hashlib.sha256()
    digest.update(spec_hash.encode("utf-8"))
    digest.update(b"\x00")
    digest.update(canonicalize_input(initial_input).encode("utf-8"))
    return digest.hexdigest()


class ResultCache:
    def __init__(
        self,
        capacity: int | None = None,
        eviction: EvictionPolicy = EvictionPolicy.LRU,
    ) -> None:
        if capacity is not None and capacity <= 0:
            raise ValueError("capacity must be positive when set.")
        self.capacity: int | None = capacity
        self.eviction: EvictionPolicy = eviction
        self._entries: OrderedDict[str, CacheEntry] = OrderedDict()
        self._spec_hashes: dict[str, str] = {}
        self._lock = threading.RLock()
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._entries

    def get(self, key: str) -> ChainRun | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self.misses += 1
                return None
            if self.eviction == EvictionPolicy.LRU:
                self._entries.move_to_end(key)
            self.hits += 1
            return entry.run

    def put(self, key: str, run: ChainRun) -> bool:
        with self._lock:
            self.bind(run.chain_name, run.spec_hash)
            if key in self._entries:
                self._entries[key] = CacheEntry(key, run.chain_name, run.spec_hash, run)
                self._entries.move_to_end(key)
                return True
            if self.capacity is not None and len(self._entries) >= self.capacity:
                if self.eviction == EvictionPolicy.NONE:
                    logger.debug("Cache full; not storing run of %s", run.chain_name)
                    return False
                evicted, _entry = self._entries.popitem(last=False)
                logger.debug("Evicted cache entry %s", evicted)
            self._entries[key] = CacheEntry(key, run.chain_name, run.spec_hash, run)
            return True

    def bind(self, chain_name: str, spec_hash: str) -> None:
        """Records the current spec hash of a chain, dropping entries built from an older definition."""
        with self._lock:
            previous = self._spec_hashes.get(chain_name)
            if previous is not None and previous != spec_hash:
                removed = self.invalidate_chain(chain_name)
                logger.info("Definition of chain %s changed; dropped %d cached run(s)", chain_name, removed)
            self._spec_hashes[chain_name] = spec_hash

    def invalidate_chain(self, chain_name: str) -> int:
        with self._lock:
            stale = [key for key, entry in self._entries.items() if entry.chain_name == chain_name]
            for key in stale:
                del self._entries[key]
            self._spec_hashes.pop(chain_name, None)
            return len(stale)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._spec_hashes.clear()
