"""Chain registry backed by markdown files."""

from __future__ import annotations

from pathlib import Path

from quick_chain.models.loaded_chain_file import LoadedChainFile


class ChainRegistry:
    def __init__(self, chain_roots: list[Path]):
        self.chain_roots = chain_roots
        self._cache: dict[str, LoadedChainFile] = {}
        self._index: dict[str, Path] | None = None

    def _build_index(self) -> dict[str, Path]:
        index: dict[str, Path] = {}
        for root in self.chain_roots:
            if not root.exists():
                continue
            for path in sorted(root.rglob("*.md")):
                chain_id = path.stem
                if chain_id in index:
                    continue
                index[chain_id] = path
        return index

    def _get_index(self) -> dict[str, Path]:
        if self._index is None:
            self._index = self._build_index()
        return self._index

    def list_chains(self) -> list[str]:
        return sorted(self._get_index().keys())

    def get(self, chain_id: str) -> LoadedChainFile:
        if chain_id in self._cache:
            return self._cache[chain_id]
        path = self._get_index().get(chain_id)
        if path is None:
            raise FileNotFoundError(f"Chain not found: {chain_id} (searched: {self.chain_roots})")
        loaded = LoadedChainFile(path)
        self._cache[chain_id] = loaded
        return loaded

    def reload(self) -> None:
        self._cache.clear()
        self._index = None
