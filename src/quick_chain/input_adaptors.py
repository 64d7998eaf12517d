"""Input adaptors for chain runs."""

from __future__ import annotations

from pathlib import Path

from quick_chain.io_utils import load_input
from quick_chain.models.run_input import RunInput


class InputAdaptor:
    def load(self) -> RunInput:
        raise NotImplementedError("InputAdaptor.load must be implemented by subclasses.")


class FileInput(InputAdaptor):
    def __init__(self, path: Path) -> None:
        self._path = path

    def load(self) -> RunInput:
        return load_input(self._path)


class TextInput(InputAdaptor):
    def __init__(self, text: str) -> None:
        self._text = text

    def load(self) -> RunInput:
        return RunInput(source_path="inline_input.txt", kind="text", text=self._text, data=None)


def as_adaptor(input_data: InputAdaptor | Path | str) -> InputAdaptor:
    if isinstance(input_data, InputAdaptor):
        return input_data
    if isinstance(input_data, Path):
        return FileInput(input_data)
    return TextInput(input_data)
