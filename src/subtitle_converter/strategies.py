from __future__ import annotations

from pathlib import Path
from typing import Protocol

DEFAULT_MARKER = "utf8"


class OutputStrategy(Protocol):
    """Decides where a conversion writes and whether the input must be backed up."""

    @property
    def should_backup(self) -> bool:  # pragma: no cover - interface
        ...

    def get_output_path(self, input_path: Path) -> Path:  # pragma: no cover - interface
        ...


class SuffixOutputStrategy:
    """Writes ``name.<marker>.ext`` next to the input."""

    def __init__(self, marker: str = DEFAULT_MARKER) -> None:
        self._marker = marker.strip(".") or DEFAULT_MARKER

    @property
    def marker(self) -> str:
        return self._marker

    @property
    def should_backup(self) -> bool:
        return False

    def get_output_path(self, input_path: Path) -> Path:
        return input_path.with_name(marked_name(input_path.name, self._marker))


class OverwriteOutputStrategy:
    """Writes over the input itself; a backup is always taken first."""

    @property
    def should_backup(self) -> bool:
        return True

    def get_output_path(self, input_path: Path) -> Path:
        return input_path


def marked_name(filename: str, marker: str) -> str:
    stem, dot, extension = filename.rpartition(".")
    if not dot or not stem:
        return f"{filename}.{marker}"
    return f"{stem}.{marker}.{extension}"


def is_marked_output(path: Path, marker: str = DEFAULT_MARKER) -> bool:
    """Return True when *path* looks like an output produced with *marker*."""

    parts = path.name.split(".")
    return len(parts) >= 2 and marker in parts[1:]


def select_strategy(overwrite_input: bool, marker: str = DEFAULT_MARKER) -> OutputStrategy:
    if overwrite_input:
        return OverwriteOutputStrategy()
    return SuffixOutputStrategy(marker)


__all__ = [
    "DEFAULT_MARKER",
    "OutputStrategy",
    "OverwriteOutputStrategy",
    "SuffixOutputStrategy",
    "is_marked_output",
    "marked_name",
    "select_strategy",
]
