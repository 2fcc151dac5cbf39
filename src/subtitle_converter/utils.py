from __future__ import annotations

import hashlib
import os
import re
import shutil
import sys
import tempfile
import time
from collections.abc import Iterable, Sequence
from pathlib import Path
from typing import Iterator, TypeVar

from .models import LineEnding

T = TypeVar("T")

UTF8_BOM = b"\xef\xbb\xbf"
GLOB_CHARS = frozenset("*?[")
BLOCK_SEPARATOR_RE = re.compile(r"\n\s*\n")
LINE_ENDINGS: dict[str, str] = {
    "lf": "\n",
    "crlf": "\r\n",
    "auto": "\r\n" if sys.platform == "win32" else "\n",
}


def atomic_write_bytes(path: Path, data: bytes) -> None:
    """Replace *path* with *data* in one rename.

    An existing destination keeps its permission bits; a new one gets the
    umask default, like any freshly created file.
    """

    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_name(f".{path.name}.{os.urandom(4).hex()}.tmp")
    fd = os.open(tmp_path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o666)
    try:
        with os.fdopen(fd, "wb") as handle:
            handle.write(data)
            handle.flush()
            os.fsync(handle.fileno())
        if path.exists():
            shutil.copymode(path, tmp_path)
        os.replace(tmp_path, path)
    except OSError:
        tmp_path.unlink(missing_ok=True)
        raise


def atomic_write(path: Path, data: str, encoding: str = "utf-8") -> None:
    atomic_write_bytes(path, data.encode(encoding))


def atomic_copy(source: Path, destination: Path) -> None:
    destination.parent.mkdir(parents=True, exist_ok=True)
    with tempfile.NamedTemporaryFile(delete=False, dir=destination.parent) as tmp:
        tmp_path = Path(tmp.name)
    try:
        shutil.copy2(source, tmp_path)
        os.replace(tmp_path, destination)
    except OSError:
        tmp_path.unlink(missing_ok=True)
        raise


def next_backup_path(path: Path) -> Path:
    """Return ``<path>.bak``, or the first free ``<path>.bak.N``."""

    candidate = path.with_name(f"{path.name}.bak")
    counter = 1
    while candidate.exists():
        candidate = path.with_name(f"{path.name}.bak.{counter}")
        counter += 1
    return candidate


def chunked(items: Sequence[T], size: int) -> Iterator[Sequence[T]]:
    size = max(1, size)
    for start in range(0, len(items), size):
        yield items[start : start + size]


def pattern_base(pattern: str) -> Path:
    """Return the leading directory of *pattern* that contains no glob characters."""

    parts: list[str] = []
    for part in Path(pattern).parts[:-1]:
        if GLOB_CHARS.intersection(part):
            break
        parts.append(part)
    return Path(*parts) if parts else Path(".")


def relative_depth(base: Path, file_path: Path) -> int | None:
    """Number of directories between *base* and *file_path*, or None if outside *base*."""

    try:
        relative = file_path.resolve().relative_to(base.resolve())
    except ValueError:
        return None
    return max(len(relative.parts) - 1, 0)


def matches_any(value: str, needles: Iterable[str]) -> bool:
    return any(needle and needle in value for needle in needles)


def unify_newlines(text: str) -> str:
    return text.replace("\r\n", "\n").replace("\r", "\n")


def dominant_line_ending(text: str) -> str:
    crlf = text.count("\r\n")
    lf = text.count("\n") - crlf
    return "\r\n" if crlf > lf else "\n"


def normalize_line_endings(text: str, line_ending: LineEnding | None, *, source: str | None = None) -> str:
    """Collapse every newline variant, then expand to the requested convention.

    With no explicit convention the dominant one in *source* is kept.
    """

    target = LINE_ENDINGS[line_ending] if line_ending else dominant_line_ending(source or text)
    text = unify_newlines(text)
    if target == "\n":
        return text
    return text.replace("\n", target)


def encode_output(text: str, *, bom: bool) -> bytes:
    payload = text.encode("utf-8")
    return UTF8_BOM + payload if bom else payload


def generate_run_id(prefix: str = "batch") -> str:
    epoch_ms = int(time.time() * 1000)
    random_bits = hashlib.sha256(os.urandom(16)).hexdigest()[:8]
    return f"{prefix}-{epoch_ms}-{random_bits}"
