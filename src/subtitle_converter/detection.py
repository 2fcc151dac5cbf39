from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import chardet

from .encoding import convert_to_text
from .strategies import DEFAULT_MARKER, is_marked_output
from .utils import BLOCK_SEPARATOR_RE, UTF8_BOM, dominant_line_ending, unify_newlines

FALLBACK_ENCODING = "utf-8"


@dataclass(slots=True)
class DetectionResult:
    encoding: str
    confidence: float
    fallback: bool = False


@dataclass(slots=True)
class FileInfo:
    """What ``subconv info`` reports about a subtitle file."""

    path: Path
    size_bytes: int
    encoding: str
    confidence: float
    has_bom: bool
    line_ending: str
    line_count: int
    entry_count: int
    converted: bool


def detect_encoding(data: bytes) -> DetectionResult:
    """Guess the charset of *data*; empty or inconclusive input falls back to UTF-8."""

    guess = chardet.detect(data) if data else {}
    encoding = guess.get("encoding")
    if not encoding:
        return DetectionResult(encoding=FALLBACK_ENCODING, confidence=0.0, fallback=True)
    confidence = float(guess.get("confidence") or 0.0)
    return DetectionResult(encoding=encoding.lower(), confidence=confidence)


def detect_file_encoding(path: Path) -> DetectionResult:
    with path.open("rb") as handle:
        data = handle.read()
    return detect_encoding(data)


def inspect_file(path: Path, marker: str = DEFAULT_MARKER) -> FileInfo:
    data = path.read_bytes()
    detection = detect_file_encoding(path)
    text = convert_to_text(data, detection.encoding)
    body = unify_newlines(text)
    entries = [block for block in BLOCK_SEPARATOR_RE.split(body) if block.strip()]
    return FileInfo(
        path=path,
        size_bytes=len(data),
        encoding=detection.encoding,
        confidence=detection.confidence,
        has_bom=data.startswith(UTF8_BOM),
        line_ending="CRLF" if dominant_line_ending(text) == "\r\n" else "LF",
        line_count=len(body.splitlines()),
        entry_count=len(entries),
        converted=is_marked_output(path, marker),
    )


__all__ = [
    "DetectionResult",
    "FALLBACK_ENCODING",
    "FileInfo",
    "detect_encoding",
    "detect_file_encoding",
    "inspect_file",
]
