from __future__ import annotations

import csv
import json
import threading
import time
from dataclasses import asdict, dataclass, field
from io import StringIO
from pathlib import Path
from typing import Any

from .utils import atomic_write

SUMMARY_HEADER = [
    "batch_id",
    "timestamp",
    "pattern",
    "total",
    "successful",
    "failed",
    "skipped",
    "time_taken_s",
]


@dataclass(slots=True)
class StageTimings:
    read_ms: float = 0.0
    detect_ms: float = 0.0
    convert_ms: float = 0.0
    write_ms: float = 0.0


@dataclass(slots=True)
class RunLogEntry:
    source: str
    status: str
    encoding: str | None
    error_code: str | None
    timings: StageTimings
    output_path: str | None
    backup_path: str | None
    size_bytes: int
    error_message: str | None = None
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        payload["timings"] = asdict(self.timings)
        return payload


class RunLogger:
    """Append-only JSONL log shared by concurrently running conversions."""

    def __init__(self, log_file: Path) -> None:
        self._log_file = log_file
        self._lock = threading.Lock()

    def append(self, entry: RunLogEntry) -> None:
        line = json.dumps(entry.to_dict(), ensure_ascii=False)
        with self._lock:
            self._log_file.parent.mkdir(parents=True, exist_ok=True)
            with self._log_file.open("a", encoding="utf-8") as handle:
                handle.write(line + "\n")


@dataclass(slots=True)
class BatchSummary:
    pattern: str
    total: int = 0
    successful: int = 0
    failed: int = 0
    skipped: int = 0
    time_taken: float = 0.0
    timestamp: float = field(default_factory=time.time)

    def as_row(self, batch_id: str) -> list[str]:
        return [
            batch_id,
            time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime(self.timestamp)),
            self.pattern,
            str(self.total),
            str(self.successful),
            str(self.failed),
            str(self.skipped),
            f"{self.time_taken:.3f}",
        ]


def write_summary_csv(path: Path, header: list[str], rows: list[list[str]]) -> None:
    buffer = StringIO()
    writer = csv.writer(buffer)
    writer.writerow(header)
    writer.writerows(rows)
    atomic_write(path, buffer.getvalue())


def append_summary_row(path: Path, row: list[str]) -> None:
    header = SUMMARY_HEADER
    rows: list[list[str]] = []
    if path.exists():
        with path.open("r", encoding="utf-8", newline="") as handle:
            existing = list(csv.reader(handle))
        if existing:
            header = existing[0]
            rows = existing[1:]
    rows.append(row)
    write_summary_csv(path, header, rows)
