"""Domain models for subtitle conversion services."""

from __future__ import annotations

import time
from dataclasses import dataclass, field, fields
from enum import Enum
from pathlib import Path
from typing import Literal

LineEnding = Literal["lf", "crlf", "auto"]


class FileStatus(str, Enum):
    ATTEMPTING = "attempting"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass(slots=True)
class StripOptions:
    """Independent toggles for removing subtitle formatting noise."""

    html: bool = False
    colors: bool = False
    styles: bool = False
    urls: bool = False
    timestamps: bool = False
    numbers: bool = False
    punctuation: bool = False
    emojis: bool = False
    brackets: bool = False
    bidi_control: bool = False

    def any(self) -> bool:
        return any(getattr(self, item.name) for item in fields(self))

    @classmethod
    def all(cls) -> StripOptions:
        return cls(**{item.name: True for item in fields(cls)})


@dataclass(slots=True)
class ConversionOptions:
    """Configuration for a single conversion run."""

    strip: StripOptions | None = None
    output_dir: Path | None = None
    encoding: str = "auto"
    backup_original: bool = False
    overwrite_input: bool = False
    overwrite_existing: bool = False
    bom: bool = False
    line_endings: LineEnding | None = None
    retry_count: int = 0
    retry_delay: int = 1000
    fail_fast: bool = False
    marker: str = "utf8"


@dataclass(slots=True)
class ConversionResult:
    """Result metadata for an individual conversion."""

    output_path: Path
    backup_path: Path | None = None
    encoding: str | None = None


@dataclass(slots=True)
class BatchSettings:
    recursive: bool = False
    parallel: bool = False
    skip_existing: bool = False
    max_depth: int | None = None
    include_directories: list[str] = field(default_factory=list)
    exclude_directories: list[str] = field(default_factory=list)
    preserve_structure: bool = False
    chunk_size: int = 5
    directory_concurrency: int = 3


@dataclass(slots=True)
class BatchOptions:
    common: ConversionOptions = field(default_factory=ConversionOptions)
    batch: BatchSettings = field(default_factory=BatchSettings)


@dataclass(slots=True)
class DirectoryStats:
    total: int = 0
    successful: int = 0
    failed: int = 0
    skipped: int = 0

    def as_dict(self) -> dict[str, int]:
        return {
            "total": self.total,
            "successful": self.successful,
            "failed": self.failed,
            "skipped": self.skipped,
        }


@dataclass(slots=True)
class FileError:
    file: str
    error: str
    code: str | None = None


@dataclass(slots=True)
class BatchStats:
    """Aggregate counters for one batch run."""

    total: int = 0
    successful: int = 0
    failed: int = 0
    skipped: int = 0
    errors: list[FileError] = field(default_factory=list)
    time_taken: float = 0.0
    average_time_per_file: float = 0.0
    directories_processed: int = 0
    files_by_directory: dict[str, DirectoryStats] = field(default_factory=dict)
    start_time: float = field(default_factory=time.time)
    end_time: float = 0.0

    @property
    def processed(self) -> int:
        return self.successful + self.failed

    def is_consistent(self) -> bool:
        return self.total == self.successful + self.failed + self.skipped

    def as_dict(self) -> dict[str, object]:
        return {
            "total": self.total,
            "successful": self.successful,
            "failed": self.failed,
            "skipped": self.skipped,
            "errors": [{"file": item.file, "error": item.error} for item in self.errors],
            "timeTaken": self.time_taken,
            "averageTimePerFile": self.average_time_per_file,
            "directoriesProcessed": self.directories_processed,
            "filesByDirectory": {
                directory: bucket.as_dict() for directory, bucket in self.files_by_directory.items()
            },
            "startTime": self.start_time,
            "endTime": self.end_time,
        }


__all__ = [
    "BatchOptions",
    "BatchSettings",
    "BatchStats",
    "ConversionOptions",
    "ConversionResult",
    "DirectoryStats",
    "FileError",
    "FileStatus",
    "LineEnding",
    "StripOptions",
]
