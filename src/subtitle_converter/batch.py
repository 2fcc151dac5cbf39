from __future__ import annotations

import glob
import threading
import time
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from functools import partial
from pathlib import Path

from .config import AppConfig
from .core import BatchAbortedError, ConversionError, ConversionService, ErrorCode
from .logging import BatchSummary, append_summary_row
from .models import BatchOptions, BatchSettings, BatchStats, DirectoryStats, FileError, FileStatus
from .strategies import marked_name, select_strategy
from .utils import chunked, generate_run_id, matches_any, pattern_base, relative_depth


class EventKind(str, Enum):
    FILE = "file"
    DIRECTORY = "directory"
    RETRY = "retry"
    WARNING = "warning"


@dataclass(slots=True)
class BatchEvent:
    kind: EventKind
    path: Path | None = None
    status: FileStatus | None = None
    message: str | None = None
    attempt: int = 0


EventCallback = Callable[[BatchEvent], None]


@dataclass(slots=True)
class DirectoryGroup:
    directory: Path
    files: list[Path]
    stats: DirectoryStats


@dataclass(slots=True)
class _BatchRun:
    options: BatchOptions
    base: Path
    stats: BatchStats
    lock: threading.Lock = field(default_factory=threading.Lock)
    stop: threading.Event = field(default_factory=threading.Event)
    abort: BatchAbortedError | None = None


class BatchScheduler:
    """Discovers subtitle files and converts them directory by directory.

    Directory groups, and the files within a group, run in bounded waves when
    ``parallel`` is set: every unit of a wave is submitted before any is
    awaited. The fail-fast stop signal is checked only between waves, so units
    already in flight always finish.
    """

    def __init__(
        self,
        config: AppConfig | None = None,
        service: ConversionService | None = None,
        *,
        on_event: EventCallback | None = None,
    ) -> None:
        self._config = config or AppConfig()
        self._service = service or ConversionService(self._config)
        self._on_event = on_event or (lambda _: None)

    def process_batch(self, pattern: str, options: BatchOptions | None = None) -> BatchStats:
        opts = options or BatchOptions()
        stats = BatchStats()
        started = time.perf_counter()

        files = self.find_files(pattern, opts.batch)
        if not files:
            self._on_event(BatchEvent(EventKind.WARNING, message=f"No files found matching pattern: {pattern}"))
            self._finalize_stats(stats, started)
            return stats

        stats.total = len(files)
        groups = self.group_by_directory(files, stats)
        stats.directories_processed = len(groups)
        run = _BatchRun(options=opts, base=pattern_base(pattern), stats=stats)
        self._prepare_output_dirs(groups, run)

        if opts.batch.parallel:
            self._run_directories_parallel(groups, run)
        else:
            self._run_directories_sequential(groups, run)

        self._finalize_stats(stats, started)
        self._write_batch_summary(pattern, stats)
        if run.abort is not None:
            raise run.abort
        return stats

    def find_files(self, pattern: str, settings: BatchSettings) -> list[Path]:
        base = pattern_base(pattern)
        files: list[Path] = []
        for match in sorted(glob.glob(pattern, recursive=settings.recursive)):
            path = Path(match)
            if not path.is_file():
                continue
            if settings.max_depth is not None:
                depth = relative_depth(base, path)
                if depth is None or depth > settings.max_depth:
                    continue
            directory = str(path.parent)
            if settings.include_directories and not matches_any(directory, settings.include_directories):
                continue
            if settings.exclude_directories and matches_any(directory, settings.exclude_directories):
                continue
            files.append(path)
        return files

    def group_by_directory(self, files: Sequence[Path], stats: BatchStats) -> list[DirectoryGroup]:
        groups: dict[Path, DirectoryGroup] = {}
        for path in files:
            directory = path.parent
            group = groups.get(directory)
            if group is None:
                bucket = DirectoryStats()
                stats.files_by_directory[str(directory)] = bucket
                group = DirectoryGroup(directory=directory, files=[], stats=bucket)
                groups[directory] = group
            group.files.append(path)
        return list(groups.values())

    def output_path_for(self, path: Path, run: _BatchRun) -> Path | None:
        """Destination handed to the converter; None lets its strategy decide."""

        common = run.options.common
        if common.overwrite_input or common.output_dir is None:
            return None
        filename = marked_name(path.name, common.marker)
        if run.options.batch.preserve_structure:
            return self._mirrored_dir(common.output_dir, path.parent, run.base) / filename
        return common.output_dir / filename

    def _mirrored_dir(self, output_dir: Path, directory: Path, base: Path) -> Path:
        try:
            relative = directory.resolve().relative_to(base.resolve())
        except ValueError:
            relative = Path(directory.name)
        return output_dir / relative

    def _prepare_output_dirs(self, groups: Sequence[DirectoryGroup], run: _BatchRun) -> None:
        output_dir = run.options.common.output_dir
        if output_dir is None:
            return
        targets = [output_dir]
        if run.options.batch.preserve_structure:
            targets.extend(self._mirrored_dir(output_dir, group.directory, run.base) for group in groups)
        for target in targets:
            try:
                target.mkdir(parents=True, exist_ok=True)
            except OSError as exc:
                raise ConversionError(
                    ErrorCode.IO_FAILURE, f"Could not create output directory {target}: {exc}"
                ) from exc

    def _run_wave(self, units: Sequence[Callable[[], None]]) -> None:
        with ThreadPoolExecutor(max_workers=len(units), thread_name_prefix="batch-worker") as executor:
            futures = [executor.submit(unit) for unit in units]
        for future in futures:
            future.result()

    def _run_directories_parallel(self, groups: Sequence[DirectoryGroup], run: _BatchRun) -> None:
        for wave in chunked(groups, run.options.batch.directory_concurrency):
            if run.stop.is_set():
                break
            self._run_wave([partial(self._process_directory, group, run) for group in wave])

    def _run_directories_sequential(self, groups: Sequence[DirectoryGroup], run: _BatchRun) -> None:
        for group in groups:
            if run.stop.is_set():
                break
            self._process_directory(group, run)

    def _process_directory(self, group: DirectoryGroup, run: _BatchRun) -> None:
        if run.stop.is_set():
            return
        if run.options.batch.parallel:
            for chunk in chunked(group.files, run.options.batch.chunk_size):
                if run.stop.is_set():
                    break
                self._run_wave([partial(self._process_file, path, group, run) for path in chunk])
        else:
            for path in group.files:
                if run.stop.is_set():
                    break
                self._process_file(path, group, run)
        self._on_event(BatchEvent(EventKind.DIRECTORY, path=group.directory))

    def _process_file(self, path: Path, group: DirectoryGroup, run: _BatchRun) -> None:
        common = run.options.common
        explicit_output = self.output_path_for(path, run)
        with run.lock:
            group.stats.total += 1

        if run.options.batch.skip_existing and not common.overwrite_input:
            target = explicit_output or select_strategy(False, common.marker).get_output_path(path)
            if target.exists():
                self._record(run, group, path, FileStatus.SKIPPED)
                return

        max_attempts = max(common.retry_count, 0) + 1
        attempt = 0
        while True:
            attempt += 1
            try:
                self._service.process_file(path, explicit_output, common)
            except ConversionError as exc:
                if attempt >= max_attempts:
                    self._fail(run, group, path, exc)
                    return
                self._on_event(
                    BatchEvent(
                        EventKind.RETRY,
                        path=path,
                        status=FileStatus.ATTEMPTING,
                        message=str(exc),
                        attempt=attempt,
                    )
                )
                time.sleep(common.retry_delay / 1000)
                continue
            self._record(run, group, path, FileStatus.SUCCEEDED)
            return

    def _fail(self, run: _BatchRun, group: DirectoryGroup, path: Path, error: ConversionError) -> None:
        self._record(run, group, path, FileStatus.FAILED, error)
        if not run.options.common.fail_fast:
            return
        with run.lock:
            if run.abort is None:
                run.abort = BatchAbortedError(path, error)
                run.abort.__cause__ = error
            run.stop.set()

    def _record(
        self,
        run: _BatchRun,
        group: DirectoryGroup,
        path: Path,
        status: FileStatus,
        error: ConversionError | None = None,
    ) -> None:
        stats = run.stats
        with run.lock:
            if status is FileStatus.SUCCEEDED:
                group.stats.successful += 1
                stats.successful += 1
            elif status is FileStatus.SKIPPED:
                group.stats.skipped += 1
                stats.skipped += 1
            else:
                group.stats.failed += 1
                stats.failed += 1
                stats.errors.append(
                    FileError(file=str(path), error=str(error), code=error.code.value if error else None)
                )
        self._on_event(BatchEvent(EventKind.FILE, path=path, status=status, message=str(error) if error else None))

    def _finalize_stats(self, stats: BatchStats, started: float) -> None:
        stats.end_time = time.time()
        stats.time_taken = time.perf_counter() - started
        processed = stats.processed
        stats.average_time_per_file = stats.time_taken / processed if processed else 0.0

    def _write_batch_summary(self, pattern: str, stats: BatchStats) -> None:
        summary_path = self._config.runtime.summary_csv
        if summary_path is None:
            return
        summary = BatchSummary(
            pattern=pattern,
            total=stats.total,
            successful=stats.successful,
            failed=stats.failed,
            skipped=stats.skipped,
            time_taken=stats.time_taken,
        )
        append_summary_row(summary_path, summary.as_row(generate_run_id("batch")))


__all__ = [
    "BatchEvent",
    "BatchScheduler",
    "DirectoryGroup",
    "EventCallback",
    "EventKind",
]
