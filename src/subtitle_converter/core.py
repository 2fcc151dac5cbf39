from __future__ import annotations

import shutil
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Iterator

from .config import AppConfig
from .detection import detect_encoding
from .encoding import EncodingUnsupportedError, convert_to_text
from .logging import RunLogEntry, RunLogger, StageTimings
from .models import ConversionOptions, ConversionResult
from .strategies import OutputStrategy, select_strategy
from .stripping import strip_formatting
from .utils import (
    BLOCK_SEPARATOR_RE,
    atomic_copy,
    atomic_write_bytes,
    encode_output,
    next_backup_path,
    normalize_line_endings,
    unify_newlines,
)


class ErrorCode(str, Enum):
    INPUT_NOT_FOUND = "INPUT_NOT_FOUND"
    ENCODING_UNSUPPORTED = "ENCODING_UNSUPPORTED"
    OUTPUT_EXISTS = "OUTPUT_EXISTS"
    IO_FAILURE = "IO_FAILURE"
    RESTORE_FAILED = "RESTORE_FAILED"
    BATCH_ABORTED = "BATCH_ABORTED"


class ConversionError(RuntimeError):
    def __init__(self, code: ErrorCode, message: str) -> None:
        super().__init__(message)
        self.code = code


class BatchAbortedError(ConversionError):
    """Raised by a fail-fast batch once a file has exhausted its retries."""

    def __init__(self, file: Path, cause: ConversionError | Exception) -> None:
        super().__init__(ErrorCode.BATCH_ABORTED, f"Failed to process {file}: {cause}")
        self.file = file


@dataclass(slots=True)
class _ConversionContext:
    source: Path
    options: ConversionOptions
    strategy: OutputStrategy
    output_path: Path | None = None
    backup_path: Path | None = None
    encoding: str | None = None
    size_bytes: int = 0
    timings: StageTimings = field(default_factory=StageTimings)


@contextmanager
def _io_stage(stage: str) -> Iterator[None]:
    try:
        yield
    except OSError as exc:
        raise ConversionError(ErrorCode.IO_FAILURE, f"{stage} failed: {exc}") from exc


def _elapsed_ms(start: float) -> float:
    return (time.perf_counter() - start) * 1000


class ConversionService:
    """Converts one subtitle file to UTF-8 with backup/restore safety."""

    def __init__(self, config: AppConfig | None = None, *, logger: RunLogger | None = None) -> None:
        self._config = config or AppConfig()
        log_file = self._config.runtime.log_file
        self._logger = logger or (RunLogger(log_file) if log_file else None)

    def process_file(
        self,
        input_path: Path | str,
        output_path: Path | str | None = None,
        options: ConversionOptions | None = None,
    ) -> ConversionResult:
        opts = options or ConversionOptions()
        source = Path(input_path)
        context = _ConversionContext(
            source=source,
            options=opts,
            strategy=select_strategy(opts.overwrite_input, opts.marker),
        )
        try:
            destination = self._convert_internal(context, Path(output_path) if output_path else None)
        except ConversionError as exc:
            failure = self._recover(context, exc)
            self._log_failure(context, failure)
            raise failure from exc

        self._append_success_log(context)
        return ConversionResult(
            output_path=destination,
            backup_path=context.backup_path,
            encoding=context.encoding,
        )

    def _convert_internal(self, context: _ConversionContext, explicit_output: Path | None) -> Path:
        self._validate_source(context.source)
        destination = explicit_output or context.strategy.get_output_path(context.source)
        context.output_path = destination

        if context.strategy.should_backup or context.options.backup_original:
            context.backup_path = self._create_backup(context.source)

        self._ensure_writable(destination, context.options)

        read_start = time.perf_counter()
        with _io_stage("Read"):
            data = context.source.read_bytes()
        context.size_bytes = len(data)
        context.timings.read_ms = _elapsed_ms(read_start)

        detect_start = time.perf_counter()
        text = self._decode(data, context)
        context.timings.detect_ms = _elapsed_ms(detect_start)

        convert_start = time.perf_counter()
        payload = self._finalize_text(text, context.options)
        context.timings.convert_ms = _elapsed_ms(convert_start)

        write_start = time.perf_counter()
        with _io_stage("Write"):
            atomic_write_bytes(destination, payload)
        context.timings.write_ms = _elapsed_ms(write_start)
        return destination

    def _validate_source(self, path: Path) -> None:
        if not path.is_file():
            raise ConversionError(ErrorCode.INPUT_NOT_FOUND, f"Source file does not exist: {path}")

    def _create_backup(self, source: Path) -> Path:
        backup_path = next_backup_path(source)
        with _io_stage("Backup"):
            shutil.copy2(source, backup_path)
        return backup_path

    def _ensure_writable(self, output_path: Path, options: ConversionOptions) -> None:
        # Overwrite-in-place always replaces its own input.
        if options.overwrite_input or options.overwrite_existing:
            return
        if output_path.exists():
            raise ConversionError(
                ErrorCode.OUTPUT_EXISTS,
                f"Output file {output_path} already exists and overwrite is disabled",
            )

    def _decode(self, data: bytes, context: _ConversionContext) -> str:
        requested = context.options.encoding.strip().lower()
        charset = requested if requested and requested != "auto" else detect_encoding(data).encoding
        try:
            text = convert_to_text(data, charset)
        except EncodingUnsupportedError as exc:
            raise ConversionError(ErrorCode.ENCODING_UNSUPPORTED, str(exc)) from exc
        context.encoding = charset
        return text

    def _finalize_text(self, text: str, options: ConversionOptions) -> bytes:
        content = unify_newlines(text)
        if options.strip is not None and options.strip.any():
            content = strip_formatting(content, options.strip)
        content = self._reflow_blocks(content)
        content = normalize_line_endings(content, options.line_endings, source=text)
        return encode_output(content, bom=options.bom)

    def _reflow_blocks(self, text: str) -> str:
        """Rejoin subtitle blocks with exactly one blank line between them.

        Line 1 of a block is the sequence number, line 2 the timing range; blank
        caption lines are dropped. Blocks shorter than two lines pass through.
        """

        body = text.strip("\n")
        if not body.strip():
            return text
        trailing = "\n" if text.endswith("\n") else ""
        blocks: list[str] = []
        for block in BLOCK_SEPARATOR_RE.split(body):
            if not block.strip():
                continue
            lines = block.split("\n")
            if len(lines) < 2:
                blocks.append(block)
                continue
            caption = [line.strip() for line in lines[2:] if line.strip()]
            blocks.append("\n".join([lines[0].strip(), lines[1].strip(), *caption]))
        return "\n\n".join(blocks) + trailing

    def _recover(self, context: _ConversionContext, exc: ConversionError) -> ConversionError:
        backup = context.backup_path
        if backup is None or not context.options.overwrite_input:
            return ConversionError(exc.code, f"Failed to process file: {exc}")
        try:
            atomic_copy(backup, context.source)
            backup.unlink()
        except OSError as restore_exc:
            return ConversionError(
                ErrorCode.RESTORE_FAILED,
                "Processing failed and backup restoration failed. "
                f"Original error: {exc}. Restore error: {restore_exc}",
            )
        context.backup_path = None
        return ConversionError(exc.code, f"Failed to process file: {exc}")

    def _log_failure(self, context: _ConversionContext, exc: ConversionError) -> None:
        if self._logger is None:
            return
        self._logger.append(
            RunLogEntry(
                source=str(context.source),
                status="failure",
                encoding=context.encoding,
                error_code=exc.code.value,
                timings=context.timings,
                output_path=str(context.output_path) if context.output_path else None,
                backup_path=str(context.backup_path) if context.backup_path else None,
                size_bytes=context.size_bytes,
                error_message=str(exc),
            )
        )

    def _append_success_log(self, context: _ConversionContext) -> None:
        if self._logger is None:
            return
        self._logger.append(
            RunLogEntry(
                source=str(context.source),
                status="success",
                encoding=context.encoding,
                error_code=None,
                timings=context.timings,
                output_path=str(context.output_path),
                backup_path=str(context.backup_path) if context.backup_path else None,
                size_bytes=context.size_bytes,
            )
        )


__all__ = [
    "BatchAbortedError",
    "ConversionError",
    "ConversionService",
    "ErrorCode",
]
