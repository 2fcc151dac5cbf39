from __future__ import annotations

from dataclasses import fields
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from .batch import BatchEvent, BatchScheduler, EventKind
from .config import AppConfig, build_batch_options, build_conversion_options, dump_config, load_config
from .core import BatchAbortedError, ConversionError, ConversionService
from .detection import inspect_file
from .encoding import EncodingUnsupportedError
from .models import FileStatus, StripOptions

console = Console()

app = typer.Typer(help="Convert subtitle files to UTF-8")

STRIP_FILTERS = tuple(item.name for item in fields(StripOptions))

_STATUS_STYLE = {
    FileStatus.SUCCEEDED: "green",
    FileStatus.FAILED: "red",
    FileStatus.SKIPPED: "yellow",
}


def _load_config(path: Path | None) -> AppConfig:
    return load_config(path)


def _strip_override(strip_all: bool, filters: list[str] | None) -> StripOptions | None:
    if strip_all:
        return StripOptions.all()
    if not filters:
        return None
    unknown = sorted(set(filters) - set(STRIP_FILTERS))
    if unknown:
        raise typer.BadParameter(
            f"Unknown filter(s): {', '.join(unknown)}. Choose from {', '.join(STRIP_FILTERS)}",
            param_hint="--strip",
        )
    return StripOptions(**{name: True for name in filters})


def _format_size(size_bytes: int) -> str:
    size = float(size_bytes)
    for unit in ("B", "KB", "MB"):
        if size < 1024:
            return f"{size:.2f} {unit}"
        size /= 1024
    return f"{size:.2f} GB"


@app.command()
def convert(
    file: Path,
    output: Path | None = typer.Option(None, "--output", "-o", help="Explicit output path"),
    config: Path | None = typer.Option(None, "--config", help="Path to subconv.toml"),
    encoding: str | None = typer.Option(None, "--encoding", help="Source charset, or 'auto'"),
    overwrite_input: bool | None = typer.Option(
        None, "--overwrite-input/--no-overwrite-input", help="Replace the input file in place"
    ),
    overwrite: bool | None = typer.Option(None, "--overwrite/--no-overwrite", help="Replace an existing output"),
    backup: bool | None = typer.Option(None, "--backup/--no-backup", help="Keep a .bak copy of the input"),
    bom: bool | None = typer.Option(None, "--bom/--no-bom", help="Prefix the output with a UTF-8 BOM"),
    line_endings: str | None = typer.Option(None, "--line-endings", help="lf, crlf or auto"),
    strip: list[str] | None = typer.Option(None, "--strip", help="Formatting filter to apply; repeatable"),
    strip_all: bool = typer.Option(False, "--strip-all", help="Enable every formatting filter"),
) -> None:
    cfg = _load_config(config)
    options = build_conversion_options(
        cfg,
        encoding=encoding,
        overwrite_input=overwrite_input,
        overwrite_existing=overwrite,
        backup_original=backup,
        bom=bom,
        line_endings=line_endings,
        strip=_strip_override(strip_all, strip),
    )
    service = ConversionService(cfg)
    try:
        result = service.process_file(file, output, options)
    except ConversionError as exc:
        console.print(f"[red]Conversion failed[/red]: {exc.code.value} - {exc}")
        raise typer.Exit(1) from exc
    console.print(f"[green]Success[/green]: {file} ({result.encoding}) -> {result.output_path}")
    if result.backup_path:
        console.print(f"Backup: {result.backup_path}")


def _print_event(event: BatchEvent) -> None:
    if event.kind is EventKind.WARNING:
        console.print(f"[yellow]Warning[/yellow]: {event.message}")
    elif event.kind is EventKind.RETRY:
        console.print(f"[yellow]Retry {event.attempt}[/yellow] {event.path}: {event.message}")
    elif event.kind is EventKind.FILE and event.status is not None:
        style = _STATUS_STYLE.get(event.status, "white")
        suffix = f" - {event.message}" if event.message else ""
        console.print(f"[{style}]{event.status.value}[/{style}] {event.path}{suffix}")


@app.command()
def batch(
    pattern: str,
    config: Path | None = typer.Option(None, "--config", help="Path to subconv.toml"),
    output_dir: Path | None = typer.Option(None, "--output-dir", help="Write outputs under this directory"),
    encoding: str | None = typer.Option(None, "--encoding", help="Source charset, or 'auto'"),
    recursive: bool | None = typer.Option(None, "--recursive/--no-recursive", help="Let ** match nested directories"),
    parallel: bool | None = typer.Option(None, "--parallel/--sequential", help="Process in concurrent waves"),
    skip_existing: bool | None = typer.Option(
        None, "--skip-existing/--no-skip-existing", help="Skip files whose output exists"
    ),
    fail_fast: bool | None = typer.Option(None, "--fail-fast/--no-fail-fast", help="Stop after the first failed file"),
    retry_count: int | None = typer.Option(None, "--retry-count", min=0, help="Retries per file"),
    retry_delay: int | None = typer.Option(None, "--retry-delay", min=0, help="Delay between retries in ms"),
    chunk_size: int | None = typer.Option(None, "--chunk-size", min=1, help="Files per concurrent wave"),
    max_depth: int | None = typer.Option(None, "--max-depth", min=0, help="Deepest directory level to include"),
    include_dirs: str | None = typer.Option(None, "--include-dirs", help="Comma-separated directory names to keep"),
    exclude_dirs: str | None = typer.Option(None, "--exclude-dirs", help="Comma-separated directory names to drop"),
    preserve_structure: bool | None = typer.Option(
        None, "--preserve-structure/--flat", help="Mirror source directories under --output-dir"
    ),
    overwrite_input: bool | None = typer.Option(
        None, "--overwrite-input/--no-overwrite-input", help="Replace each input file in place"
    ),
    overwrite: bool | None = typer.Option(None, "--overwrite/--no-overwrite", help="Replace existing outputs"),
    backup: bool | None = typer.Option(None, "--backup/--no-backup", help="Keep a .bak copy of each input"),
    bom: bool | None = typer.Option(None, "--bom/--no-bom", help="Prefix outputs with a UTF-8 BOM"),
    line_endings: str | None = typer.Option(None, "--line-endings", help="lf, crlf or auto"),
    strip: list[str] | None = typer.Option(None, "--strip", help="Formatting filter to apply; repeatable"),
    strip_all: bool = typer.Option(False, "--strip-all", help="Enable every formatting filter"),
) -> None:
    cfg = _load_config(config)
    options = build_batch_options(
        cfg,
        output_dir=output_dir,
        encoding=encoding,
        recursive=recursive,
        parallel=parallel,
        skip_existing=skip_existing,
        fail_fast=fail_fast,
        retry_count=retry_count,
        retry_delay=retry_delay,
        chunk_size=chunk_size,
        max_depth=max_depth,
        include_directories=include_dirs,
        exclude_directories=exclude_dirs,
        preserve_structure=preserve_structure,
        overwrite_input=overwrite_input,
        overwrite_existing=overwrite,
        backup_original=backup,
        bom=bom,
        line_endings=line_endings,
        strip=_strip_override(strip_all, strip),
    )
    scheduler = BatchScheduler(cfg, on_event=_print_event)
    try:
        stats = scheduler.process_batch(pattern, options)
    except BatchAbortedError as exc:
        console.print(f"[red]Batch aborted[/red]: {exc}")
        raise typer.Exit(1) from exc
    except ConversionError as exc:
        console.print(f"[red]Batch failed[/red]: {exc.code.value} - {exc}")
        raise typer.Exit(1) from exc

    table = Table(title="Batch summary")
    table.add_column("Directory")
    table.add_column("Total", justify="right")
    table.add_column("Succeeded", justify="right")
    table.add_column("Failed", justify="right")
    table.add_column("Skipped", justify="right")
    for directory, bucket in stats.files_by_directory.items():
        table.add_row(
            directory, str(bucket.total), str(bucket.successful), str(bucket.failed), str(bucket.skipped)
        )
    console.print(table)
    console.print(
        f"Processed {stats.total} files in {stats.time_taken:.2f}s: "
        f"{stats.successful} succeeded, {stats.failed} failed, {stats.skipped} skipped."
    )


@app.command()
def info(file: Path) -> None:
    """Show the encoding and layout of a subtitle file."""

    if not file.is_file():
        console.print(f"[red]Not a file[/red]: {file}")
        raise typer.Exit(1)
    try:
        details = inspect_file(file)
    except (OSError, EncodingUnsupportedError) as exc:
        console.print(f"[red]Could not analyze file[/red]: {exc}")
        raise typer.Exit(1) from exc

    table = Table(title="Subtitle file information")
    table.add_column("Property")
    table.add_column("Value")
    table.add_row("File", str(details.path))
    table.add_row("Size", _format_size(details.size_bytes))
    table.add_row("Encoding", f"{details.encoding} ({details.confidence:.0%})")
    table.add_row("BOM", "Yes" if details.has_bom else "No")
    table.add_row("Line endings", details.line_ending)
    table.add_row("Lines", str(details.line_count))
    table.add_row("Subtitle entries", str(details.entry_count))
    table.add_row("Converted output", "Yes" if details.converted else "No")
    console.print(table)


@app.command("show-config")
def show_config(
    config: Path | None = typer.Option(None, "--config", help="Path to subconv.toml"),
) -> None:
    console.print_json(dump_config(_load_config(config)))


if __name__ == "__main__":
    app()
