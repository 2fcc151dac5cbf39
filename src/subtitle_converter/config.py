from __future__ import annotations

import json
import tomllib
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Iterable, Mapping

from .models import BatchOptions, BatchSettings, ConversionOptions, StripOptions
from .settings import get_settings

LINE_ENDING_CHOICES = ("lf", "crlf", "auto")


@dataclass(slots=True)
class InputConfig:
    encoding: str = "auto"


@dataclass(slots=True)
class OutputConfig:
    directory: Path | None = None
    create_backup: bool = False
    bom: bool = False
    line_endings: str | None = "auto"
    overwrite_input: bool = False
    overwrite_existing: bool = False
    marker: str = "utf8"


@dataclass(slots=True)
class StripConfig:
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

    def to_options(self) -> StripOptions | None:
        options = StripOptions(**{item.name: getattr(self, item.name) for item in fields(self)})
        return options if options.any() else None


@dataclass(slots=True)
class BatchConfig:
    recursive: bool = False
    parallel: bool = False
    skip_existing: bool = False
    max_depth: int | None = None
    include_directories: tuple[str, ...] = ()
    exclude_directories: tuple[str, ...] = ()
    preserve_structure: bool = False
    chunk_size: int = 5
    directory_concurrency: int = 3
    retry_count: int = 0
    retry_delay: int = 1000
    fail_fast: bool = False


@dataclass(slots=True)
class RuntimeConfig:
    log_file: Path | None = None
    summary_csv: Path | None = None


@dataclass(slots=True)
class AppConfig:
    input: InputConfig = field(default_factory=InputConfig)
    output: OutputConfig = field(default_factory=OutputConfig)
    strip: StripConfig = field(default_factory=StripConfig)
    batch: BatchConfig = field(default_factory=BatchConfig)
    runtime: RuntimeConfig = field(default_factory=RuntimeConfig)


def _read_toml(path: Path) -> Mapping[str, object]:
    if not path.exists():
        return {}
    with path.open("rb") as handle:
        return tomllib.load(handle)


def _section(raw: Mapping[str, object], name: str) -> Mapping[str, object]:
    value = raw.get(name)
    return value if isinstance(value, Mapping) else {}


def _as_int(value: object, name: str) -> int:
    if isinstance(value, bool):
        raise ValueError(f"{name} must be an integer, got {value!r}")
    if isinstance(value, int):
        return value
    try:
        return int(str(value).strip(), 10)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {value!r}") from exc


def _optional_int(value: object | None, name: str) -> int | None:
    if value is None or value == "":
        return None
    return _as_int(value, name)


def _optional_path(value: object | None) -> Path | None:
    if not value:
        return None
    return Path(str(value))


def _tuple_of_strings(value: object | None) -> tuple[str, ...]:
    if not value:
        return ()
    if isinstance(value, str):
        return tuple(item.strip() for item in value.split(",") if item.strip())
    if isinstance(value, Iterable):
        return tuple(str(item) for item in value)
    raise TypeError(f"Unsupported directory list: {value!r}")


def _line_endings(value: object | None) -> str | None:
    if value is None or value == "":
        return None
    normalized = str(value).strip().lower()
    if normalized not in LINE_ENDING_CHOICES:
        raise ValueError(f"line_endings must be one of {', '.join(LINE_ENDING_CHOICES)}, got {value!r}")
    return normalized


def _build_input(data: Mapping[str, object]) -> InputConfig:
    return InputConfig(encoding=str(data.get("encoding", "auto")))


def _build_output(data: Mapping[str, object]) -> OutputConfig:
    return OutputConfig(
        directory=_optional_path(data.get("directory")),
        create_backup=bool(data.get("create_backup", False)),
        bom=bool(data.get("bom", False)),
        line_endings=_line_endings(data.get("line_endings", "auto")),
        overwrite_input=bool(data.get("overwrite_input", False)),
        overwrite_existing=bool(data.get("overwrite_existing", False)),
        marker=str(data.get("marker", "utf8")),
    )


def _build_strip(data: Mapping[str, object]) -> StripConfig:
    return StripConfig(**{item.name: bool(data.get(item.name, False)) for item in fields(StripConfig)})


def _build_batch(data: Mapping[str, object]) -> BatchConfig:
    return BatchConfig(
        recursive=bool(data.get("recursive", False)),
        parallel=bool(data.get("parallel", False)),
        skip_existing=bool(data.get("skip_existing", False)),
        max_depth=_optional_int(data.get("max_depth"), "max_depth"),
        include_directories=_tuple_of_strings(data.get("include_directories")),
        exclude_directories=_tuple_of_strings(data.get("exclude_directories")),
        preserve_structure=bool(data.get("preserve_structure", False)),
        chunk_size=_as_int(data.get("chunk_size", 5), "chunk_size"),
        directory_concurrency=_as_int(data.get("directory_concurrency", 3), "directory_concurrency"),
        retry_count=_as_int(data.get("retry_count", 0), "retry_count"),
        retry_delay=_as_int(data.get("retry_delay", 1000), "retry_delay"),
        fail_fast=bool(data.get("fail_fast", False)),
    )


def _build_runtime(data: Mapping[str, object]) -> RuntimeConfig:
    return RuntimeConfig(
        log_file=_optional_path(data.get("log_file")) or get_settings().log_file,
        summary_csv=_optional_path(data.get("summary_csv")),
    )


def load_config(path: Path | None = None) -> AppConfig:
    path = path or get_settings().config_path
    raw = _read_toml(path)
    return AppConfig(
        input=_build_input(_section(raw, "input")),
        output=_build_output(_section(raw, "output")),
        strip=_build_strip(_section(raw, "strip")),
        batch=_build_batch(_section(raw, "batch")),
        runtime=_build_runtime(_section(raw, "runtime")),
    )


def _pick(overrides: Mapping[str, Any], name: str, default: Any) -> Any:
    value = overrides.get(name)
    return default if value is None else value


def build_conversion_options(config: AppConfig, **overrides: Any) -> ConversionOptions:
    """Merge resolved config values with per-run overrides; ``None`` means "not given"."""

    strip = overrides.get("strip")
    if strip is None:
        strip = config.strip.to_options()
    return ConversionOptions(
        strip=strip if strip is not None and strip.any() else None,
        output_dir=_optional_path(_pick(overrides, "output_dir", config.output.directory)),
        encoding=str(_pick(overrides, "encoding", config.input.encoding)),
        backup_original=bool(_pick(overrides, "backup_original", config.output.create_backup)),
        overwrite_input=bool(_pick(overrides, "overwrite_input", config.output.overwrite_input)),
        overwrite_existing=bool(_pick(overrides, "overwrite_existing", config.output.overwrite_existing)),
        bom=bool(_pick(overrides, "bom", config.output.bom)),
        line_endings=_line_endings(_pick(overrides, "line_endings", config.output.line_endings)),  # type: ignore[arg-type]
        retry_count=max(0, _as_int(_pick(overrides, "retry_count", config.batch.retry_count), "retry_count")),
        retry_delay=max(0, _as_int(_pick(overrides, "retry_delay", config.batch.retry_delay), "retry_delay")),
        fail_fast=bool(_pick(overrides, "fail_fast", config.batch.fail_fast)),
        marker=str(_pick(overrides, "marker", config.output.marker)),
    )


def build_batch_options(config: AppConfig, **overrides: Any) -> BatchOptions:
    batch = BatchSettings(
        recursive=bool(_pick(overrides, "recursive", config.batch.recursive)),
        parallel=bool(_pick(overrides, "parallel", config.batch.parallel)),
        skip_existing=bool(_pick(overrides, "skip_existing", config.batch.skip_existing)),
        max_depth=_optional_int(_pick(overrides, "max_depth", config.batch.max_depth), "max_depth"),
        include_directories=list(_tuple_of_strings(_pick(overrides, "include_directories", config.batch.include_directories))),
        exclude_directories=list(_tuple_of_strings(_pick(overrides, "exclude_directories", config.batch.exclude_directories))),
        preserve_structure=bool(_pick(overrides, "preserve_structure", config.batch.preserve_structure)),
        chunk_size=max(1, _as_int(_pick(overrides, "chunk_size", config.batch.chunk_size), "chunk_size")),
        directory_concurrency=max(
            1,
            _as_int(_pick(overrides, "directory_concurrency", config.batch.directory_concurrency), "directory_concurrency"),
        ),
    )
    return BatchOptions(common=build_conversion_options(config, **overrides), batch=batch)


def dump_config(config: AppConfig) -> str:
    payload = {
        "input": {"encoding": config.input.encoding},
        "output": {
            "directory": str(config.output.directory) if config.output.directory else None,
            "create_backup": config.output.create_backup,
            "bom": config.output.bom,
            "line_endings": config.output.line_endings,
            "overwrite_input": config.output.overwrite_input,
            "overwrite_existing": config.output.overwrite_existing,
            "marker": config.output.marker,
        },
        "strip": {item.name: getattr(config.strip, item.name) for item in fields(config.strip)},
        "batch": {
            "recursive": config.batch.recursive,
            "parallel": config.batch.parallel,
            "skip_existing": config.batch.skip_existing,
            "max_depth": config.batch.max_depth,
            "include_directories": list(config.batch.include_directories),
            "exclude_directories": list(config.batch.exclude_directories),
            "preserve_structure": config.batch.preserve_structure,
            "chunk_size": config.batch.chunk_size,
            "directory_concurrency": config.batch.directory_concurrency,
            "retry_count": config.batch.retry_count,
            "retry_delay": config.batch.retry_delay,
            "fail_fast": config.batch.fail_fast,
        },
        "runtime": {
            "log_file": str(config.runtime.log_file) if config.runtime.log_file else None,
            "summary_csv": str(config.runtime.summary_csv) if config.runtime.summary_csv else None,
        },
    }
    return json.dumps(payload, indent=2)
