import json
import os
import stat
from pathlib import Path

import pytest

from subtitle_converter import core
from subtitle_converter.config import AppConfig, RuntimeConfig
from subtitle_converter.core import ConversionError, ConversionService, ErrorCode
from subtitle_converter.models import ConversionOptions, StripOptions
from subtitle_converter.utils import UTF8_BOM

SRT = (
    "1\n00:00:01,000 --> 00:00:02,000\nHello there\n\n"
    "2\n00:00:03,000 --> 00:00:04,000\nGeneral Kenobi\n"
)


def write_srt(path: Path, text: str = SRT, encoding: str = "utf-8") -> Path:
    path.write_bytes(text.encode(encoding))
    return path


def test_round_trip_preserves_text(tmp_path: Path) -> None:
    source = write_srt(tmp_path / "movie.srt")
    result = ConversionService().process_file(source)
    assert result.output_path == tmp_path / "movie.utf8.srt"
    assert result.output_path.read_bytes() == SRT.encode("utf-8")
    assert result.backup_path is None
    assert source.read_bytes() == SRT.encode("utf-8")


def test_explicit_encoding_skips_detection(tmp_path: Path) -> None:
    text = "1\n00:00:01,000 --> 00:00:02,000\nПривет мир\n"
    source = write_srt(tmp_path / "ru.srt", text, "cp1251")
    result = ConversionService().process_file(source, options=ConversionOptions(encoding="windows-1251"))
    assert result.encoding == "windows-1251"
    assert result.output_path.read_text(encoding="utf-8") == text


def test_bom_is_written_only_on_request(tmp_path: Path) -> None:
    source = tmp_path / "bom.srt"
    source.write_bytes(UTF8_BOM + SRT.encode("utf-8"))
    plain = ConversionService().process_file(source, tmp_path / "plain.srt")
    assert plain.output_path.read_bytes() == SRT.encode("utf-8")

    marked = ConversionService().process_file(source, tmp_path / "marked.srt", ConversionOptions(bom=True))
    assert marked.output_path.read_bytes() == UTF8_BOM + SRT.encode("utf-8")


def test_line_endings(tmp_path: Path) -> None:
    source = write_srt(tmp_path / "movie.srt")
    result = ConversionService().process_file(source, options=ConversionOptions(line_endings="crlf"))
    data = result.output_path.read_bytes()
    assert data.count(b"\r\n") == SRT.count("\n")
    assert b"\n" not in data.replace(b"\r\n", b"")


def test_source_line_endings_are_kept_by_default(tmp_path: Path) -> None:
    source = write_srt(tmp_path / "dos.srt", SRT.replace("\n", "\r\n"))
    result = ConversionService().process_file(source)
    assert result.output_path.read_bytes() == SRT.replace("\n", "\r\n").encode("utf-8")


def test_blocks_are_reflowed(tmp_path: Path) -> None:
    messy = (
        "1\n00:00:01,000 --> 00:00:02,000\n  Hello  \n\n\n\n"
        "2\n 00:00:03,000 --> 00:00:04,000 \nWorld\n\n"
    )
    expected = (
        "1\n00:00:01,000 --> 00:00:02,000\nHello\n\n"
        "2\n00:00:03,000 --> 00:00:04,000\nWorld\n"
    )
    source = write_srt(tmp_path / "messy.srt", messy)
    result = ConversionService().process_file(source)
    assert result.output_path.read_text(encoding="utf-8") == expected


def test_strip_options_are_applied(tmp_path: Path) -> None:
    source = write_srt(tmp_path / "tags.srt", "1\n00:00:01,000 --> 00:00:02,000\n<i>Hello</i>\n")
    options = ConversionOptions(strip=StripOptions(html=True))
    result = ConversionService().process_file(source, options=options)
    assert result.output_path.read_text(encoding="utf-8") == "1\n00:00:01,000 --> 00:00:02,000\nHello\n"


def test_backups_are_numbered(tmp_path: Path) -> None:
    source = write_srt(tmp_path / "movie.srt")
    options = ConversionOptions(backup_original=True, overwrite_existing=True)
    service = ConversionService()
    first = service.process_file(source, options=options)
    second = service.process_file(source, options=options)
    assert first.backup_path == tmp_path / "movie.srt.bak"
    assert second.backup_path == tmp_path / "movie.srt.bak.1"
    assert second.backup_path.read_bytes() == SRT.encode("utf-8")


def test_existing_output_is_rejected(tmp_path: Path) -> None:
    source = write_srt(tmp_path / "movie.srt")
    (tmp_path / "movie.utf8.srt").write_text("old", encoding="utf-8")
    with pytest.raises(ConversionError) as excinfo:
        ConversionService().process_file(source)
    assert excinfo.value.code is ErrorCode.OUTPUT_EXISTS
    assert (tmp_path / "movie.utf8.srt").read_text(encoding="utf-8") == "old"


def test_missing_input(tmp_path: Path) -> None:
    with pytest.raises(ConversionError) as excinfo:
        ConversionService().process_file(tmp_path / "missing.srt")
    assert excinfo.value.code is ErrorCode.INPUT_NOT_FOUND


def test_unknown_encoding(tmp_path: Path) -> None:
    source = write_srt(tmp_path / "movie.srt")
    with pytest.raises(ConversionError) as excinfo:
        ConversionService().process_file(source, options=ConversionOptions(encoding="x-no-such-charset"))
    assert excinfo.value.code is ErrorCode.ENCODING_UNSUPPORTED


def test_overwrite_input_replaces_source_and_keeps_backup(tmp_path: Path) -> None:
    source = write_srt(tmp_path / "movie.srt", SRT.replace("\n", "\r\n"))
    options = ConversionOptions(overwrite_input=True, line_endings="lf")
    result = ConversionService().process_file(source, options=options)
    assert result.output_path == source
    assert source.read_bytes() == SRT.encode("utf-8")
    assert result.backup_path == tmp_path / "movie.srt.bak"


def test_failed_write_restores_input(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    original = SRT.replace("\n", "\r\n").encode("utf-8")
    source = tmp_path / "movie.srt"
    source.write_bytes(original)

    def broken_write(path: Path, data: bytes) -> None:
        raise OSError("disk full")

    monkeypatch.setattr(core, "atomic_write_bytes", broken_write)
    with pytest.raises(ConversionError) as excinfo:
        ConversionService().process_file(source, options=ConversionOptions(overwrite_input=True))
    assert excinfo.value.code is ErrorCode.IO_FAILURE
    assert "disk full" in str(excinfo.value)
    assert source.read_bytes() == original
    assert not (tmp_path / "movie.srt.bak").exists()


def test_failed_restore_reports_both_errors(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    source = write_srt(tmp_path / "movie.srt")

    def broken_write(path: Path, data: bytes) -> None:
        raise OSError("disk full")

    def broken_copy(source: Path, destination: Path) -> None:
        raise OSError("read-only volume")

    monkeypatch.setattr(core, "atomic_write_bytes", broken_write)
    monkeypatch.setattr(core, "atomic_copy", broken_copy)
    with pytest.raises(ConversionError) as excinfo:
        ConversionService().process_file(source, options=ConversionOptions(overwrite_input=True))
    message = str(excinfo.value)
    assert excinfo.value.code is ErrorCode.RESTORE_FAILED
    assert "disk full" in message
    assert "read-only volume" in message
    assert (tmp_path / "movie.srt.bak").exists()


def test_run_log_records_each_attempt(tmp_path: Path) -> None:
    log_file = tmp_path / "logs" / "runs.jsonl"
    service = ConversionService(AppConfig(runtime=RuntimeConfig(log_file=log_file)))
    source = write_srt(tmp_path / "movie.srt")
    service.process_file(source)
    with pytest.raises(ConversionError):
        service.process_file(source)

    entries = [json.loads(line) for line in log_file.read_text(encoding="utf-8").splitlines()]
    assert [entry["status"] for entry in entries] == ["success", "failure"]
    assert entries[0]["encoding"] in {"ascii", "utf-8"}
    assert entries[0]["size_bytes"] == len(SRT)
    assert entries[1]["error_code"] == "OUTPUT_EXISTS"


def test_overwrite_input_keeps_file_mode(tmp_path: Path) -> None:
    source = write_srt(tmp_path / "movie.srt", SRT.replace("\n", "\r\n"))
    source.chmod(0o644)
    ConversionService().process_file(source, options=ConversionOptions(overwrite_input=True, line_endings="lf"))
    assert stat.S_IMODE(source.stat().st_mode) == 0o644


def test_new_output_follows_umask(tmp_path: Path) -> None:
    source = write_srt(tmp_path / "movie.srt")
    previous = os.umask(0o022)
    try:
        result = ConversionService().process_file(source)
    finally:
        os.umask(previous)
    assert stat.S_IMODE(result.output_path.stat().st_mode) == 0o644
