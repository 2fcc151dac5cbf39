from pathlib import Path

from typer.testing import CliRunner

from subtitle_converter.cli import app

runner = CliRunner()

SRT = "1\n00:00:01,000 --> 00:00:02,000\nHello\n"


def test_convert_command_writes_output(tmp_path: Path) -> None:
    source = tmp_path / "movie.srt"
    source.write_text(SRT, encoding="utf-8")
    result = runner.invoke(app, ["convert", str(source), "--config", str(tmp_path / "none.toml")])
    assert result.exit_code == 0
    assert (tmp_path / "movie.utf8.srt").exists()


def test_convert_command_fails_for_missing_file(tmp_path: Path) -> None:
    result = runner.invoke(app, ["convert", str(tmp_path / "missing.srt"), "--config", str(tmp_path / "none.toml")])
    assert result.exit_code == 1
    assert "INPUT_NOT_FOUND" in result.output


def test_batch_command_prints_summary(tmp_path: Path) -> None:
    for name in ("a.srt", "b.srt"):
        (tmp_path / name).write_text(SRT, encoding="utf-8")
    result = runner.invoke(
        app, ["batch", str(tmp_path / "*.srt"), "--config", str(tmp_path / "none.toml"), "--sequential"]
    )
    assert result.exit_code == 0
    assert "Processed 2 files" in result.output


def test_info_command_reports_file_details(tmp_path: Path) -> None:
    source = tmp_path / "movie.srt"
    source.write_bytes((SRT + "\n" + SRT.replace("1\n", "2\n", 1)).replace("\n", "\r\n").encode("utf-8"))
    result = runner.invoke(app, ["info", str(source)])
    assert result.exit_code == 0
    assert "CRLF" in result.output
    assert "Subtitle entries" in result.output


def test_info_command_fails_for_missing_file(tmp_path: Path) -> None:
    result = runner.invoke(app, ["info", str(tmp_path / "missing.srt")])
    assert result.exit_code == 1


def test_strip_filters_are_selectable(tmp_path: Path) -> None:
    source = tmp_path / "movie.srt"
    source.write_text("1\n00:00:01,000 --> 00:00:02,000\n<i>Hello</i>\n", encoding="utf-8")
    config = str(tmp_path / "none.toml")
    result = runner.invoke(app, ["convert", str(source), "--config", config, "--strip", "html"])
    assert result.exit_code == 0
    assert (tmp_path / "movie.utf8.srt").read_text(encoding="utf-8").endswith("\nHello\n")

    rejected = runner.invoke(app, ["convert", str(source), "--config", config, "--strip", "sparkles"])
    assert rejected.exit_code != 0
