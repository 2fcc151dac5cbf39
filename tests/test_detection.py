import chardet
import pytest

from subtitle_converter.detection import FALLBACK_ENCODING, detect_encoding, detect_file_encoding, inspect_file
from subtitle_converter.encoding import EncodingUnsupportedError, convert_to_text, resolve_codec


def test_empty_input_falls_back_to_utf8() -> None:
    result = detect_encoding(b"")
    assert result.encoding == FALLBACK_ENCODING
    assert result.fallback


def test_plain_text_detection_is_lowercased(tmp_path) -> None:
    path = tmp_path / "plain.srt"
    path.write_bytes(b"1\n00:00:01,000 --> 00:00:02,000\nHello there\n")
    result = detect_file_encoding(path)
    assert result.encoding in {"ascii", "utf-8"}
    assert not result.fallback


def test_utf8_bom_is_consumed() -> None:
    assert convert_to_text(b"\xef\xbb\xbfhello", "UTF-8") == "hello"


def test_explicit_legacy_charset_decodes() -> None:
    data = "Привет мир".encode("cp1251")
    assert convert_to_text(data, "windows-1251") == "Привет мир"


def test_undecodable_bytes_are_replaced() -> None:
    assert convert_to_text(b"ok\xff", "ascii") == "ok\ufffd"


def test_unknown_charset_raises() -> None:
    with pytest.raises(EncodingUnsupportedError):
        resolve_codec("x-no-such-charset")


def test_inconclusive_guess_is_flagged(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(chardet, "detect", lambda data: {"encoding": None, "confidence": 0.0})
    result = detect_encoding(b"\x00\x01\x02")
    assert result.encoding == FALLBACK_ENCODING
    assert result.fallback


def test_inspect_file_reports_layout(tmp_path) -> None:
    path = tmp_path / "movie.utf8.srt"
    text = "1\r\n00:00:01,000 --> 00:00:02,000\r\nHello\r\n\r\n2\r\n00:00:03,000 --> 00:00:04,000\r\nWorld\r\n"
    path.write_bytes(b"\xef\xbb\xbf" + text.encode("utf-8"))
    info = inspect_file(path)
    assert info.has_bom
    assert info.line_ending == "CRLF"
    assert info.line_count == 7
    assert info.entry_count == 2
    assert info.converted
    assert info.size_bytes == len(text) + 3
