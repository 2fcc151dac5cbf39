from __future__ import annotations

import codecs

# Charsets whose byte-order mark should be consumed rather than decoded as U+FEFF.
_BOM_AWARE = {
    "utf-8": "utf-8-sig",
    "utf8": "utf-8-sig",
}


class EncodingUnsupportedError(LookupError):
    """Raised when a charset name is not known to the codec registry."""


def resolve_codec(charset: str) -> str:
    name = charset.strip().lower()
    try:
        info = codecs.lookup(name)
    except LookupError as exc:
        raise EncodingUnsupportedError(f"Unsupported encoding: {charset or '<empty>'}") from exc
    return _BOM_AWARE.get(info.name, info.name)


def convert_to_text(data: bytes, charset: str) -> str:
    codec = resolve_codec(charset)
    return data.decode(codec, errors="replace")


__all__ = ["EncodingUnsupportedError", "convert_to_text", "resolve_codec"]
