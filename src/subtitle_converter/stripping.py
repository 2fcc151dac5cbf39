"""Formatting removal for subtitle text.

Each transform is a total ``str -> str`` function. They run in a fixed order:
timestamps are replaced before numbers so the digits inside a timing line are
never rewritten twice, and the placeholder tokens produced by earlier passes
survive the punctuation and bracket passes.
"""

from __future__ import annotations

import re
from typing import Callable

from .models import StripOptions

Transform = Callable[[str], str]

URL_PLACEHOLDER = "[URL]"
TIMESTAMP_PLACEHOLDER = "[TIMESTAMP]"
EMOJI_PLACEHOLDER = "[EMOJI]"

RICH_TEXT_TAGS = (
    "b",
    "i",
    "u",
    "s",
    "font",
    "size",
    "color",
    "ruby",
    "rt",
    "rp",
    "style",
    "class",
)

MAX_PASSES = 5

HTML_TAG_RE = re.compile(r"<[^>]+>")
RICH_TAG_RES = tuple(
    re.compile(rf"<{tag}\b[^>]*>.*?</{tag}\s*>", re.IGNORECASE) for tag in RICH_TEXT_TAGS
)
COLOR_RE = re.compile(r"\{\\[1-4]?c&H[0-9A-Fa-f]{6}&\}")
STYLE_RE = re.compile(r"\{\\[^}]*\}")
URL_RE = re.compile(r"https?://[^\s<>\"']+")
TIMESTAMP_RE = re.compile(
    r"\d{2}:\d{2}:\d{2}[,.]\d{3}[ \t]*-->[ \t]*\d{2}:\d{2}:\d{2}[,.]\d{3}"
)
NUMBERS_RE = re.compile(r"\d+")
EMOJI_RE = re.compile("[\U0001F300-\U0001F9FF\u2700-\u27BF]")
BIDI_CONTROL_RE = re.compile("[\u061C\u200E\u200F\u202A-\u202E\u2066-\u2069]")

_PLACEHOLDERS = "|".join(
    re.escape(token) for token in (URL_PLACEHOLDER, TIMESTAMP_PLACEHOLDER, EMOJI_PLACEHOLDER)
)
PUNCTUATION_RE = re.compile(rf"({_PLACEHOLDERS})|[!\"#$%&'()*+,\-./:;<=>?@\[\\\]^_`{{|}}~]")
BRACKETS_RE = re.compile(rf"({_PLACEHOLDERS})|[\[\](){{}}⟨⟩<>]")


def _keep_placeholder(match: re.Match[str]) -> str:
    return match.group(1) or ""


def strip_html(text: str) -> str:
    for pattern in RICH_TAG_RES:
        text = pattern.sub(lambda match: HTML_TAG_RE.sub("", match.group(0)), text)
    return HTML_TAG_RE.sub("", text)


def strip_colors(text: str) -> str:
    return COLOR_RE.sub("", text)


def strip_styles(text: str) -> str:
    return STYLE_RE.sub("", text)


def strip_urls(text: str) -> str:
    return URL_RE.sub(URL_PLACEHOLDER, text)


def strip_timestamps(text: str) -> str:
    return TIMESTAMP_RE.sub(TIMESTAMP_PLACEHOLDER, text)


def strip_numbers(text: str) -> str:
    return NUMBERS_RE.sub("#", text)


def strip_punctuation(text: str) -> str:
    return PUNCTUATION_RE.sub(_keep_placeholder, text)


def strip_emojis(text: str) -> str:
    return EMOJI_RE.sub(EMOJI_PLACEHOLDER, text)


def strip_brackets(text: str) -> str:
    return BRACKETS_RE.sub(_keep_placeholder, text)


def strip_bidi_control(text: str) -> str:
    return BIDI_CONTROL_RE.sub("", text)


PIPELINE: tuple[tuple[str, Transform], ...] = (
    ("html", strip_html),
    ("colors", strip_colors),
    ("styles", strip_styles),
    ("urls", strip_urls),
    ("timestamps", strip_timestamps),
    ("numbers", strip_numbers),
    ("punctuation", strip_punctuation),
    ("emojis", strip_emojis),
    ("brackets", strip_brackets),
    ("bidi_control", strip_bidi_control),
)


def enabled_transforms(options: StripOptions) -> list[Transform]:
    return [transform for name, transform in PIPELINE if getattr(options, name)]


def strip_formatting(text: str, options: StripOptions) -> str:
    transforms = enabled_transforms(options)
    if not transforms:
        return text
    # A later pass can expose a match for an earlier one (a removed bracket
    # joining "http" and "s://"), so repeat until the text settles.
    for _ in range(MAX_PASSES):
        previous = text
        for transform in transforms:
            text = transform(text)
        if text == previous:
            break
    return text


__all__ = [
    "EMOJI_PLACEHOLDER",
    "PIPELINE",
    "RICH_TEXT_TAGS",
    "TIMESTAMP_PLACEHOLDER",
    "URL_PLACEHOLDER",
    "enabled_transforms",
    "strip_formatting",
]
