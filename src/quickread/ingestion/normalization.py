"""Text normalization and word-splitting helpers shared by every adapter."""

from __future__ import annotations

import html
from pathlib import Path
import re

_WHITESPACE_RE = re.compile(r"\s+")
_TITLE_SPLIT_RE = re.compile(r"[._\-]+")
_BOOK_SUFFIXES = frozenset(
    {
        ".epub", ".pdf", ".txt", ".text", ".md", ".markdown", ".html", ".htm", ".xhtml",
        ".fb2", ".fbz", ".zip", ".docx", ".rtf", ".odt", ".mobi", ".azw", ".azw3", ".prc",
    }
)

DASHES = frozenset("-–—")


def normalize_whitespace(text: str) -> str:
    """Collapse repeated whitespace and trim boundaries."""

    return _WHITESPACE_RE.sub(" ", text).strip()


def title_from_path(path: Path) -> str:
    """Readable title derived from a file name (``my_book.v2.epub`` -> ``My Book V2``)."""

    name = path.name
    for suffix in reversed(path.suffixes):
        if suffix.lower() not in _BOOK_SUFFIXES or len(name) <= len(suffix):
            break
        name = name[: -len(suffix)]
    stem = _TITLE_SPLIT_RE.sub(" ", name)
    return normalize_whitespace(stem).title() or path.name


def split_on_dashes(token: str) -> list[str]:
    """Split a whitespace-free token on interior dashes.

    The dash stays on the left part so the reader still sees it
    (``well-known`` -> ``well-``, ``known``). Leading and trailing dashes
    never cause a split and runs of dashes stay together.
    """

    if not token:
        return []

    parts: list[str] = []
    start = 0
    index = 0
    length = len(token)
    while index < length:
        if token[index] in DASHES:
            run_end = index
            while run_end < length and token[run_end] in DASHES:
                run_end += 1
            has_left = any(char not in DASHES for char in token[start:index])
            if has_left and run_end < length:
                parts.append(token[start:run_end])
                start = run_end
            index = run_end
            continue
        index += 1

    parts.append(token[start:])
    return parts


def split_words(text: str) -> list[str]:
    """Split a raw text run into display words."""

    words: list[str] = []
    for token in text.split():
        words.extend(split_on_dashes(token))
    return words


def escape_html(text: str) -> str:
    return html.escape(text, quote=True)
