"""Plain-text adapter with encoding detection and blank-line paragraphs."""

from __future__ import annotations

from pathlib import Path
import re

from charset_normalizer import from_bytes

from quickread.config import IngestionSettings
from quickread.ingestion.builder import DocumentBuilder, empty_text_warnings, single_unit_preview
from quickread.ingestion.errors import ErrorCategory, IngestionError
from quickread.ingestion.models import AdapterResult, Document
from quickread.ingestion.normalization import normalize_whitespace, title_from_path

_PARAGRAPH_SPLIT_RE = re.compile(r"\n\s*\n")

_HEADER_FIELDS = {
    "title": "title",
    "author": "author",
    "название": "title",
    "автор": "author",
}


def detect_encoding(raw: bytes) -> str:
    """Best-guess text encoding, normalising Cyrillic Windows code pages."""

    best = from_bytes(raw).best()
    if best and best.encoding:
        name = best.encoding.lower()
        if name in {"windows-1251", "cp1251"}:
            return "cp1251"
        return best.encoding

    for fallback in ("utf-8", "cp1251"):
        try:
            raw.decode(fallback)
            return fallback
        except UnicodeDecodeError:
            continue
    raise ValueError("Could not detect text encoding")


def decode_text(raw: bytes) -> str:
    if raw.startswith(b"\xef\xbb\xbf"):
        return raw[3:].decode("utf-8", errors="replace")
    return raw.decode(detect_encoding(raw), errors="replace")


def parse_text(text: str, words_per_page: int) -> tuple[Document, str]:
    """Split plain text into blank-line separated paragraphs of words."""

    builder = DocumentBuilder(words_per_page)
    for paragraph in _PARAGRAPH_SPLIT_RE.split(text.replace("\r\n", "\n")):
        if not paragraph.strip():
            continue
        builder.start_paragraph()
        builder.emit("<p>")
        builder.add_text(paragraph)
        builder.emit("</p>")
    return builder.build(), builder.take_markup()


def header_metadata(text: str) -> tuple[str | None, str | None]:
    """Read ``Title:``/``Author:`` header lines from the top of the text."""

    title: str | None = None
    author: str | None = None
    for line in text.splitlines()[:20]:
        normalized = normalize_whitespace(line)
        if not normalized or ":" not in normalized:
            continue
        key, value = normalized.split(":", 1)
        field = _HEADER_FIELDS.get(key.strip().casefold())
        clean_value = normalize_whitespace(value)
        if not field or not clean_value:
            continue
        if field == "title" and not title:
            title = clean_value
        if field == "author" and not author:
            author = clean_value
    return title, author


class TextAdapter:
    """Extract plain-text books with robust charset handling."""

    extensions = ("txt", "text")
    media_types = ("text/plain",)
    format_name = "Plain Text"
    supports_preview = True

    def __init__(self, settings: IngestionSettings | None = None) -> None:
        self._settings = settings or IngestionSettings()

    def parse(self, path: Path) -> AdapterResult:
        raw = path.read_bytes()
        try:
            text = decode_text(raw)
        except ValueError as exc:
            raise IngestionError(path, str(exc), ErrorCategory.CORRUPT_CONTAINER) from exc

        document, markup = parse_text(text, self._settings.words_per_page)
        header_title, author = header_metadata(text)
        title = header_title or title_from_path(path)

        return AdapterResult(
            document=document,
            source_path=str(path),
            format_name="text",
            title=title,
            author=author,
            preview=single_unit_preview(f'<div class="text-content">{markup}</div>', document, title),
            warnings=empty_text_warnings(document, "text file"),
            extra={"file_type": "text"},
        )
