"""Canonical data structures shared by all ingestion adapters."""

from __future__ import annotations

from bisect import bisect_right
from dataclasses import dataclass, field
from typing import Any

from quickread.ingestion.errors import IngestionError


@dataclass(slots=True)
class Word:
    """One display unit of the word stream.

    ``text`` is empty only for image placeholders, which carry the image
    locator in ``image``.
    """

    text: str
    paragraph_index: int
    page_index: int = 0
    italic: bool = False
    bold: bool = False
    image: str | None = None

    @property
    def is_placeholder(self) -> bool:
        return not self.text

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "text": self.text,
            "paragraphIndex": self.paragraph_index,
            "pageIndex": self.page_index,
        }
        if self.italic:
            payload["italic"] = True
        if self.bold:
            payload["bold"] = True
        if self.image is not None:
            payload["image"] = self.image
        return payload


@dataclass(slots=True)
class Document:
    """Linearized word stream with paragraph and page segmentation."""

    words: list[Word] = field(default_factory=list)
    paragraph_starts: list[int] = field(default_factory=list)
    page_starts: list[int] = field(default_factory=list)

    @classmethod
    def empty(cls) -> "Document":
        return cls()

    @property
    def total_words(self) -> int:
        return len(self.words)

    @property
    def total_paragraphs(self) -> int:
        return len(self.paragraph_starts)

    @property
    def total_pages(self) -> int:
        return len(self.page_starts)

    def page_for_word(self, word_index: int) -> int:
        """Greatest page ``k`` with ``page_starts[k] <= word_index``."""

        return max(bisect_right(self.page_starts, word_index) - 1, 0)

    def to_dict(self) -> dict[str, Any]:
        return {
            "words": [word.to_dict() for word in self.words],
            "paragraphStarts": list(self.paragraph_starts),
            "pageStarts": list(self.page_starts),
            "totalWords": self.total_words,
            "totalParagraphs": self.total_paragraphs,
            "totalPages": self.total_pages,
        }


@dataclass(slots=True)
class PreviewUnit:
    """Chapter or page markup with ``data-word-index`` markers."""

    chapter_index: int
    html: str
    word_range: tuple[int, int]

    def to_dict(self) -> dict[str, Any]:
        return {
            "chapterIndex": self.chapter_index,
            "html": self.html,
            "wordRange": list(self.word_range),
        }


@dataclass(slots=True)
class ChapterEntry:
    """Outline entry pointing into the word stream."""

    title: str
    anchor: str
    start_word_index: int

    def to_dict(self) -> dict[str, Any]:
        return {"title": self.title, "anchor": self.anchor, "startWordIndex": self.start_word_index}


@dataclass(slots=True)
class Preview:
    units: list[PreviewUnit] = field(default_factory=list)
    chapters: list[ChapterEntry] = field(default_factory=list)

    @property
    def chapter_starts(self) -> list[int]:
        return [chapter.start_word_index for chapter in self.chapters]

    def to_dict(self) -> dict[str, Any]:
        return {
            "units": [unit.to_dict() for unit in self.units],
            "chapters": [chapter.to_dict() for chapter in self.chapters],
            "chapterStarts": self.chapter_starts,
        }


@dataclass(slots=True)
class AdapterResult:
    """Canonical parse output returned through the ingestor."""

    document: Document
    source_path: str = ""
    format_name: str | None = None
    title: str | None = None
    author: str | None = None
    preview: Preview | None = None
    warnings: list[str] = field(default_factory=list)
    extra: dict[str, Any] = field(default_factory=dict)
    error: IngestionError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def failure(cls, error: IngestionError, *, format_name: str | None = None) -> "AdapterResult":
        return cls(
            document=Document.empty(),
            source_path=str(error.path),
            format_name=format_name,
            error=error,
        )

    def to_dict(self, *, include_words: bool = True, include_preview: bool = True) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "source_path": self.source_path,
            "format": self.format_name,
            "title": self.title,
            "author": self.author,
            "total_words": self.document.total_words,
            "total_paragraphs": self.document.total_paragraphs,
            "total_pages": self.document.total_pages,
            "warnings": list(self.warnings),
            "error": self.error.to_dict() if self.error is not None else None,
        }
        if include_words:
            payload["document"] = self.document.to_dict()
        if include_preview and self.preview is not None:
            payload["preview"] = self.preview.to_dict()
        return payload


def chapter_for_word(preview: Preview, word_index: int) -> int:
    """Return the chapter containing ``word_index`` (0 when before the first)."""

    starts = preview.chapter_starts
    for index in range(len(starts) - 1, -1, -1):
        if starts[index] <= word_index:
            return index
    return 0


def word_index_for_chapter(preview: Preview, chapter_index: int, total_words: int) -> int:
    """Return the first word of ``chapter_index`` clamped to the document."""

    starts = preview.chapter_starts
    if chapter_index < 0 or not starts:
        return 0
    if chapter_index >= len(starts):
        return max(total_words - 1, 0)
    return starts[chapter_index]
