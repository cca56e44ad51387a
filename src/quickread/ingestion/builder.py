"""Incremental word-stream builder shared by the tree-walking adapters."""

from __future__ import annotations

from bisect import bisect_right
from collections.abc import Iterable
from dataclasses import dataclass
import re

from quickread.ingestion.models import ChapterEntry, Document, Preview, PreviewUnit, Word
from quickread.ingestion.normalization import escape_html, split_on_dashes, split_words

DEFAULT_WORDS_PER_PAGE = 250

_TOKEN_RE = re.compile(r"\S+")


@dataclass(frozen=True, slots=True)
class Formatting:
    """Immutable emphasis snapshot passed down a tree walk."""

    italic: bool = False
    bold: bool = False

    def combine(self, *, italic: bool = False, bold: bool = False) -> "Formatting":
        if (italic and not self.italic) or (bold and not self.bold):
            return Formatting(italic=self.italic or italic, bold=self.bold or bold)
        return self


PLAIN = Formatting()


def word_markup(index: int, text: str, formatting: Formatting) -> str:
    """Render one word with its stable ``data-word-index`` marker."""

    markup = f'<span data-word-index="{index}">{escape_html(text)}</span>'
    if formatting.italic:
        markup = f"<em>{markup}</em>"
    if formatting.bold:
        markup = f"<strong>{markup}</strong>"
    return markup


class DocumentBuilder:
    """Collect words, paragraph/page boundaries and preview markup in order.

    Paragraph and page boundaries are recorded lazily: ``start_paragraph`` and
    ``start_page`` only mark a pending break that takes effect when the next
    word arrives, so the start arrays never contain empty ranges.

    With ``words_per_page=None`` pages break only on ``start_page``.
    """

    def __init__(self, words_per_page: int | None = DEFAULT_WORDS_PER_PAGE) -> None:
        if words_per_page is not None and words_per_page <= 0:
            raise ValueError("words_per_page must be positive")
        self._words_per_page = words_per_page
        self._words: list[Word] = []
        self._paragraph_starts: list[int] = []
        self._page_starts: list[int] = []
        self._pending_paragraph = True
        self._pending_page = True
        self._words_on_page = 0
        self._markup: list[str] = []

    @property
    def word_count(self) -> int:
        return len(self._words)

    @property
    def words(self) -> list[Word]:
        return self._words

    def start_paragraph(self) -> None:
        """Mark a block boundary; breaks the page once the threshold is reached."""

        self._pending_paragraph = True
        if self._words_per_page is not None and self._words_on_page >= self._words_per_page:
            self._pending_page = True

    def start_page(self) -> None:
        """Force the next word onto a new page (chapter or section start)."""

        self._pending_paragraph = True
        self._pending_page = True

    def _open_boundaries(self) -> None:
        index = len(self._words)
        if self._pending_page or not self._page_starts:
            if not self._page_starts or self._page_starts[-1] != index:
                self._page_starts.append(index)
            self._words_on_page = 0
            self._pending_page = False
            self._pending_paragraph = True
        if self._pending_paragraph or not self._paragraph_starts:
            if not self._paragraph_starts or self._paragraph_starts[-1] != index:
                self._paragraph_starts.append(index)
            self._pending_paragraph = False

    def add_word(self, text: str, formatting: Formatting = PLAIN) -> int:
        self._open_boundaries()
        index = len(self._words)
        self._words.append(
            Word(
                text=text,
                paragraph_index=len(self._paragraph_starts) - 1,
                page_index=len(self._page_starts) - 1,
                italic=formatting.italic,
                bold=formatting.bold,
            )
        )
        self._words_on_page += 1
        self._markup.append(word_markup(index, text, formatting) + " ")
        return index

    def add_text(self, text: str, formatting: Formatting = PLAIN) -> int:
        """Split a raw text run and append every word; returns the count added."""

        added = 0
        for word in split_words(text):
            self.add_word(word, formatting)
            added += 1
        return added

    def add_runs(self, runs: Iterable[tuple[str, Formatting]]) -> int:
        """Append the words of adjacent text runs as one text.

        A word spanning several runs takes the formatting of the run it
        starts in. Returns the count added.
        """

        parts: list[str] = []
        starts: list[int] = []
        formats: list[Formatting] = []
        offset = 0
        for text, formatting in runs:
            if not text:
                continue
            parts.append(text)
            starts.append(offset)
            formats.append(formatting)
            offset += len(text)

        added = 0
        for match in _TOKEN_RE.finditer("".join(parts)):
            position = match.start()
            for part in split_on_dashes(match.group()):
                self.add_word(part, formats[bisect_right(starts, position) - 1])
                position += len(part)
                added += 1
        return added

    def add_image(self, locator: str, alt: str = "") -> int:
        """Append an image placeholder word (empty text, not counted for paging)."""

        self._open_boundaries()
        index = len(self._words)
        self._words.append(
            Word(
                text="",
                paragraph_index=len(self._paragraph_starts) - 1,
                page_index=len(self._page_starts) - 1,
                image=locator,
            )
        )
        self._markup.append(
            f'<span data-word-index="{index}"><img src="{escape_html(locator)}" alt="{escape_html(alt)}"></span>'
        )
        return index

    def checkpoint(self) -> tuple[int, int, int, bool, bool, int, int]:
        """Snapshot of the builder state for ``restore``."""

        return (
            len(self._words),
            len(self._paragraph_starts),
            len(self._page_starts),
            self._pending_paragraph,
            self._pending_page,
            self._words_on_page,
            len(self._markup),
        )

    def restore(self, state: tuple[int, int, int, bool, bool, int, int]) -> None:
        """Drop every word, boundary and markup fragment added after ``state``."""

        words, paragraphs, pages, pending_paragraph, pending_page, words_on_page, markup = state
        del self._words[words:]
        del self._paragraph_starts[paragraphs:]
        del self._page_starts[pages:]
        del self._markup[markup:]
        self._pending_paragraph = pending_paragraph
        self._pending_page = pending_page
        self._words_on_page = words_on_page

    def emit(self, markup: str) -> None:
        """Append structural preview markup (tags without words)."""

        self._markup.append(markup)

    def take_markup(self) -> str:
        """Return and clear the preview markup collected so far."""

        markup = "".join(self._markup)
        self._markup = []
        return markup

    def build(self) -> Document:
        return Document(
            words=self._words,
            paragraph_starts=list(self._paragraph_starts),
            page_starts=list(self._page_starts),
        )


def empty_text_warnings(document: Document, label: str) -> list[str]:
    """Warning for a parse that produced no readable words."""

    if any(not word.is_placeholder for word in document.words):
        return []
    return [f"No readable text found in {label}"]


def single_unit_preview(markup: str, document: Document, title: str | None) -> Preview | None:
    """Preview holding the whole document as one chapter, or None when empty."""

    if not document.words:
        return None
    return Preview(
        units=[PreviewUnit(chapter_index=0, html=markup, word_range=(0, document.total_words - 1))],
        chapters=[ChapterEntry(title=title or "Document", anchor="#document", start_word_index=0)],
    )
