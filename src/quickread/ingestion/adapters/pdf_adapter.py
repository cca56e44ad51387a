"""PDF adapter producing one page per PDF page with Y-gap paragraphs."""

from __future__ import annotations

import logging
from pathlib import Path

import pymupdf

from quickread.config import IngestionSettings
from quickread.ingestion.builder import DocumentBuilder, Formatting
from quickread.ingestion.errors import ErrorCategory, IngestionError
from quickread.ingestion.models import AdapterResult, ChapterEntry, Preview, PreviewUnit, chapter_for_word
from quickread.ingestion.normalization import normalize_whitespace, title_from_path

logger = logging.getLogger(__name__)

PARAGRAPH_GAP = 15.0
MIN_READABLE_WORDS = 10

_ITALIC_FLAG = 1 << 1
_BOLD_FLAG = 1 << 4


def _first_non_empty(value: str | None) -> str | None:
    if value is None:
        return None
    cleaned = normalize_whitespace(value)
    return cleaned or None


def _page_lines(page: pymupdf.Page) -> list[tuple[float, list[dict]]]:
    """Text lines of a page as ``(baseline_y, spans)`` in reading order."""

    lines: list[tuple[float, list[dict]]] = []
    for block in page.get_text("dict", sort=True).get("blocks", []):
        if block.get("type", 0) != 0:
            continue
        for line in block.get("lines", []):
            spans = [span for span in line.get("spans", []) if span.get("text", "").strip()]
            if spans:
                lines.append((float(line["bbox"][3]), spans))
    return lines


class PDFAdapter:
    """Extract words from PDF text layers in stable page order."""

    extensions = ("pdf",)
    media_types = ("application/pdf",)
    format_name = "PDF"
    supports_preview = True

    def __init__(self, settings: IngestionSettings | None = None) -> None:
        self._settings = settings or IngestionSettings()

    def parse(self, path: Path) -> AdapterResult:
        try:
            doc = pymupdf.open(path)
        except RuntimeError as exc:
            raise IngestionError(path, f"Could not open PDF: {exc}", ErrorCategory.CORRUPT_CONTAINER) from exc

        try:
            if doc.needs_pass:
                raise IngestionError(
                    path,
                    "This PDF is password-protected. Remove the password and try again.",
                    ErrorCategory.ENCRYPTED_CONTENT,
                )
            return self._parse_document(path, doc)
        except BaseException:
            doc.close()
            raise

    def _parse_document(self, path: Path, doc: pymupdf.Document) -> AdapterResult:
        # one document page per PDF page
        builder = DocumentBuilder(words_per_page=None)
        page_markup: list[tuple[int, str, int]] = []
        first_word_of_page: dict[int, int] = {}

        for page_number, page in enumerate(doc, start=1):
            start = builder.word_count
            builder.start_page()
            builder.emit(f'<div class="pdf-page" data-page="{page_number}"><p>')
            previous_y: float | None = None
            for baseline, spans in _page_lines(page):
                if previous_y is not None and abs(baseline - previous_y) > PARAGRAPH_GAP:
                    builder.start_paragraph()
                    builder.emit("</p><p>")
                previous_y = baseline
                for span in spans:
                    flags = int(span.get("flags", 0))
                    formatting = Formatting(italic=bool(flags & _ITALIC_FLAG), bold=bool(flags & _BOLD_FLAG))
                    builder.add_text(span["text"], formatting)
            builder.emit("</p></div>")

            markup = builder.take_markup()
            if builder.word_count > start:
                first_word_of_page[page_number] = start
                page_markup.append((start, markup, builder.word_count - 1))

        document = builder.build()
        metadata = doc.metadata or {}
        title = _first_non_empty(metadata.get("title")) or title_from_path(path)
        chapters = self._outline(doc, first_word_of_page) or [
            ChapterEntry(title=title, anchor="#page-1", start_word_index=0)
        ]

        preview: Preview | None = None
        if document.words:
            preview = Preview(chapters=chapters)
            for start, markup, end in page_markup:
                preview.units.append(
                    PreviewUnit(chapter_index=chapter_for_word(preview, start), html=markup, word_range=(start, end))
                )

        warnings: list[str] = []
        if document.total_words == 0:
            warnings.append("No extractable text found in PDF. It may be a scanned document.")
        elif document.total_words < MIN_READABLE_WORDS and doc.page_count > 1:
            # single-page notes are not flagged
            warnings.append("Very little extractable text found in PDF. It may be mostly images or scanned content.")
        logger.debug("PDF %s: %d pages, %d words", path.name, doc.page_count, document.total_words)

        return AdapterResult(
            document=document,
            source_path=str(path),
            format_name="pdf",
            title=title,
            author=_first_non_empty(metadata.get("author")),
            preview=preview,
            warnings=warnings,
            extra={"file_type": "pdf", "pdf_document": doc, "page_count": doc.page_count},
        )

    def _outline(self, doc: pymupdf.Document, first_word_of_page: dict[int, int]) -> list[ChapterEntry]:
        """Map outline entries to the first word of their target page."""

        chapters: list[ChapterEntry] = []
        seen: set[int] = set()
        for _level, raw_title, page_number in doc.get_toc(simple=True):
            start = first_word_of_page.get(page_number)
            title = normalize_whitespace(raw_title or "")
            if start is None or not title or start in seen:
                continue
            seen.add(start)
            chapters.append(ChapterEntry(title=title, anchor=f"#page-{page_number}", start_word_index=start))
        chapters.sort(key=lambda chapter: chapter.start_word_index)
        if chapters and chapters[0].start_word_index != 0:
            chapters.insert(0, ChapterEntry(title="Front matter", anchor="#page-1", start_word_index=0))
        return chapters
