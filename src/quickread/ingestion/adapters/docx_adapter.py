"""DOCX adapter walking python-docx paragraphs and runs."""

from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path
import re
from zipfile import BadZipFile

import docx
from docx.opc.exceptions import PackageNotFoundError
from docx.text.hyperlink import Hyperlink
from docx.text.paragraph import Paragraph
from docx.text.run import Run

from quickread.config import IngestionSettings
from quickread.ingestion.builder import DocumentBuilder, Formatting, empty_text_warnings, single_unit_preview
from quickread.ingestion.errors import ErrorCategory, IngestionError
from quickread.ingestion.models import AdapterResult
from quickread.ingestion.normalization import normalize_whitespace, title_from_path

_HEADING_STYLE_RE = re.compile(r"^heading\s*(\d)$", re.IGNORECASE)


def block_tag(style_name: str) -> str:
    """Preview tag for a paragraph style (``Heading 2`` -> ``h2``)."""

    match = _HEADING_STYLE_RE.match(style_name.strip())
    if match:
        return f"h{min(max(int(match.group(1)), 1), 6)}"
    lowered = style_name.lower()
    if lowered == "title":
        return "h1"
    if lowered.startswith("list"):
        return "li"
    return "p"


def _paragraph_runs(paragraph: Paragraph) -> Iterator[Run]:
    """Runs in document order, including those nested in hyperlinks."""

    for item in paragraph.iter_inner_content():
        if isinstance(item, Hyperlink):
            yield from item.runs
        else:
            yield item


class DOCXAdapter:
    """Extract words from Word documents with run-level emphasis."""

    extensions = ("docx",)
    media_types = ("application/vnd.openxmlformats-officedocument.wordprocessingml.document",)
    format_name = "Word Document"
    supports_preview = True

    def __init__(self, settings: IngestionSettings | None = None) -> None:
        self._settings = settings or IngestionSettings()

    def parse(self, path: Path) -> AdapterResult:
        try:
            source = docx.Document(str(path))
        except (PackageNotFoundError, BadZipFile, KeyError, ValueError) as exc:
            raise IngestionError(path, f"Could not open DOCX document: {exc}", ErrorCategory.CORRUPT_CONTAINER) from exc

        builder = DocumentBuilder(self._settings.words_per_page)
        in_list = False
        for paragraph in source.paragraphs:
            if not paragraph.text.strip():
                continue
            style_name = paragraph.style.name if paragraph.style is not None else ""
            tag = block_tag(style_name or "")

            if tag == "li" and not in_list:
                builder.emit("<ul>")
                in_list = True
            elif tag != "li" and in_list:
                builder.emit("</ul>")
                in_list = False

            builder.start_paragraph()
            builder.emit(f"<{tag}>")
            builder.add_runs(
                (run.text, Formatting(italic=bool(run.italic), bold=bool(run.bold))) for run in _paragraph_runs(paragraph)
            )
            builder.emit(f"</{tag}>")
        if in_list:
            builder.emit("</ul>")

        document = builder.build()
        properties = source.core_properties
        title = normalize_whitespace(properties.title or "") or title_from_path(path)
        markup = f'<div class="docx-content">{builder.take_markup()}</div>'
        return AdapterResult(
            document=document,
            source_path=str(path),
            format_name="docx",
            title=title,
            author=normalize_whitespace(properties.author or "") or None,
            preview=single_unit_preview(markup, document, title),
            warnings=empty_text_warnings(document, "DOCX document"),
            extra={"file_type": "docx"},
        )
