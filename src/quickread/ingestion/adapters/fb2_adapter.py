"""FB2 adapter with raw and zipped container support."""

from __future__ import annotations

from io import BytesIO
import logging
from pathlib import Path
from zipfile import BadZipFile, ZipFile

from lxml import etree

from quickread.config import IngestionSettings
from quickread.ingestion.builder import PLAIN, DocumentBuilder, Formatting, empty_text_warnings
from quickread.ingestion.errors import ErrorCategory, IngestionError
from quickread.ingestion.models import AdapterResult, ChapterEntry, Preview, PreviewUnit
from quickread.ingestion.normalization import normalize_whitespace, title_from_path

logger = logging.getLogger(__name__)

_ZIP_MAGIC = b"PK\x03\x04"

_PARAGRAPH_TAGS = {"p": "<p>", "v": '<p class="verse">', "text-author": '<p class="text-author">', "subtitle": "<h3>"}
_QUOTE_TAGS = frozenset({"epigraph", "cite"})
_VERSE_TAGS = frozenset({"poem", "stanza"})
_SKIPPED_TAGS = frozenset({"binary", "description", "image"})


def _local_name(element: etree._Element) -> str:
    if not isinstance(element.tag, str):
        return ""
    return etree.QName(element).localname


def _closing(opening: str) -> str:
    return "</" + opening[1:].split(" ", 1)[0].rstrip(">") + ">"


class _FB2Walker:
    """Emit words for FictionBook block and inline elements."""

    def __init__(self, builder: DocumentBuilder) -> None:
        self._builder = builder

    def block(self, element: etree._Element) -> None:
        for child in element:
            name = _local_name(child)
            if not name or name in _SKIPPED_TAGS:
                continue
            if name in _PARAGRAPH_TAGS:
                self.paragraph(child, _PARAGRAPH_TAGS[name])
            elif name == "title":
                self.title(child)
            elif name == "empty-line":
                self._builder.start_paragraph()
                self._builder.emit("<br>")
            elif name in _QUOTE_TAGS:
                self._wrapped(child, "<blockquote>")
            elif name in _VERSE_TAGS:
                self._wrapped(child, f'<div class="{name}">')
            elif name == "section":
                self._wrapped(child, "<section>")
            else:
                self.block(child)

    def title(self, element: etree._Element) -> None:
        paragraphs = [child for child in element if _local_name(child) == "p"]
        if not paragraphs:
            self.paragraph(element, "<h2>")
            return
        for paragraph in paragraphs:
            self.paragraph(paragraph, "<h2>")

    def paragraph(self, element: etree._Element, opening: str) -> None:
        self._builder.start_paragraph()
        self._builder.emit(opening)
        self.inline(element, PLAIN)
        self._builder.emit(_closing(opening))

    def inline(self, element: etree._Element, formatting: Formatting) -> None:
        if element.text:
            self._builder.add_text(element.text, formatting)
        for child in element:
            name = _local_name(child)
            if name and name not in _SKIPPED_TAGS:
                self.inline(child, formatting.combine(italic=name == "emphasis", bold=name == "strong"))
            if child.tail:
                self._builder.add_text(child.tail, formatting)

    def _wrapped(self, element: etree._Element, opening: str) -> None:
        self._builder.start_paragraph()
        self._builder.emit(opening)
        self.block(element)
        self._builder.emit(_closing(opening))
        self._builder.start_paragraph()


class FB2Adapter:
    """Extract words and metadata from FictionBook sources."""

    extensions = ("fb2", "fbz", "fb2.zip")
    media_types = ("application/x-fictionbook+xml", "application/x-fictionbook", "text/xml")
    format_name = "FictionBook"
    supports_preview = True

    def __init__(self, settings: IngestionSettings | None = None) -> None:
        self._settings = settings or IngestionSettings()

    def parse(self, path: Path) -> AdapterResult:
        try:
            xml_bytes = self._read_fb2_payload(path)
            parser = etree.XMLParser(resolve_entities=False, no_network=True, load_dtd=False, huge_tree=False)
            root = etree.fromstring(xml_bytes, parser=parser)
        except (BadZipFile, ValueError, etree.XMLSyntaxError) as exc:
            raise IngestionError(path, f"Could not read FB2 document: {exc}", ErrorCategory.CORRUPT_CONTAINER) from exc

        body = self._main_body(root)
        if body is None:
            raise IngestionError(path, "Invalid FB2 file: no body element found", ErrorCategory.CORRUPT_CONTAINER)

        title = self._first_text(root.xpath("//*[local-name()='title-info']/*[local-name()='book-title']"))
        builder = DocumentBuilder(self._settings.words_per_page)
        walker = _FB2Walker(builder)
        units: list[PreviewUnit] = []
        chapters: list[ChapterEntry] = []

        sections = [child for child in body if _local_name(child) == "section"]

        if not sections:
            walker.block(body)
            document = builder.build()
            if document.words:
                chapters.append(ChapterEntry(title=title or "Document", anchor="#chapter-1", start_word_index=0))
                units.append(
                    PreviewUnit(chapter_index=0, html=builder.take_markup(), word_range=(0, document.total_words - 1))
                )
        else:
            for number, section in enumerate(sections, start=1):
                start = builder.word_count
                builder.start_page()
                builder.emit(f'<section id="chapter-{number}">')
                walker.block(section)
                builder.emit("</section>")
                markup = builder.take_markup()
                if builder.word_count == start:
                    continue
                chapter_title = self._first_text(section.xpath("./*[local-name()='title']"))
                chapters.append(
                    ChapterEntry(
                        title=chapter_title or f"Chapter {number}",
                        anchor=f"#chapter-{number}",
                        start_word_index=start,
                    )
                )
                units.append(
                    PreviewUnit(
                        chapter_index=len(chapters) - 1,
                        html=markup,
                        word_range=(start, builder.word_count - 1),
                    )
                )
            document = builder.build()

        logger.debug("FB2 %s: %d words in %d chapters", path.name, document.total_words, len(chapters))
        return AdapterResult(
            document=document,
            source_path=str(path),
            format_name="fb2",
            title=title or title_from_path(path),
            author=self._extract_author(root),
            preview=Preview(units=units, chapters=chapters) if chapters else None,
            warnings=empty_text_warnings(document, "FB2 document"),
            extra={"file_type": "fb2"},
        )

    def _read_fb2_payload(self, path: Path) -> bytes:
        raw = path.read_bytes()
        if self._is_zipped(path, raw):
            return self._extract_from_zip(raw)
        return raw

    def _is_zipped(self, path: Path, raw: bytes) -> bool:
        if raw.startswith(_ZIP_MAGIC):
            return True
        return path.suffix.lower() in {".zip", ".fbz"}

    def _extract_from_zip(self, raw: bytes) -> bytes:
        with ZipFile(BytesIO(raw), "r") as archive:
            candidates = [name for name in archive.namelist() if not name.endswith("/")]
            fb2_name = next((name for name in candidates if name.lower().endswith(".fb2")), None)
            target = fb2_name or (candidates[0] if candidates else None)
            if not target:
                raise ValueError("Zipped FB2 container has no readable files")
            return archive.read(target)

    def _main_body(self, root: etree._Element) -> etree._Element | None:
        for child in root:
            if _local_name(child) == "body" and child.get("name") != "notes":
                return child
        return None

    def _extract_author(self, root: etree._Element) -> str | None:
        authors = root.xpath("//*[local-name()='title-info']/*[local-name()='author']")
        names: list[str] = []
        for author in authors:
            first = self._first_text(author.xpath("./*[local-name()='first-name']"))
            middle = self._first_text(author.xpath("./*[local-name()='middle-name']"))
            last = self._first_text(author.xpath("./*[local-name()='last-name']"))
            full = normalize_whitespace(" ".join(part for part in [first, middle, last] if part))
            if full:
                names.append(full)
        return ", ".join(names) if names else None

    def _first_text(self, nodes: list[object]) -> str | None:
        for node in nodes:
            if hasattr(node, "itertext"):
                text = normalize_whitespace(" ".join(node.itertext()))
            else:
                text = normalize_whitespace(str(node))
            if text:
                return text
        return None
