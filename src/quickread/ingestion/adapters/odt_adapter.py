"""OpenDocument text adapter reading ``content.xml`` and ``meta.xml``."""

from __future__ import annotations

from pathlib import Path
from zipfile import BadZipFile, ZipFile

from lxml import etree

from quickread.config import IngestionSettings
from quickread.ingestion.builder import PLAIN, DocumentBuilder, Formatting, empty_text_warnings, single_unit_preview
from quickread.ingestion.errors import ErrorCategory, IngestionError
from quickread.ingestion.models import AdapterResult
from quickread.ingestion.normalization import normalize_whitespace, title_from_path

TEXT_NS = "urn:oasis:names:tc:opendocument:xmlns:text:1.0"
STYLE_NS = "urn:oasis:names:tc:opendocument:xmlns:style:1.0"
FO_NS = "urn:oasis:names:tc:opendocument:xmlns:xsl-fo-compatible:1.0"
OFFICE_NS = "urn:oasis:names:tc:opendocument:xmlns:office:1.0"
DC_NS = "http://purl.org/dc/elements/1.1/"

_NAMESPACES = {"text": TEXT_NS, "style": STYLE_NS, "fo": FO_NS, "office": OFFICE_NS, "dc": DC_NS}
_SKIPPED = frozenset(
    {
        f"{{{TEXT_NS}}}note",
        f"{{{TEXT_NS}}}tracked-changes",
        f"{{{TEXT_NS}}}sequence-decls",
        f"{{{TEXT_NS}}}bookmark",
        f"{{{OFFICE_NS}}}annotation",
        f"{{{OFFICE_NS}}}forms",
    }
)
_PARAGRAPH = f"{{{TEXT_NS}}}p"
_HEADING = f"{{{TEXT_NS}}}h"
_STYLE_NAME = f"{{{TEXT_NS}}}style-name"


def _heuristic_formatting(style_name: str) -> Formatting:
    lowered = style_name.lower()
    return Formatting(
        italic="italic" in lowered or "emphasis" in lowered,
        bold="bold" in lowered or "strong" in lowered,
    )


def automatic_styles(content: etree._Element) -> dict[str, Formatting]:
    """Map automatic style names to the emphasis their text properties declare."""

    styles: dict[str, Formatting] = {}
    for style in content.iterfind("office:automatic-styles/style:style", _NAMESPACES):
        name = style.get(f"{{{STYLE_NS}}}name")
        properties = style.find("style:text-properties", _NAMESPACES)
        if not name or properties is None:
            continue
        styles[name] = Formatting(
            italic=properties.get(f"{{{FO_NS}}}font-style") == "italic",
            bold=properties.get(f"{{{FO_NS}}}font-weight") == "bold",
        )
    return styles


class _ODTWalker:
    def __init__(self, builder: DocumentBuilder, styles: dict[str, Formatting]) -> None:
        self._builder = builder
        self._styles = styles

    def _style(self, element: etree._Element, formatting: Formatting) -> Formatting:
        name = element.get(_STYLE_NAME)
        if not name:
            return formatting
        declared = self._styles.get(name) or _heuristic_formatting(name)
        return formatting.combine(italic=declared.italic, bold=declared.bold)

    def block(self, element: etree._Element) -> None:
        for child in element:
            if not isinstance(child.tag, str) or child.tag in _SKIPPED:
                continue
            if child.tag in (_PARAGRAPH, _HEADING):
                self.paragraph(child)
            else:
                self.block(child)

    def paragraph(self, element: etree._Element) -> None:
        if element.tag == _HEADING:
            level = min(max(int(element.get(f"{{{TEXT_NS}}}outline-level") or 1), 1), 6)
            tag = f"h{level}"
        else:
            tag = "p"
        self._builder.start_paragraph()
        self._builder.emit(f"<{tag}>")
        self.inline(element, self._style(element, PLAIN))
        self._builder.emit(f"</{tag}>")

    def inline(self, element: etree._Element, formatting: Formatting) -> None:
        if element.text:
            self._builder.add_text(element.text, formatting)
        for child in element:
            if isinstance(child.tag, str) and child.tag not in _SKIPPED:
                # text:s, text:tab and text:line-break have no text and split words
                self.inline(child, self._style(child, formatting))
            if child.tail:
                self._builder.add_text(child.tail, formatting)


class ODTAdapter:
    """Extract paragraphs from OpenDocument text files."""

    extensions = ("odt",)
    media_types = ("application/vnd.oasis.opendocument.text",)
    format_name = "OpenDocument Text"
    supports_preview = True

    def __init__(self, settings: IngestionSettings | None = None) -> None:
        self._settings = settings or IngestionSettings()

    def parse(self, path: Path) -> AdapterResult:
        parser = etree.XMLParser(resolve_entities=False, no_network=True, load_dtd=False)
        try:
            with ZipFile(path, "r") as archive:
                content = etree.fromstring(archive.read("content.xml"), parser=parser)
                names = set(archive.namelist())
                meta = etree.fromstring(archive.read("meta.xml"), parser=parser) if "meta.xml" in names else None
        except (BadZipFile, KeyError, etree.XMLSyntaxError) as exc:
            raise IngestionError(path, f"Could not read ODT document: {exc}", ErrorCategory.CORRUPT_CONTAINER) from exc

        builder = DocumentBuilder(self._settings.words_per_page)
        body = content.find("office:body/office:text", _NAMESPACES)
        if body is not None:
            _ODTWalker(builder, automatic_styles(content)).block(body)
        document = builder.build()

        title = self._meta_text(meta, "office:meta/dc:title") or title_from_path(path)
        markup = f'<div class="odt-content">{builder.take_markup()}</div>'
        return AdapterResult(
            document=document,
            source_path=str(path),
            format_name="odt",
            title=title,
            author=self._meta_text(meta, "office:meta/dc:creator")
            or self._meta_text(meta, "office:meta/meta:initial-creator"),
            preview=single_unit_preview(markup, document, title),
            warnings=empty_text_warnings(document, "ODT document"),
            extra={"file_type": "odt"},
        )

    def _meta_text(self, meta: etree._Element | None, xpath: str) -> str | None:
        if meta is None:
            return None
        namespaces = dict(_NAMESPACES, meta="urn:oasis:names:tc:opendocument:xmlns:meta:1.0")
        node = meta.find(xpath, namespaces)
        if node is None:
            return None
        return normalize_whitespace("".join(node.itertext())) or None
