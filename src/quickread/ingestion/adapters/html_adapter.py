"""HTML adapter and the BeautifulSoup tree walker shared with EPUB and MOBI."""

from __future__ import annotations

from pathlib import Path
from typing import Callable

from bs4 import BeautifulSoup
from bs4.element import Comment, Declaration, Doctype, NavigableString, ProcessingInstruction, Tag

from quickread.config import IngestionSettings
from quickread.ingestion.builder import PLAIN, DocumentBuilder, Formatting, empty_text_warnings, single_unit_preview
from quickread.ingestion.models import AdapterResult
from quickread.ingestion.normalization import normalize_whitespace, title_from_path

BLOCK_TAGS = frozenset(
    {
        "p", "h1", "h2", "h3", "h4", "h5", "h6", "li", "blockquote", "div", "section",
        "article", "aside", "main", "header", "footer", "pre", "figcaption", "td", "th",
    }
)
SKIP_TAGS = frozenset({"script", "style", "noscript", "svg", "nav", "head", "meta", "link", "template", "title"})
ITALIC_TAGS = frozenset({"i", "em"})
BOLD_TAGS = frozenset({"b", "strong"})
PAGE_BREAK_TAGS = frozenset({"mbp:pagebreak", "pagebreak"})

_IGNORED_STRINGS = (Comment, Declaration, Doctype, ProcessingInstruction)

ImageResolver = Callable[[Tag], "str | None"]


def _local_name(tag: Tag) -> str:
    return (tag.name or "").lower()


class HtmlWalker:
    """Walk a parsed tree, emitting words and preview markup into a builder.

    ``image_resolver`` maps ``<img>``/``<image>`` tags to a locator; images are
    dropped when it is missing or returns None.
    """

    def __init__(self, builder: DocumentBuilder, image_resolver: ImageResolver | None = None) -> None:
        self._builder = builder
        self._image_resolver = image_resolver

    def walk(self, node: Tag, formatting: Formatting = PLAIN) -> None:
        for child in node.children:
            if isinstance(child, _IGNORED_STRINGS):
                continue
            if isinstance(child, NavigableString):
                self._builder.add_text(str(child), formatting)
                continue
            if isinstance(child, Tag):
                self._walk_tag(child, formatting)

    def _walk_tag(self, tag: Tag, formatting: Formatting) -> None:
        name = _local_name(tag)
        if name == "svg":
            # only the embedded raster images of an svg wrapper are kept
            for image in tag.find_all("image"):
                self._image(image)
            return
        if name in SKIP_TAGS:
            return
        if name in {"img", "image"}:
            self._image(tag)
            return
        if name in PAGE_BREAK_TAGS:
            self._builder.start_page()
            self.walk(tag, formatting)
            return
        if name == "br":
            self._builder.emit("<br>")
            return

        child_formatting = formatting.combine(italic=name in ITALIC_TAGS, bold=name in BOLD_TAGS)
        if name not in BLOCK_TAGS:
            self.walk(tag, child_formatting)
            return

        self._builder.start_paragraph()
        self._builder.emit(f"<{name}>")
        self.walk(tag, child_formatting)
        self._builder.emit(f"</{name}>")
        self._builder.start_paragraph()

    def _image(self, tag: Tag) -> None:
        if self._image_resolver is None:
            return
        locator = self._image_resolver(tag)
        if locator:
            self._builder.add_image(locator, alt=str(tag.get("alt") or ""))


def first_heading(root: Tag) -> str | None:
    for level in ("h1", "h2", "h3"):
        heading = root.find(level)
        if heading is not None:
            text = normalize_whitespace(heading.get_text(" ", strip=True))
            if text:
                return text
    return None


class HTMLAdapter:
    """Extract words from standalone HTML pages."""

    extensions = ("html", "htm", "xhtml")
    media_types = ("text/html", "application/xhtml+xml")
    format_name = "HTML"
    supports_preview = True

    def __init__(self, settings: IngestionSettings | None = None) -> None:
        self._settings = settings or IngestionSettings()

    def parse(self, path: Path) -> AdapterResult:
        soup = BeautifulSoup(path.read_bytes(), "lxml")

        builder = DocumentBuilder(self._settings.words_per_page)
        HtmlWalker(builder).walk(soup.body or soup)
        document = builder.build()

        title = self._title(soup) or title_from_path(path)
        markup = f'<div class="html-content">{builder.take_markup()}</div>'
        return AdapterResult(
            document=document,
            source_path=str(path),
            format_name="html",
            title=title,
            preview=single_unit_preview(markup, document, title),
            warnings=empty_text_warnings(document, "HTML document"),
            extra={"file_type": "html"},
        )

    def _title(self, soup: BeautifulSoup) -> str | None:
        if soup.title is not None:
            text = normalize_whitespace(soup.title.get_text(" ", strip=True))
            if text:
                return text
        heading = soup.find("h1")
        if heading is not None:
            return normalize_whitespace(heading.get_text(" ", strip=True)) or None
        return None
