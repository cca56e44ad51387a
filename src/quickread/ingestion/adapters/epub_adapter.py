"""EPUB adapter preserving spine order and chapter boundaries."""

from __future__ import annotations

from collections.abc import Iterator
import logging
from pathlib import Path, PurePosixPath
import posixpath
from tempfile import TemporaryDirectory
from urllib.parse import unquote
from zipfile import BadZipFile

import ebooklib
from ebooklib import epub
from bs4 import BeautifulSoup
from bs4.element import Tag

from quickread.config import IngestionSettings
from quickread.ingestion.adapters.html_adapter import HtmlWalker, first_heading
from quickread.ingestion.builder import DocumentBuilder, empty_text_warnings
from quickread.ingestion.errors import ErrorCategory, IngestionError
from quickread.ingestion.models import AdapterResult, ChapterEntry, Preview, PreviewUnit
from quickread.ingestion.normalization import normalize_whitespace, title_from_path
from quickread.ingestion.pagination import merge_small_pages

logger = logging.getLogger(__name__)

_XLINK_HREF = "xlink:href"


def _first_non_empty(values: list[tuple[str, dict[str, str]]] | None) -> str | None:
    if not values:
        return None
    for value, _attrs in values:
        cleaned = normalize_whitespace(value)
        if cleaned:
            return cleaned
    return None


def _strip_fragment(href: str) -> str:
    return unquote(href.split("#", 1)[0])


def _toc_titles(entries: object, titles: dict[str, str]) -> dict[str, str]:
    """Flatten the navigation TOC into ``href -> title`` (first entry wins)."""

    if isinstance(entries, (list, tuple)):
        for entry in entries:
            if isinstance(entry, tuple) and len(entry) == 2 and isinstance(entry[1], list):
                section, children = entry
                _toc_titles([section], titles)
                _toc_titles(children, titles)
            else:
                _toc_titles(entry, titles)
        return titles

    href = getattr(entries, "href", None)
    title = normalize_whitespace(getattr(entries, "title", None) or "")
    if href and title:
        titles.setdefault(_strip_fragment(href), title)
    return titles


def _spine_documents(book: epub.EpubBook) -> Iterator[tuple[epub.EpubItem, str]]:
    """Yield ``(item, href)`` for each document in reading order."""

    for spine_entry in book.spine:
        item_id = spine_entry[0] if isinstance(spine_entry, tuple) else spine_entry
        item = book.get_item_with_id(item_id)
        if item is None or item.get_type() != ebooklib.ITEM_DOCUMENT:
            continue
        yield item, item.get_name()


class _ImageExtractor:
    """Copy referenced images into a per-document temporary directory."""

    def __init__(self, book: epub.EpubBook) -> None:
        self._book = book
        self._directory: TemporaryDirectory[str] | None = None
        self._written: dict[str, str] = {}
        self.base_href = ""

    @property
    def directory(self) -> TemporaryDirectory[str] | None:
        return self._directory

    def resolve(self, tag: Tag) -> str | None:
        source = tag.get("src") or tag.get(_XLINK_HREF) or tag.get("href")
        if not source or str(source).startswith("data:"):
            return None

        href = posixpath.normpath(posixpath.join(posixpath.dirname(self.base_href), _strip_fragment(str(source))))
        if href in self._written:
            return self._written[href]

        item = self._book.get_item_with_href(href)
        if item is None:
            logger.debug("EPUB image not found in manifest: %s", href)
            return None

        if self._directory is None:
            self._directory = TemporaryDirectory(prefix="quickread-epub-")
        target = Path(self._directory.name) / f"{len(self._written):04d}{PurePosixPath(href).suffix}"
        target.write_bytes(item.get_content())
        self._written[href] = str(target)
        return self._written[href]

    def cleanup(self) -> None:
        if self._directory is not None:
            self._directory.cleanup()
            self._directory = None


class EPUBAdapter:
    """Extract words from EPUB document items in spine order."""

    extensions = ("epub",)
    media_types = ("application/epub+zip",)
    format_name = "EPUB"
    supports_preview = True

    def __init__(self, settings: IngestionSettings | None = None) -> None:
        self._settings = settings or IngestionSettings()

    def parse(self, path: Path) -> AdapterResult:
        try:
            book = epub.read_epub(str(path), options={"ignore_ncx": False})
        except (BadZipFile, KeyError, epub.EpubException) as exc:
            raise IngestionError(path, f"Could not open EPUB container: {exc}", ErrorCategory.CORRUPT_CONTAINER) from exc

        images = _ImageExtractor(book)
        try:
            return self._parse_book(path, book, images)
        except BaseException:
            images.cleanup()
            raise

    def _parse_book(self, path: Path, book: epub.EpubBook, images: _ImageExtractor) -> AdapterResult:
        builder = DocumentBuilder(self._settings.words_per_page)
        walker = HtmlWalker(builder, image_resolver=images.resolve)
        toc_titles = _toc_titles(book.toc, {})
        units: list[PreviewUnit] = []
        chapters: list[ChapterEntry] = []
        warnings: list[str] = []

        for position, (item, href) in enumerate(_spine_documents(book), start=1):
            start = builder.word_count
            checkpoint = builder.checkpoint()
            try:
                body = self._walk_item(builder, walker, images, item, href, len(chapters))
            except Exception as exc:
                # the failed section leaves no words behind
                builder.restore(checkpoint)
                logger.warning("Skipping EPUB item %s: %s", href, exc)
                warnings.append(f"Could not parse section {href}: {exc}")
                continue

            markup = builder.take_markup()
            added = builder.word_count - start
            logger.debug("EPUB item %s: %d words", href, added)
            if not added:
                continue

            title = toc_titles.get(href) or normalize_whitespace(getattr(item, "title", None) or "") or first_heading(body)
            chapter_index = len(chapters)
            chapters.append(
                ChapterEntry(
                    title=title or f"Section {position}",
                    anchor=f"#chapter-{chapter_index}",
                    start_word_index=start,
                )
            )
            units.append(
                PreviewUnit(chapter_index=chapter_index, html=markup, word_range=(start, builder.word_count - 1))
            )

        document = merge_small_pages(
            builder.build(),
            [chapter.start_word_index for chapter in chapters],
            self._settings.min_page_words,
        )
        warnings.extend(empty_text_warnings(document, "EPUB"))

        extra: dict[str, object] = {"file_type": "epub"}
        if images.directory is not None:
            extra["image_dir"] = images.directory

        return AdapterResult(
            document=document,
            source_path=str(path),
            format_name="epub",
            title=_first_non_empty(book.get_metadata("DC", "title")) or title_from_path(path),
            author=_first_non_empty(book.get_metadata("DC", "creator")),
            preview=Preview(units=units, chapters=chapters) if chapters else None,
            warnings=warnings,
            extra=extra,
        )

    def _walk_item(
        self,
        builder: DocumentBuilder,
        walker: HtmlWalker,
        images: _ImageExtractor,
        item: epub.EpubItem,
        href: str,
        chapter_index: int,
    ) -> Tag | BeautifulSoup:
        soup = BeautifulSoup(item.get_content(), "xml")
        body = soup.find("body") or soup
        images.base_href = href
        builder.start_page()
        builder.emit(f'<section id="chapter-{chapter_index}">')
        walker.walk(body)
        builder.emit("</section>")
        return body
