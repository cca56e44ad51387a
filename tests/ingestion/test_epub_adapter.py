from __future__ import annotations

from pathlib import Path

from ebooklib import epub
import pytest

from quickread.ingestion.adapters.epub_adapter import EPUBAdapter
from quickread.ingestion.adapters.html_adapter import HtmlWalker
from quickread.ingestion.builder import PLAIN
from quickread.ingestion.errors import ErrorCategory, IngestionError
from quickread.ingestion.session import release_result

from document_checks import assert_document_invariants, assert_preview_markers

_PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32


def _build_epub(path: Path, *, title: str | None, author: str | None, chapters: list[tuple[str, str]]) -> None:
    book = epub.EpubBook()
    book.set_identifier("book-id")
    if title:
        book.set_title(title)
    if author:
        book.add_author(author)
    book.set_language("en")

    items = []
    for index, (chapter_title, body) in enumerate(chapters, start=1):
        chapter = epub.EpubHtml(title=chapter_title, file_name=f"chapter_{index}.xhtml", lang="en")
        chapter.content = f"<html><body>{body}</body></html>"
        book.add_item(chapter)
        items.append(chapter)

    book.add_item(
        epub.EpubImage(uid="pic", file_name="images/pic.png", media_type="image/png", content=_PNG_BYTES)
    )
    book.add_item(epub.EpubNcx())
    book.add_item(epub.EpubNav())

    book.toc = tuple(items)
    book.spine = items
    epub.write_epub(str(path), book)


_TWO_CHAPTERS = [
    ("Chapter One", "<h1>Chapter One</h1><p>First paragraph.</p><p>Second <em>paragraph.</em></p>"),
    ("Chapter Two", "<h1>Chapter Two</h1><p>Only paragraph in chapter two.</p>"),
]


def test_epub_adapter_preserves_chapter_boundaries_and_order(tmp_path: Path) -> None:
    epub_path = tmp_path / "ordered.epub"
    _build_epub(epub_path, title="Epub Sample", author="John Smith", chapters=_TWO_CHAPTERS)

    result = EPUBAdapter().parse(epub_path)

    assert result.title == "Epub Sample"
    assert result.author == "John Smith"
    assert result.format_name == "epub"
    assert result.preview is not None
    assert [chapter.title for chapter in result.preview.chapters] == ["Chapter One", "Chapter Two"]
    assert result.preview.chapter_starts == [0, 6]
    assert [unit.word_range for unit in result.preview.units] == [(0, 5), (6, 12)]
    assert result.document.page_starts == [0, 6]
    assert result.document.words[5].italic
    assert result.warnings == []
    assert_document_invariants(result.document)
    assert_preview_markers(result)


def test_epub_adapter_falls_back_to_filename_for_missing_metadata(tmp_path: Path) -> None:
    epub_path = tmp_path / "mystic_collection.epub"
    _build_epub(epub_path, title=None, author=None, chapters=_TWO_CHAPTERS)

    result = EPUBAdapter().parse(epub_path)

    assert result.title == "Mystic Collection"
    assert result.author is None


def test_epub_adapter_extracts_images_as_placeholders(tmp_path: Path) -> None:
    epub_path = tmp_path / "pictures.epub"
    _build_epub(
        epub_path,
        title="Pictures",
        author=None,
        chapters=[("Gallery", '<p><img src="images/pic.png" alt="Pic"/></p><p>After the image</p>')],
    )

    result = EPUBAdapter().parse(epub_path)

    placeholder = result.document.words[0]
    assert placeholder.is_placeholder
    assert placeholder.image is not None
    image_path = Path(placeholder.image)
    assert image_path.read_bytes() == _PNG_BYTES
    assert [word.text for word in result.document.words[1:]] == ["After", "the", "image"]
    assert "image_dir" in result.extra

    release_result(result)
    release_result(result)

    assert not image_path.exists()
    assert "image_dir" not in result.extra


def test_epub_adapter_single_word(tmp_path: Path) -> None:
    epub_path = tmp_path / "single.epub"
    _build_epub(epub_path, title="Single", author=None, chapters=[("Only", "<p>Hello</p>")])

    result = EPUBAdapter().parse(epub_path)

    assert [word.text for word in result.document.words] == ["Hello"]
    assert result.document.total_pages == 1
    assert result.warnings == []


def test_epub_adapter_rejects_broken_container(tmp_path: Path) -> None:
    epub_path = tmp_path / "broken.epub"
    epub_path.write_bytes(b"definitely not a zip archive")

    with pytest.raises(IngestionError) as excinfo:
        EPUBAdapter().parse(epub_path)

    assert excinfo.value.category is ErrorCategory.CORRUPT_CONTAINER


def test_epub_adapter_skips_failing_section_and_keeps_indices_contiguous(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    epub_path = tmp_path / "partial.epub"
    _build_epub(
        epub_path,
        title="Partial",
        author=None,
        chapters=[
            ("Intact", "<p>Intact opening words.</p>"),
            ("Broken", "<p>Broken section text here.</p>"),
            ("Closing", "<p>Closing words.</p>"),
        ],
    )

    original_walk = HtmlWalker.walk

    def failing_walk(self: HtmlWalker, node, formatting=PLAIN) -> None:
        original_walk(self, node, formatting)
        if node.name == "body" and "Broken" in node.get_text():
            raise ValueError("bad section")

    monkeypatch.setattr(HtmlWalker, "walk", failing_walk)

    result = EPUBAdapter().parse(epub_path)

    assert result.error is None
    assert [word.text for word in result.document.words] == ["Intact", "opening", "words.", "Closing", "words."]
    assert len(result.warnings) == 1
    assert "chapter_2.xhtml" in result.warnings[0]
    assert "bad section" in result.warnings[0]
    assert result.preview is not None
    assert [(chapter.title, chapter.start_word_index) for chapter in result.preview.chapters] == [
        ("Intact", 0),
        ("Closing", 3),
    ]
    assert [unit.word_range for unit in result.preview.units] == [(0, 2), (3, 4)]
    assert result.document.paragraph_starts == [0, 3]
    assert result.document.page_starts == [0, 3]
    assert "Broken" not in "".join(unit.html for unit in result.preview.units)
    assert_document_invariants(result.document)
    assert_preview_markers(result)
    release_result(result)


def test_epub_adapter_warns_when_no_text_is_found(tmp_path: Path) -> None:
    epub_path = tmp_path / "empty.epub"
    _build_epub(epub_path, title="Empty", author=None, chapters=[("Blank", "<script>var x = 1;</script>")])

    result = EPUBAdapter().parse(epub_path)

    assert result.document.total_words == 0
    assert result.warnings == ["No readable text found in EPUB"]
    assert result.preview is None
