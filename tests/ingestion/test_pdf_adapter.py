from __future__ import annotations

from pathlib import Path

import pymupdf
import pytest

from quickread.ingestion.adapters.pdf_adapter import PDFAdapter
from quickread.ingestion.errors import ErrorCategory, IngestionError
from quickread.ingestion.session import release_result

from document_checks import assert_document_invariants, assert_preview_markers


def _build_pdf(path: Path, *, title: str | None, author: str | None, toc: bool = False) -> None:
    doc = pymupdf.open()
    page_one = doc.new_page()
    page_one.insert_text((72, 72), "First paragraph on page one.")
    page_one.insert_text((72, 120), "Second paragraph on page one.")

    page_two = doc.new_page()
    page_two.insert_text((72, 72), "Opening paragraph on page two.")

    metadata = {}
    if title:
        metadata["title"] = title
    if author:
        metadata["author"] = author
    if metadata:
        doc.set_metadata(metadata)
    if toc:
        doc.set_toc([[1, "Start", 1], [1, "Second Part", 2]])

    doc.save(str(path))
    doc.close()


def test_pdf_adapter_extracts_pages_paragraphs_and_metadata(tmp_path: Path) -> None:
    pdf_path = tmp_path / "sample.pdf"
    _build_pdf(pdf_path, title="Collected Works", author="Jane Doe")

    result = PDFAdapter().parse(pdf_path)
    try:
        document = result.document
        assert result.title == "Collected Works"
        assert result.author == "Jane Doe"
        assert result.format_name == "pdf"
        assert [word.text for word in document.words[:5]] == ["First", "paragraph", "on", "page", "one."]
        assert document.page_starts == [0, 10]
        assert document.paragraph_starts == [0, 5, 10]
        assert result.preview is not None
        assert [unit.word_range for unit in result.preview.units] == [(0, 9), (10, 14)]
        assert 'class="pdf-page"' in result.preview.units[0].html
        assert result.warnings == []
        assert_document_invariants(document)
        assert_preview_markers(result)
    finally:
        release_result(result)


def test_pdf_adapter_maps_outline_to_chapters(tmp_path: Path) -> None:
    pdf_path = tmp_path / "outlined.pdf"
    _build_pdf(pdf_path, title=None, author=None, toc=True)

    result = PDFAdapter().parse(pdf_path)
    try:
        assert result.preview is not None
        assert [(chapter.title, chapter.start_word_index) for chapter in result.preview.chapters] == [
            ("Start", 0),
            ("Second Part", 10),
        ]
        assert [unit.chapter_index for unit in result.preview.units] == [0, 1]
    finally:
        release_result(result)


def test_pdf_adapter_falls_back_to_filename_for_missing_title(tmp_path: Path) -> None:
    pdf_path = tmp_path / "my-awesome_book.pdf"
    _build_pdf(pdf_path, title=None, author=None)

    result = PDFAdapter().parse(pdf_path)
    release_result(result)

    assert result.title == "My Awesome Book"
    assert result.author is None


def test_pdf_adapter_keeps_document_open_until_released(tmp_path: Path) -> None:
    pdf_path = tmp_path / "handle.pdf"
    _build_pdf(pdf_path, title=None, author=None)

    result = PDFAdapter().parse(pdf_path)
    handle = result.extra["pdf_document"]

    assert not handle.is_closed
    release_result(result)
    assert handle.is_closed
    release_result(result)


def test_pdf_adapter_warns_on_scanned_pages(tmp_path: Path) -> None:
    pdf_path = tmp_path / "blank.pdf"
    doc = pymupdf.open()
    doc.new_page()
    doc.save(str(pdf_path))
    doc.close()

    result = PDFAdapter().parse(pdf_path)
    release_result(result)

    assert result.document.total_words == 0
    assert result.error is None
    assert result.warnings and "No extractable text" in result.warnings[0]


def test_pdf_adapter_keeps_a_dense_page_as_one_page(tmp_path: Path) -> None:
    pdf_path = tmp_path / "dense.pdf"
    doc = pymupdf.open()
    page = doc.new_page()
    line = " ".join(["word"] * 20)
    for paragraph in range(6):
        for row in range(3):
            page.insert_text((40, 50 + paragraph * 60 + row * 10), line, fontsize=8)
    doc.save(str(pdf_path))
    doc.close()

    result = PDFAdapter().parse(pdf_path)
    try:
        document = result.document
        assert document.total_words == 360
        assert document.page_starts == [0]
        assert document.paragraph_starts == [0, 60, 120, 180, 240, 300]
        assert {word.page_index for word in document.words} == {0}
        assert result.preview is not None
        assert [unit.word_range for unit in result.preview.units] == [(0, 359)]
        assert_document_invariants(document)
    finally:
        release_result(result)


def test_pdf_adapter_single_word(tmp_path: Path) -> None:
    pdf_path = tmp_path / "single.pdf"
    doc = pymupdf.open()
    doc.new_page().insert_text((72, 72), "Hello")
    doc.save(str(pdf_path))
    doc.close()

    result = PDFAdapter().parse(pdf_path)
    release_result(result)

    assert [word.text for word in result.document.words] == ["Hello"]
    assert result.document.total_pages == 1


def test_pdf_adapter_rejects_password_protected_file(tmp_path: Path) -> None:
    pdf_path = tmp_path / "locked.pdf"
    doc = pymupdf.open()
    doc.new_page().insert_text((72, 72), "Secret text")
    doc.save(
        str(pdf_path),
        encryption=pymupdf.PDF_ENCRYPT_AES_256,
        owner_pw="owner",
        user_pw="user",
    )
    doc.close()

    with pytest.raises(IngestionError) as excinfo:
        PDFAdapter().parse(pdf_path)

    assert excinfo.value.category is ErrorCategory.ENCRYPTED_CONTENT


def test_pdf_adapter_rejects_garbage(tmp_path: Path) -> None:
    pdf_path = tmp_path / "garbage.pdf"
    pdf_path.write_bytes(b"this is not a pdf")

    with pytest.raises(IngestionError) as excinfo:
        PDFAdapter().parse(pdf_path)

    assert excinfo.value.category is ErrorCategory.CORRUPT_CONTAINER
