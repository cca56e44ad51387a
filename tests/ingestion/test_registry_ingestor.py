from __future__ import annotations

from pathlib import Path
from zipfile import ZipFile

import docx
import pymupdf
import pytest

from quickread.ingestion import DocumentIngestor, DocumentSession, ErrorCategory
from quickread.ingestion.adapters import TextAdapter, build_default_adapters, build_default_registry
from quickread.ingestion.registry import AdapterRegistry

from document_checks import assert_document_invariants

_ODT_CONTENT = (
    '<?xml version="1.0" encoding="UTF-8"?>'
    '<office:document-content xmlns:office="urn:oasis:names:tc:opendocument:xmlns:office:1.0" '
    'xmlns:text="urn:oasis:names:tc:opendocument:xmlns:text:1.0">'
    "<office:body><office:text><text:p>Hello</text:p></office:text></office:body></office:document-content>"
)

_FB2 = (
    '<?xml version="1.0" encoding="utf-8"?>'
    '<FictionBook xmlns="http://www.gribuser.ru/xml/fictionbook/2.0">'
    "<body><section><p>Hello</p></section></body></FictionBook>"
)


class _ExplodingAdapter:
    extensions = ("boom",)
    media_types = ("application/x-boom",)
    format_name = "Boom"
    supports_preview = False

    def parse(self, path: Path):
        raise RuntimeError("kaboom")


def _build_pdf(path: Path, text: str) -> None:
    doc = pymupdf.open()
    page = doc.new_page()
    page.insert_text((72, 72), text)
    doc.save(str(path))
    doc.close()


def _single_word_fixtures(root: Path) -> list[Path]:
    fixtures: list[Path] = []

    def add(name: str, payload: bytes | str) -> None:
        path = root / name
        if isinstance(payload, str):
            path.write_text(payload, encoding="utf-8")
        else:
            path.write_bytes(payload)
        fixtures.append(path)

    add("single.txt", "Hello")
    add("single.md", "Hello")
    add("single.html", "<html><body><p>Hello</p></body></html>")
    add("single.rtf", r"{\rtf1\ansi Hello}")
    add("single.fb2", _FB2)

    pdf_path = root / "single.pdf"
    _build_pdf(pdf_path, "Hello")
    fixtures.append(pdf_path)

    docx_path = root / "single.docx"
    document = docx.Document()
    document.add_paragraph("Hello")
    document.save(str(docx_path))
    fixtures.append(docx_path)

    odt_path = root / "single.odt"
    with ZipFile(odt_path, "w") as archive:
        archive.writestr("mimetype", "application/vnd.oasis.opendocument.text")
        archive.writestr("content.xml", _ODT_CONTENT)
    fixtures.append(odt_path)
    return fixtures


def test_default_registry_lists_adapters_in_lookup_order() -> None:
    registry = build_default_registry()

    assert [adapter.format_name for adapter in registry] == [
        "EPUB",
        "PDF",
        "Plain Text",
        "HTML",
        "Markdown",
        "FictionBook",
        "Word Document",
        "Rich Text",
        "OpenDocument Text",
        "Mobipocket",
    ]
    assert len(registry) == len(build_default_adapters())
    assert ".fb2.zip" in registry.supported_extensions()
    assert registry.is_extension_supported("md")
    assert registry.is_extension_supported("book.MOBI")
    assert not registry.is_extension_supported("xyz")


def test_registry_routes_by_extension_compound_extension_and_media_type() -> None:
    registry = build_default_registry()

    assert registry.adapter_for(Path("Book.EPUB")).format_name == "EPUB"
    assert registry.adapter_for(Path("novel.fb2.zip")).format_name == "FictionBook"
    assert registry.adapter_for(Path("download.bin"), "text/markdown").format_name == "Markdown"
    assert registry.adapter_for(Path("download.bin"), "application/octet-stream") is None
    assert registry.adapter_for(Path("README")) is None


def test_registry_ignores_duplicate_format_names_and_rejects_non_adapters() -> None:
    first = TextAdapter()
    registry = AdapterRegistry([first, TextAdapter()])

    assert registry.adapters == (first,)
    assert registry.accept_string() == ".txt,.text,text/plain"
    assert registry.formats() == [
        {"name": "Plain Text", "extensions": [".txt", ".text"], "media_types": ["text/plain"], "supports_preview": True}
    ]

    with pytest.raises(TypeError):
        AdapterRegistry([object()])


def test_ingestor_reports_unsupported_format_with_supported_list(tmp_path: Path) -> None:
    source = tmp_path / "archive.xyz"
    source.write_text("data", encoding="utf-8")

    result = DocumentIngestor().ingest(source)

    assert result.error is not None
    assert result.error.category is ErrorCategory.UNSUPPORTED_FORMAT
    assert result.error.message.startswith("Unsupported file type: .xyz")
    assert ".epub" in result.error.message and ".mobi" in result.error.message
    assert result.document.total_words == 0
    assert result.preview is None


def test_ingestor_converts_unexpected_adapter_failures(tmp_path: Path) -> None:
    source = tmp_path / "file.boom"
    source.write_bytes(b"\x00")
    ingestor = DocumentIngestor(AdapterRegistry([_ExplodingAdapter()]))

    result = ingestor.ingest(source)

    assert result.error is not None
    assert result.error.category is ErrorCategory.CORRUPT_CONTAINER
    assert "kaboom" in result.error.message
    assert result.format_name == "Boom"


def test_ingestor_reports_missing_files_without_raising(tmp_path: Path) -> None:
    result = DocumentIngestor().ingest(tmp_path / "missing.txt")

    assert result.error is not None
    assert result.error.category is ErrorCategory.CORRUPT_CONTAINER
    assert result.error.message.startswith("Failed to read source file")


def test_ingestor_never_raises_for_garbage_input(tmp_path: Path) -> None:
    garbage = bytes(range(256)) * 4
    for extension in ("epub", "pdf", "fb2", "docx", "odt", "mobi", "rtf"):
        source = tmp_path / f"garbage.{extension}"
        source.write_bytes(garbage)

        result = DocumentIngestor().ingest(source)

        assert result.error is not None, extension
        assert result.document.total_words == 0


def test_ingestor_single_word_documents_across_formats(tmp_path: Path) -> None:
    ingestor = DocumentIngestor()

    for path in _single_word_fixtures(tmp_path):
        result = ingestor.ingest(path)
        try:
            assert result.error is None, path.name
            assert [word.text for word in result.document.words] == ["Hello"], path.name
            assert result.document.paragraph_starts == [0], path.name
            assert result.document.page_starts == [0], path.name
            assert result.warnings == [], path.name
            assert_document_invariants(result.document)
        finally:
            ingestor.release(result)


def test_document_session_releases_previous_result(tmp_path: Path) -> None:
    first_path = tmp_path / "first.pdf"
    second_path = tmp_path / "second.pdf"
    _build_pdf(first_path, "First document text.")
    _build_pdf(second_path, "Second document text.")

    with DocumentSession(DocumentIngestor()) as session:
        first = session.load(first_path)
        handle = first.extra["pdf_document"]
        assert not handle.is_closed

        second = session.load(second_path)

        assert handle.is_closed
        assert "pdf_document" not in first.extra
        assert session.current is second
        second_handle = second.extra["pdf_document"]

    assert second_handle.is_closed
    assert session.current is None
