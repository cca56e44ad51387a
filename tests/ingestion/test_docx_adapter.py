from __future__ import annotations

from pathlib import Path

import docx
import pytest

from quickread.ingestion.adapters.docx_adapter import DOCXAdapter, block_tag
from quickread.ingestion.errors import ErrorCategory, IngestionError

from document_checks import assert_document_invariants, assert_preview_markers


def _build_docx(path: Path, *, title: str | None = None, author: str | None = None) -> None:
    document = docx.Document()
    document.add_heading("Introduction", level=1)
    paragraph = document.add_paragraph("Plain ")
    paragraph.add_run("italic").italic = True
    paragraph.add_run(" and ")
    paragraph.add_run("bold").bold = True
    document.add_paragraph("")
    document.add_paragraph("first point", style="List Bullet")
    document.add_paragraph("second point", style="List Bullet")
    if title:
        document.core_properties.title = title
    if author:
        document.core_properties.author = author
    document.save(str(path))


def test_docx_adapter_reads_runs_styles_and_properties(tmp_path: Path) -> None:
    path = tmp_path / "memo.docx"
    _build_docx(path, title="Team Memo", author="Sam Writer")

    result = DOCXAdapter().parse(path)

    words = result.document.words
    assert [word.text for word in words] == [
        "Introduction", "Plain", "italic", "and", "bold", "first", "point", "second", "point",
    ]
    assert words[2].italic and not words[2].bold
    assert words[4].bold
    assert result.document.paragraph_starts == [0, 1, 5, 7]
    assert result.title == "Team Memo"
    assert result.author == "Sam Writer"
    assert result.preview is not None
    html = result.preview.units[0].html
    assert "<h1>" in html
    assert html.count("<ul>") == 1
    assert_document_invariants(result.document)
    assert_preview_markers(result)


def test_docx_adapter_single_word(tmp_path: Path) -> None:
    path = tmp_path / "single.docx"
    document = docx.Document()
    document.add_paragraph("Hello")
    document.save(str(path))

    result = DOCXAdapter().parse(path)

    assert [word.text for word in result.document.words] == ["Hello"]
    assert result.document.total_pages == 1
    assert result.warnings == []


def test_docx_adapter_joins_words_split_across_runs(tmp_path: Path) -> None:
    path = tmp_path / "runs.docx"
    document = docx.Document()
    paragraph = document.add_paragraph()
    paragraph.add_run("Hel").bold = True
    paragraph.add_run("lo world")
    paragraph.add_run(" wide").italic = True
    paragraph.add_run("spread")
    document.save(str(path))

    result = DOCXAdapter().parse(path)

    words = result.document.words
    assert [word.text for word in words] == ["Hello", "world", "widespread"]
    assert [(word.bold, word.italic) for word in words] == [(True, False), (False, False), (False, True)]
    assert_document_invariants(result.document)
    assert_preview_markers(result)


def test_docx_adapter_warns_when_document_has_no_text(tmp_path: Path) -> None:
    path = tmp_path / "blank.docx"
    document = docx.Document()
    document.add_paragraph("   ")
    document.save(str(path))

    result = DOCXAdapter().parse(path)

    assert result.document.total_words == 0
    assert result.preview is None
    assert result.warnings == ["No readable text found in DOCX document"]


def test_docx_block_tag_maps_styles() -> None:
    assert block_tag("Heading 3") == "h3"
    assert block_tag("Title") == "h1"
    assert block_tag("List Number") == "li"
    assert block_tag("Normal") == "p"


def test_docx_adapter_rejects_non_zip(tmp_path: Path) -> None:
    path = tmp_path / "broken.docx"
    path.write_bytes(b"plain bytes")

    with pytest.raises(IngestionError) as excinfo:
        DOCXAdapter().parse(path)

    assert excinfo.value.category is ErrorCategory.CORRUPT_CONTAINER
