from __future__ import annotations

from pathlib import Path

from quickread.ingestion.adapters.html_adapter import HTMLAdapter

from document_checks import assert_document_invariants, assert_preview_markers, marker_indices


def test_html_adapter_walks_blocks_and_emphasis(tmp_path: Path) -> None:
    path = tmp_path / "page.html"
    path.write_text(
        """<!DOCTYPE html>
        <html><head><title>Page Title</title><style>p { color: red; }</style></head>
        <body>
          <nav>Home About</nav>
          <h1>Heading</h1>
          <p>Plain <em>slanted <strong>both</strong></em> <b>heavy</b></p>
          <!-- hidden comment -->
          <script>var ignored = true;</script>
          <ul><li>item one</li><li>item two</li></ul>
        </body></html>""",
        encoding="utf-8",
    )

    result = HTMLAdapter().parse(path)

    words = result.document.words
    assert [word.text for word in words] == [
        "Heading", "Plain", "slanted", "both", "heavy", "item", "one", "item", "two",
    ]
    assert words[2].italic and not words[2].bold
    assert words[3].italic and words[3].bold
    assert words[4].bold and not words[4].italic
    assert result.title == "Page Title"
    assert result.document.paragraph_starts == [0, 1, 5, 7]
    assert result.preview is not None
    assert result.preview.units[0].html.startswith('<div class="html-content">')
    assert marker_indices(result.preview.units[0].html) == list(range(9))
    assert_document_invariants(result.document)
    assert_preview_markers(result)


def test_html_adapter_title_falls_back_to_first_heading(tmp_path: Path) -> None:
    path = tmp_path / "untitled.htm"
    path.write_text("<html><body><h1>Only Heading</h1><p>Body</p></body></html>", encoding="utf-8")

    assert HTMLAdapter().parse(path).title == "Only Heading"


def test_html_adapter_single_word(tmp_path: Path) -> None:
    path = tmp_path / "single.html"
    path.write_text("<p>Hello</p>", encoding="utf-8")

    result = HTMLAdapter().parse(path)

    assert [word.text for word in result.document.words] == ["Hello"]
    assert result.document.total_pages == 1
    assert result.warnings == []
    assert result.title == "Single"


def test_html_adapter_warns_when_body_has_no_text(tmp_path: Path) -> None:
    page = tmp_path / "scripts.html"
    page.write_text("<html><body><script>var words = 'hidden';</script></body></html>", encoding="utf-8")

    result = HTMLAdapter().parse(page)

    assert result.document.total_words == 0
    assert result.error is None
    assert result.preview is None
    assert result.warnings == ["No readable text found in HTML document"]
