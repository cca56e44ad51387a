"""Markdown block-model parser with word markers for the preview panel.

Parsing runs in two phases. ``normalize_lines`` repairs sentences that were
split by stray blank lines (a common artifact of text reflowed from PDFs),
then a line-oriented state machine groups lines into content blocks. Inline
emphasis is resolved by a single left-to-right scan with toggle state.

Fenced and inline code are shown in the preview but never enter the word
stream.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
import re

from quickread.ingestion.builder import DEFAULT_WORDS_PER_PAGE, DocumentBuilder, Formatting
from quickread.ingestion.models import ChapterEntry, Document, Preview, PreviewUnit
from quickread.ingestion.normalization import escape_html
from quickread.ingestion.pagination import assign_page_indices

logger = logging.getLogger(__name__)

_IMAGE_RE = re.compile(r"!\[([^\]]*)\]\([^)]+\)")
_LINK_RE = re.compile(r"\[([^\]]+)\]\([^)]+\)")
_HEADING_RE = re.compile(r"^(#{1,6})\s+(.+)$")
_RULE_RE = re.compile(r"^[-*_]{3,}$")
_BLOCKQUOTE_RE = re.compile(r"^>\s*")
_NESTED_LIST_RE = re.compile(r"^(?:[*\-+]|\*\*-)\s+")
_BOLD_LIST_RE = re.compile(r"^\*\*-\s+(.+)$")
_UNORDERED_RE = re.compile(r"^[*\-+]\s+(.+)$")
_ORDERED_RE = re.compile(r"^\d+\.\s+(.+)$")
_TITLE_STRIP_RE = re.compile(r"[*_`\[\]]")
_WORD_CHAR_RE = re.compile(r"\w")
_TERMINAL_RE = re.compile(r"[.!?:;][\"'”’]?$")

DEFAULT_CONJUNCTIONS = (
    "and", "or", "but", "with", "for", "to", "in", "on", "at",
    "the", "a", "an", "that", "which", "who", "whom",
)


@dataclass(frozen=True, slots=True)
class ContinuationPolicy:
    """Tunable heuristics for merging sentence fragments across blank lines."""

    enabled: bool = True
    lowercase_start: bool = True
    conjunctions: tuple[str, ...] = DEFAULT_CONJUNCTIONS

    def is_incomplete(self, line: str) -> bool:
        trimmed = line.strip()
        return bool(trimmed) and not _TERMINAL_RE.search(trimmed)

    def is_continuation(self, line: str) -> bool:
        trimmed = line.strip()
        if not trimmed:
            return False
        if self.lowercase_start and trimmed[0].islower():
            return True
        first = re.split(r"\W", trimmed, maxsplit=1)[0]
        return first in self.conjunctions


@dataclass(slots=True)
class ContentBlock:
    kind: str  # "text", "code", "hr" or "title"
    html: str
    word_start: int
    word_end: int

    @property
    def word_count(self) -> int:
        return max(self.word_end - self.word_start + 1, 0)


@dataclass(slots=True)
class MarkdownResult:
    document: Document
    title: str | None = None
    preview: Preview | None = None
    blocks: list[ContentBlock] = field(default_factory=list)


def _is_fence(line: str) -> bool:
    return line.strip().startswith("```")


def normalize_lines(lines: list[str], policy: ContinuationPolicy | None = None) -> list[str]:
    """Drop blank lines that separate a sentence from its continuation."""

    policy = policy or ContinuationPolicy()
    if not policy.enabled:
        return list(lines)

    normalized: list[str] = []
    index = 0
    while index < len(lines):
        line = lines[index]

        if _is_fence(line):
            normalized.append(line)
            index += 1
            while index < len(lines) and not _is_fence(lines[index]):
                normalized.append(lines[index])
                index += 1
            if index < len(lines):
                normalized.append(lines[index])
                index += 1
            continue

        if policy.is_incomplete(line):
            lookahead = index + 1
            while lookahead < len(lines) and not lines[lookahead].strip():
                lookahead += 1
            if lookahead > index + 1 and lookahead < len(lines) and policy.is_continuation(lines[lookahead]):
                normalized.append(line)
                index = lookahead
                continue

        normalized.append(line)
        index += 1

    return normalized


class _MarkdownParser:
    def __init__(self, words_per_page: int) -> None:
        self.builder = DocumentBuilder(words_per_page)
        self.blocks: list[ContentBlock] = []
        self.title: str | None = None
        self._paragraph_lines: list[str] = []
        self._list_items: list[str] = []
        self._list_type: str | None = None

    # inline ------------------------------------------------------------

    def _add(self, text: str, italic: bool, bold: bool) -> None:
        if text:
            self.builder.add_text(text, Formatting(italic=italic, bold=bold))

    def parse_inline(self, text: str) -> None:
        text = _IMAGE_RE.sub("", text)
        builder = self.builder
        pending = ""
        bold = False
        italic = False
        i = 0

        while i < len(text):
            char = text[i]
            following = text[i + 1] if i + 1 < len(text) else ""

            if char == "`" and following != "`":
                end = text.find("`", i + 1)
                if end != -1:
                    self._add(pending, italic, bold)
                    pending = ""
                    builder.emit(f"<code>{escape_html(text[i + 1 : end])}</code> ")
                    i = end + 1
                    continue

            if char == "[":
                link = _LINK_RE.match(text, i)
                if link:
                    self._add(pending, italic, bold)
                    pending = ""
                    builder.emit("<a>")
                    self._add(link.group(1), italic, bold)
                    builder.emit("</a>")
                    i = link.end()
                    continue

            if text.startswith("***", i):
                self._add(pending, italic, bold)
                pending = ""
                bold = not bold
                italic = not italic
                i += 3
                continue

            if text.startswith("**", i) or text.startswith("__", i):
                self._add(pending, italic, bold)
                pending = ""
                bold = not bold
                i += 2
                continue

            if char == "*":
                self._add(pending, italic, bold)
                pending = ""
                italic = not italic
                i += 1
                continue

            if char == "_":
                previous = text[i - 1] if i > 0 else " "
                after = following or " "
                if not _WORD_CHAR_RE.match(previous) or not _WORD_CHAR_RE.match(after):
                    self._add(pending, italic, bold)
                    pending = ""
                    italic = not italic
                    i += 1
                    continue

            pending += char
            i += 1

        self._add(pending, italic, bold)

    # blocks ------------------------------------------------------------

    def _push_text_block(self, word_start: int) -> None:
        self.blocks.append(
            ContentBlock(
                kind="text",
                html=self.builder.take_markup(),
                word_start=word_start,
                word_end=self.builder.word_count - 1,
            )
        )

    def _push_empty_block(self, kind: str, html: str) -> None:
        index = self.builder.word_count
        self.blocks.append(ContentBlock(kind=kind, html=html, word_start=index, word_end=index - 1))

    def flush_paragraph(self) -> None:
        if not self._paragraph_lines:
            return
        text = " ".join(self._paragraph_lines)
        self._paragraph_lines = []
        start = self.builder.word_count
        self.builder.start_paragraph()
        self.builder.emit("<p>")
        self.parse_inline(text)
        self.builder.emit("</p>")
        self._push_text_block(start)

    def flush_list(self) -> None:
        if not self._list_items or self._list_type is None:
            return
        tag = self._list_type
        start = self.builder.word_count
        self.builder.emit(f"<{tag}>")
        for item in self._list_items:
            self.builder.start_paragraph()
            self.builder.emit("<li>")
            self.parse_inline(item)
            self.builder.emit("</li>")
        self.builder.emit(f"</{tag}>")
        self._push_text_block(start)
        self._list_items = []
        self._list_type = None

    def flush(self) -> None:
        self.flush_paragraph()
        self.flush_list()

    def _code_block(self, language: str, content: list[str]) -> None:
        code = escape_html("\n".join(content))
        self._push_empty_block(
            "code", f'<pre><code class="language-{escape_html(language)}">{code}</code></pre>'
        )

    def _add_list_item(self, list_type: str, item: str) -> None:
        self.flush_paragraph()
        if self._list_type is not None and self._list_type != list_type:
            self.flush_list()
        self._list_type = list_type
        self._list_items.append(item)

    def parse(self, lines: list[str]) -> None:
        in_code = False
        code_language = ""
        code_lines: list[str] = []

        for line in lines:
            trimmed = line.strip()

            if trimmed.startswith("```"):
                self.flush()
                if not in_code:
                    in_code = True
                    code_language = trimmed[3:].strip()
                    code_lines = []
                else:
                    self._code_block(code_language, code_lines)
                    in_code = False
                    code_lines = []
                    code_language = ""
                continue

            if in_code:
                code_lines.append(line)
                continue

            if not trimmed:
                self.flush()
                continue

            heading = _HEADING_RE.match(trimmed)
            if heading:
                self.flush()
                level = len(heading.group(1))
                heading_text = heading.group(2)
                if level == 1 and not self.title:
                    self.title = _TITLE_STRIP_RE.sub("", heading_text).strip() or None
                    if self.title:
                        # the title heading is shown but not read
                        self._push_empty_block("title", f"<h1>{escape_html(self.title)}</h1>")
                        continue
                start = self.builder.word_count
                self.builder.start_paragraph()
                self.builder.emit(f"<h{level}>")
                self.parse_inline(heading_text)
                self.builder.emit(f"</h{level}>")
                self._push_text_block(start)
                continue

            if _RULE_RE.match(trimmed):
                self.flush()
                self._push_empty_block("hr", "<hr>")
                continue

            if trimmed.startswith(">"):
                self.flush()
                start = self.builder.word_count
                self.builder.start_paragraph()
                self.builder.emit("<blockquote>")
                self.parse_inline(_BLOCKQUOTE_RE.sub("", trimmed, count=1))
                self.builder.emit("</blockquote>")
                self._push_text_block(start)
                continue

            if line[:1] in (" ", "\t") and not _NESTED_LIST_RE.match(trimmed):
                if self._list_items:
                    self._list_items[-1] += " " + trimmed
                else:
                    self._paragraph_lines.append(trimmed)
                continue

            bold_item = _BOLD_LIST_RE.match(trimmed)
            if bold_item:
                # keep the opening bold marker so inline parsing still sees it
                self._add_list_item("ul", "**" + bold_item.group(1))
                continue

            unordered = _UNORDERED_RE.match(trimmed)
            if unordered:
                self._add_list_item("ul", unordered.group(1))
                continue

            ordered = _ORDERED_RE.match(trimmed)
            if ordered:
                self._add_list_item("ol", ordered.group(1))
                continue

            self.flush_list()
            self._paragraph_lines.append(trimmed)

        self.flush()
        if in_code and code_lines:
            self._code_block(code_language, code_lines)


def paginate_blocks(
    blocks: list[ContentBlock], words_per_page: int
) -> tuple[list[int], list[PreviewUnit]]:
    """Group blocks into pages of at most ``words_per_page`` words.

    A block is never split; a page only breaks before a block when the page
    already holds words. Returns page start indices and one preview unit per
    page with words.
    """

    page_starts: list[int] = []
    units: list[PreviewUnit] = []
    page_html: list[str] = []
    page_start = 0
    page_words = 0

    def close_page() -> None:
        units.append(
            # every page unit belongs to the single outline chapter
            PreviewUnit(
                chapter_index=0,
                html="".join(page_html),
                word_range=(page_start, page_start + page_words - 1),
            )
        )

    for block in blocks:
        count = block.word_count
        if page_words > 0 and page_words + count > words_per_page:
            close_page()
            page_html = []
            page_words = 0

        page_html.append(block.html)
        if count > 0:
            if page_words == 0:
                page_start = block.word_start
                page_starts.append(page_start)
            page_words += count

    if page_words > 0:
        close_page()
    elif page_html and units:
        # trailing code or rules after the last words belong to the last page
        units[-1].html += "".join(page_html)

    return page_starts, units


def parse_markdown(
    markdown: str,
    words_per_page: int = DEFAULT_WORDS_PER_PAGE,
    policy: ContinuationPolicy | None = None,
) -> MarkdownResult:
    """Parse Markdown into a document, optional title and paged preview."""

    lines = normalize_lines(markdown.splitlines(), policy)
    parser = _MarkdownParser(words_per_page)
    parser.parse(lines)

    document = parser.builder.build()
    if not document.words:
        return MarkdownResult(document=Document.empty(), title=parser.title, blocks=parser.blocks)

    page_starts, units = paginate_blocks(parser.blocks, words_per_page)
    document.page_starts = page_starts
    assign_page_indices(document.words, page_starts)

    preview = Preview(
        units=units,
        chapters=[ChapterEntry(title=parser.title or "Document", anchor="#document", start_word_index=0)],
    )
    logger.debug("Parsed markdown: %d words, %d blocks, %d pages", document.total_words, len(parser.blocks), len(units))
    return MarkdownResult(document=document, title=parser.title, preview=preview, blocks=parser.blocks)
