"""Character-level RTF tokenizer producing plain text plus emphasis flags."""

from __future__ import annotations

from dataclasses import dataclass, field
import re

from quickread.ingestion.builder import DocumentBuilder, Formatting
from quickread.ingestion.models import Document
from quickread.ingestion.normalization import split_on_dashes

_SKIP_DESTINATIONS = frozenset(
    {
        "fonttbl",
        "colortbl",
        "stylesheet",
        "info",
        "pict",
        "object",
        "datafield",
        "themedata",
        "colorschememapping",
        "header",
        "footer",
        "listtable",
        "listoverridetable",
        "generator",
    }
)

_CHARACTER_WORDS = {
    "tab": " ",
    "cell": " ",
    "emdash": "—",
    "endash": "–",
    "ldblquote": "“",
    "rdblquote": "”",
    "lquote": "‘",
    "rquote": "’",
    "bullet": "•",
}

_PARAGRAPH_WORDS = frozenset({"par", "line"})
_PARAGRAPH_SPLIT_RE = re.compile(r"\n\s*\n")
_TOKEN_RE = re.compile(r"\S+")


@dataclass(slots=True)
class RtfText:
    """Plain text with per-character italic/bold flags."""

    text: str = ""
    italic: list[bool] = field(default_factory=list)
    bold: list[bool] = field(default_factory=list)

    def formatting_at(self, offset: int) -> Formatting:
        if 0 <= offset < len(self.text):
            return Formatting(italic=self.italic[offset], bold=self.bold[offset])
        return Formatting()


class _Tokenizer:
    def __init__(self, rtf: str) -> None:
        self._rtf = rtf
        self._pos = 0
        self._chars: list[str] = []
        self._italic: list[bool] = []
        self._bold: list[bool] = []
        self._state = Formatting()
        self._stack: list[Formatting] = []
        self._skip_depth: int | None = None
        self._codepage = "cp1252"

    @property
    def _depth(self) -> int:
        return len(self._stack)

    def _emit(self, text: str, formatting: Formatting | None = None) -> None:
        state = self._state if formatting is None else formatting
        for char in text:
            self._chars.append(char)
            self._italic.append(state.italic)
            self._bold.append(state.bold)

    def run(self) -> RtfText:
        rtf = self._rtf
        while self._pos < len(rtf):
            char = rtf[self._pos]

            if char == "{":
                self._stack.append(self._state)
                self._pos += 1
                continue

            if char == "}":
                if self._stack:
                    self._state = self._stack.pop()
                if self._skip_depth is not None and self._depth < self._skip_depth:
                    self._skip_depth = None
                self._pos += 1
                continue

            if self._skip_depth is not None:
                # escaped braces inside skipped groups must not change depth
                self._pos += 2 if char == "\\" else 1
                continue

            if char == "\\":
                self._pos += 1
                self._control()
                continue

            if char not in "\r\n":
                self._emit(char)
            self._pos += 1

        return RtfText(text="".join(self._chars), italic=self._italic, bold=self._bold)

    def _control(self) -> None:
        rtf = self._rtf
        if self._pos >= len(rtf):
            return

        symbol = rtf[self._pos]
        if symbol in "\\{}":
            self._emit(symbol)
            self._pos += 1
            return
        if symbol in "\r\n":
            self._emit("\n\n", Formatting())
            self._pos += 1
            return
        if symbol == "~":
            self._emit(" ")
            self._pos += 1
            return
        if symbol == "-":
            self._pos += 1
            return
        if symbol == "_":
            self._emit("-")
            self._pos += 1
            return
        if symbol == "*":
            self._skip_depth = self._depth
            self._pos += 1
            return
        if symbol == "'":
            self._hex_escape()
            return
        if not symbol.isascii() or not symbol.isalpha():
            self._pos += 1
            return

        start = self._pos
        while self._pos < len(rtf) and rtf[self._pos].isascii() and rtf[self._pos].isalpha():
            self._pos += 1
        word = rtf[start : self._pos]

        param_start = self._pos
        if self._pos < len(rtf) and rtf[self._pos] == "-":
            self._pos += 1
        while self._pos < len(rtf) and rtf[self._pos].isdigit():
            self._pos += 1
        param = rtf[param_start : self._pos]
        if param == "-":
            param = ""

        if self._pos < len(rtf) and rtf[self._pos] == " ":
            self._pos += 1

        self._apply(word, param)

    def _hex_escape(self) -> None:
        digits = self._rtf[self._pos + 1 : self._pos + 3]
        self._pos += 1 + len(digits)
        try:
            value = int(digits, 16)
        except ValueError:
            return
        self._emit(bytes([value]).decode(self._codepage, errors="replace"))

    def _apply(self, word: str, param: str) -> None:
        if word in _PARAGRAPH_WORDS:
            self._emit("\n\n", Formatting())
        elif word in _CHARACTER_WORDS:
            self._emit(_CHARACTER_WORDS[word])
        elif word == "i":
            self._state = Formatting(italic=param != "0", bold=self._state.bold)
        elif word == "b":
            self._state = Formatting(italic=self._state.italic, bold=param != "0")
        elif word == "plain":
            self._state = Formatting()
        elif word == "u":
            self._unicode(param)
        elif word == "ansicpg" and param:
            self._codepage = f"cp{param}"
            try:
                b"".decode(self._codepage)
            except LookupError:
                self._codepage = "cp1252"
        elif word in _SKIP_DESTINATIONS:
            self._skip_depth = self._depth

    def _unicode(self, param: str) -> None:
        if param:
            code = int(param)
            if code < 0:
                code += 65536
            if 0 <= code <= 0x10FFFF:
                self._emit(chr(code))
        rtf = self._rtf
        if self._pos < len(rtf) and rtf[self._pos] == "?":
            self._pos += 1
        elif rtf.startswith("\\'", self._pos):
            self._pos += 4


def tokenize_rtf(rtf: str) -> RtfText:
    """Convert RTF markup to plain text with aligned italic/bold flags.

    Destination groups (font tables, stylesheets, metadata, pictures and
    ``\\*`` ignorable destinations) are dropped with all nested content.
    Formatting is scoped to the enclosing group. ``\\par`` and ``\\line``
    become a blank-line paragraph marker.
    """

    return _Tokenizer(rtf).run()


def build_rtf_document(rtf_text: RtfText, words_per_page: int) -> tuple[Document, str]:
    """Split tokenized RTF text into paragraphs and words.

    Each word takes the formatting of the character at its start offset.
    Returns the document and its preview markup.
    """

    builder = DocumentBuilder(words_per_page)
    text = rtf_text.text
    cursor = 0
    boundaries = [match.start() for match in _PARAGRAPH_SPLIT_RE.finditer(text)] + [len(text)]

    for boundary in boundaries:
        segment = text[cursor:boundary]
        segment_start = cursor
        cursor = boundary
        if not segment.strip():
            continue

        builder.start_paragraph()
        builder.emit("<p>")
        for match in _TOKEN_RE.finditer(segment):
            offset = segment_start + match.start()
            for part in split_on_dashes(match.group()):
                builder.add_word(part, rtf_text.formatting_at(offset))
                offset += len(part)
        builder.emit("</p>")

    return builder.build(), builder.take_markup()


__all__ = ["RtfText", "tokenize_rtf", "build_rtf_document"]
