"""Scanner for INI documents.

The scanner turns the reader's characters into tokens. A document such as::

    [section:base]
    key.sub = "value"

produces::

    DOCUMENT-START
    SECTION-START  SCALAR('section')  SECTION-INHERIT  SCALAR('base')  SECTION-ENTRY
    KEY  SCALAR('key')  MAP  KEY  SCALAR('sub')  VALUE  SCALAR('value', double-quoted)
    DOCUMENT-END

Comments are not part of the token stream; they are queued on the side and
handed to whoever asks for them with ``take_comments``.
"""

from __future__ import annotations

import re
import string
from collections import deque
from collections.abc import Iterator
from typing import Final

from .reader import EOF, LINE_BREAKS, Reader, Source
from .types import Mark, ScalarStyle, ScannerError, Token, TokenType

BLANKS: Final[frozenset[str]] = frozenset([" ", "\t"])
COMMENT_INDICATORS: Final[frozenset[str]] = frozenset(["#", ";"])
VALUE_COMMENT: Final[str] = "#"
HEX_DIGITS: Final[frozenset[str]] = frozenset(string.hexdigits)
BOM: Final[str] = "\ufeff"

KEY_CHAR_RE: Final[re.Pattern[str]] = re.compile(r"[0-9A-Za-z_\-]")

ESCAPES: Final[dict[str, str]] = {
    "0": "\0",
    "a": "\x07",
    "b": "\x08",
    "t": "\t",
    "\t": "\t",
    "n": "\n",
    "v": "\x0b",
    "f": "\x0c",
    "r": "\r",
    "e": "\x1b",
    " ": " ",
    '"': '"',
    "'": "'",
    "/": "/",
    "\\": "\\",
    "N": "\x85",
    "_": "\xa0",
    "L": "\u2028",
    "P": "\u2029",
}

ESCAPE_CODE_LENGTHS: Final[dict[str, int]] = {"x": 2, "u": 4, "U": 8}


def is_blank(ch: str) -> bool:
    return ch in BLANKS


def is_break(ch: str) -> bool:
    return ch in LINE_BREAKS


def is_breakz(ch: str) -> bool:
    return ch in LINE_BREAKS or ch == EOF


def is_key_char(ch: str) -> bool:
    """Check if character may start a key or appear in a section name."""
    return bool(KEY_CHAR_RE.fullmatch(ch))


class Scanner:
    """Tokenizer for INI source."""

    __slots__ = ("_done", "_in_section", "_started", "comments", "reader", "tokens")

    def __init__(self, source: Source) -> None:
        self.reader = Reader(source)
        self.tokens: deque[Token] = deque()
        self.comments: deque[Token] = deque()
        self._started = False
        self._done = False
        self._in_section = False

    def __iter__(self) -> Iterator[Token]:
        while True:
            token = self.next_token()
            yield token
            if token.type == TokenType.DOCUMENT_END:
                return

    def peek_token(self) -> Token:
        """Return the next token without consuming it."""
        while not self.tokens:
            if self._done:
                mark = self.reader.mark
                raise ScannerError(
                    "while scanning", mark, "attempted to scan past end of document", mark
                )
            self._fetch_next_token()
        return self.tokens[0]

    def next_token(self) -> Token:
        """Consume and return the next token."""
        token = self.peek_token()
        self.tokens.popleft()
        return token

    def take_comments(self) -> list[Token]:
        """Hand over the comments scanned so far."""
        comments = list(self.comments)
        self.comments.clear()
        return comments

    def _error(self, context: str, context_mark: Mark, message: str) -> ScannerError:
        return ScannerError(context, context_mark, message, self.reader.mark)

    def _fetch_next_token(self) -> None:
        r = self.reader
        if not self._started:
            self._started = True
            mark = r.mark
            self.tokens.append(Token(TokenType.DOCUMENT_START, mark, mark))
            return

        at_margin = self._scan_to_next_token()
        ch = r.peek()

        if ch == EOF:
            self._fetch_document_end()
            return

        if self._in_section:
            match ch:
                case ":":
                    self._fetch_section_inherit()
                case "]":
                    self._fetch_section_entry()
                case _:
                    raise self._error(
                        "while scanning a section header", r.mark, "did not find expected ']'"
                    )
            return

        # Section headers sit in the first column; a '[' anywhere else is just text.
        if at_margin and ch == "[":
            self._fetch_section_start()
        elif ch == "=":
            self._fetch_value()
        else:
            self._fetch_key()

    def _scan_to_next_token(self) -> bool:
        """Skip blanks, comments and line breaks.

        Returns whether the next token starts its line with no blanks
        before it. A byte order mark does not count as indentation.
        """
        r = self.reader
        line_start = r.column == 0
        while True:
            if r.column == 0 and r.peek() == BOM:
                r.skip()
            indented = is_blank(r.peek())
            while is_blank(r.peek()):
                r.skip()
            if r.peek() in COMMENT_INDICATORS:
                self._scan_comment()
            if is_break(r.peek()):
                r.skip_line()
                line_start = True
            else:
                return line_start and not indented

    def _scan_comment(self) -> None:
        r = self.reader
        start = r.mark
        r.skip()
        buf: list[str] = []
        while not is_breakz(r.peek()):
            r.read(buf)
        self.comments.append(
            Token(TokenType.COMMENT, start, r.mark, "".join(buf).strip(), ScalarStyle.PLAIN)
        )

    def _fetch_document_end(self) -> None:
        mark = self.reader.mark
        self._done = True
        self.tokens.append(Token(TokenType.DOCUMENT_END, mark, mark))

    def _fetch_indicator(self, token_type: TokenType) -> Token:
        """Consume a one-character indicator and queue its token."""
        r = self.reader
        start = r.mark
        value = r.peek()
        r.skip()
        token = Token(token_type, start, r.mark, value)
        self.tokens.append(token)
        return token

    def _fetch_section_start(self) -> None:
        self._fetch_indicator(TokenType.SECTION_START)
        self._in_section = True
        self.tokens.append(self._scan_section_key(allow_empty=False))

    def _fetch_section_inherit(self) -> None:
        self._fetch_indicator(TokenType.SECTION_INHERIT)
        self.tokens.append(self._scan_section_key(allow_empty=True))

    def _fetch_section_entry(self) -> None:
        r = self.reader
        token = self._fetch_indicator(TokenType.SECTION_ENTRY)
        self._in_section = False
        while is_blank(r.peek()):
            r.skip()
        ch = r.peek()
        if not is_breakz(ch) and ch not in COMMENT_INDICATORS:
            raise self._error(
                "while scanning for the section entry",
                token.start_mark,
                "must have a line break before the first section key",
            )

    def _scan_section_key(self, allow_empty: bool) -> Token:
        r = self.reader
        while is_blank(r.peek()):
            r.skip()
        start = r.mark
        buf: list[str] = []
        while is_key_char(r.peek()):
            r.read(buf)
        end = r.mark
        while is_blank(r.peek()):
            r.skip()
        ch = r.peek()
        if ch not in (":", "]"):
            if is_breakz(ch):
                raise self._error(
                    "while scanning a section header", start, "did not find expected ']'"
                )
            raise self._error(
                "while scanning for the section key",
                start,
                f"found character '{ch}' that cannot start any section key",
            )
        if not buf and not allow_empty:
            raise self._error("while scanning for the section key", start, "empty section key")
        return Token(TokenType.SCALAR, start, end, "".join(buf), ScalarStyle.PLAIN)

    def _fetch_key(self) -> None:
        r = self.reader
        ch = r.peek()
        if ch in ("'", '"'):
            first = r.peek(1)
            if not is_key_char(first):
                raise self._error(
                    "while scanning a key",
                    r.mark,
                    f"found character '{first}' that cannot start any key",
                )
            # Quoted keys are taken literally, dots included.
            scalar = self._scan_quoted_scalar(single=ch == "'")
            self.tokens.append(Token(TokenType.KEY, scalar.start_mark, scalar.start_mark))
            self.tokens.append(scalar)
            return

        if not is_key_char(ch):
            raise self._error(
                "while scanning a key", r.mark, f"found character '{ch}' that cannot start any key"
            )
        key = self._scan_plain_key()
        offset = 0
        segments = key.value.split(".")
        for i, segment in enumerate(segments):
            stripped = segment.strip(" \t")
            if not stripped:
                raise self._error("while scanning a key", key.start_mark, "empty map key")
            lead = len(segment) - len(segment.lstrip(" \t"))
            start = _shift(key.start_mark, offset + lead)
            end = _shift(start, len(stripped))
            for j, c in enumerate(stripped):
                if not is_key_char(c):
                    raise self._error(
                        "while scanning a key",
                        _shift(start, j),
                        f"found character '{c}' that cannot start any key",
                    )
            self.tokens.append(Token(TokenType.KEY, start, start))
            self.tokens.append(Token(TokenType.SCALAR, start, end, stripped, ScalarStyle.PLAIN))
            offset += len(segment)
            if i < len(segments) - 1:
                dot = _shift(key.start_mark, offset)
                self.tokens.append(Token(TokenType.MAP, dot, _shift(dot, 1), "."))
                offset += 1

    def _scan_plain_key(self) -> Token:
        r = self.reader
        start = r.mark
        buf: list[str] = []
        while not is_breakz(r.peek()) and r.peek() != "=" and r.peek() not in COMMENT_INDICATORS:
            r.read(buf)
        text = "".join(buf).rstrip(" \t")
        return Token(TokenType.SCALAR, start, _shift(start, len(text)), text, ScalarStyle.PLAIN)

    def _fetch_value(self) -> None:
        r = self.reader
        self._fetch_indicator(TokenType.VALUE)
        while is_blank(r.peek()):
            r.skip()
        ch = r.peek()
        if ch in ("'", '"'):
            scalar = self._scan_quoted_scalar(single=ch == "'")
            while is_blank(r.peek()):
                r.skip()
            if not is_breakz(r.peek()) and r.peek() not in COMMENT_INDICATORS:
                raise self._error(
                    "while scanning a quoted scalar",
                    scalar.start_mark,
                    "did not find expected comment or line break",
                )
        else:
            scalar = self._scan_plain_value()
        self.tokens.append(scalar)

    def _scan_plain_value(self) -> Token:
        r = self.reader
        start = r.mark
        buf: list[str] = []
        # Only '#' ends a value early; ';' is a comment at the start of a line.
        while not is_breakz(r.peek()) and r.peek() != VALUE_COMMENT:
            r.read(buf)
        text = "".join(buf).rstrip(" \t")
        return Token(TokenType.SCALAR, start, _shift(start, len(text)), text, ScalarStyle.PLAIN)

    def _scan_quoted_scalar(self, single: bool) -> Token:
        r = self.reader
        start = r.mark
        quote = r.peek()
        r.skip()
        buf: list[str] = []

        while True:
            ch = r.peek()
            if is_breakz(ch):
                raise self._error(
                    "while scanning a quoted scalar", start, "found unterminated quoted scalar"
                )
            if ch == quote:
                if r.peek(1) == quote:
                    # Doubled quote is an escaped quote.
                    buf.append(quote)
                    r.skip()
                    r.skip()
                    continue
                r.skip()
                break
            if not single and ch == "\\":
                self._scan_escape(start, buf)
                continue
            r.read(buf)

        style = ScalarStyle.SINGLE_QUOTED if single else ScalarStyle.DOUBLE_QUOTED
        return Token(TokenType.SCALAR, start, r.mark, "".join(buf), style)

    def _scan_escape(self, start: Mark, buf: list[str]) -> None:
        r = self.reader
        escaped = r.peek(1)

        if escaped == EOF:
            raise self._error(
                "while scanning a quoted scalar", start, "found unterminated quoted scalar"
            )
        if is_break(escaped):
            # Escaped line break: join with the next line, dropping its indentation.
            r.skip()
            r.skip_line()
            while is_blank(r.peek()):
                r.skip()
            return

        if escaped in ESCAPES:
            buf.append(ESCAPES[escaped])
            r.skip()
            r.skip()
            return

        length = ESCAPE_CODE_LENGTHS.get(escaped)
        if length is None:
            raise self._error("while parsing a quoted scalar", start, "found unknown escape character")
        r.skip()
        r.skip()
        digits = "".join(r.peek(k) for k in range(length))
        if not all(d in HEX_DIGITS for d in digits):
            raise self._error(
                "while parsing a quoted scalar", start, "did not find expected hexadecimal number"
            )
        value = int(digits, 16)
        if 0xD800 <= value <= 0xDFFF or value > 0x10FFFF:
            raise self._error(
                "while parsing a quoted scalar", start, "found invalid Unicode character escape code"
            )
        buf.append(chr(value))
        for _ in range(length):
            r.skip()


def _shift(mark: Mark, columns: int) -> Mark:
    """Move a mark along its line."""
    return Mark(mark.index + columns, mark.line, mark.column + columns)


def scan(source: Source) -> list[Token]:
    """Tokenize a whole document."""
    return list(Scanner(source))
