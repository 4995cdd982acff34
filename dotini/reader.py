"""Buffered UTF-8 reader feeding the scanner."""

from __future__ import annotations

import codecs
import io
import re
from typing import BinaryIO, Final, TypeAlias

from .types import Mark, ReaderError

CHUNK_SIZE: Final[int] = 4096

# Appended once the input is exhausted so lookahead never runs off the end.
EOF: Final[str] = "\0"

LINE_BREAKS: Final[frozenset[str]] = frozenset(["\r", "\n", "\x85", "\u2028", "\u2029"])

# Everything outside #x9 | #xA | #xD | [#x20-#x7E] | #x85 | [#xA0-#xD7FF]
# | [#xE000-#xFFFD] | [#x10000-#x10FFFF].
DISALLOWED_RE: Final[re.Pattern[str]] = re.compile(
    "[^\t\n\r\x20-\x7e\x85\xa0-\ud7ff\ue000-\ufffd\U00010000-\U0010ffff]"
)

DECODE_PROBLEMS: Final[dict[str, str]] = {
    "invalid start byte": "invalid leading UTF-8 octet",
    "invalid continuation byte": "invalid trailing UTF-8 octet",
    "unexpected end of data": "incomplete UTF-8 octet sequence",
}

Source: TypeAlias = bytes | bytearray | memoryview | str | BinaryIO


class Reader:
    """Decodes a byte source into a character buffer and tracks the read mark."""

    __slots__ = (
        "_buffer",
        "_decoded",
        "_decoder",
        "_eof",
        "_fed",
        "_pos",
        "_stream",
        "column",
        "index",
        "line",
    )

    def __init__(self, source: Source) -> None:
        if isinstance(source, str):
            source = source.encode("utf-8")
        if isinstance(source, (bytes, bytearray, memoryview)):
            self._stream: BinaryIO = io.BytesIO(bytes(source))
        else:
            self._stream = source
        self._decoder = codecs.getincrementaldecoder("utf-8")("strict")
        self._buffer = ""
        self._pos = 0
        self._eof = False
        self._fed = 0  # bytes handed to the decoder
        self._decoded = 0  # bytes turned into buffered characters
        self.index = 0
        self.line = 0
        self.column = 0

    @property
    def mark(self) -> Mark:
        """The position of the next unread character."""
        return Mark(self.index, self.line, self.column)

    @property
    def unread(self) -> int:
        return len(self._buffer) - self._pos

    def cache(self, length: int) -> None:
        """Ensure at least ``length`` characters (or the EOF sentinel) are buffered."""
        if self.unread >= length:
            return
        if self._pos:
            self._buffer = self._buffer[self._pos :]
            self._pos = 0
        while self.unread < length and not self._eof:
            self._fill()

    def peek(self, offset: int = 0) -> str:
        """Look ahead without consuming; returns ``EOF`` past the end."""
        if offset >= self.unread:
            self.cache(offset + 1)
            if offset >= self.unread:
                return EOF
        return self._buffer[self._pos + offset]

    def skip(self) -> None:
        """Advance past one character on the current line."""
        self.cache(1)
        self._pos += 1
        self.index += 1
        self.column += 1

    def skip_line(self) -> None:
        """Advance past one line break (``\\r\\n`` counts as one)."""
        ch = self.peek()
        if ch == "\r" and self.peek(1) == "\n":
            self._pos += 2
            self.index += 2
        elif ch in LINE_BREAKS:
            self._pos += 1
            self.index += 1
        else:
            return
        self.column = 0
        self.line += 1

    def read(self, buf: list[str]) -> None:
        """Copy one character into ``buf`` and advance."""
        buf.append(self.peek())
        self.skip()

    def read_line(self, buf: list[str]) -> None:
        """Copy a line break into ``buf`` as ``\\n`` (LS and PS are kept) and advance."""
        ch = self.peek()
        if ch in ("\u2028", "\u2029"):
            buf.append(ch)
        elif ch in LINE_BREAKS:
            buf.append("\n")
        else:
            return
        self.skip_line()

    def _fill(self) -> None:
        try:
            chunk = self._stream.read(CHUNK_SIZE)
        except OSError as e:
            raise ReaderError(f"input error: {e}", self._fed) from e
        if isinstance(chunk, str):
            chunk = chunk.encode("utf-8")
        final = not chunk
        pending = len(self._decoder.getstate()[0])
        base = self._fed - pending
        try:
            text = self._decoder.decode(chunk, final)
        except UnicodeDecodeError as e:
            problem = DECODE_PROBLEMS.get(e.reason, e.reason)
            octet = -1 if final else e.object[e.start]
            raise ReaderError(problem, base + e.start, octet) from None
        self._fed += len(chunk)
        if bad := DISALLOWED_RE.search(text):
            offset = self._decoded + len(text[: bad.start()].encode("utf-8"))
            raise ReaderError("control characters are not allowed", offset, ord(bad.group()))
        self._decoded += len(text.encode("utf-8"))
        self._buffer += text
        if final:
            self._eof = True
            self._buffer += EOF
