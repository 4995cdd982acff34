"""Parser for INI documents.

The parser pulls tokens from the scanner and produces events for this
grammar::

    document ::= DOCUMENT-START section* DOCUMENT-END
    section  ::= (SECTION-START SCALAR (SECTION-INHERIT SCALAR)? SECTION-ENTRY)? entry*
    entry    ::= KEY SCALAR (MAP KEY SCALAR)* VALUE SCALAR

Keys before the first section header belong to an implicit ``default``
section.
"""

from __future__ import annotations

from collections import deque
from collections.abc import Iterator
from enum import Enum

from .reader import Source
from .scanner import Scanner
from .types import (
    DEFAULT_SECTION,
    STR_TAG,
    Event,
    EventType,
    Mark,
    ParserError,
    ScalarStyle,
    Token,
    TokenType,
)

TOKEN_NAMES: dict[TokenType, str] = {
    TokenType.DOCUMENT_START: "<document-start>",
    TokenType.DOCUMENT_END: "<document-end>",
    TokenType.SECTION_START: "<section-start>",
    TokenType.SECTION_INHERIT: "<section-inherit>",
    TokenType.SECTION_ENTRY: "<section-entry>",
    TokenType.KEY: "<key>",
    TokenType.MAP: "<map>",
    TokenType.VALUE: "<value>",
    TokenType.SCALAR: "<scalar>",
}


class ParserState(Enum):
    """What the parser expects next."""

    DOCUMENT_START = "document-start"
    SECTION_FIRST_ENTRY = "section-first-entry"
    SECTION_ENTRY = "section-entry"
    SECTION_INHERIT = "section-inherit"
    SECTION_KEY = "section-key"
    SECTION_VALUE = "section-value"
    END = "end"


class Parser:
    """Token to event state machine."""

    __slots__ = ("comments", "last", "scanner", "state")

    def __init__(self, source: Source) -> None:
        self.scanner = Scanner(source)
        self.state = ParserState.DOCUMENT_START
        self.comments: deque[Token] = deque()
        self.last: Token | None = None

    def __iter__(self) -> Iterator[Event]:
        while self.state != ParserState.END:
            yield self.next_event()

    def next_event(self) -> Event:
        """Produce the next event."""
        match self.state:
            case ParserState.DOCUMENT_START:
                return self._parse_document_start()
            case ParserState.SECTION_FIRST_ENTRY:
                return self._parse_section_entry(first=True)
            case ParserState.SECTION_ENTRY:
                return self._parse_section_entry(first=False)
            case ParserState.SECTION_INHERIT:
                return self._parse_section_inherit()
            case ParserState.SECTION_KEY:
                return self._parse_key()
            case ParserState.SECTION_VALUE:
                return self._parse_value()
            case ParserState.END:
                raise ParserError("attempted to read past end of document", None)

    def _peek(self) -> Token:
        return self.scanner.peek_token()

    def _advance(self) -> Token:
        self.last = self.scanner.next_token()
        return self.last

    def _error_mark(self, token: Token) -> Mark:
        """Where to report a problem found at ``token``."""
        # The end token sits after trailing line breaks; point at the last real one.
        if token.type == TokenType.DOCUMENT_END and self.last is not None:
            return self.last.end_mark
        return token.start_mark

    def _check(self, *types: TokenType) -> bool:
        """Check if the next token matches any of the given types."""
        return self._peek().type in types

    def _expect(self, *types: TokenType) -> Token:
        """Consume the next token, which must be one of ``types``."""
        token = self._peek()
        if token.type not in types:
            expected = " or ".join(TOKEN_NAMES[t] for t in types)
            raise ParserError(f"did not find expected {expected}", self._error_mark(token))
        return self._advance()

    def _comment(self) -> Event | None:
        """Return an event for the next comment scanned before the upcoming token."""
        if not self.comments:
            self.comments.extend(self.scanner.take_comments())
        if not self.comments:
            return None
        token = self.comments.popleft()
        return Event(EventType.COMMENT, token.start_mark, token.end_mark, token.value)

    def _parse_document_start(self) -> Event:
        token = self._expect(TokenType.DOCUMENT_START)
        self.state = ParserState.SECTION_FIRST_ENTRY
        return Event(EventType.DOCUMENT_START, token.start_mark, token.end_mark)

    def _parse_section_entry(self, first: bool) -> Event:
        token = self._peek()
        if comment := self._comment():
            return comment

        if token.type == TokenType.DOCUMENT_END:
            self._advance()
            self.state = ParserState.END
            return Event(EventType.DOCUMENT_END, token.start_mark, token.end_mark)

        if first and token.type == TokenType.KEY:
            # Keys before any header go to the implicit default section.
            self.state = ParserState.SECTION_KEY
            return Event(
                EventType.SECTION_ENTRY,
                token.start_mark,
                token.start_mark,
                DEFAULT_SECTION,
                STR_TAG,
            )

        if token.type != TokenType.SECTION_START:
            raise ParserError(
                "did not find expected <section-start> or <key>", self._error_mark(token)
            )
        self._advance()
        name = self._expect(TokenType.SCALAR)
        self.state = ParserState.SECTION_INHERIT
        return Event(
            EventType.SECTION_ENTRY,
            token.start_mark,
            name.end_mark,
            name.value,
            STR_TAG,
            name.style,
        )

    def _parse_section_inherit(self) -> Event:
        if not self._check(TokenType.SECTION_INHERIT):
            self._expect(TokenType.SECTION_ENTRY)
            self.state = ParserState.SECTION_KEY
            return self._parse_key()

        token = self._advance()
        parent = self._expect(TokenType.SCALAR)
        self._expect(TokenType.SECTION_ENTRY)
        self.state = ParserState.SECTION_KEY
        return Event(
            EventType.SECTION_INHERIT,
            token.start_mark,
            parent.end_mark,
            parent.value or DEFAULT_SECTION,
            STR_TAG,
            parent.style,
        )

    def _parse_key(self) -> Event:
        token = self._peek()
        if comment := self._comment():
            return comment

        if token.type in (TokenType.SECTION_START, TokenType.DOCUMENT_END):
            self.state = ParserState.SECTION_ENTRY
            return self._parse_section_entry(first=False)

        if token.type != TokenType.KEY:
            raise ParserError(
                "did not find expected <key> or <section-start>", self._error_mark(token)
            )
        self._advance()
        key = self._expect(TokenType.SCALAR)
        self.state = ParserState.SECTION_VALUE
        return Event(
            EventType.SCALAR, key.start_mark, key.end_mark, key.value, STR_TAG, key.style
        )

    def _parse_value(self) -> Event:
        token = self._expect(TokenType.VALUE, TokenType.MAP)
        self.state = ParserState.SECTION_KEY
        if token.type == TokenType.MAP:
            return Event(EventType.MAPPING, token.start_mark, token.end_mark)

        scalar = self._expect(TokenType.SCALAR)
        # Quoted values are strings as written; plain ones are resolved later.
        tag = "" if scalar.style == ScalarStyle.PLAIN else STR_TAG
        return Event(
            EventType.SCALAR,
            scalar.start_mark,
            scalar.end_mark,
            scalar.value,
            tag,
            scalar.style,
        )


def parse_events(source: Source) -> list[Event]:
    """Parse a document into its list of events."""
    return list(Parser(source))
