"""Type definitions for the dotini parser."""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Final

DEFAULT_SECTION: Final[str] = "default"

# Tags attached to scalar events and nodes. An empty tag means "infer".
STR_TAG: Final[str] = "str"
BOOL_TAG: Final[str] = "bool"
INT_TAG: Final[str] = "int"
FLOAT_TAG: Final[str] = "float"
NULL_TAG: Final[str] = "null"
BINARY_TAG: Final[str] = "binary"
MAP_TAG: Final[str] = "map"
SECTION_TAG: Final[str] = "section"


@dataclass(frozen=True, slots=True)
class Mark:
    """A position in the source.

    ``index`` counts characters from the start of input; ``line`` and
    ``column`` are 0-based.
    """

    index: int = 0
    line: int = 0
    column: int = 0


class IniError(Exception):
    """Base class for every error raised while reading INI content."""

    def __init__(self, message: str, mark: Mark | None = None) -> None:
        self.message = message
        self.mark = mark
        if mark is not None:
            super().__init__(f"ini: line {mark.line + 1}: {message}")
        else:
            super().__init__(f"ini: {message}")


class ReaderError(IniError):
    """The input could not be read or is not valid UTF-8."""

    def __init__(
        self, message: str, offset: int, value: int = -1, mark: Mark | None = None
    ) -> None:
        self.offset = offset
        self.value = value
        super().__init__(message, mark)


class ScannerError(IniError):
    """No token can start at the current position."""

    def __init__(self, context: str, context_mark: Mark, message: str, mark: Mark) -> None:
        self.context = context
        self.context_mark = context_mark
        super().__init__(message, mark)


class ParserError(IniError):
    """The token sequence violates the document grammar."""

    def __init__(
        self,
        message: str,
        mark: Mark | None,
        context: str = "",
        context_mark: Mark | None = None,
    ) -> None:
        self.context = context
        self.context_mark = context_mark
        super().__init__(message, mark)


class MergeError(IniError):
    """A section inherits from a section that was not declared before it."""


class UnmarshalError(IniError):
    """One or more values could not be bound to their destination types.

    The destination is still filled with every value that did convert.
    """

    def __init__(self, errors: list[str], value: Any = None) -> None:
        self.errors = errors
        self.value = value
        super().__init__("unmarshal errors:\n  " + "\n  ".join(errors))


class TokenType(Enum):
    """Token types."""

    DOCUMENT_START = "document-start"
    DOCUMENT_END = "document-end"
    SECTION_START = "section-start"
    SECTION_INHERIT = "section-inherit"
    SECTION_ENTRY = "section-entry"
    KEY = "key"
    MAP = "map"
    VALUE = "value"
    SCALAR = "scalar"
    COMMENT = "comment"


class ScalarStyle(Enum):
    """How a scalar was written in the source."""

    ANY = "any"
    PLAIN = "plain"
    SINGLE_QUOTED = "single-quoted"
    DOUBLE_QUOTED = "double-quoted"


@dataclass(slots=True)
class Token:
    """A scanner token."""

    type: TokenType
    start_mark: Mark
    end_mark: Mark
    value: str = ""
    style: ScalarStyle = ScalarStyle.ANY


class EventType(Enum):
    """Event types."""

    DOCUMENT_START = "document-start"
    DOCUMENT_END = "document-end"
    SECTION_ENTRY = "section-entry"
    SECTION_INHERIT = "section-inherit"
    MAPPING = "mapping"
    SCALAR = "scalar"
    COMMENT = "comment"


@dataclass(slots=True)
class Event:
    """A parser event."""

    type: EventType
    start_mark: Mark
    end_mark: Mark
    value: str = ""
    tag: str = ""
    style: ScalarStyle = ScalarStyle.ANY


class NodeKind(Enum):
    """The kind of a tree node."""

    DOCUMENT = "document"
    SECTION = "section"
    INHERIT = "inherit"
    MAPPING = "mapping"
    SCALAR = "scalar"
    COMMENT = "comment"


@dataclass(slots=True)
class Node:
    """A node of the parsed tree.

    Document, section and mapping nodes keep their children as a flat
    ``key, value, key, value, ...`` list so that insertion order survives
    and a re-assigned key is updated in place.
    """

    kind: NodeKind
    value: str = ""
    tag: str = ""
    children: list[Node] = field(default_factory=list)
    line: int = 0
    column: int = 0
    comment: str = ""

    def pairs(self) -> Iterator[tuple[Node, Node]]:
        """Iterate over ``(key, value)`` child pairs."""
        for i in range(0, len(self.children) - 1, 2):
            yield self.children[i], self.children[i + 1]

    def keys(self) -> list[str]:
        """Return the key names in order."""
        return [key.value for key, _ in self.pairs()]

    def index_of(self, key: str) -> int:
        """Return the child index of ``key``, or -1 when absent."""
        for i in range(0, len(self.children) - 1, 2):
            child = self.children[i]
            if child.kind == NodeKind.SCALAR and child.value == key:
                return i
        return -1

    def get(self, key: str) -> Node | None:
        """Return the value node paired with ``key``."""
        i = self.index_of(key)
        if i < 0:
            return None
        return self.children[i + 1]

    def is_collection(self) -> bool:
        """Check if this node holds key/value pairs."""
        return self.kind in (NodeKind.DOCUMENT, NodeKind.SECTION, NodeKind.MAPPING)

    def clone(self) -> Node:
        """Return a deep copy built from fresh nodes."""
        return Node(
            kind=self.kind,
            value=self.value,
            tag=self.tag,
            children=[child.clone() for child in self.children],
            line=self.line,
            column=self.column,
            comment=self.comment,
        )
