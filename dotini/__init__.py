"""INI configuration parser for Python.

Sections, dotted keys, section inheritance (``[child:parent]``) and
quoted values are read into a node tree, which can then be turned into
plain Python values or bound to dataclasses.
"""

from __future__ import annotations

import logging
from typing import Any

from .builder import Builder, parse
from .decode import (
    Bounds,
    DecodeOptions,
    Int8,
    Int16,
    Int32,
    Int64,
    Uint8,
    Uint16,
    Uint32,
    Uint64,
    to_python,
    unmarshal,
)
from .encode import dump, dumps
from .parser import Parser
from .reader import Source
from .resolve import resolve
from .scanner import Scanner
from .types import (
    DEFAULT_SECTION,
    Event,
    EventType,
    IniError,
    Mark,
    MergeError,
    Node,
    NodeKind,
    ParserError,
    ReaderError,
    ScalarStyle,
    ScannerError,
    Token,
    TokenType,
    UnmarshalError,
)

logging.getLogger(__name__).addHandler(logging.NullHandler())


def loads(source: Source, options: DecodeOptions | None = None) -> dict[str, Any]:
    """Parse INI text or bytes into a dict of sections."""
    return to_python(parse(source), options)


def load(fp: Source, options: DecodeOptions | None = None) -> dict[str, Any]:
    """Parse an INI binary stream into a dict of sections."""
    return to_python(parse(fp), options)


__all__ = [
    "DEFAULT_SECTION",
    "Bounds",
    "Builder",
    "DecodeOptions",
    "Event",
    "EventType",
    "IniError",
    "Int8",
    "Int16",
    "Int32",
    "Int64",
    "Mark",
    "MergeError",
    "Node",
    "NodeKind",
    "Parser",
    "ParserError",
    "ReaderError",
    "ScalarStyle",
    "Scanner",
    "ScannerError",
    "Token",
    "TokenType",
    "Uint8",
    "Uint16",
    "Uint32",
    "Uint64",
    "UnmarshalError",
    "dump",
    "dumps",
    "load",
    "loads",
    "parse",
    "resolve",
    "to_python",
    "unmarshal",
]
