"""Tag resolution for scalar text.

Plain scalars carry no tag. Their type is inferred from the text:
booleans and nulls come from a fixed table, numbers from their
prefix and syntax, and everything else is a string.
"""

from __future__ import annotations

import base64
import binascii
import math
import re
from typing import Any, Final

from .types import BINARY_TAG, BOOL_TAG, FLOAT_TAG, INT_TAG, NULL_TAG, STR_TAG, IniError

INT64_MIN: Final[int] = -(1 << 63)
UINT64_MAX: Final[int] = (1 << 64) - 1

FLOAT_RE: Final[re.Pattern[str]] = re.compile(r"[-+]?[0-9]*\.?[0-9]+([eE][-+][0-9]+)?")

RESOLVABLE_TAGS: Final[frozenset[str]] = frozenset(
    ["", STR_TAG, BOOL_TAG, INT_TAG, FLOAT_TAG, NULL_TAG]
)


def _build_table() -> dict[str, tuple[str, Any]]:
    table: dict[str, tuple[str, Any]] = {}
    groups: list[tuple[str, Any, list[str]]] = [
        (BOOL_TAG, True, ["y", "Y", "yes", "Yes", "YES"]),
        (BOOL_TAG, True, ["true", "True", "TRUE"]),
        (BOOL_TAG, True, ["on", "On", "ON"]),
        (BOOL_TAG, False, ["n", "N", "no", "No", "NO"]),
        (BOOL_TAG, False, ["false", "False", "FALSE"]),
        (BOOL_TAG, False, ["off", "Off", "OFF"]),
        (NULL_TAG, None, ["", "~", "null", "Null", "NULL"]),
        (FLOAT_TAG, math.nan, [".nan", ".NaN", ".NAN"]),
        (FLOAT_TAG, math.inf, [".inf", ".Inf", ".INF"]),
        (FLOAT_TAG, math.inf, ["+.inf", "+.Inf", "+.INF"]),
        (FLOAT_TAG, -math.inf, ["-.inf", "-.Inf", "-.INF"]),
    ]
    for tag, value, spellings in groups:
        for s in spellings:
            table[s] = (tag, value)
    return table


RESOLVE_TABLE: Final[dict[str, tuple[str, Any]]] = _build_table()

# First-character hints: sign, digit, table lookup, leading dot.
HINTS: Final[dict[str, str]] = {
    "+": "S",
    "-": "S",
    **dict.fromkeys("0123456789", "D"),
    **dict.fromkeys("yYnNtTfFoO~", "M"),
    ".": ".",
}

BASES: Final[dict[str, int]] = {"0x": 16, "0X": 16, "0o": 8, "0O": 8, "0b": 2, "0B": 2}


def parse_int(text: str) -> int | None:
    """Parse an integer literal with an optional base prefix.

    Accepts ``0x``, ``0o`` and ``0b`` prefixes and a leading ``0`` for
    octal. Returns None when ``text`` is not an integer that fits in
    64 bits (signed, or unsigned when positive).
    """
    sign = 1
    body = text
    if body[:1] in ("+", "-"):
        sign = -1 if body[0] == "-" else 1
        body = body[1:]
    base = BASES.get(body[:2], 0)
    if base:
        body = body[2:]
    elif len(body) > 1 and body[0] == "0":
        base = 8
        body = body[1:]
    else:
        base = 10
    if not body or not body.isascii() or not body.isalnum():
        return None
    try:
        value = sign * int(body, base)
    except ValueError:
        return None
    if value < INT64_MIN or value > UINT64_MAX:
        return None
    return value


def _infer(text: str) -> tuple[str, Any] | None:
    hint = HINTS.get(text[:1], "M" if not text else "")
    if not hint:
        return None
    if text in RESOLVE_TABLE:
        return RESOLVE_TABLE[text]

    match hint:
        case ".":
            if "_" not in text:
                try:
                    return FLOAT_TAG, float(text)
                except ValueError:
                    pass
        case "D" | "S":
            plain = text.replace("_", "")
            if plain and (value := parse_int(plain)) is not None:
                return INT_TAG, value
            if FLOAT_RE.fullmatch(plain):
                return FLOAT_TAG, float(plain)
    return None


def resolve(tag: str, text: str) -> tuple[str, Any]:
    """Resolve ``text`` to a ``(tag, value)`` pair.

    An empty ``tag`` infers the type. ``str`` keeps the text as written
    and ``binary`` decodes base64. Asking for any other tag fails when
    the text resolves to something else.
    """
    if tag == BINARY_TAG:
        try:
            return BINARY_TAG, base64.b64decode(text, validate=True)
        except binascii.Error:
            raise IniError(f"cannot decode {STR_TAG} `{text}` as a {tag}") from None
    if tag not in RESOLVABLE_TAGS:
        return tag, text
    if tag == STR_TAG:
        return STR_TAG, text

    rtag, value = _infer(text) or (STR_TAG, text)
    if tag and tag != rtag:
        raise IniError(f"cannot decode {rtag} `{text}` as a {tag}")
    return rtag, value
