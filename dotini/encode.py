"""Writing Python values as INI text."""

from __future__ import annotations

import dataclasses
import math
import re
from collections.abc import Mapping
from datetime import timedelta
from typing import Any, Final, TextIO

from .decode import HOUR, MICROSECOND, MILLISECOND, MINUTE, SECOND, struct_info
from .reader import DISALLOWED_RE, LINE_BREAKS
from .resolve import resolve
from .types import STR_TAG

PLAIN_KEY_RE: Final[re.Pattern[str]] = re.compile(r"[0-9A-Za-z_\-]+")
SECTION_NAME_RE: Final[re.Pattern[str]] = PLAIN_KEY_RE

# Characters that force a string value into double quotes.
QUOTE_RE: Final[re.Pattern[str]] = re.compile(
    "[#;=\\[\\]:'\"\\\\\x00-\x1f\x7f\x85\u2028\u2029]"
)

ESCAPES: Final[dict[str, str]] = {
    "\\": "\\\\",
    '"': '\\"',
    "\0": "\\0",
    "\a": "\\a",
    "\b": "\\b",
    "\t": "\\t",
    "\n": "\\n",
    "\v": "\\v",
    "\f": "\\f",
    "\r": "\\r",
    "\x1b": "\\e",
    "\x85": "\\N",
    "\u2028": "\\L",
    "\u2029": "\\P",
}


def format_duration(value: timedelta) -> str:
    """Format a duration the way ``parse_duration`` reads it, e.g. ``1h30m0s``."""
    ns = ((value.days * 86400 + value.seconds) * 1_000_000 + value.microseconds) * MICROSECOND
    if ns == 0:
        return "0s"
    sign = "-" if ns < 0 else ""
    ns = abs(ns)
    if ns < SECOND:
        for unit, size in (("ms", MILLISECOND), ("µs", MICROSECOND)):
            if ns >= size:
                return sign + _fraction(ns, size) + unit
        return f"{sign}{ns}ns"

    hours, rest = divmod(ns, HOUR)
    minutes, rest = divmod(rest, MINUTE)
    seconds = _fraction(rest, SECOND) + "s"
    if hours:
        return f"{sign}{hours}h{minutes}m{seconds}"
    if minutes:
        return f"{sign}{minutes}m{seconds}"
    return sign + seconds


def _fraction(value: int, unit: int) -> str:
    whole, frac = divmod(value, unit)
    if not frac:
        return str(whole)
    digits = str(frac).rjust(len(str(unit)) - 1, "0").rstrip("0")
    return f"{whole}.{digits}"


def quote(text: str) -> str:
    """Return ``text`` as a double-quoted scalar."""
    out = []
    for ch in text:
        if ch in ESCAPES:
            out.append(ESCAPES[ch])
        elif ch in LINE_BREAKS or DISALLOWED_RE.match(ch):
            code = ord(ch)
            if code <= 0xFF:
                out.append(f"\\x{code:02X}")
            elif code <= 0xFFFF:
                out.append(f"\\u{code:04X}")
            else:
                out.append(f"\\U{code:08X}")
        else:
            out.append(ch)
    return '"' + "".join(out) + '"'


def format_string(text: str) -> str:
    """Write a string plain when it reads back as the same string."""
    if (
        not text
        or text != text.strip(" \t")
        or QUOTE_RE.search(text)
        or DISALLOWED_RE.search(text)
        or resolve("", text)[0] != STR_TAG
    ):
        return quote(text)
    return text


def format_value(value: Any) -> str:
    """Format a scalar value."""
    match value:
        case None:
            return "null"
        case bool():
            return "true" if value else "false"
        case int():
            return str(value)
        case float():
            if math.isnan(value):
                return ".nan"
            if math.isinf(value):
                return ".inf" if value > 0 else "-.inf"
            return repr(value)
        case timedelta():
            return format_duration(value)
        case str():
            return format_string(value)
    raise TypeError(f"cannot encode value of type {type(value).__name__}")


def to_ini(value: Any) -> Any:
    """Swap an instance for what its ``to_ini`` method returns."""
    hook = getattr(value, "to_ini", None)
    if hook is None or isinstance(value, type):
        return value
    return hook()


def is_empty(value: Any) -> bool:
    """Report the values an ``omitempty`` field leaves out."""
    if value is None:
        return True
    if isinstance(value, (str, Mapping, list, tuple)):
        return len(value) == 0
    if isinstance(value, (bool, int, float, timedelta)):
        return not value
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return all(is_empty(getattr(value, f.name)) for f in dataclasses.fields(value))
    return False


def as_mapping(value: Any) -> Mapping[str, Any] | None:
    """View a dict or dataclass instance as a mapping of INI keys.

    Inline fields are flattened into their parent and ``omitempty``
    fields holding an empty value are left out.
    """
    if isinstance(value, Mapping):
        return value
    if not dataclasses.is_dataclass(value) or isinstance(value, type):
        return None
    sinfo = struct_info(type(value))
    out: dict[str, Any] = {}
    for key, (path, info) in sinfo.keys.items():
        v = _attr(value, path)
        if info.omitempty and is_empty(v):
            continue
        out[key] = v
    if sinfo.extra is not None:
        for key, v in _attr(value, sinfo.extra[0]).items():
            if key in out:
                raise ValueError(f"inline key {key!r} clashes with a field of {type(value).__name__}")
            out[key] = v
    return out


def _attr(obj: Any, path: tuple[str, ...]) -> Any:
    for name in path:
        obj = getattr(obj, name)
    return obj


def format_key(path: list[str]) -> str:
    if all(PLAIN_KEY_RE.fullmatch(k) for k in path):
        return ".".join(path)
    # Quoted keys are never split, so only a single segment may be quoted.
    if len(path) == 1 and path[0] and PLAIN_KEY_RE.match(path[0]):
        return quote(path[0])
    raise ValueError(f"cannot encode key {'.'.join(path)!r}")


def _key(key: Any) -> str:
    if isinstance(key, bool) or not isinstance(key, (str, int)):
        raise TypeError(f"cannot encode key of type {type(key).__name__}")
    return str(key)


class Emitter:
    """Collects the lines of an INI document."""

    __slots__ = ("lines",)

    def __init__(self) -> None:
        self.lines: list[str] = []

    def document(self, data: Mapping[str, Any]) -> None:
        sections = []
        for key, value in data.items():
            value = to_ini(value)
            body = as_mapping(value)
            if body is None:
                self.entry([_key(key)], value)
            else:
                sections.append((_key(key), body))
        for name, body in sections:
            self.section(name, body)

    def section(self, name: str, body: Mapping[str, Any]) -> None:
        if not SECTION_NAME_RE.fullmatch(name):
            raise ValueError(f"cannot encode section name {name!r}")
        if self.lines:
            self.lines.append("")
        self.lines.append(f"[{name}]")
        for key, value in body.items():
            self.entry([_key(key)], value)

    def entry(self, path: list[str], value: Any) -> None:
        value = to_ini(value)
        nested = as_mapping(value)
        if nested is None:
            self.lines.append(f"{format_key(path)} = {format_value(value)}")
            return
        # A key with an empty mapping has no line to write it on.
        if not nested:
            raise ValueError(f"cannot encode empty mapping at key {'.'.join(path)!r}")
        for key, child in nested.items():
            self.entry([*path, _key(key)], child)


def dumps(obj: Any) -> str:
    """Serialize a mapping or dataclass instance to INI text.

    Top-level scalars are written first, outside any section. Each
    mapping value becomes a ``[section]`` and mappings nested inside a
    section become dotted keys.
    """
    data = as_mapping(to_ini(obj))
    if data is None:
        raise TypeError(f"cannot encode {type(obj).__name__} as a document")
    emitter = Emitter()
    emitter.document(data)
    if not emitter.lines:
        return ""
    return "\n".join(emitter.lines) + "\n"


def dump(obj: Any, fp: TextIO) -> None:
    """Serialize ``obj`` to a text stream."""
    fp.write(dumps(obj))
