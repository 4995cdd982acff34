"""Binding parsed documents to Python values.

``to_python`` turns a node tree into plain dicts and scalars. ``unmarshal``
binds it to a target type instead: a dataclass, ``dict[K, V]``, a scalar
type or ``Any``. Values that cannot be converted are reported together in
one ``UnmarshalError`` after everything else has been bound.
"""

from __future__ import annotations

import dataclasses
import functools
import logging
import re
import types
import typing
from dataclasses import dataclass
from datetime import timedelta
from fractions import Fraction
from typing import Annotated, Any, Final, Union

from .builder import parse
from .reader import Source
from .resolve import resolve
from .types import MAP_TAG, NULL_TAG, Node, NodeKind, UnmarshalError

log = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class DecodeOptions:
    """Switches for binding.

    ``resolve`` infers the type of plain scalars bound to ``Any``; when
    off they stay strings. ``strict`` reports keys that match no
    dataclass field.
    """

    resolve: bool = True
    strict: bool = False


@dataclass(frozen=True, slots=True)
class Bounds:
    """Inclusive range for an ``Annotated[int, ...]`` target."""

    lo: int
    hi: int
    name: str = "int"


Int8 = Annotated[int, Bounds(-(1 << 7), (1 << 7) - 1, "int8")]
Int16 = Annotated[int, Bounds(-(1 << 15), (1 << 15) - 1, "int16")]
Int32 = Annotated[int, Bounds(-(1 << 31), (1 << 31) - 1, "int32")]
Int64 = Annotated[int, Bounds(-(1 << 63), (1 << 63) - 1, "int64")]
Uint8 = Annotated[int, Bounds(0, (1 << 8) - 1, "uint8")]
Uint16 = Annotated[int, Bounds(0, (1 << 16) - 1, "uint16")]
Uint32 = Annotated[int, Bounds(0, (1 << 32) - 1, "uint32")]
Uint64 = Annotated[int, Bounds(0, (1 << 64) - 1, "uint64")]

NANOSECOND: Final[int] = 1
MICROSECOND: Final[int] = 1000 * NANOSECOND
MILLISECOND: Final[int] = 1000 * MICROSECOND
SECOND: Final[int] = 1000 * MILLISECOND
MINUTE: Final[int] = 60 * SECOND
HOUR: Final[int] = 60 * MINUTE

DURATION_UNITS: Final[dict[str, int]] = {
    "ns": NANOSECOND,
    "us": MICROSECOND,
    "µs": MICROSECOND,
    "μs": MICROSECOND,
    "ms": MILLISECOND,
    "s": SECOND,
    "m": MINUTE,
    "h": HOUR,
}

DURATION_PART_RE: Final[re.Pattern[str]] = re.compile(
    r"([0-9]*(?:\.[0-9]*)?)(ns|us|µs|μs|ms|s|m|h)"
)

# Returned by conversions that recorded an error.
INVALID: Final = object()

SCALAR_TYPES: Final[tuple[type, ...]] = (str, int, float, bool, timedelta)


def parse_duration(text: str) -> timedelta:
    """Parse a duration such as ``1h30m`` or ``-1.5s``.

    Raises ValueError when ``text`` is not a valid duration.
    """
    body = text
    sign = 1
    if body[:1] in ("+", "-"):
        sign = -1 if body[0] == "-" else 1
        body = body[1:]
    if body == "0":
        return timedelta(0)
    if not body:
        raise ValueError(f"invalid duration {text!r}")

    total = Fraction(0)
    pos = 0
    while pos < len(body):
        m = DURATION_PART_RE.match(body, pos)
        if m is None or m.group(1) in ("", "."):
            raise ValueError(f"invalid duration {text!r}")
        total += Fraction(m.group(1)) * DURATION_UNITS[m.group(2)]
        pos = m.end()
    return timedelta(microseconds=round(sign * total / MICROSECOND))


@dataclass(frozen=True, slots=True)
class FieldInfo:
    """How one dataclass field is bound."""

    name: str
    key: str | None
    type: Any
    required: bool
    omitempty: bool = False
    inline: bool = False


@dataclass(frozen=True, slots=True)
class StructInfo:
    """Key layout of a dataclass with its inline fields flattened.

    ``keys`` maps each INI key to the attribute path that reaches it.
    ``extra`` is the path of the inline dict that takes unknown keys.
    """

    keys: dict[str, tuple[tuple[str, ...], FieldInfo]]
    extra: tuple[tuple[str, ...], FieldInfo] | None


@functools.lru_cache(maxsize=None)
def field_info(cls: type) -> tuple[FieldInfo, ...]:
    """Return the bindable fields of dataclass ``cls``.

    Keys default to the lower-cased field name. ``metadata={"ini": name}``
    renames a field and ``"-"`` leaves it unbound (``key`` is None).
    ``"omitempty": True`` drops empty values when encoding and
    ``"inline": True`` lifts a nested dataclass or dict into the parent.
    """
    hints = typing.get_type_hints(cls, include_extras=True)
    fields = []
    for f in dataclasses.fields(cls):
        if not f.init:
            continue
        key = f.metadata.get("ini", f.name.lower())
        required = f.default is dataclasses.MISSING and f.default_factory is dataclasses.MISSING
        fields.append(
            FieldInfo(
                f.name,
                None if key == "-" else key,
                hints[f.name],
                required,
                bool(f.metadata.get("omitempty", False)),
                bool(f.metadata.get("inline", False)),
            )
        )
    return tuple(fields)


@functools.lru_cache(maxsize=None)
def struct_info(cls: type) -> StructInfo:
    """Flatten the inline fields of dataclass ``cls`` into one key table.

    Raises TypeError for duplicate keys, a second inline dict, an inline
    dict without string keys, or an inline field of any other type.
    """
    keys: dict[str, tuple[tuple[str, ...], FieldInfo]] = {}
    extra = None
    for info in field_info(cls):
        if info.key is None:
            continue
        if not info.inline:
            if info.key in keys:
                raise TypeError(f"duplicated key {info.key!r} in {cls.__name__}")
            keys[info.key] = ((info.name,), info)
            continue

        base, _, _ = unwrap(info.type)
        if dataclasses.is_dataclass(base) and isinstance(base, type):
            inner = struct_info(base)
            for key, (path, finfo) in inner.keys.items():
                if key in keys:
                    raise TypeError(f"duplicated key {key!r} in {cls.__name__}")
                keys[key] = ((info.name, *path), finfo)
            if inner.extra is not None:
                if extra is not None:
                    raise TypeError(f"multiple inline dicts in {cls.__name__}")
                extra = ((info.name, *inner.extra[0]), inner.extra[1])
        elif base is dict or typing.get_origin(base) is dict:
            if extra is not None:
                raise TypeError(f"multiple inline dicts in {cls.__name__}")
            args = typing.get_args(base)
            if args and args[0] is not str:
                raise TypeError(f"inline dict needs string keys in {cls.__name__}")
            extra = ((info.name,), info)
        else:
            raise TypeError(
                f"inline field {info.name!r} needs a dataclass or dict in {cls.__name__}"
            )
    return StructInfo(keys, extra)


def unwrap(tp: Any) -> tuple[Any, Bounds | None, bool]:
    """Split a target type into ``(base, bounds, optional)``."""
    bounds = None
    optional = False
    if typing.get_origin(tp) is Annotated:
        bounds = next((m for m in tp.__metadata__ if isinstance(m, Bounds)), None)
        tp = typing.get_args(tp)[0]
    if typing.get_origin(tp) in (Union, types.UnionType):
        args = [a for a in typing.get_args(tp) if a is not type(None)]
        optional = len(args) < len(typing.get_args(tp))
        if len(args) != 1:
            raise TypeError(f"unsupported union target {tp!r}")
        base, inner_bounds, _ = unwrap(args[0])
        return base, bounds or inner_bounds, optional
    return tp, bounds, optional


def type_name(tp: Any) -> str:
    """Name of a target type as shown in error messages."""
    base, bounds, optional = unwrap(tp)
    if bounds is not None:
        name = bounds.name
    elif typing.get_origin(base) is not None:
        name = repr(base).replace("typing.", "")
    else:
        name = getattr(base, "__name__", repr(base))
    return f"{name} | None" if optional else name


def abbreviate(value: str) -> str:
    if len(value) > 10:
        return value[:7] + "..."
    return value


class Decoder:
    """Converts nodes to values of a target type, collecting type errors."""

    __slots__ = ("errors", "options")

    def __init__(self, options: DecodeOptions | None = None) -> None:
        self.options = options or DecodeOptions()
        self.errors: list[str] = []

    def decode(self, node: Node, tp: Any = Any) -> Any:
        """Convert ``node`` to ``tp``; returns ``INVALID`` after recording an error."""
        base, _, _ = unwrap(tp)
        hook = getattr(base, "from_ini", None)
        if hook is not None and not self._is_null(node):
            return self._call_hook(node, hook)
        if node.kind == NodeKind.SCALAR:
            return self._scalar(node, tp)
        return self._mapping(node, tp)

    def _is_null(self, node: Node) -> bool:
        return node.kind == NodeKind.SCALAR and resolve(node.tag, node.value)[0] == NULL_TAG

    def _call_hook(self, node: Node, hook: Any) -> Any:
        """Let a type build itself through its ``from_ini`` classmethod.

        The hook gets a function that decodes the node into any type; type
        errors it lets through are collected like the decoder's own.
        """

        def decode(tp: Any = Any) -> Any:
            sub = Decoder(self.options)
            value = sub.decode(node, tp)
            if sub.errors:
                raise UnmarshalError(sub.errors, None if value is INVALID else value)
            return value

        try:
            return hook(decode)
        except UnmarshalError as e:
            self.errors.extend(e.errors)
            return INVALID

    def fill(self, node: Node, out: dict) -> dict:
        """Add the pairs of a collection node to an existing dict."""
        if not node.is_collection():
            self._terror(node, "", dict)
            return out
        return self._dict(node, Any, Any, out)

    def _terror(self, node: Node, tag: str, tp: Any) -> None:
        tag = node.tag or tag
        if node.kind == NodeKind.SCALAR:
            value = f" `{abbreviate(node.value)}`"
        else:
            tag, value = MAP_TAG, ""
        self.errors.append(
            f"line {node.line + 1}: cannot unmarshal {tag}{value} into {type_name(tp)}"
        )

    def _scalar(self, node: Node, tp: Any) -> Any:
        base, bounds, optional = unwrap(tp)
        if base is Any:
            if not self.options.resolve and not node.tag:
                return node.value
            return resolve(node.tag, node.value)[1]

        tag, value = resolve(node.tag, node.value)
        if tag == NULL_TAG:
            if optional:
                return None
            if base in SCALAR_TYPES:
                return base()
            self._terror(node, tag, tp)
            return INVALID

        if base is str:
            return node.value
        if base is bool:
            if isinstance(value, bool):
                return value
        elif base is int:
            if isinstance(value, float) and value.is_integer():
                value = int(value)
            if isinstance(value, int) and not isinstance(value, bool):
                if bounds is None or bounds.lo <= value <= bounds.hi:
                    return value
        elif base is float:
            if isinstance(value, (int, float)) and not isinstance(value, bool):
                return float(value)
        elif base is timedelta:
            if isinstance(value, int) and not isinstance(value, bool):
                return timedelta(microseconds=value / MICROSECOND)
            if isinstance(value, str):
                try:
                    return parse_duration(value)
                except ValueError:
                    pass
        elif not (dataclasses.is_dataclass(base) or base is dict or typing.get_origin(base) is dict):
            raise TypeError(f"unsupported target type {type_name(tp)}")

        self._terror(node, tag, tp)
        return INVALID

    def _mapping(self, node: Node, tp: Any) -> Any:
        base, _, _ = unwrap(tp)
        if base is Any:
            return self._dict(node, Any, Any, {})
        if dataclasses.is_dataclass(base) and isinstance(base, type):
            return self._dataclass(node, base)
        if base is dict:
            return self._dict(node, Any, Any, {})
        if typing.get_origin(base) is dict:
            kt, vt = typing.get_args(base)
            return self._dict(node, kt, vt, {})
        if base not in SCALAR_TYPES:
            raise TypeError(f"unsupported target type {type_name(tp)}")
        self._terror(node, MAP_TAG, tp)
        return INVALID

    def _dict(self, node: Node, kt: Any, vt: Any, out: dict) -> dict:
        for key, value in node.pairs():
            if kt is str or kt is Any:
                k = key.value
            else:
                # Keys are tagged as strings; infer their type for other key types.
                k = self._scalar(Node(NodeKind.SCALAR, key.value, line=key.line), kt)
                if k is INVALID:
                    continue
            v = self.decode(value, vt)
            if v is not INVALID:
                out[k] = v
        return out

    def _dataclass(self, node: Node, cls: type) -> Any:
        sinfo = struct_info(cls)
        values: dict[tuple[str, ...], Any] = {}
        for key, value in node.pairs():
            entry = sinfo.keys.get(key.value)
            if entry is not None:
                path, info = entry
                v = self.decode(value, info.type)
                if v is not INVALID:
                    values[path] = v
            elif sinfo.extra is not None:
                path, info = sinfo.extra
                args = typing.get_args(unwrap(info.type)[0])
                v = self.decode(value, args[1] if args else Any)
                if v is not INVALID:
                    values.setdefault(path, {})[key.value] = v
            elif self.options.strict:
                self.errors.append(
                    f"line {key.line + 1}: field {key.value} not found in type {cls.__name__}"
                )
        return self._build(cls, values, ())

    def _build(
        self, cls: type, values: dict[tuple[str, ...], Any], prefix: tuple[str, ...]
    ) -> Any:
        """Construct ``cls`` from decoded values keyed by attribute path."""
        kwargs: dict[str, Any] = {}
        for info in field_info(cls):
            path = (*prefix, info.name)
            if info.key is not None and info.inline:
                base, _, _ = unwrap(info.type)
                if dataclasses.is_dataclass(base):
                    kwargs[info.name] = self._build(base, values, path)
                else:
                    kwargs[info.name] = values.get(path, {})
            elif path in values:
                kwargs[info.name] = values[path]
            elif info.required:
                kwargs[info.name] = self._zero(info.type)
        return cls(**kwargs)

    def _zero(self, tp: Any) -> Any:
        base, _, optional = unwrap(tp)
        if optional or base is Any:
            return None
        if base in SCALAR_TYPES:
            return base()
        if base is dict or typing.get_origin(base) is dict:
            return {}
        if dataclasses.is_dataclass(base) and isinstance(base, type):
            return self._dataclass(Node(NodeKind.MAPPING), base)
        return None


def to_python(node: Node, options: DecodeOptions | None = None) -> Any:
    """Convert a node tree to nested dicts and scalar values."""
    return Decoder(options).decode(node)


def unmarshal(source: Source | Node, target: Any, options: DecodeOptions | None = None) -> Any:
    """Bind INI content to ``target``.

    ``target`` is a type to build or an existing dict to fill. Raises
    UnmarshalError listing every value that could not be converted; its
    ``value`` holds whatever was bound.
    """
    node = source if isinstance(source, Node) else parse(source)
    decoder = Decoder(options)
    if isinstance(target, dict):
        result = decoder.fill(node, target)
    else:
        result = decoder.decode(node, target)
    if decoder.errors:
        log.debug("%d values failed to unmarshal", len(decoder.errors))
        raise UnmarshalError(decoder.errors, None if result is INVALID else result)
    return result
