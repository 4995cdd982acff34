"""Tests for binding documents to Python values."""

from __future__ import annotations

import io
import logging
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any

import pytest

from dotini import load, loads
from dotini.builder import parse
from dotini.decode import (
    DecodeOptions,
    Int8,
    Uint16,
    field_info,
    parse_duration,
    struct_info,
    to_python,
    unmarshal,
)
from dotini.types import UnmarshalError


@dataclass
class Server:
    host: str = ""
    port: Uint16 = 0
    timeout: timedelta = timedelta(0)
    debug: bool = False
    ratio: float = 0.0
    labels: dict[str, str] = field(default_factory=dict)
    name: str = field(default="", metadata={"ini": "server-name"})
    secret: str = field(default="", metadata={"ini": "-"})


@dataclass
class Config:
    default: dict[str, Any] = field(default_factory=dict)
    server: Server = field(default_factory=Server)
    backup: Server | None = None


@dataclass
class Required:
    name: str
    count: int


@dataclass
class Address:
    host: str = ""
    port: int = 0

    @classmethod
    def from_ini(cls, decode):
        host, _, port = decode(str).partition(":")
        return cls(host, int(port or 0))


class Port:
    def __init__(self, number: int) -> None:
        self.number = number

    @classmethod
    def from_ini(cls, decode):
        return cls(decode(Uint16))


@dataclass
class Common:
    name: str = ""
    debug: bool = False


@dataclass
class Service:
    common: Common = field(default_factory=Common, metadata={"inline": True})
    port: int = 0
    extra: dict[str, str] = field(default_factory=dict, metadata={"inline": True})


@dataclass
class Clash:
    name: str = ""
    common: Common = field(default_factory=Common, metadata={"inline": True})


@dataclass
class InlineScalar:
    count: int = field(default=0, metadata={"inline": True})


CONFIG = """\
app = demo

[server]
host = example.com
port = 8080
timeout = 1m30s
debug = on
ratio = 3
labels.env = prod
server-name = main
secret = hunter2
"""


def test_loads():
    assert loads("a = 1\nb = yes\nc = 'x'\n[s]\nk.v = 2.5\n") == {
        "default": {"a": 1, "b": True, "c": "x"},
        "s": {"k": {"v": 2.5}},
    }


def test_load_from_stream():
    assert load(io.BytesIO(b"[s]\nx = ~\n")) == {"s": {"x": None}}


def test_quoted_values_stay_strings():
    assert loads("a = '1'\nb = \"true\"\n") == {"default": {"a": "1", "b": "true"}}


def test_resolve_can_be_turned_off():
    doc = parse("a = 1\nb = yes\n")
    assert to_python(doc, DecodeOptions(resolve=False)) == {"default": {"a": "1", "b": "yes"}}


def test_unmarshal_dataclass():
    config = unmarshal(CONFIG, Config)
    assert config.default == {"app": "demo"}
    assert config.server == Server(
        host="example.com",
        port=8080,
        timeout=timedelta(minutes=1, seconds=30),
        debug=True,
        ratio=3.0,
        labels={"env": "prod"},
        name="main",
    )
    assert config.backup is None


def test_field_info():
    keys = [(f.name, f.key) for f in field_info(Server)]
    assert ("name", "server-name") in keys
    assert ("secret", None) in keys
    assert field_info(Server) is field_info(Server)


def test_missing_required_fields_get_zero_values():
    assert unmarshal("", Required) == Required(name="", count=0)


def test_errors_are_collected():
    source = "[server]\nport = 70000\ndebug = maybe\nhost = ok\n"
    with pytest.raises(UnmarshalError) as exc:
        unmarshal(source, Config)
    assert exc.value.errors == [
        "line 2: cannot unmarshal int `70000` into uint16",
        "line 3: cannot unmarshal str `maybe` into bool",
    ]
    assert exc.value.value.server.host == "ok"
    assert str(exc.value).startswith("ini: unmarshal errors:\n  line 2: ")


def test_long_values_are_abbreviated():
    with pytest.raises(UnmarshalError) as exc:
        unmarshal("n = abcdefghijklmnop\n", dict[str, dict[str, int]])
    assert exc.value.errors == ["line 1: cannot unmarshal str `abcdefg...` into int"]


@pytest.mark.parametrize(
    "text,expected",
    [("2", 2), ("2.0", 2), ("0x10", 16), ("", 0)],
)
def test_int_targets(text, expected):
    assert unmarshal(f"a = {text}\n", dict[str, dict[str, int]]) == {"default": {"a": expected}}


@pytest.mark.parametrize(
    "text,tag",
    [("1.5", "float"), ("true", "bool"), ("abc", "str")],
)
def test_int_targets_reject(text, tag):
    with pytest.raises(UnmarshalError) as exc:
        unmarshal(f"a = {text}\n", dict[str, dict[str, int]])
    assert exc.value.errors == [f"line 1: cannot unmarshal {tag} `{text}` into int"]


def test_bounded_ints():
    target = dict[str, dict[str, Int8]]
    assert unmarshal("a = -128\n", target) == {"default": {"a": -128}}
    with pytest.raises(UnmarshalError, match="cannot unmarshal int `128` into int8"):
        unmarshal("a = 128\n", target)


def test_optional_targets_take_null():
    assert unmarshal("a =\n", dict[str, dict[str, int | None]]) == {"default": {"a": None}}


def test_str_target_takes_text_as_written():
    assert unmarshal("a = 0x10\n", dict[str, dict[str, str]]) == {"default": {"a": "0x10"}}


def test_float_target_takes_ints():
    assert unmarshal("a = 3\n", dict[str, dict[str, float]]) == {"default": {"a": 3.0}}


def test_int_keys():
    assert unmarshal("[m]\n1 = a\n2 = b\n", dict[str, dict[int, str]]) == {
        "m": {1: "a", 2: "b"}
    }


def test_section_into_scalar():
    with pytest.raises(UnmarshalError) as exc:
        unmarshal("[a]\nx = 1\n", dict[str, int])
    assert exc.value.errors == ["line 1: cannot unmarshal map into int"]


def test_strict_reports_unknown_keys():
    source = "[server]\nbogus = 1\n"
    assert unmarshal(source, Config).server == Server()
    with pytest.raises(UnmarshalError) as exc:
        unmarshal(source, Config, DecodeOptions(strict=True))
    assert exc.value.errors == ["line 2: field bogus not found in type Server"]


def test_fill_existing_dict():
    out = {"keep": 1}
    assert unmarshal("a = 1\n", out) is out
    assert out == {"keep": 1, "default": {"a": 1}}


def test_unsupported_target():
    with pytest.raises(TypeError, match="unsupported target type"):
        unmarshal("a = 1\n", dict[str, dict[str, list[int]]])


def test_failures_are_logged(caplog):
    caplog.set_level(logging.DEBUG, logger="dotini.decode")
    with pytest.raises(UnmarshalError):
        unmarshal("a = x\n", dict[str, dict[str, int]])
    assert "1 values failed to unmarshal" in [r.getMessage() for r in caplog.records]


@pytest.mark.parametrize(
    "text,expected",
    [
        ("0", timedelta(0)),
        ("1h30m", timedelta(hours=1, minutes=30)),
        ("250ms", timedelta(milliseconds=250)),
        ("1.5s", timedelta(seconds=1.5)),
        ("-2m", timedelta(minutes=-2)),
        ("1h1us", timedelta(hours=1, microseconds=1)),
    ],
)
def test_parse_duration(text, expected):
    assert parse_duration(text) == expected


@pytest.mark.parametrize("text", ["", "1", "h", "1x", "1h 2m", "."])
def test_parse_duration_rejects(text):
    with pytest.raises(ValueError, match="invalid duration"):
        parse_duration(text)


def test_from_ini_hook():
    assert unmarshal("[s]\naddr = db:5432\n", dict[str, dict[str, Address]]) == {
        "s": {"addr": Address("db", 5432)}
    }


def test_from_ini_errors_are_collected():
    with pytest.raises(UnmarshalError) as exc:
        unmarshal("p = 70000\nq = 80\n", dict[str, dict[str, Port]])
    assert exc.value.errors == ["line 1: cannot unmarshal int `70000` into uint16"]
    assert exc.value.value["default"]["q"].number == 80


def test_null_skips_from_ini():
    assert unmarshal("a =\n", dict[str, dict[str, Address | None]]) == {"default": {"a": None}}


def test_inline_fields():
    source = "[svc]\nname = api\nport = 80\ndebug = on\nregion = eu\n"
    assert unmarshal(source, dict[str, Service]) == {
        "svc": Service(common=Common("api", True), port=80, extra={"region": "eu"})
    }


def test_inline_dict_takes_unknown_keys_in_strict_mode():
    result = unmarshal("[svc]\nzone = b\n", dict[str, Service], DecodeOptions(strict=True))
    assert result["svc"].extra == {"zone": "b"}


def test_struct_info_flattens_inline_fields():
    info = struct_info(Service)
    assert list(info.keys) == ["name", "debug", "port"]
    assert info.keys["name"][0] == ("common", "name")
    assert info.extra[0] == ("extra",)


@pytest.mark.parametrize(
    "cls,message",
    [(Clash, "duplicated key 'name'"), (InlineScalar, "needs a dataclass or dict")],
)
def test_struct_info_rejects_bad_inline_fields(cls, message):
    with pytest.raises(TypeError, match=message):
        struct_info(cls)
