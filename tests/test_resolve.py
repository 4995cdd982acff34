"""Tests for scalar tag resolution."""

from __future__ import annotations

import math

import pytest

from dotini.resolve import parse_int, resolve
from dotini.types import IniError


@pytest.mark.parametrize(
    "text,tag,value",
    [
        ("yes", "bool", True),
        ("ON", "bool", True),
        ("y", "bool", True),
        ("False", "bool", False),
        ("off", "bool", False),
        ("", "null", None),
        ("~", "null", None),
        ("NULL", "null", None),
        ("42", "int", 42),
        ("-17", "int", -17),
        ("+12", "int", 12),
        ("1_000", "int", 1000),
        ("0x1F", "int", 31),
        ("0o17", "int", 15),
        ("017", "int", 15),
        ("0b101", "int", 5),
        ("-0b101", "int", -5),
        ("18446744073709551615", "int", (1 << 64) - 1),
        ("1.5", "float", 1.5),
        (".5", "float", 0.5),
        ("-1.5e+3", "float", -1500.0),
        ("09", "float", 9.0),
        (".inf", "float", math.inf),
        ("-.Inf", "float", -math.inf),
        ("hello", "str", "hello"),
        ("tomato", "str", "tomato"),
        ("1e5", "str", "1e5"),
        ("1h30m", "str", "1h30m"),
        ("-", "str", "-"),
    ],
)
def test_inferred(text, tag, value):
    assert resolve("", text) == (tag, value)


def test_nan():
    tag, value = resolve("", ".nan")
    assert tag == "float"
    assert math.isnan(value)


def test_out_of_range_int_becomes_float():
    assert resolve("", "18446744073709551616") == ("float", float(1 << 64))


def test_str_tag_keeps_text():
    assert resolve("str", "123") == ("str", "123")
    assert resolve("str", "yes") == ("str", "yes")


def test_explicit_tag_must_match():
    assert resolve("int", "0x10") == ("int", 16)
    with pytest.raises(IniError, match="cannot decode str `abc` as a int"):
        resolve("int", "abc")


def test_binary():
    assert resolve("binary", "aGVsbG8=") == ("binary", b"hello")
    with pytest.raises(IniError, match="as a binary"):
        resolve("binary", "not base64!")


def test_unknown_tags_pass_through():
    assert resolve("map", "anything") == ("map", "anything")


@pytest.mark.parametrize("text", ["", "+", "0x", "12a", "0b2", "-"])
def test_parse_int_rejects(text):
    assert parse_int(text) is None
