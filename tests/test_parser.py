"""Tests for the token to event parser."""

from __future__ import annotations

import re

import pytest

from dotini.parser import Parser, parse_events
from dotini.types import STR_TAG, EventType, ParserError

E = EventType


def summary(source: str) -> list[tuple[EventType, str]]:
    return [(event.type, event.value) for event in parse_events(source)]


def test_section_with_inherit():
    assert summary("[a:b]\nx.y = 1\n") == [
        (E.DOCUMENT_START, ""),
        (E.SECTION_ENTRY, "a"),
        (E.SECTION_INHERIT, "b"),
        (E.SCALAR, "x"),
        (E.MAPPING, ""),
        (E.SCALAR, "y"),
        (E.SCALAR, "1"),
        (E.DOCUMENT_END, ""),
    ]


def test_no_inherit_event_without_colon():
    assert E.SECTION_INHERIT not in [t for t, _ in summary("[a]\nx = 1\n")]


def test_empty_parent_inherits_default():
    assert (E.SECTION_INHERIT, "default") in summary("[b:]\nx = 1\n")


def test_keys_before_header_go_to_default():
    assert summary("a = 1\n[s]\n")[:2] == [(E.DOCUMENT_START, ""), (E.SECTION_ENTRY, "default")]


def test_empty_document():
    assert summary("") == [(E.DOCUMENT_START, ""), (E.DOCUMENT_END, "")]


def test_tags():
    events = [e for e in parse_events("k = plain\nq = 'quoted'\n") if e.type == E.SCALAR]
    assert [(e.value, e.tag) for e in events] == [
        ("k", STR_TAG),
        ("plain", ""),
        ("q", STR_TAG),
        ("quoted", STR_TAG),
    ]


def test_comments_come_before_the_next_entity():
    assert summary("# head\n[a]\n; k\nx = 1\n# tail\n") == [
        (E.DOCUMENT_START, ""),
        (E.COMMENT, "head"),
        (E.SECTION_ENTRY, "a"),
        (E.COMMENT, "k"),
        (E.SCALAR, "x"),
        (E.SCALAR, "1"),
        (E.COMMENT, "tail"),
        (E.DOCUMENT_END, ""),
    ]


def test_event_marks():
    events = parse_events("[s]\nkey = value\n")
    value = events[-2]
    assert (value.start_mark.line, value.start_mark.column) == (1, 6)


@pytest.mark.parametrize(
    "source,message",
    [
        ("= 1\n", "did not find expected <section-start> or <key>"),
        ("a\n", "did not find expected <value> or <map>"),
        ("a = 1\n= 2\n", "did not find expected <key> or <section-start>"),
        ("[a:b:c]\n", "did not find expected <section-entry>"),
    ],
)
def test_parser_errors(source, message):
    with pytest.raises(ParserError, match=re.escape(message)):
        parse_events(source)


def test_error_reports_line():
    with pytest.raises(ParserError) as exc:
        parse_events("a = 1\nb\n")
    assert str(exc.value) == "ini: line 2: did not find expected <value> or <map>"


def test_error_at_end_points_at_last_token():
    with pytest.raises(ParserError) as exc:
        parse_events("a = 1\nb\n\n\n")
    assert exc.value.mark.line == 1
    assert exc.value.mark.column == 1


def test_read_past_end():
    parser = Parser("a = 1")
    events = list(parser)
    assert events[-1].type == E.DOCUMENT_END
    with pytest.raises(ParserError) as exc:
        parser.next_event()
    assert str(exc.value) == "ini: attempted to read past end of document"
