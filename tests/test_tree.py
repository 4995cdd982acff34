"""Tests for the s-expression tree dump."""

from __future__ import annotations

from pathlib import Path

import pytest

from dotini.builder import parse
from dotini.tree import format_error, format_node, main, process_file
from dotini.types import IniError

SAMPLE = """\
# head
[a:default]
x = 1
y.z = 'q'
"""

SAMPLE_TREE = """\
(document
  (comment "head")
  (section [2:1] "a"
    (entry
      (key [3:1] "x")
      (scalar [3:5] plain "1"))
    (entry
      (key [4:1] "y")
      (mapping [4:2]
        (entry
          (key [4:3] "z")
          (scalar [4:7] str "q"))
      ))
  )
)"""


def get_output(content: str) -> str:
    """Get the tree dump, or the error, for INI content."""
    try:
        return format_node(parse(content))
    except IniError as e:
        return format_error(e)


def test_format_node():
    assert get_output(SAMPLE) == SAMPLE_TREE


def test_format_empty_document():
    assert get_output("") == "(document\n)"


def test_format_trailing_comment_and_empty_section():
    assert get_output("[a]\n; bye\n") == '(document\n  (section [1:1] "a")\n  (comment "bye")\n)'


def test_strings_are_escaped():
    assert '(scalar [1:5] str "a\\"b\\tc")' in get_output('k = "a\\"b\\tc"\n')


@pytest.mark.parametrize(
    "content,expected",
    [
        ("[a\n", "(error \"ini: line 1: did not find expected ']'\")"),
        ("[b:a]\n", "(error \"ini: line 1: inherit section 'a' does not exist\")"),
    ],
)
def test_format_error(content, expected):
    assert get_output(content) == expected


def test_process_file(tmp_path: Path):
    path = tmp_path / "app.ini"
    path.write_text("[s]\nk = v\n")
    out = process_file(path)
    assert out.startswith(f"; file: {path}\n(document\n")
    assert '(key [2:1] "k")' in out


def test_main_walks_directories(tmp_path: Path, capsys):
    (tmp_path / "nested").mkdir()
    (tmp_path / "nested" / "b.ini").write_text("x = 1\n")
    (tmp_path / "a.ini").write_text("[broken\n")
    (tmp_path / "skip.txt").write_text("ignored")

    assert main([str(tmp_path)]) == 0
    out = capsys.readouterr().out
    assert out.index("a.ini") < out.index("b.ini")
    assert "(error " in out
    assert '(section [1:1] "default"' in out
    assert "skip.txt" not in out


def test_main_usage(capsys):
    assert main([]) == 1
    assert "Usage: dotini-tree" in capsys.readouterr().err


def test_main_missing_path(tmp_path: Path, capsys):
    assert main([str(tmp_path / "missing.ini")]) == 1
    assert "is not a file or directory" in capsys.readouterr().err
