#!/usr/bin/env python3
"""S-expression dump of parsed INI documents."""

from __future__ import annotations

import sys
from pathlib import Path

from .builder import parse
from .types import IniError, Node, NodeKind


def escape_string(s: str) -> str:
    """Escape a string for sexp output."""
    return (
        s.replace("\\", "\\\\")
        .replace('"', '\\"')
        .replace("\n", "\\n")
        .replace("\r", "\\r")
        .replace("\t", "\\t")
    )


def position(node: Node) -> str:
    return f"[{node.line + 1}:{node.column + 1}]"


def format_comment(comment: str, indent: int) -> list[str]:
    prefix = "  " * indent
    return [f'{prefix}(comment "{escape_string(line)}")' for line in comment.split("\n")]


def format_value(node: Node, indent: int) -> str:
    """Format a value node as sexp."""
    prefix = "  " * indent

    if node.kind == NodeKind.SCALAR:
        # Plain scalars have no tag until they are resolved.
        tag = node.tag or "plain"
        return f'(scalar {position(node)} {tag} "{escape_string(node.value)}")'

    if not node.children:
        return f"(mapping {position(node)})"
    entries = "\n".join(format_entry(k, v, indent + 1) for k, v in node.pairs())
    return f"(mapping {position(node)}\n{entries}\n{prefix})"


def format_entry(key: Node, value: Node, indent: int) -> str:
    """Format a key/value pair as sexp."""
    prefix = "  " * indent
    lines = format_comment(key.comment, indent) if key.comment else []
    key_str = f'(key {position(key)} "{escape_string(key.value)}")'
    value_str = format_value(value, indent + 1)
    lines.append(f"{prefix}(entry\n{prefix}  {key_str}\n{prefix}  {value_str})")
    return "\n".join(lines)


def format_section(name: Node, body: Node, indent: int) -> str:
    """Format a section as sexp."""
    prefix = "  " * indent
    lines = format_comment(name.comment, indent) if name.comment else []
    header = f'{prefix}(section {position(name)} "{escape_string(name.value)}"'
    if not body.children:
        lines.append(header + ")")
    else:
        entries = "\n".join(format_entry(k, v, indent + 1) for k, v in body.pairs())
        lines.append(f"{header}\n{entries}\n{prefix})")
    return "\n".join(lines)


def format_node(doc: Node) -> str:
    """Format a document as sexp."""
    parts = [format_section(name, body, 1) for name, body in doc.pairs()]
    if doc.comment:
        parts.extend(format_comment(doc.comment, 1))
    if not parts:
        return "(document\n)"
    return "(document\n" + "\n".join(parts) + "\n)"


def format_error(error: IniError) -> str:
    """Format an error as sexp."""
    return f'(error "{escape_string(str(error))}")'


def process_file(path: Path) -> str:
    """Process a single INI file and return sexp output."""
    try:
        with path.open("rb") as f:
            doc = parse(f)
        return f"; file: {path}\n{format_node(doc)}"
    except IniError as e:
        return f"; file: {path}\n{format_error(e)}"


def collect_files(args: list[str]) -> list[Path]:
    """Expand directories to the ``*.ini`` files below them."""
    files: list[Path] = []
    for arg in args:
        path = Path(arg)
        if path.is_dir():
            files.extend(sorted(path.rglob("*.ini")))
        elif path.is_file():
            files.append(path)
        else:
            raise FileNotFoundError(arg)
    return files


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    args = sys.argv[1:] if argv is None else argv
    if not args:
        print("Usage: dotini-tree <file-or-directory>...", file=sys.stderr)
        return 1

    try:
        files = collect_files(args)
    except FileNotFoundError as e:
        print(f"Error: {e} is not a file or directory", file=sys.stderr)
        return 1

    results = [process_file(path) for path in files]
    if results:
        print("\n".join(results))
    return 0


if __name__ == "__main__":
    sys.exit(main())
