"""Tree builder for INI documents.

Pulls events from the parser and assembles the node tree. Two merge
rules apply:

* Re-assigning a key inside one section overwrites its value in place.
  When both the old and the new value are mappings the new keys are
  assigned into the old mapping instead, so ``a.x = 1`` followed by
  ``a.y = 2`` keeps both.
* ``[child:parent]`` copies every key of ``parent`` that ``child`` does
  not define. Existing child values are never replaced; nested mappings
  present on both sides are merged the same way.
"""

from __future__ import annotations

import logging

from .parser import Parser
from .reader import Source
from .types import (
    DEFAULT_SECTION,
    MAP_TAG,
    SECTION_TAG,
    Event,
    EventType,
    MergeError,
    Node,
    NodeKind,
    ParserError,
)

log = logging.getLogger(__name__)


def assign(container: Node, key: Node, value: Node) -> None:
    """Set ``key`` to ``value`` in ``container``, overwriting an existing value."""
    i = container.index_of(key.value)
    if i < 0:
        container.children += [key, value]
        return

    if key.comment:
        container.children[i].comment = key.comment
    current = container.children[i + 1]
    if current.kind == NodeKind.MAPPING and value.kind == NodeKind.MAPPING:
        for k, v in value.pairs():
            assign(current, k, v)
    else:
        container.children[i + 1] = value


def inherit(child: Node, parent: Node) -> None:
    """Copy the keys of ``parent`` missing from ``child`` as fresh nodes."""
    for key, value in parent.pairs():
        i = child.index_of(key.value)
        if i < 0:
            child.children += [key.clone(), value.clone()]
            continue
        current = child.children[i + 1]
        if current.kind == NodeKind.MAPPING and value.kind == NodeKind.MAPPING:
            inherit(current, value)


class Builder:
    """Event stream to node tree."""

    __slots__ = ("comments", "parser")

    def __init__(self, source: Source) -> None:
        self.parser = Parser(source)
        self.comments: list[str] = []

    def build(self) -> Node:
        """Build the document node."""
        event = self._next()
        if event.type != EventType.DOCUMENT_START:
            raise ParserError("did not find expected <document-start>", event.start_mark)
        doc = Node(
            NodeKind.DOCUMENT, line=event.start_mark.line, column=event.start_mark.column
        )

        event = self._next()
        while event.type != EventType.DOCUMENT_END:
            match event.type:
                case EventType.COMMENT:
                    self.comments.append(event.value)
                    event = self._next()
                case EventType.SECTION_ENTRY:
                    event = self._build_section(doc, event)
                case _:
                    raise ParserError("did not find expected <section-entry>", event.start_mark)

        doc.comment = self._take_comment()
        return doc

    def _next(self) -> Event:
        return self.parser.next_event()

    def _take_comment(self) -> str:
        comment = "\n".join(self.comments)
        self.comments.clear()
        return comment

    def _scalar(self, event: Event) -> Node:
        return Node(
            NodeKind.SCALAR,
            value=event.value,
            tag=event.tag,
            line=event.start_mark.line,
            column=event.start_mark.column,
        )

    def _build_section(self, doc: Node, entry: Event) -> Event:
        """Build one section and return the event that follows it."""
        name = self._scalar(entry)
        name.comment = self._take_comment()

        i = doc.index_of(name.value)
        if i >= 0:
            log.debug("section %r re-declared at line %d", name.value, name.line + 1)
            if name.comment:
                doc.children[i].comment = name.comment
            body = doc.children[i + 1]
        else:
            body = Node(NodeKind.SECTION, tag=SECTION_TAG, line=name.line, column=name.column)

        parent: Event | None = None
        event = self._next()
        if event.type == EventType.SECTION_INHERIT:
            parent = event
            event = self._next()

        while event.type in (EventType.SCALAR, EventType.COMMENT):
            if event.type == EventType.COMMENT:
                self.comments.append(event.value)
            else:
                key = self._scalar(event)
                key.comment = self._take_comment()
                assign(body, key, self._build_value())
            event = self._next()

        if parent is not None:
            self._inherit(doc, body, parent)
        if i < 0:
            doc.children += [name, body]
        log.debug("section %r closed with %d keys", name.value, len(body.children) // 2)
        return event

    def _build_value(self) -> Node:
        event = self._next()
        match event.type:
            case EventType.SCALAR:
                return self._scalar(event)
            case EventType.MAPPING:
                mapping = Node(
                    NodeKind.MAPPING,
                    tag=MAP_TAG,
                    line=event.start_mark.line,
                    column=event.start_mark.column,
                )
                key = self._next()
                if key.type != EventType.SCALAR:
                    raise ParserError("did not find expected <key>", key.start_mark)
                mapping.children += [self._scalar(key), self._build_value()]
                return mapping
            case _:
                raise ParserError("did not find expected <value> or <map>", event.start_mark)

    def _inherit(self, doc: Node, body: Node, event: Event) -> None:
        parent = doc.get(event.value)
        if parent is None:
            if event.value == DEFAULT_SECTION:
                return
            raise MergeError(f"inherit section '{event.value}' does not exist", event.start_mark)
        if parent is body:
            return
        inherit(body, parent)
        log.debug("merged section %r into line %d", event.value, event.start_mark.line + 1)


def parse(source: Source) -> Node:
    """Parse INI source into a document node."""
    return Builder(source).build()
