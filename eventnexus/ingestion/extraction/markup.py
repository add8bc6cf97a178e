"""Typed markup query layer.

Plugins never touch BeautifulSoup directly. They query a ``MarkupDocument``
with CSS selector strings and receive ``Node`` wrappers, so extraction
heuristics stay as data (selectors and patterns) rather than ad hoc tree
walking.
"""

from __future__ import annotations

from typing import Iterator

from bs4 import BeautifulSoup, Tag

from eventnexus.ingestion.normalization.text import normalize_ws


class Node:
    """A single element in a parsed document."""

    __slots__ = ("_tag",)

    def __init__(self, tag: Tag) -> None:
        self._tag = tag

    def __repr__(self) -> str:
        return f"Node(<{self.name}>)"

    def __eq__(self, other: object) -> bool:
        return isinstance(other, Node) and other._tag is self._tag

    def __hash__(self) -> int:
        return id(self._tag)

    @property
    def name(self) -> str:
        return self._tag.name or ""

    @property
    def text(self) -> str:
        """Visible text with whitespace collapsed."""
        return normalize_ws(self._tag.get_text(" ", strip=True))

    def attr(self, name: str) -> str | None:
        value = self._tag.get(name)
        if value is None:
            return None
        if isinstance(value, list):
            value = " ".join(value)
        value = str(value).strip()
        return value or None

    def query(self, selector: str) -> list[Node]:
        """All descendants matching ``selector``, in document order."""
        return [Node(t) for t in self._tag.select(selector)]

    def first(self, selector: str) -> Node | None:
        found = self._tag.select_one(selector)
        return Node(found) if found is not None else None

    def first_text(
        self,
        selector: str,
        *,
        min_len: int = 1,
        max_len: int | None = None,
    ) -> str | None:
        """Text of the first match whose length falls within bounds."""
        for node in self.query(selector):
            text = node.text
            if len(text) < min_len:
                continue
            if max_len is not None and len(text) > max_len:
                continue
            return text
        return None

    def matches(self, selector: str) -> bool:
        return bool(self._tag.css.match(selector))

    def closest(self, selector: str) -> Node | None:
        """Nearest ancestor-or-self matching ``selector``."""
        found = self._tag.css.closest(selector)
        return Node(found) if found is not None else None

    @property
    def parent(self) -> Node | None:
        parent = self._tag.parent
        if parent is None or isinstance(parent, BeautifulSoup):
            return None
        return Node(parent)

    def next_until(self, selector: str) -> list[Node]:
        """Following sibling elements up to the next one matching ``selector``."""
        out: list[Node] = []
        for sib in self._tag.find_next_siblings():
            if sib.css.match(selector):
                break
            out.append(Node(sib))
        return out

    @property
    def raw_text(self) -> str:
        """Unmodified text content, e.g. of a script element."""
        return str(self._tag.string or self._tag.get_text())

    def iter_text_lines(self) -> Iterator[str]:
        for s in self._tag.stripped_strings:
            s = normalize_ws(s)
            if s:
                yield s


class MarkupDocument(Node):
    """A parsed HTML document."""

    __slots__ = ("html",)

    def __init__(self, html: str) -> None:
        self.html = html or ""
        super().__init__(BeautifulSoup(self.html, "html.parser"))

    def __repr__(self) -> str:
        return f"MarkupDocument({len(self.html)} chars)"

    @property
    def is_empty(self) -> bool:
        return not self.html.strip()

