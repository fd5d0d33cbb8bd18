"""
Parsed-document abstraction used by every extractor.

Extractors only see ``HtmlDocument`` and ``HtmlNode``; the parsing library
stays behind this module. A document carries the URL it was loaded from so
relative links resolve the same way for browser snapshots and fetched
markup.
"""

from __future__ import annotations

import json
from typing import Any, Iterator, Optional

from bs4 import BeautifulSoup
from bs4.element import Tag
import soupsieve
from soupsieve import SelectorSyntaxError

from tripharvest.utils.logger import get_logger
from tripharvest.utils.validators import resolve_url

logger = get_logger(__name__)


def _clean_text(value: str) -> str:
    return " ".join(value.split())


class HtmlNode:
    """A single element of a parsed document."""

    __slots__ = ("_tag",)

    def __init__(self, tag: Tag):
        self._tag = tag

    def __repr__(self) -> str:
        return f"HtmlNode(<{self.name}>)"

    def __eq__(self, other: object) -> bool:
        return isinstance(other, HtmlNode) and other._tag is self._tag

    def __hash__(self) -> int:
        return id(self._tag)

    @property
    def name(self) -> str:
        return self._tag.name or ""

    @property
    def classes(self) -> list[str]:
        value = self._tag.get("class") or []
        return list(value) if isinstance(value, (list, tuple)) else str(value).split()

    def select(self, selector: Optional[str]) -> list["HtmlNode"]:
        """All descendants matching a CSS selector. Invalid selectors match nothing."""
        return [HtmlNode(t) for t in _safe_select(self._tag, selector)]

    def first(self, selector: Optional[str]) -> Optional["HtmlNode"]:
        """First descendant matching a CSS selector, or None."""
        matches = _safe_select(self._tag, selector, limit=1)
        return HtmlNode(matches[0]) if matches else None

    def matches(self, selector: str) -> bool:
        try:
            return soupsieve.match(selector, self._tag)
        except (SelectorSyntaxError, ValueError):
            return False

    def text(self, selector: Optional[str] = None) -> Optional[str]:
        """
        Whitespace-normalized text of this node, or of the first match of
        ``selector`` beneath it. None when there is no match or no text.
        """
        node = self if selector is None else self.first(selector)
        if node is None:
            return None
        value = _clean_text(node._tag.get_text(" ", strip=True))
        return value or None

    def texts(self, selector: Optional[str]) -> list[str]:
        """Non-empty texts of every match of ``selector``, in document order."""
        values = []
        for node in self.select(selector):
            value = node.text()
            if value:
                values.append(value)
        return values

    def attr(self, name: str, selector: Optional[str] = None) -> Optional[str]:
        """Attribute of this node (or of the first match of ``selector``)."""
        node = self if selector is None else self.first(selector)
        if node is None:
            return None
        value = node._tag.get(name)
        if isinstance(value, (list, tuple)):
            value = " ".join(value)
        if value is None:
            return None
        value = str(value).strip()
        return value or None

    def children(self) -> list["HtmlNode"]:
        """Direct element children."""
        return [HtmlNode(c) for c in self._tag.find_all(recursive=False)]

    def parent(self) -> Optional["HtmlNode"]:
        parent = self._tag.parent
        if parent is None or not isinstance(parent, Tag) or parent.name == "[document]":
            return None
        return HtmlNode(parent)

    def closest(self, selector: str) -> Optional["HtmlNode"]:
        """Nearest ancestor (or self) matching ``selector``."""
        node: Optional[HtmlNode] = self
        while node is not None:
            if node.matches(selector):
                return node
            node = node.parent()
        return None


class HtmlDocument:
    """
    A parsed HTML page.

    Example:
        >>> doc = HtmlDocument.parse("<h1>Hi</h1>", url="https://example.com/")
        >>> doc.text("h1")
        'Hi'
    """

    def __init__(self, soup: BeautifulSoup, url: str = ""):
        self._soup = soup
        self.url = url

    @classmethod
    def parse(cls, html: Optional[str], url: str = "") -> "HtmlDocument":
        """Parse markup with lxml. Empty or missing markup gives an empty document."""
        return cls(BeautifulSoup(html or "", "lxml"), url=url)

    def __repr__(self) -> str:
        return f"HtmlDocument(url={self.url!r})"

    @property
    def root(self) -> HtmlNode:
        return HtmlNode(self._soup)

    @property
    def is_empty(self) -> bool:
        return self._soup.find(True) is None

    @property
    def title(self) -> Optional[str]:
        return self.root.text("title")

    def select(self, selector: Optional[str]) -> list[HtmlNode]:
        return self.root.select(selector)

    def first(self, selector: Optional[str]) -> Optional[HtmlNode]:
        return self.root.first(selector)

    def text(self, selector: str) -> Optional[str]:
        return self.root.text(selector)

    def texts(self, selector: Optional[str]) -> list[str]:
        return self.root.texts(selector)

    def attr(self, name: str, selector: str) -> Optional[str]:
        return self.root.attr(name, selector)

    def resolve(self, href: Optional[str]) -> Optional[str]:
        """Absolute form of a link found in this document."""
        return resolve_url(href, self.url)

    def json_ld(self) -> list[dict[str, Any]]:
        """
        All JSON-LD objects embedded in the page.

        Top-level arrays and ``@graph`` containers are flattened; scripts
        that are not valid JSON are skipped.
        """
        objects: list[dict[str, Any]] = []
        for script in self._soup.find_all("script", type="application/ld+json"):
            raw = script.string or script.get_text()
            if not raw or not raw.strip():
                continue
            try:
                data = json.loads(raw)
            except ValueError as e:
                logger.debug(f"Skipping invalid JSON-LD block: {e}")
                continue
            objects.extend(_flatten_json_ld(data))
        return objects


def _flatten_json_ld(data: Any) -> Iterator[dict[str, Any]]:
    if isinstance(data, list):
        for entry in data:
            yield from _flatten_json_ld(entry)
    elif isinstance(data, dict):
        graph = data.get("@graph")
        if isinstance(graph, list):
            yield from _flatten_json_ld(graph)
        else:
            yield data


def _safe_select(tag: Tag, selector: Optional[str], limit: int = 0) -> list[Tag]:
    if not selector:
        return []
    try:
        return tag.select(selector, limit=limit) if limit else tag.select(selector)
    except (SelectorSyntaxError, ValueError, NotImplementedError) as e:
        logger.debug(f"Unsupported selector {selector!r}: {e}")
        return []
