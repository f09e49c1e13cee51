"""DOM parsing of calendar listing pages."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator
from urllib.parse import urljoin

from selectolax.parser import HTMLParser, Node

from ..config import ListingSelectors


@dataclass(frozen=True, slots=True)
class RawListing:
    """One scraped listing before normalisation."""

    name: str
    city_text: str
    country_text: str
    start_date_text: str
    end_date_text: str
    source_url: str | None = None


class ListingParser:
    """Turn listing markup into ``RawListing`` items, in document order."""

    def __init__(self, selectors: ListingSelectors | None = None) -> None:
        self.selectors = selectors or ListingSelectors()

    def parse(self, html: str, base_url: str | None = None) -> Iterator[RawListing]:
        tree = HTMLParser(html)
        for node in tree.css(self.selectors.item):
            yield self._parse_item(node, base_url)

    def _parse_item(self, node: Node, base_url: str | None) -> RawListing:
        selectors = self.selectors
        return RawListing(
            name=self._text(node, selectors.name),
            city_text=self._text(node, selectors.city),
            country_text=self._text(node, selectors.country),
            start_date_text=self._text(node, selectors.start_date),
            end_date_text=self._text(node, selectors.end_date),
            source_url=self._link(node, selectors.source_link, base_url),
        )

    @staticmethod
    def _text(node: Node, selector: str) -> str:
        child = node.css_first(selector)
        if child is None:
            return ""
        text = child.text(separator=" ", strip=True)
        return " ".join(text.split())

    @staticmethod
    def _link(node: Node, selector: str, base_url: str | None) -> str | None:
        child = node.css_first(selector)
        if child is None:
            return None
        href = (child.attributes.get("href") or "").strip()
        if not href or href.startswith(("javascript:", "#")):
            return None
        return urljoin(base_url, href) if base_url else href


__all__ = ["ListingParser", "RawListing"]
