"""
Parsers - HTML.

Sanitizes the document before anything is read from it, then
extracts ``<item>`` blocks (RSS served as HTML) or ``<article>``
blocks.
"""

from typing import List, Optional
from urllib.parse import urljoin

from bs4 import BeautifulSoup, Tag

from core.exceptions import ParseError
from data_ingestion.parsers.base import FeedEntry, ParsedPayload
from data_ingestion.parsers.redaction import redact
from data_ingestion.types import PayloadFormat


DANGEROUS_TAGS = ("script", "style", "iframe", "object", "embed", "noscript")
_UNSAFE_URL_PREFIXES = ("javascript:", "vbscript:", "data:text")


def sanitize(soup: BeautifulSoup) -> BeautifulSoup:
    """Drop active content, inline handlers and script URLs in place."""
    for node in soup.find_all(DANGEROUS_TAGS):
        node.decompose()
    for node in soup.find_all("meta", attrs={"http-equiv": True}):
        if node.get("http-equiv", "").lower() == "refresh":
            node.decompose()
    for node in soup.find_all("link", rel=True):
        if {"preload", "prefetch"} & {r.lower() for r in node.get("rel", [])}:
            node.decompose()

    for element in soup.find_all(True):
        for name in list(element.attrs):
            lowered = name.lower()
            if lowered.startswith("on"):
                del element.attrs[name]
            elif lowered in ("src", "href", "xlink:href"):
                value = str(element.attrs[name]).strip().lower()
                if value.startswith(_UNSAFE_URL_PREFIXES):
                    del element.attrs[name]
    return soup


def _text(node: Optional[Tag]) -> str:
    return node.get_text(" ", strip=True) if node is not None else ""


def _item_link(item: Tag) -> str:
    link = item.find("link")
    if link is None:
        return ""
    if link.get("href"):
        return link["href"]
    text = _text(link)
    if text:
        return text
    # html.parser treats <link> as void, leaving the URL as the next sibling
    sibling = link.next_sibling
    return str(sibling).strip() if isinstance(sibling, str) else ""


def _items(soup: BeautifulSoup, base_url: str) -> List[FeedEntry]:
    entries = []
    for item in soup.find_all("item"):
        entries.append(FeedEntry(
            title=_text(item.find("title")),
            link=urljoin(base_url, _item_link(item)) if base_url else _item_link(item),
            published=_text(item.find("pubdate")) or None,
            description=_text(item.find("description")),
            guid=_text(item.find("guid")) or None,
            author=_text(item.find("author")),
            categories=[_text(c) for c in item.find_all("category") if _text(c)],
        ))
    return entries


def _articles(soup: BeautifulSoup, base_url: str) -> List[FeedEntry]:
    entries = []
    for article in soup.find_all("article"):
        heading = article.find(["h1", "h2", "h3"])
        anchor = (heading.find("a", href=True) if heading else None) or article.find("a", href=True)
        title = _text(heading) or _text(anchor)
        if not title:
            continue
        time_node = article.find("time")
        published = None
        if time_node is not None:
            published = time_node.get("datetime") or _text(time_node) or None
        href = anchor["href"] if anchor is not None else ""
        entries.append(FeedEntry(
            title=title,
            link=urljoin(base_url, href) if base_url else href,
            published=published,
            description=_text(article.find("p")),
        ))
    return entries


def parse_html(body: str, source_url: str = "") -> ParsedPayload:
    """
    Parse and sanitize an HTML document.

    Raises:
        ParseError: reason "no elements" when the body holds no markup
    """
    soup = BeautifulSoup(body, "html.parser")
    if soup.find(True) is None:
        raise ParseError(
            "HTML document has no elements",
            format=PayloadFormat.HTML.value,
            reason="no elements",
            context={"digest": redact(body)},
        )

    sanitize(soup)
    entries = _items(soup, source_url) or _articles(soup, source_url)

    return ParsedPayload(
        format=PayloadFormat.HTML,
        source_url=source_url,
        entries=entries,
        title=_text(soup.find("title")) or None,
    )
