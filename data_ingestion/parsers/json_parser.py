"""
Parsers - JSON.

Decodes JSON and, when the document looks like a feed (JSON Feed or
an rss2json-style ``items`` list), extracts feed entries as well.
"""

import json
from typing import Any, List

from core.exceptions import ParseError
from data_ingestion.parsers.base import FeedEntry, ParsedPayload
from data_ingestion.parsers.redaction import redact
from data_ingestion.types import PayloadFormat


def load_json(body: str) -> Any:
    """
    Decode a JSON document.

    Raises:
        ParseError: reason "unexpected end of input" for truncated documents,
            "unexpected token" otherwise
    """
    try:
        return json.loads(body)
    except json.JSONDecodeError as e:
        truncated = e.pos >= len(body.rstrip())
        raise ParseError(
            f"Malformed JSON at line {e.lineno}, column {e.colno}: {e.msg}",
            format=PayloadFormat.JSON.value,
            reason="unexpected end of input" if truncated else "unexpected token",
            context={"digest": redact(body)},
            cause=e,
        )


def _author_name(author: Any) -> str:
    if isinstance(author, dict):
        return str(author.get("name") or "")
    return str(author or "")


def _entries_from(items: List[Any]) -> List[FeedEntry]:
    entries = []
    for item in items:
        if not isinstance(item, dict):
            continue
        title = item.get("title")
        link = item.get("url") or item.get("link") or item.get("external_url")
        if not title and not link:
            continue
        categories = item.get("tags") or item.get("categories") or []
        entries.append(FeedEntry(
            title=str(title or "").strip(),
            link=str(link or ""),
            published=item.get("date_published") or item.get("pubDate") or item.get("published"),
            description=str(
                item.get("summary") or item.get("description") or item.get("content_text") or ""
            ),
            guid=str(item["id"]) if item.get("id") is not None else item.get("guid"),
            author=_author_name(item.get("author")),
            categories=[str(c) for c in categories if isinstance(c, (str, int))],
        ))
    return entries


def parse_json(data: Any, source_url: str = "") -> ParsedPayload:
    """Wrap decoded JSON, extracting feed entries when present."""
    entries: List[FeedEntry] = []
    title = None
    if isinstance(data, dict) and isinstance(data.get("items"), list):
        entries = _entries_from(data["items"])
        feed_meta = data.get("feed") if isinstance(data.get("feed"), dict) else data
        title = feed_meta.get("title") if isinstance(feed_meta.get("title"), str) else None

    return ParsedPayload(
        format=PayloadFormat.JSON,
        source_url=source_url,
        data=data,
        entries=entries,
        title=title,
    )
