"""
Normalizers - Feeds and generic payloads.

FeedNormalizer handles entries extracted from RSS, Atom, JSON Feed,
HTML and plain text. GenericNormalizer is the fallback for unknown
normalizer keys: it uses feed entries when there are any, otherwise
it looks for a list of records in a JSON document, and a document
with no recognisable records becomes a single item carrying it.
"""

import json
from typing import Any, Dict, List

from data_ingestion.normalizers.base import NormalizationContext, NormalizerPlugin
from data_ingestion.normalizers.helpers import (
    coerce_timestamp,
    digest,
    first_of,
    strip_html,
    unique,
)
from data_ingestion.parsers.base import FeedEntry, ParsedPayload
from data_ingestion.types import NormalizedItem


_RECORD_LIST_KEYS = ("items", "results", "data", "articles", "entries", "posts", "features")
_TITLE_KEYS = ("title", "name", "headline", "subject")
_LINK_KEYS = ("url", "link", "html_url", "permalink", "href")
_ID_KEYS = ("id", "guid", "uuid")
_DATE_KEYS = ("published_at", "published", "pubDate", "date", "created_at", "updated_at", "time")
_TEXT_KEYS = ("description", "summary", "content", "body", "text")


def entry_to_item(entry: FeedEntry, context: NormalizationContext) -> NormalizedItem:
    endpoint = context.endpoint
    key = entry.guid or entry.link or entry.title
    return NormalizedItem(
        id=f"{endpoint.id}-{digest(key)}",
        title=strip_html(entry.title, limit=0) or "Untitled",
        link=entry.link or context.source_url,
        published_at=coerce_timestamp(entry.published, context.ingested_at),
        source_id=endpoint.id,
        description=strip_html(entry.description),
        tags=unique(entry.categories),
        category=endpoint.category,
        trust_rating=endpoint.trust_rating,
        metadata={"author": entry.author} if entry.author else {},
    )


class FeedNormalizer(NormalizerPlugin):
    key = "feed"

    def normalize(
        self,
        payload: ParsedPayload,
        context: NormalizationContext,
    ) -> List[NormalizedItem]:
        return [
            entry_to_item(entry, context)
            for entry in payload.entries
            if entry.title or entry.link
        ]


class GenericNormalizer(NormalizerPlugin):
    """Best-effort mapping for sources without a dedicated plugin."""

    key = "generic"

    @staticmethod
    def _records(data: Any) -> List[Dict[str, Any]]:
        if isinstance(data, list):
            return [r for r in data if isinstance(r, dict)]
        if isinstance(data, dict):
            for key in _RECORD_LIST_KEYS:
                if isinstance(data.get(key), list):
                    return [r for r in data[key] if isinstance(r, dict)]
            if first_of(data, _TITLE_KEYS):
                return [data]
        return []

    def _record_to_item(
        self,
        record: Dict[str, Any],
        context: NormalizationContext,
    ) -> NormalizedItem:
        endpoint = context.endpoint
        # GeoJSON-style records keep their fields under "properties"
        fields = record.get("properties") if isinstance(record.get("properties"), dict) else record
        title = first_of(fields, _TITLE_KEYS, "")
        link = first_of(fields, _LINK_KEYS, "")
        source_id = first_of(record, _ID_KEYS)
        return NormalizedItem(
            id=f"{endpoint.id}-{digest(source_id if source_id is not None else (link or title))}",
            title=strip_html(title, limit=0) or f"{endpoint.name} update",
            link=str(link) or context.source_url,
            published_at=coerce_timestamp(first_of(fields, _DATE_KEYS), context.ingested_at),
            source_id=endpoint.id,
            description=strip_html(first_of(fields, _TEXT_KEYS, "")),
            category=endpoint.category,
            trust_rating=endpoint.trust_rating,
            metadata={"generic_fallback": True},
        )

    def _wrap(self, data: Any, context: NormalizationContext) -> NormalizedItem:
        """One minimal item carrying a payload that has no recognisable records."""
        endpoint = context.endpoint
        fields = data if isinstance(data, dict) else {}
        title = first_of(fields, _TITLE_KEYS, "")
        return NormalizedItem(
            id=f"{endpoint.id}-{digest(json.dumps(data, sort_keys=True, default=str))}",
            title=strip_html(str(title), limit=0) or f"{endpoint.name} update",
            link=str(first_of(fields, _LINK_KEYS, "")) or context.source_url,
            published_at=coerce_timestamp(first_of(fields, _DATE_KEYS), context.ingested_at),
            source_id=endpoint.id,
            description=strip_html(str(first_of(fields, _TEXT_KEYS, ""))),
            category=endpoint.category,
            trust_rating=endpoint.trust_rating,
            metadata={"generic_fallback": True, "raw": data},
        )

    def normalize(
        self,
        payload: ParsedPayload,
        context: NormalizationContext,
    ) -> List[NormalizedItem]:
        if payload.entries:
            items = [entry_to_item(e, context) for e in payload.entries if e.title or e.link]
            for item in items:
                item.metadata["generic_fallback"] = True
            return items
        items = []
        for record in self._records(payload.data):
            fields = record.get("properties") if isinstance(record.get("properties"), dict) else record
            if first_of(fields, _TITLE_KEYS + _LINK_KEYS) is None and first_of(record, _ID_KEYS) is None:
                continue
            items.append(self._record_to_item(record, context))
        if not items and payload.data not in (None, "", [], {}):
            items.append(self._wrap(payload.data, context))
        return items
