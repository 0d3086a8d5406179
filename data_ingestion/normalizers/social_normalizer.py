"""
Normalizers - Community sources.

============================================================
SOURCES
============================================================
- Reddit listings (``data.children[].data``)
- Hacker News items

Hacker News list endpoints (top stories) return bare item ids.
HackerNewsNormalizer.expand fetches the first page of them through
the endpoint's ``item`` path, so every item fetch goes through the
same cache, rate limit and health bookkeeping as the listing.

============================================================
"""

import asyncio
import logging
import re
from typing import Any, Dict, List

from core.constants import FAN_OUT_PAGE_SIZE
from data_ingestion.normalizers.base import (
    FetchRelated,
    NormalizationContext,
    NormalizerPlugin,
)
from data_ingestion.normalizers.classifier import priority_from_score
from data_ingestion.normalizers.helpers import (
    coerce_timestamp,
    stable_id,
    strip_html,
    unique,
)
from data_ingestion.normalizers.schemas import HackerNewsSchema, RedditListing
from data_ingestion.parsers.base import ParsedPayload
from data_ingestion.types import NormalizedItem


logger = logging.getLogger(__name__)

REDDIT_TRUST_RATING = 60
HACKER_NEWS_TRUST_RATING = 75

REDDIT_BASE_URL = "https://reddit.com"
HACKER_NEWS_ITEM_URL = "https://news.ycombinator.com/item?id={id}"
HACKER_NEWS_ITEM_PATH = "item"

_ASK_HN = re.compile(r"^ask hn", re.IGNORECASE)
_SHOW_HN = re.compile(r"^show hn", re.IGNORECASE)


# =============================================================
# REDDIT
# =============================================================

class RedditNormalizer(NormalizerPlugin):
    key = "reddit"
    schema = RedditListing

    @staticmethod
    def _posts(data: Any) -> List[Dict[str, Any]]:
        listing = data.get("data") if isinstance(data, dict) else None
        children = listing.get("children") if isinstance(listing, dict) else None
        if not isinstance(children, list):
            return []
        return [
            child["data"] for child in children
            if isinstance(child, dict) and isinstance(child.get("data"), dict)
        ]

    def normalize(
        self,
        payload: ParsedPayload,
        context: NormalizationContext,
    ) -> List[NormalizedItem]:
        items = []
        for post in self._posts(payload.data):
            subreddit = post.get("subreddit") or "reddit"
            url = str(post.get("url") or post.get("permalink") or "")
            if not url.startswith("http"):
                url = f"{REDDIT_BASE_URL}{url}"
            created = post.get("created_utc")
            title = post.get("title") or "Reddit discussion"

            items.append(NormalizedItem(
                id=stable_id("reddit", post.get("id"), title, url),
                title=strip_html(title, limit=0),
                link=url,
                # created_utc is epoch seconds; strings are ignored
                published_at=coerce_timestamp(
                    created if isinstance(created, (int, float)) else None,
                    context.ingested_at,
                ),
                source_id=context.source_id,
                description=strip_html(post.get("selftext") or ""),
                tags=unique(["reddit", "discussion", subreddit]),
                priority=priority_from_score(post.get("score")),
                category=context.endpoint.category,
                trust_rating=REDDIT_TRUST_RATING,
                metadata={
                    "author": post.get("author"),
                    "score": post.get("score"),
                    "num_comments": post.get("num_comments"),
                    "subreddit": subreddit,
                    "comments_url": f"{REDDIT_BASE_URL}/r/{subreddit}/comments/{post.get('id')}/",
                },
            ))
        return items


# =============================================================
# HACKER NEWS
# =============================================================

class HackerNewsNormalizer(NormalizerPlugin):
    key = "hackernews"
    schema = HackerNewsSchema

    def __init__(self, page_size: int = FAN_OUT_PAGE_SIZE):
        super().__init__()
        self.page_size = page_size

    async def expand(
        self,
        payload: ParsedPayload,
        context: NormalizationContext,
        fetch_related: FetchRelated,
    ) -> ParsedPayload:
        """
        Replace a list of story ids with the stories themselves.

        Only the first ``page_size`` ids are fetched. Failed item
        fetches are dropped; the rest of the page still normalizes.
        """
        data = payload.data
        if not isinstance(data, list):
            return payload
        ids = [i for i in data if isinstance(i, int) and not isinstance(i, bool)][: self.page_size]
        if not ids or not context.endpoint.has_path(HACKER_NEWS_ITEM_PATH):
            return payload

        results = await asyncio.gather(
            *(fetch_related(HACKER_NEWS_ITEM_PATH, {"id": item_id}) for item_id in ids)
        )
        stories = [
            result.data for result in results
            if result is not None and isinstance(result.data, dict)
        ]
        logger.info(
            f"[{context.source_id}] Expanded {len(stories)}/{len(ids)} Hacker News items"
        )
        return ParsedPayload(
            format=payload.format,
            source_url=payload.source_url,
            data=stories,
            title=payload.title,
            unwrapped=payload.unwrapped,
        )

    def _item(self, story: Dict[str, Any], context: NormalizationContext) -> NormalizedItem:
        item_id = story.get("id")
        title = story.get("title") or (
            "Ask HN" if story.get("type") == "ask" else "Hacker News Discussion"
        )
        tags = ["hackernews"]
        if _ASK_HN.match(title):
            tags.append("ask-hn")
        if _SHOW_HN.match(title):
            tags.append("show-hn")
        time_value = story.get("time")

        return NormalizedItem(
            id=stable_id("hn", item_id, title, story.get("url")),
            title=strip_html(title, limit=0),
            link=story.get("url") or HACKER_NEWS_ITEM_URL.format(id=item_id),
            published_at=coerce_timestamp(
                time_value if isinstance(time_value, (int, float)) else None,
                context.ingested_at,
            ),
            source_id=context.source_id,
            description=strip_html(story.get("text") or ""),
            tags=tags,
            priority=priority_from_score(story.get("score")),
            category="jobs" if story.get("type") == "job" else "technology",
            trust_rating=HACKER_NEWS_TRUST_RATING,
            metadata={
                "by": story.get("by"),
                "score": story.get("score"),
                "descendants": story.get("descendants"),
                "type": story.get("type"),
            },
        )

    def normalize(
        self,
        payload: ParsedPayload,
        context: NormalizationContext,
    ) -> List[NormalizedItem]:
        data = payload.data
        stories = [data] if isinstance(data, dict) else data if isinstance(data, list) else []
        return [
            self._item(story, context)
            for story in stories
            if isinstance(story, dict) and not story.get("deleted") and not story.get("dead")
        ]
