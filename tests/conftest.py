"""
Shared test fixtures.

ScriptedTransport replaces the network: each URL gets a queue of
responses or exceptions, the last one repeating once the queue is
down to it. Every call is recorded in order.
"""

import json
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

import pytest

from core.clock import MockClock
from core.exceptions import NetworkError
from data_ingestion.fetching.transport import RawResponse, Transport
from data_ingestion.security import SecurityGate


ScriptedReply = Union[RawResponse, BaseException]

FIXED_NOW = datetime(2025, 1, 15, 12, 0, 0, tzinfo=timezone.utc)


def make_response(
    body: Union[str, bytes],
    status: int = 200,
    content_type: str = "application/json",
    headers: Optional[Dict[str, str]] = None,
    url: str = "",
) -> RawResponse:
    """Build a RawResponse from text or bytes."""
    raw = body.encode("utf-8") if isinstance(body, str) else body
    all_headers = {"Content-Type": content_type} if content_type else {}
    all_headers.update(headers or {})
    return RawResponse(status_code=status, body=raw, headers=all_headers, url=url)


def json_response(data: Any, status: int = 200) -> RawResponse:
    return make_response(json.dumps(data), status=status)


def rss_feed(*titles: str) -> str:
    """RSS 2.0 document, one item per title, published an hour apart from 09:00 UTC."""
    items = "".join(
        f"<item><title>{title}</title>"
        f"<link>https://example.com/{index}</link>"
        f"<guid>item-{index}</guid>"
        f"<pubDate>Wed, 15 Jan 2025 {9 + index:02d}:00:00 GMT</pubDate></item>"
        for index, title in enumerate(titles)
    )
    return (
        '<?xml version="1.0"?><rss version="2.0"><channel>'
        f"<title>Test Feed</title>{items}</channel></rss>"
    )


def rss_response(*titles: str) -> RawResponse:
    return make_response(rss_feed(*titles), content_type="application/rss+xml")


class ScriptedTransport(Transport):
    """In-memory transport driven by per-URL scripts."""

    def __init__(self) -> None:
        self.calls: List[str] = []
        self.closed = False
        self._routes: Dict[str, List[ScriptedReply]] = {}

    def add(self, url: str, *replies: ScriptedReply) -> "ScriptedTransport":
        self._routes.setdefault(url, []).extend(replies)
        return self

    def calls_to(self, url: str) -> int:
        return self.calls.count(url)

    async def send(
        self,
        url: str,
        timeout: float,
        gate: SecurityGate,
        headers: Optional[Dict[str, str]] = None,
    ) -> RawResponse:
        self.calls.append(url)
        queue = self._routes.get(url)
        if not queue:
            raise NetworkError(f"No scripted reply for {url}")
        reply = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(reply, BaseException):
            raise reply

        gate.check_declared_length(reply.headers.get("Content-Length"), url)
        gate.check_observed_length(len(reply.body), url)
        return reply

    async def close(self) -> None:
        self.closed = True


# ============================================================
# FIXTURES
# ============================================================

@pytest.fixture
def clock():
    """Mock clock pinned to a fixed instant."""
    return MockClock(FIXED_NOW)


@pytest.fixture
def transport():
    """Scripted transport with no routes."""
    return ScriptedTransport()


@pytest.fixture
def sleeps():
    """Records backoff delays instead of sleeping."""
    recorded: List[float] = []

    async def sleep(seconds: float) -> None:
        recorded.append(seconds)

    sleep.recorded = recorded
    return sleep
