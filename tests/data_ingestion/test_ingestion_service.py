"""
Tests for the ingestion service.

============================================================
PURPOSE
============================================================
TEST PRINCIPLES:
- One diagnostic per attempted source
- A failing or cancelled source never affects its siblings
- The merged order does not depend on completion order

============================================================
"""

import asyncio
from datetime import timedelta
from unittest.mock import AsyncMock, patch

import pytest

from core.config import IngestionConfig
from core.exceptions import FailureKind
from data_ingestion import IngestionService, NormalizedItem, Priority, merge_items
from data_ingestion.normalizers import NormalizerPlugin, build_default_registry
from data_ingestion.types import DiagnosticStatus
from data_sources import EndpointDescriptor, SourceCatalog

from conftest import FIXED_NOW, ScriptedTransport, make_response, rss_response


def feed_endpoint(endpoint_id: str, normalizer_key: str = "feed") -> EndpointDescriptor:
    return EndpointDescriptor(
        id=endpoint_id,
        name=endpoint_id.title(),
        base_url=f"https://{endpoint_id}.example.com",
        paths={"default": "/rss.xml"},
        normalizer_key=normalizer_key,
    )


def url_of(endpoint_id: str) -> str:
    return f"https://{endpoint_id}.example.com/rss.xml"


def item(item_id: str, priority: Priority = Priority.LOW, hours_ago: int = 0) -> NormalizedItem:
    return NormalizedItem(
        id=item_id,
        title=item_id,
        link=f"https://example.com/{item_id}",
        published_at=FIXED_NOW - timedelta(hours=hours_ago),
        source_id="test",
        priority=priority,
    )


class BlockingTransport(ScriptedTransport):
    """Never answers for blocked URLs."""

    def __init__(self, *blocked: str) -> None:
        super().__init__()
        self.blocked = set(blocked)

    async def send(self, url, timeout, gate, headers=None):
        if url in self.blocked:
            self.calls.append(url)
            await asyncio.Event().wait()
        return await super().send(url, timeout, gate, headers)


class CountingTransport(ScriptedTransport):
    """Tracks the highest number of concurrent sends."""

    def __init__(self) -> None:
        super().__init__()
        self.active = 0
        self.max_active = 0

    async def send(self, url, timeout, gate, headers=None):
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            for _ in range(3):
                await asyncio.sleep(0)
            return await super().send(url, timeout, gate, headers)
        finally:
            self.active -= 1


class ExplodingNormalizer(NormalizerPlugin):
    key = "explode"

    async def expand(self, payload, context, fetch_related):
        raise RuntimeError("expansion bug")

    def normalize(self, payload, context):
        return []


# ============================================================
# FIXTURES
# ============================================================

@pytest.fixture
def config():
    return IngestionConfig(proxy_chain=("direct",), cors_strategy="direct", retry_attempts=1)


@pytest.fixture
def service(config, clock, transport, sleeps):
    return IngestionService(
        config=config,
        catalog=SourceCatalog(),
        clock=clock,
        transport=transport,
        sleep=sleeps,
    )


# ============================================================
# MERGE
# ============================================================

class TestMergeItems:
    """Tests for merge_items()."""

    def test_priority_then_recency_then_id(self):
        merged = merge_items([
            item("b", Priority.LOW, hours_ago=0),
            item("c", Priority.CRITICAL, hours_ago=5),
            item("a", Priority.LOW, hours_ago=0),
            item("d", Priority.LOW, hours_ago=1),
            item("e", Priority.HIGH, hours_ago=2),
        ])

        assert [i.id for i in merged] == ["c", "e", "a", "b", "d"]

    def test_duplicate_ids_keep_first_in_order(self):
        merged = merge_items([
            item("x", Priority.LOW),
            item("x", Priority.HIGH),
        ])

        assert len(merged) == 1
        assert merged[0].priority == Priority.HIGH

    def test_input_order_irrelevant(self):
        items = [item(str(n), hours_ago=n % 3) for n in range(6)]
        assert merge_items(items) == merge_items(list(reversed(items)))


# ============================================================
# RUN
# ============================================================

class TestRun:
    """Tests for IngestionService.run()."""

    @pytest.mark.asyncio
    async def test_partial_failure_isolated(self, service, transport):
        transport.add(url_of("good"), rss_response("One", "Two"))
        transport.add(url_of("bad"), make_response("down", status=503))

        report = await service.run(endpoints=[feed_endpoint("good"), feed_endpoint("bad")])

        assert len(report.items) == 2
        assert {i.source_id for i in report.items} == {"good"}
        assert report.failed_sources == ["bad"]
        assert report.diagnostic_for("good").status == DiagnosticStatus.SUCCESS
        assert report.diagnostic_for("bad").failure_kind == FailureKind.ALL_STRATEGIES_EXHAUSTED
        assert report.completed_at is not None

    @pytest.mark.asyncio
    async def test_catalog_mode_selection(self, clock, transport):
        catalog = SourceCatalog([feed_endpoint("good")])
        transport.add(url_of("good"), rss_response("One"))
        service = IngestionService(
            config=IngestionConfig(proxy_chain=("direct",), retry_attempts=1),
            catalog=catalog,
            clock=clock,
            transport=transport,
        )

        report = await service.run()

        assert [d.source_id for d in report.diagnostics] == ["good"]
        assert len(report.items) == 1

    @pytest.mark.asyncio
    async def test_unknown_source(self, service, transport):
        report = await service.run(source_ids=["nope"])

        diagnostic = report.diagnostic_for("nope")
        assert diagnostic.failure_kind == FailureKind.CONFIGURATION_ERROR
        assert diagnostic.reason == "unknown source"
        assert transport.calls == []

    @pytest.mark.asyncio
    async def test_feed_urls(self, service, transport):
        transport.add("https://news.example.com/feed.xml", rss_response("One"))

        report = await service.run(feed_urls=[
            "https://news.example.com/feed.xml",
            "https://news.example.com/2025/01/15/some-story",
        ])

        statuses = sorted(d.status.value for d in report.diagnostics)
        assert statuses == ["failed", "success"]
        rejected = [d for d in report.diagnostics if d.status == DiagnosticStatus.FAILED][0]
        assert rejected.failure_kind == FailureKind.DISALLOWED_HOST
        assert rejected.reason == "URL does not look like a feed"
        assert transport.calls == ["https://news.example.com/feed.xml"]

    @pytest.mark.asyncio
    async def test_duplicate_endpoints_run_once(self, service, transport):
        transport.add(url_of("good"), rss_response("One"))

        report = await service.run(endpoints=[feed_endpoint("good"), feed_endpoint("good")])

        assert len(report.diagnostics) == 1
        assert transport.calls_to(url_of("good")) == 1

    @pytest.mark.asyncio
    async def test_unexpected_plugin_error(self, config, clock, transport):
        registry = build_default_registry()
        registry.register("explode", ExplodingNormalizer())
        service = IngestionService(
            config=config, catalog=SourceCatalog(), clock=clock,
            transport=transport, registry=registry,
        )
        transport.add(url_of("boom"), rss_response("One"))
        transport.add(url_of("good"), rss_response("One"))

        report = await service.run(endpoints=[
            feed_endpoint("boom", normalizer_key="explode"),
            feed_endpoint("good"),
        ])

        boom = report.diagnostic_for("boom")
        assert boom.failure_kind == FailureKind.UNEXPECTED
        assert "expansion bug" in boom.reason
        assert report.diagnostic_for("good").status == DiagnosticStatus.SUCCESS


# ============================================================
# CONCURRENCY
# ============================================================

class TestConcurrency:
    """Tests for cancellation and the concurrency bound."""

    @pytest.mark.asyncio
    async def test_cancel_one_source(self, config, clock):
        transport = BlockingTransport(url_of("slow"))
        transport.add(url_of("fast"), rss_response("One"))
        service = IngestionService(
            config=config, catalog=SourceCatalog(), clock=clock, transport=transport,
        )

        run = asyncio.create_task(
            service.run(endpoints=[feed_endpoint("slow"), feed_endpoint("fast")])
        )
        for _ in range(50):
            await asyncio.sleep(0)
            if url_of("slow") in transport.calls:
                break

        assert "slow" in service.in_flight()
        assert service.cancel("slow") is True
        report = await run

        slow = report.diagnostic_for("slow")
        assert slow.failure_kind == FailureKind.ABORTED
        assert slow.reason == "cancelled"
        assert report.diagnostic_for("fast").status == DiagnosticStatus.SUCCESS
        assert service.in_flight() == []

    def test_cancel_unknown_source(self, service):
        assert service.cancel("nothing") is False

    @pytest.mark.asyncio
    async def test_concurrency_bound(self, clock):
        transport = CountingTransport()
        endpoints = [feed_endpoint(name) for name in ("one", "two", "three")]
        for endpoint in endpoints:
            transport.add(url_of(endpoint.id), rss_response("Item"))
        service = IngestionService(
            config=IngestionConfig(
                proxy_chain=("direct",), retry_attempts=1, max_concurrent_requests=1,
            ),
            catalog=SourceCatalog(),
            clock=clock,
            transport=transport,
        )

        report = await service.run(endpoints=endpoints)

        assert transport.max_active == 1
        assert report.failed_sources == []


# ============================================================
# HEALTH & LIFECYCLE
# ============================================================

class TestLifecycle:
    """Tests for health reporting and resource ownership."""

    @pytest.mark.asyncio
    async def test_health_status(self, service, transport):
        transport.add(url_of("good"), rss_response("One"))
        await service.run(endpoints=[feed_endpoint("good")])

        status = service.get_health_status()

        assert status["run_count"] == 1
        assert status["last_run_at"] == FIXED_NOW.isoformat()
        assert status["endpoints"]["good"]["total_requests"] == 1
        assert status["cache"]["entries"] == 1
        assert status["in_flight"] == []

    @pytest.mark.asyncio
    async def test_passed_transport_not_closed(self, service, transport):
        await service.close()
        assert transport.closed is False

    @pytest.mark.asyncio
    async def test_from_config_opens_persistent_tier(self, clock, transport):
        config = IngestionConfig(cache_database_url="sqlite:///:memory:")

        async with IngestionService.from_config(config, clock=clock, transport=transport) as service:
            assert service.cache.persistent is not None
            assert service.cache.get_stats()["persistent"] is True

    def test_default_service_has_no_persistent_tier(self, service):
        assert service.cache.persistent is None

    @pytest.mark.asyncio
    async def test_owned_transport_closed(self, clock):
        with patch("data_ingestion.ingestion_service.AiohttpTransport") as transport_cls:
            transport_cls.return_value.close = AsyncMock()
            service = IngestionService(catalog=SourceCatalog(), clock=clock)
            await service.close()

        transport_cls.return_value.close.assert_awaited_once()
