"""
Data Ingestion - Ingestion Service.

============================================================
RESPONSIBILITY
============================================================
Orchestrates one ingestion pass over many sources.

- Builds the shared cache, rate limiter, health tracker, fetcher
  and normalizer registry once, and passes them by reference
- Fans out one task per source, bounded by a semaphore
- Merges items into one deterministic order
- Produces one diagnostic per attempted source

============================================================
DESIGN PRINCIPLES
============================================================
- Failure isolation between sources: a failing or cancelled
  source never aborts its siblings
- Completion order is irrelevant; the merge sorts
- No module-level singletons

============================================================
WORKFLOW
============================================================
1. Select endpoints (catalog mode, explicit ids, feed URLs)
2. Run every endpoint through SourcePipeline concurrently
3. Merge: dedupe by id, then priority desc, published desc, id
4. Report items, diagnostics and timing

============================================================
"""

import asyncio
import logging
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from core.clock import ClockProtocol, SystemClock
from core.config import IngestionConfig
from core.exceptions import FailureKind, IngestionError
from data_ingestion.fetching import AiohttpTransport, RetryingFetcher, Transport
from data_ingestion.normalizers import NormalizerRegistry, build_default_registry
from data_ingestion.pipeline import SourcePipeline
from data_ingestion.security import IngestionPolicy, SecurityGate
from data_ingestion.types import (
    DiagnosticStatus,
    IngestionReport,
    NormalizedItem,
    SourceDiagnostic,
)
from data_source_health import HealthTracker, RateLimiter
from data_sources import CatalogMode, EndpointDescriptor, SourceCatalog
from data_sources.catalog import build_default_catalog, endpoint_for_feed
from storage import KeyValueStore, ResponseCache, SqlKeyValueStore


SourceResult = Tuple[List[NormalizedItem], SourceDiagnostic]


# ============================================================
# MERGE
# ============================================================


def merge_items(items: Iterable[NormalizedItem]) -> List[NormalizedItem]:
    """
    Deterministic merge of items from many sources.

    Sorted by priority (critical first), then newest first, then id.
    When two items share an id the one sorting first is kept.
    """
    ordered = sorted(
        items,
        key=lambda item: (-item.priority.rank, -item.published_at.timestamp(), item.id),
    )
    seen = set()
    merged = []
    for item in ordered:
        if item.id in seen:
            continue
        seen.add(item.id)
        merged.append(item)
    return merged


def _failed(source_id: str, kind: FailureKind, reason: str) -> SourceDiagnostic:
    return SourceDiagnostic(
        source_id=source_id,
        status=DiagnosticStatus.FAILED,
        reason=reason,
        failure_kind=kind,
    )


# ============================================================
# INGESTION SERVICE
# ============================================================


class IngestionService:
    """
    Orchestrates ingestion passes.

    ============================================================
    USAGE
    ============================================================
    ```python
    config = IngestionConfig.from_env()
    async with IngestionService.from_config(config) as service:
        report = await service.run(mode=CatalogMode.PRIMARY)
        for item in report.items:
            ...
    ```

    ============================================================
    """

    def __init__(
        self,
        config: Optional[IngestionConfig] = None,
        catalog: Optional[SourceCatalog] = None,
        clock: Optional[ClockProtocol] = None,
        store: Optional[KeyValueStore] = None,
        transport: Optional[Transport] = None,
        registry: Optional[NormalizerRegistry] = None,
        sleep=asyncio.sleep,
    ) -> None:
        """
        Initialize the ingestion service.

        Args:
            config: Ingestion configuration (defaults when omitted)
            catalog: Source catalog (built-in sources when omitted)
            clock: Time source shared by cache, limiter and health
            store: Persisted tier of the response cache, if any
            transport: HTTP transport (aiohttp when omitted)
            registry: Normalizer registry (built-in plugins when omitted)
            sleep: Backoff sleep, replaceable in tests
        """
        self._config = config or IngestionConfig()
        self._clock = clock or SystemClock()
        self._logger = logging.getLogger("ingestion_service")

        self._catalog = catalog if catalog is not None else build_default_catalog()
        self._store = store
        self._owns_store = False
        self._gate = SecurityGate(IngestionPolicy.from_config(self._config))
        self._cache = ResponseCache(
            clock=self._clock,
            store=store,
            default_max_age_seconds=self._config.default_cache_max_age_seconds,
            stale_retention_seconds=self._config.stale_retention_seconds,
        )
        self._rate_limiter = RateLimiter(self._clock)
        self._health = HealthTracker(self._clock)

        self._owns_transport = transport is None
        self._transport = transport or AiohttpTransport()
        self._fetcher = RetryingFetcher(
            self._transport,
            self._gate,
            retry_attempts=self._config.retry_attempts,
            backoff_seconds=self._config.retry_backoff_seconds,
            sleep=sleep,
        )
        self._registry = registry or build_default_registry()
        self._pipeline = SourcePipeline(
            config=self._config,
            gate=self._gate,
            cache=self._cache,
            rate_limiter=self._rate_limiter,
            health=self._health,
            fetcher=self._fetcher,
            registry=self._registry,
            clock=self._clock,
        )

        self._tasks: Dict[str, asyncio.Task] = {}
        self._run_count = 0
        self._last_report: Optional[IngestionReport] = None

    @classmethod
    def from_config(cls, config: IngestionConfig, **kwargs: Any) -> "IngestionService":
        """Build a service, opening the SQL cache tier when one is configured."""
        owns_store = "store" not in kwargs and bool(config.cache_database_url)
        if owns_store:
            kwargs["store"] = SqlKeyValueStore(config.cache_database_url)
        service = cls(config, **kwargs)
        service._owns_store = owns_store
        return service

    # =========================================================
    # COMPONENTS
    # =========================================================

    @property
    def config(self) -> IngestionConfig:
        return self._config

    @property
    def catalog(self) -> SourceCatalog:
        return self._catalog

    @property
    def cache(self) -> ResponseCache:
        return self._cache

    @property
    def rate_limiter(self) -> RateLimiter:
        return self._rate_limiter

    @property
    def health(self) -> HealthTracker:
        return self._health

    @property
    def gate(self) -> SecurityGate:
        return self._gate

    @property
    def registry(self) -> NormalizerRegistry:
        return self._registry

    @property
    def pipeline(self) -> SourcePipeline:
        return self._pipeline

    # =========================================================
    # SOURCE SELECTION
    # =========================================================

    def _select(
        self,
        mode: CatalogMode,
        source_ids: Optional[Sequence[str]],
        feed_urls: Optional[Sequence[str]],
        endpoints: Optional[Sequence[EndpointDescriptor]],
    ) -> Tuple[List[EndpointDescriptor], List[SourceDiagnostic]]:
        rejected: List[SourceDiagnostic] = []
        selected: List[EndpointDescriptor] = list(endpoints or [])

        if source_ids:
            for source_id in source_ids:
                endpoint = self._catalog.get(source_id)
                if endpoint is None:
                    self._logger.warning(f"Unknown source: {source_id}")
                    rejected.append(_failed(
                        source_id, FailureKind.CONFIGURATION_ERROR, "unknown source"
                    ))
                    continue
                selected.append(endpoint)

        for url in feed_urls or []:
            endpoint = endpoint_for_feed(url)
            if not self._gate.is_feed_url(url):
                self._logger.warning(f"[{endpoint.id}] Not a feed URL: {url}")
                rejected.append(_failed(
                    endpoint.id, FailureKind.DISALLOWED_HOST, "URL does not look like a feed"
                ))
                continue
            selected.append(endpoint)

        if not endpoints and not source_ids and not feed_urls:
            selected = self._catalog.get_endpoints(mode)

        unique: Dict[str, EndpointDescriptor] = {}
        for endpoint in selected:
            unique.setdefault(endpoint.id, endpoint)
        return list(unique.values()), rejected

    # =========================================================
    # EXECUTION
    # =========================================================

    async def run(
        self,
        mode: CatalogMode = CatalogMode.ALL,
        source_ids: Optional[Sequence[str]] = None,
        feed_urls: Optional[Sequence[str]] = None,
        endpoints: Optional[Sequence[EndpointDescriptor]] = None,
        use_cache: bool = True,
    ) -> IngestionReport:
        """
        Run one ingestion pass.

        Without explicit sources every enabled endpoint of the catalog
        mode is ingested.

        Args:
            mode: Catalog mode to ingest
            source_ids: Catalog ids to ingest instead of a mode
            feed_urls: Bare feed URLs to ingest as ad-hoc endpoints
            endpoints: Endpoint descriptors to ingest directly
            use_cache: Read fresh cache entries before fetching

        Returns:
            IngestionReport with merged items and one diagnostic per source
        """
        report = IngestionReport(started_at=self._clock.now())
        self._run_count += 1

        targets, rejected = self._select(mode, source_ids, feed_urls, endpoints)
        self._logger.info(f"Starting ingestion pass {report.run_id} over {len(targets)} sources")

        semaphore = asyncio.Semaphore(self._config.max_concurrent_requests)
        tasks = []
        for endpoint in targets:
            task = asyncio.create_task(
                self._run_source(endpoint, semaphore, use_cache),
                name=f"ingest:{endpoint.id}",
            )
            self._tasks[endpoint.id] = task
            tasks.append(task)

        try:
            results = await asyncio.gather(*tasks, return_exceptions=True)
        finally:
            for endpoint in targets:
                self._tasks.pop(endpoint.id, None)

        items: List[NormalizedItem] = []
        diagnostics: List[SourceDiagnostic] = []
        for endpoint, result in zip(targets, results):
            if isinstance(result, asyncio.CancelledError):
                self._logger.info(f"[{endpoint.id}] Cancelled")
                diagnostics.append(_failed(endpoint.id, FailureKind.ABORTED, "cancelled"))
            elif isinstance(result, BaseException):
                self._logger.error(f"[{endpoint.id}] Source task failed: {result}")
                diagnostics.append(_failed(endpoint.id, FailureKind.UNEXPECTED, str(result)))
            else:
                source_items, diagnostic = result
                items.extend(source_items)
                diagnostics.append(diagnostic)

        report.items = merge_items(items)
        report.diagnostics = diagnostics + rejected
        report.mark_complete(self._clock.now())
        self._last_report = report

        self._logger.info(
            f"Ingestion pass {report.run_id} completed in {report.duration_seconds:.2f}s. "
            f"Items: {len(report.items)}, "
            f"Failed sources: {len(report.failed_sources)}/{len(report.diagnostics)}"
        )
        return report

    async def _run_source(
        self,
        endpoint: EndpointDescriptor,
        semaphore: asyncio.Semaphore,
        use_cache: bool,
    ) -> SourceResult:
        """Run a single source with error isolation."""
        async with semaphore:
            try:
                self._logger.debug(f"[{endpoint.id}] Ingesting")
                return await self._pipeline.ingest(endpoint, use_cache=use_cache)
            except IngestionError as e:
                self._logger.error(f"[{endpoint.id}] {e}")
                return [], _failed(endpoint.id, e.kind, e.message)
            except Exception as e:
                self._logger.exception(f"[{endpoint.id}] Unexpected failure: {e}")
                return [], _failed(endpoint.id, FailureKind.UNEXPECTED, str(e))

    def cancel(self, source_id: str) -> bool:
        """
        Cancel one in-flight source without affecting its siblings.

        Returns:
            True if a running task was cancelled
        """
        task = self._tasks.get(source_id)
        if task is None or task.done():
            return False
        task.cancel()
        self._logger.info(f"[{source_id}] Cancellation requested")
        return True

    def in_flight(self) -> List[str]:
        return [sid for sid, task in self._tasks.items() if not task.done()]

    # =========================================================
    # HEALTH & LIFECYCLE
    # =========================================================

    def get_health_status(self) -> Dict[str, Any]:
        """
        Get aggregated health status.

        Returns:
            Health status dictionary
        """
        last = self._last_report
        return {
            "run_count": self._run_count,
            "last_run_at": last.completed_at.isoformat() if last and last.completed_at else None,
            "endpoints": self._health.get_health_status(),
            "rate_limits": {
                endpoint.id: self._rate_limiter.remaining(endpoint)
                for endpoint in self._catalog.get_endpoints(include_disabled=True)
                if endpoint.rate_limit is not None
            },
            "cache": self._cache.get_stats(),
            "in_flight": self.in_flight(),
        }

    async def close(self) -> None:
        """Release the transport and the persisted store this service opened."""
        if self._owns_transport:
            await self._transport.close()
        if self._owns_store and isinstance(self._store, SqlKeyValueStore):
            self._store.close()

    async def __aenter__(self) -> "IngestionService":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
