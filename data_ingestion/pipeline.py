"""
Data Ingestion - Per-source pipeline.

============================================================
RESPONSIBILITY
============================================================
Runs one endpoint from URL to normalized items.

1. Resolve URL and cache key
2. Security gate (no network call for a rejected URL)
3. Fresh cache entry -> skip the network
4. Local rate limit -> RateLimitExceeded, terminal for the request
5. Retrying fetch over the strategy chain
6. Health tracker update, cache write
7. Fetch failure -> stale cache entry when one exists
8. Sniff and parse, validate, expand, normalize, enrich, classify

============================================================
DESIGN PRINCIPLES
============================================================
- Every failure becomes a SourceDiagnostic, never an exception
  escaping to sibling sources
- Raw responses are cached, not normalized items, so a cache hit
  runs the current normalizers
- Payload content is never logged, only its redacted digest

============================================================
"""

import logging
import os
import time
from typing import Any, Dict, List, Optional, Tuple

from core.clock import ClockProtocol, SystemClock
from core.config import IngestionConfig
from core.constants import FAN_OUT_CACHE_MAX_AGE_SECONDS
from core.exceptions import (
    ConfigurationError,
    DisallowedHost,
    FailureKind,
    ParseError,
    RateLimitExceeded,
    ValidationError,
)
from data_ingestion.fetching import RetryingFetcher, build_chain
from data_ingestion.normalizers import (
    NormalizationContext,
    NormalizerRegistry,
)
from data_ingestion.parsers import ParsedPayload, parse, redact
from data_ingestion.security import SecurityGate
from data_ingestion.types import (
    DiagnosticStatus,
    FetchFailure,
    FetchOutcome,
    FetchRequest,
    FetchSuccess,
    NormalizedItem,
    SourceDiagnostic,
)
from data_source_health import HealthTracker, RateLimiter
from data_sources.models import EndpointDescriptor
from storage import ResponseCache


logger = logging.getLogger(__name__)

# Failures for which serving an old copy would be wrong
_NO_STALE_FALLBACK = (FailureKind.DISALLOWED_HOST, FailureKind.CONFIGURATION_ERROR)


class SourcePipeline:
    """
    Fetch-parse-normalize flow for single endpoints.

    All collaborators are passed in; the pipeline owns no state of
    its own beyond them.
    """

    def __init__(
        self,
        config: IngestionConfig,
        gate: SecurityGate,
        cache: ResponseCache,
        rate_limiter: RateLimiter,
        health: HealthTracker,
        fetcher: RetryingFetcher,
        registry: NormalizerRegistry,
        clock: Optional[ClockProtocol] = None,
    ) -> None:
        self._config = config
        self._gate = gate
        self._cache = cache
        self._rate_limiter = rate_limiter
        self._health = health
        self._fetcher = fetcher
        self._registry = registry
        self._clock = clock or SystemClock()

    # =========================================================
    # CACHE POLICY
    # =========================================================

    def max_age_for(self, endpoint: EndpointDescriptor, override: Optional[float] = None) -> float:
        """
        Cache max-age for an endpoint.

        Request override, then the endpoint's own max-age, then the
        refresh interval of its tier, then the configured default.
        """
        if override is not None:
            return override
        if endpoint.cache_max_age_seconds is not None:
            return endpoint.cache_max_age_seconds
        interval = self._config.refresh_intervals.get(endpoint.refresh_tier.value)
        if interval is not None:
            return interval
        return self._config.default_cache_max_age_seconds

    @staticmethod
    def cache_key(endpoint: EndpointDescriptor, path: str) -> str:
        return f"{endpoint.id}-{path}"

    # =========================================================
    # FETCH
    # =========================================================

    async def fetch_endpoint(
        self,
        endpoint: EndpointDescriptor,
        path_name: Optional[str] = None,
        params: Optional[Dict[str, Any]] = None,
        use_cache: bool = True,
        max_age: Optional[float] = None,
    ) -> FetchOutcome:
        """Fetch one path of an endpoint through cache, limiter and fetcher."""
        outcome, _ = await self._fetch(endpoint, path_name, params, use_cache, max_age)
        return outcome

    async def _fetch(
        self,
        endpoint: EndpointDescriptor,
        path_name: Optional[str] = None,
        params: Optional[Dict[str, Any]] = None,
        use_cache: bool = True,
        max_age: Optional[float] = None,
    ) -> Tuple[FetchOutcome, Optional[FetchFailure]]:
        """
        Returns:
            (outcome, failure) where failure is the fetch failure a stale
            outcome stands in for, None otherwise
        """
        params = params or {}

        api_key = os.getenv(endpoint.api_key_env) if endpoint.api_key_env else None
        if endpoint.requires_auth and not api_key:
            error = ConfigurationError(
                f"Endpoint requires an API key in {endpoint.api_key_env}",
                config_key=endpoint.api_key_env,
                source_name=endpoint.id,
            )
            logger.warning(f"[{endpoint.id}] {error.message}")
            return FetchFailure.from_error(error), None

        url = endpoint.resolve_url(path_name, api_key=api_key, **params)
        key = self.cache_key(endpoint, endpoint.render_path(path_name, **params))
        effective_max_age = self.max_age_for(endpoint, max_age)

        if not self._gate.validate(url):
            error = DisallowedHost(
                f"URL rejected by ingestion policy: {endpoint.host}",
                url=url,
                source_name=endpoint.id,
            )
            logger.warning(f"[{endpoint.id}] {error.message}")
            return FetchFailure.from_error(error), None

        if use_cache:
            entry = self._cache.get(key, max_age)
            if entry is not None:
                logger.debug(f"[{endpoint.id}] Cache hit {key}")
                return FetchSuccess.from_cache_payload(entry.payload), None

        if not self._rate_limiter.check_rate_limit(endpoint):
            reset_at = self._rate_limiter.reset_at(endpoint.id)
            error = RateLimitExceeded(
                f"Local rate limit reached for {endpoint.id}",
                reset_at=reset_at,
                source_name=endpoint.id,
            )
            logger.warning(f"[{endpoint.id}] {error.message}, resets at {reset_at}")
            return FetchFailure.from_error(error), None

        request = FetchRequest(
            url=url,
            endpoint_id=endpoint.id,
            cache_key=key,
            timeout_seconds=self._config.request_timeout_seconds,
            use_cache=use_cache,
            max_age_seconds=max_age,
        )
        outcome = await self._fetcher.fetch(
            request=request,
            chain=build_chain(
                endpoint.cors_capable,
                self._config.cors_strategy,
                self._config.proxy_chain,
            ),
        )

        self._health.record_outcome(
            endpoint.id,
            success=outcome.ok,
            response_time_ms=outcome.response_time_ms,
            error=None if outcome.ok else outcome.message,
        )

        if outcome.ok:
            self._cache.set(key, outcome.to_cache_payload(), effective_max_age)
            return outcome, None

        if outcome.kind in _NO_STALE_FALLBACK:
            return outcome, None
        return self._stale_or(outcome, key)

    def _stale_or(
        self,
        failure: FetchFailure,
        key: str,
    ) -> Tuple[FetchOutcome, Optional[FetchFailure]]:
        entry = self._cache.get_stale(key)
        if entry is None:
            return failure, None
        stale = FetchSuccess.from_cache_payload(entry.payload, stale=True)
        stale.attempts = failure.attempts
        return stale, failure

    # =========================================================
    # INGEST
    # =========================================================

    async def ingest(
        self,
        endpoint: EndpointDescriptor,
        use_cache: bool = True,
    ) -> Tuple[List[NormalizedItem], SourceDiagnostic]:
        """
        Run one endpoint end to end.

        Returns:
            Normalized items and the endpoint's diagnostic
        """
        started = time.perf_counter()
        diagnostic = SourceDiagnostic(source_id=endpoint.id, status=DiagnosticStatus.FAILED)

        def finish(items: List[NormalizedItem]) -> Tuple[List[NormalizedItem], SourceDiagnostic]:
            diagnostic.item_count = len(items)
            diagnostic.duration_ms = (time.perf_counter() - started) * 1000
            return items, diagnostic

        outcome, replaced = await self._fetch(endpoint, use_cache=use_cache)
        diagnostic.attempts = outcome.attempts

        if not outcome.ok:
            diagnostic.reason = outcome.message
            diagnostic.failure_kind = outcome.kind
            return finish([])

        diagnostic.from_cache = outcome.from_cache
        diagnostic.stale = outcome.stale
        diagnostic.strategy = outcome.strategy
        if replaced is not None:
            diagnostic.warnings.append(
                f"served stale cache after {replaced.kind.value}: {replaced.message}"
            )

        try:
            payload = parse(outcome.body, outcome.content_type, outcome.url)
        except ParseError as e:
            e.source_name = endpoint.id
            logger.warning(
                f"[{endpoint.id}] {e.format} payload rejected ({e.reason}), "
                f"digest={redact(outcome.body)}"
            )
            diagnostic.reason = f"{e.format}: {e.reason}"
            diagnostic.failure_kind = e.kind
            return finish([])

        items = await self.normalize(endpoint, payload, outcome.body, diagnostic)
        diagnostic.status = DiagnosticStatus.SUCCESS if items else DiagnosticStatus.EMPTY
        if not items:
            diagnostic.reason = "no items in payload"
        return finish(items)

    async def normalize(
        self,
        endpoint: EndpointDescriptor,
        payload: ParsedPayload,
        body: str,
        diagnostic: Optional[SourceDiagnostic] = None,
    ) -> List[NormalizedItem]:
        """Validate, expand and normalize a parsed payload."""
        plugin = self._registry.resolve(endpoint.normalizer_key)
        context = NormalizationContext(
            endpoint=endpoint,
            ingested_at=self._clock.now(),
            source_url=payload.source_url,
        )

        result = plugin.validate(plugin.raw(payload))
        if not result.ok:
            error = ValidationError(
                f"Payload does not match the {plugin.key} schema",
                errors=result.errors,
                source_name=endpoint.id,
                context={"digest": redact(body)},
            )
            logger.warning(
                f"[{endpoint.id}] {error.message}: {'; '.join(result.errors[:3])} "
                f"digest={error.context['digest']}"
            )
            if diagnostic is not None:
                diagnostic.warnings.append(f"validation: {len(result.errors)} errors")

        async def fetch_related(path_name: str, params: Dict[str, Any]) -> Optional[ParsedPayload]:
            return await self.fetch_related(endpoint, path_name, params)

        payload = await plugin.expand(payload, context, fetch_related)
        try:
            return plugin.run(payload, context)
        except Exception as e:
            fallback = self._registry.fallback
            if plugin is fallback:
                raise
            logger.exception(
                f"[{endpoint.id}] Normalizer {plugin.key} failed ({type(e).__name__}), "
                f"using {fallback.key}, digest={redact(body)}"
            )
            if diagnostic is not None:
                diagnostic.warnings.append(
                    f"normalizer {plugin.key} failed ({type(e).__name__}), used {fallback.key}"
                )
            return fallback.run(payload, context)

    async def fetch_related(
        self,
        endpoint: EndpointDescriptor,
        path_name: str,
        params: Dict[str, Any],
    ) -> Optional[ParsedPayload]:
        """Fetch and parse a dependent document; None on any failure."""
        outcome = await self.fetch_endpoint(
            endpoint,
            path_name,
            params,
            max_age=FAN_OUT_CACHE_MAX_AGE_SECONDS,
        )
        if not outcome.ok:
            logger.debug(f"[{endpoint.id}] Related fetch {path_name} {params} failed: {outcome.message}")
            return None
        try:
            return parse(outcome.body, outcome.content_type, outcome.url)
        except ParseError as e:
            logger.debug(
                f"[{endpoint.id}] Related {path_name} {params} rejected ({e.reason}), "
                f"digest={redact(outcome.body)}"
            )
            return None
