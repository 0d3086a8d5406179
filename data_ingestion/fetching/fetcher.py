"""
Retrying Fetcher - Bounded retries over a strategy fallback chain.

============================================================
STATE MACHINE
============================================================
INIT -> TRY_PRIMARY -> DONE
                    -> TRY_FALLBACK_1 -> ... -> DONE
                                             -> ALL_EXHAUSTED

Per attempt:
- NetworkError, HTTPStatusError: retry the same strategy after
  backoff * attempt, up to retry_attempts tries
- CORSError, or a proxy host the gate rejects: the strategy cannot
  work, next strategy at once
- Aborted (timeout): no more retries for this strategy, next one
- SizeLimitExceeded, DisallowedHost, ParseError: terminal
- asyncio.CancelledError: propagates, the chain stops

============================================================
"""

import asyncio
import logging
import time
from typing import Awaitable, Callable, Dict, List, Optional, Sequence, Tuple

from core.constants import DEFAULT_RETRY_ATTEMPTS, DEFAULT_RETRY_BACKOFF_SECONDS
from core.exceptions import (
    Aborted,
    AllStrategiesExhausted,
    CORSError,
    DisallowedHost,
    HTTPStatusError,
    IngestionError,
    TransportError,
)
from data_ingestion.fetching.strategies import FetchStrategy
from data_ingestion.fetching.transport import RawResponse, Transport
from data_ingestion.security import SecurityGate
from data_ingestion.types import FetchFailure, FetchOutcome, FetchRequest, FetchSuccess


logger = logging.getLogger(__name__)

SleepFn = Callable[[float], Awaitable[None]]


class RetryingFetcher:
    """
    Walks a fallback chain with bounded retries per strategy.

    Usage:
        fetcher = RetryingFetcher(AiohttpTransport(), gate)
        outcome = await fetcher.fetch(request, build_chain(True, cors, chain))
        if outcome.ok:
            ...
    """

    def __init__(
        self,
        transport: Transport,
        gate: SecurityGate,
        retry_attempts: int = DEFAULT_RETRY_ATTEMPTS,
        backoff_seconds: float = DEFAULT_RETRY_BACKOFF_SECONDS,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        if retry_attempts < 1:
            raise ValueError("retry_attempts must be at least 1")
        self._transport = transport
        self._gate = gate
        self._retry_attempts = retry_attempts
        self._backoff = backoff_seconds
        self._sleep = sleep

    async def fetch(
        self,
        request: FetchRequest,
        chain: Sequence[FetchStrategy],
        headers: Optional[Dict[str, str]] = None,
    ) -> FetchOutcome:
        """
        Fetch a request through the chain.

        Returns:
            FetchSuccess from the first strategy that yields a usable body,
            otherwise FetchFailure (terminal kind or AllStrategiesExhausted)
        """
        started = time.perf_counter()
        attempts = 0
        failures: List[IngestionError] = []

        def elapsed_ms() -> float:
            return (time.perf_counter() - started) * 1000

        try:
            self._gate.check_url(request.url)
        except IngestionError as e:
            e.source_name = request.endpoint_id
            logger.warning(f"[{request.endpoint_id}] {e.message}")
            return FetchFailure.from_error(e, elapsed_ms(), attempts)

        for strategy in chain:
            for attempt in range(1, self._retry_attempts + 1):
                attempts += 1
                try:
                    body, raw = await self._attempt(request, strategy, headers)
                except TransportError as e:
                    e.strategy = e.strategy or strategy.name
                    e.source_name = request.endpoint_id
                    failures.append(e)
                    logger.debug(
                        f"[{request.endpoint_id}] {strategy.name} attempt {attempt} failed: "
                        f"{e.kind.value} {e.message}"
                    )
                    if not e.is_retryable:
                        break
                    if attempt < self._retry_attempts:
                        await self._sleep(self._backoff * attempt)
                    continue
                except IngestionError as e:
                    e.source_name = request.endpoint_id
                    logger.warning(f"[{request.endpoint_id}] {e.kind.value}: {e.message}")
                    return FetchFailure.from_error(e, elapsed_ms(), attempts)

                if failures:
                    logger.info(
                        f"[{request.endpoint_id}] Succeeded via {strategy.name} "
                        f"after {attempts} attempts"
                    )
                return FetchSuccess(
                    status_code=raw.status_code,
                    body=body,
                    content_type=raw.content_type,
                    url=request.url,
                    response_time_ms=elapsed_ms(),
                    strategy=strategy.name,
                    attempts=attempts,
                )

            logger.info(f"[{request.endpoint_id}] Strategy {strategy.name} exhausted")

        error = AllStrategiesExhausted(
            f"All {len(chain)} strategies failed after {attempts} attempts",
            failures=failures,
            source_name=request.endpoint_id,
        )
        logger.warning(f"[{request.endpoint_id}] {error.message}")
        return FetchFailure.from_error(error, elapsed_ms(), attempts)

    async def _attempt(
        self,
        request: FetchRequest,
        strategy: FetchStrategy,
        headers: Optional[Dict[str, str]],
    ) -> Tuple[str, RawResponse]:
        """One network exchange, classified."""
        target = strategy.rewrite(request.url)
        if not strategy.is_direct:
            try:
                self._gate.check_url(target, enforce_allow_list=False)
            except DisallowedHost as e:
                # A bad proxy entry only rules out that strategy
                raise CORSError(
                    f"Proxy host rejected: {e.message}",
                    strategy=strategy.name,
                    cause=e,
                )

        try:
            raw = await asyncio.wait_for(
                self._transport.send(target, request.timeout_seconds, self._gate, headers),
                timeout=request.timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            raise Aborted(
                f"Timed out after {request.timeout_seconds}s",
                strategy=strategy.name,
                cause=e,
            )

        return self._classify(raw, strategy), raw

    def _classify(self, raw: RawResponse, strategy: FetchStrategy) -> str:
        """Turn a raw response into a body or a transport error."""
        if raw.status_code == 0:
            raise CORSError("Opaque response (status 0)", strategy=strategy.name)

        if not 200 <= raw.status_code < 300:
            raise HTTPStatusError(
                f"HTTP {raw.status_code}",
                status_code=raw.status_code,
                strategy=strategy.name,
            )

        body = raw.text()
        if not body.strip():
            raise CORSError("Empty response body", strategy=strategy.name)
        if strategy.looks_like_redirect_page(body):
            raise CORSError("Proxy returned a redirect page", strategy=strategy.name)
        return body
