"""
Core Module - Configuration.

============================================================
RESPONSIBILITY
============================================================
Loads the ingestion configuration from the environment.

- A .env file in the working directory is honoured
- Every value has a safe default
- validate() reports problems instead of raising

============================================================
"""

import os
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from dotenv import load_dotenv

from core.constants import (
    DEFAULT_CACHE_MAX_AGE_SECONDS,
    DEFAULT_MAX_CONCURRENT_REQUESTS,
    DEFAULT_MAX_CONTENT_LENGTH_BYTES,
    DEFAULT_PROXY_CHAIN,
    DEFAULT_REFRESH_INTERVALS,
    DEFAULT_REQUEST_TIMEOUT_SECONDS,
    DEFAULT_RETRY_ATTEMPTS,
    DEFAULT_RETRY_BACKOFF_SECONDS,
    DEFAULT_STALE_RETENTION_SECONDS,
)
from core.exceptions import ConfigurationError


def _split_list(raw: Optional[str]) -> Tuple[str, ...]:
    if not raw:
        return ()
    return tuple(part.strip() for part in raw.split(",") if part.strip())


def _parse_bool(raw: Optional[str], default: bool) -> bool:
    if raw is None or raw == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _parse_refresh_intervals(raw: Optional[str]) -> Dict[str, int]:
    """Parse ``critical=300,high=600`` into a tier -> seconds map."""
    intervals = dict(DEFAULT_REFRESH_INTERVALS)
    for pair in _split_list(raw):
        tier, sep, value = pair.partition("=")
        if not sep:
            raise ConfigurationError(
                f"Malformed refresh interval entry: {pair!r}",
                config_key="INGEST_REFRESH_INTERVALS",
                actual_value=raw,
            )
        try:
            intervals[tier.strip().lower()] = int(value)
        except ValueError as e:
            raise ConfigurationError(
                f"Refresh interval for {tier!r} is not an integer",
                config_key="INGEST_REFRESH_INTERVALS",
                actual_value=value,
                cause=e,
            )
    return intervals


@dataclass(frozen=True)
class IngestionConfig:
    """Ingestion policy and runtime configuration."""

    allowed_hosts: Tuple[str, ...] = ()
    """Host allow-list; empty means any public host."""

    article_hosts: Tuple[str, ...] = ()
    """Hosts whose article-looking URLs are still accepted as feeds."""

    max_content_length_bytes: int = DEFAULT_MAX_CONTENT_LENGTH_BYTES
    block_private_networks: bool = True

    refresh_intervals: Dict[str, int] = field(
        default_factory=lambda: dict(DEFAULT_REFRESH_INTERVALS)
    )
    """Seconds per refresh tier; doubles as the cache max-age of that tier."""

    max_concurrent_requests: int = DEFAULT_MAX_CONCURRENT_REQUESTS
    default_cache_max_age_seconds: int = DEFAULT_CACHE_MAX_AGE_SECONDS
    stale_retention_seconds: int = DEFAULT_STALE_RETENTION_SECONDS

    retry_attempts: int = DEFAULT_RETRY_ATTEMPTS
    retry_backoff_seconds: float = DEFAULT_RETRY_BACKOFF_SECONDS
    request_timeout_seconds: float = DEFAULT_REQUEST_TIMEOUT_SECONDS

    cors_strategy: str = DEFAULT_PROXY_CHAIN[1]
    """Primary strategy for endpoints that are not CORS-capable."""

    proxy_chain: Tuple[str, ...] = DEFAULT_PROXY_CHAIN

    cache_database_url: Optional[str] = None
    """SQLAlchemy URL of the persisted cache tier; None keeps it in memory."""

    log_level: str = "INFO"
    log_format: str = "text"

    @classmethod
    def from_env(cls, dotenv: bool = True) -> "IngestionConfig":
        """Load configuration from environment variables."""
        if dotenv:
            load_dotenv()

        proxy_chain = _split_list(os.getenv("INGEST_PROXY_CHAIN")) or DEFAULT_PROXY_CHAIN
        try:
            return cls(
                allowed_hosts=_split_list(os.getenv("INGEST_ALLOWED_HOSTS")),
                article_hosts=_split_list(os.getenv("INGEST_ARTICLE_HOSTS")),
                max_content_length_bytes=int(
                    os.getenv("INGEST_MAX_CONTENT_LENGTH", str(DEFAULT_MAX_CONTENT_LENGTH_BYTES))
                ),
                block_private_networks=_parse_bool(
                    os.getenv("INGEST_BLOCK_PRIVATE_NETWORKS"), True
                ),
                refresh_intervals=_parse_refresh_intervals(
                    os.getenv("INGEST_REFRESH_INTERVALS")
                ),
                max_concurrent_requests=int(
                    os.getenv("INGEST_MAX_CONCURRENT_REQUESTS", str(DEFAULT_MAX_CONCURRENT_REQUESTS))
                ),
                default_cache_max_age_seconds=int(
                    os.getenv("INGEST_DEFAULT_CACHE_MAX_AGE", str(DEFAULT_CACHE_MAX_AGE_SECONDS))
                ),
                stale_retention_seconds=int(
                    os.getenv("INGEST_STALE_RETENTION", str(DEFAULT_STALE_RETENTION_SECONDS))
                ),
                retry_attempts=int(
                    os.getenv("INGEST_RETRY_ATTEMPTS", str(DEFAULT_RETRY_ATTEMPTS))
                ),
                retry_backoff_seconds=float(
                    os.getenv("INGEST_RETRY_BACKOFF", str(DEFAULT_RETRY_BACKOFF_SECONDS))
                ),
                request_timeout_seconds=float(
                    os.getenv("INGEST_REQUEST_TIMEOUT", str(DEFAULT_REQUEST_TIMEOUT_SECONDS))
                ),
                cors_strategy=os.getenv("INGEST_CORS_STRATEGY", DEFAULT_PROXY_CHAIN[1]),
                proxy_chain=proxy_chain,
                cache_database_url=os.getenv("INGEST_CACHE_DATABASE_URL") or None,
                log_level=os.getenv("LOG_LEVEL", "INFO"),
                log_format=os.getenv("LOG_FORMAT", "text"),
            )
        except ValueError as e:
            raise ConfigurationError(f"Invalid numeric setting: {e}", cause=e)

    def validate(self) -> List[str]:
        """Validate configuration, return list of errors."""
        errors = []

        if self.max_content_length_bytes < 1:
            errors.append("max_content_length_bytes must be positive")

        if self.max_concurrent_requests < 1:
            errors.append("max_concurrent_requests must be at least 1")

        if self.retry_attempts < 1:
            errors.append("retry_attempts must be at least 1")

        if self.request_timeout_seconds <= 0:
            errors.append("request_timeout_seconds must be positive")

        if self.default_cache_max_age_seconds < 0:
            errors.append("default_cache_max_age_seconds must not be negative")

        for strategy in self.proxy_chain + (self.cors_strategy,):
            if strategy != "direct" and not strategy.startswith(("http://", "https://")):
                errors.append(f"proxy strategy {strategy!r} must be 'direct' or an http(s) URL")

        if self.log_format not in ("json", "text"):
            errors.append("log_format must be 'json' or 'text'")

        return errors
