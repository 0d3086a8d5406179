"""
Source Catalog - Registry of endpoint descriptors.

Provides:
- Registration and lookup of endpoint descriptors
- Mode-filtered listings (primary, secondary, social, all)
- The built-in intelligence source catalog
- Ad hoc descriptors for arbitrary RSS/Atom feed URLs
"""

import hashlib
import logging
from typing import Iterable, Optional
from urllib.parse import urlsplit

from data_sources.models import (
    CatalogMode,
    EndpointDescriptor,
    RateLimitQuota,
    RatePeriod,
    RefreshTier,
)


logger = logging.getLogger(__name__)


class SourceCatalog:
    """
    Registry of endpoint descriptors.

    Usage:
        catalog = SourceCatalog()
        catalog.register(descriptor)
        endpoints = catalog.get_endpoints(CatalogMode.PRIMARY)
    """

    def __init__(self, endpoints: Optional[Iterable[EndpointDescriptor]] = None) -> None:
        self._endpoints: dict[str, EndpointDescriptor] = {}
        for endpoint in endpoints or ():
            self.register(endpoint)

    def register(self, endpoint: EndpointDescriptor, replace: bool = False) -> None:
        """
        Register an endpoint descriptor.

        Raises:
            ValueError: If the id is already registered and replace is False
        """
        if endpoint.id in self._endpoints and not replace:
            raise ValueError(f"Endpoint already registered: {endpoint.id}")
        self._endpoints[endpoint.id] = endpoint
        logger.debug(f"Registered endpoint: {endpoint.id} ({endpoint.mode.value})")

    def unregister(self, endpoint_id: str) -> bool:
        """Remove an endpoint. Returns True if it was registered."""
        if endpoint_id in self._endpoints:
            del self._endpoints[endpoint_id]
            logger.debug(f"Unregistered endpoint: {endpoint_id}")
            return True
        return False

    def get(self, endpoint_id: str) -> Optional[EndpointDescriptor]:
        return self._endpoints.get(endpoint_id)

    def get_endpoints(
        self,
        mode: CatalogMode = CatalogMode.ALL,
        include_disabled: bool = False,
    ) -> list[EndpointDescriptor]:
        """
        List endpoints for a catalog mode in registration order.

        Args:
            mode: Source group, or ALL
            include_disabled: Also return endpoints with enabled=False
        """
        mode = CatalogMode(mode)
        return [
            endpoint for endpoint in self._endpoints.values()
            if (mode == CatalogMode.ALL or endpoint.mode == mode)
            and (include_disabled or endpoint.enabled)
        ]

    def list_ids(self) -> list[str]:
        return list(self._endpoints)

    def __contains__(self, endpoint_id: object) -> bool:
        return endpoint_id in self._endpoints

    def __len__(self) -> int:
        return len(self._endpoints)


# ============================================================
# AD HOC FEEDS
# ============================================================

def endpoint_for_feed(
    url: str,
    name: Optional[str] = None,
    category: str = "news",
    cors_capable: bool = True,
    refresh_tier: RefreshTier = RefreshTier.MEDIUM,
) -> EndpointDescriptor:
    """
    Build a descriptor for a bare RSS/Atom/HTML feed URL.

    The id is derived from the URL so repeated runs share cache keys.
    """
    parts = urlsplit(url)
    base_url = f"{parts.scheme}://{parts.netloc}"
    path = parts.path or "/"
    if parts.query:
        path = f"{path}?{parts.query}"
    digest = hashlib.sha1(url.encode("utf-8")).hexdigest()[:10]
    return EndpointDescriptor(
        id=f"feed-{digest}",
        name=name or parts.netloc,
        base_url=base_url,
        paths={"default": path},
        category=category,
        cors_capable=cors_capable,
        normalizer_key="feed",
        refresh_tier=refresh_tier,
        mode=CatalogMode.PRIMARY,
        tags=("feed",),
    )


# ============================================================
# BUILT-IN CATALOG
# ============================================================

def default_endpoints() -> list[EndpointDescriptor]:
    """The built-in intelligence sources."""
    return [
        # Primary: no auth, CORS-capable
        EndpointDescriptor(
            id="noaa-weather-alerts",
            name="NOAA Weather Alerts",
            base_url="https://api.weather.gov",
            paths={"default": "/alerts/active", "zones": "/zones"},
            category="weather-alert",
            rate_limit=RateLimitQuota(1000, RatePeriod.HOUR),
            normalizer_key="noaa-alerts",
            refresh_tier=RefreshTier.CRITICAL,
            tags=("weather", "alerts", "government", "official"),
            trust_rating=100,
        ),
        EndpointDescriptor(
            id="usgs-earthquakes",
            name="USGS Earthquake Data",
            base_url="https://earthquake.usgs.gov/earthquakes/feed/v1.0",
            paths={
                "default": "/summary/significant_month.geojson",
                "major": "/summary/4.5_week.geojson",
                "recent": "/summary/all_day.geojson",
            },
            category="earthquake",
            rate_limit=RateLimitQuota(1000, RatePeriod.HOUR),
            normalizer_key="usgs-earthquakes",
            refresh_tier=RefreshTier.HIGH,
            tags=("seismic", "geology", "government", "hazards"),
            trust_rating=100,
        ),
        EndpointDescriptor(
            id="github-security",
            name="GitHub Security Advisories",
            base_url="https://api.github.com",
            paths={"default": "/advisories"},
            category="security",
            rate_limit=RateLimitQuota(60, RatePeriod.HOUR),
            normalizer_key="github-advisories",
            refresh_tier=RefreshTier.LOW,
            tags=("security", "vulnerabilities", "github", "technology"),
            trust_rating=95,
        ),
        EndpointDescriptor(
            id="hackernews-tech",
            name="Hacker News Technology",
            base_url="https://hacker-news.firebaseio.com/v0",
            paths={
                "default": "/topstories.json",
                "new": "/newstories.json",
                "item": "/item/{id}.json",
            },
            category="technology",
            rate_limit=RateLimitQuota(1000, RatePeriod.HOUR),
            normalizer_key="hackernews",
            refresh_tier=RefreshTier.MEDIUM,
            tags=("technology", "discussion", "innovation", "startups"),
            trust_rating=90,
        ),
        EndpointDescriptor(
            id="coingecko-crypto",
            name="CoinGecko Crypto",
            base_url="https://api.coingecko.com/api/v3",
            paths={"default": "/search/trending", "global": "/global"},
            category="financial",
            rate_limit=RateLimitQuota(50, RatePeriod.MINUTE),
            normalizer_key="coingecko",
            refresh_tier=RefreshTier.HIGH,
            tags=("cryptocurrency", "financial", "markets", "blockchain"),
            trust_rating=85,
        ),
        # Secondary: need an API key
        EndpointDescriptor(
            id="nasa-space-data",
            name="NASA Space Intelligence",
            base_url="https://api.nasa.gov",
            paths={"default": "/planetary/apod"},
            category="space",
            requires_auth=True,
            api_key_env="NASA_API_KEY",
            rate_limit=RateLimitQuota(1000, RatePeriod.HOUR),
            normalizer_key="nasa-apod",
            refresh_tier=RefreshTier.LOW,
            mode=CatalogMode.SECONDARY,
            enabled=False,
            tags=("space", "nasa", "astronomy", "science"),
            trust_rating=100,
        ),
        # Social: high volume, lower trust
        EndpointDescriptor(
            id="reddit-worldnews",
            name="Reddit World News",
            base_url="https://www.reddit.com",
            paths={"default": "/r/worldnews/hot.json"},
            category="social",
            rate_limit=RateLimitQuota(60, RatePeriod.MINUTE),
            normalizer_key="reddit",
            refresh_tier=RefreshTier.MEDIUM,
            mode=CatalogMode.SOCIAL,
            tags=("news", "discussion", "social", "breaking"),
            trust_rating=70,
        ),
        EndpointDescriptor(
            id="reddit-security",
            name="Reddit Security",
            base_url="https://www.reddit.com",
            paths={"default": "/r/netsec/hot.json"},
            category="security",
            rate_limit=RateLimitQuota(60, RatePeriod.MINUTE),
            normalizer_key="reddit",
            refresh_tier=RefreshTier.MEDIUM,
            mode=CatalogMode.SOCIAL,
            tags=("security", "discussion", "cybersecurity", "threats"),
            trust_rating=75,
        ),
    ]


def build_default_catalog() -> SourceCatalog:
    """Create a catalog holding the built-in sources."""
    return SourceCatalog(default_endpoints())
