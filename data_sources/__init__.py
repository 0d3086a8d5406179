"""
Data Sources Package - Endpoint descriptors and the source catalog.

Quick Start:
    from data_sources import CatalogMode, build_default_catalog

    catalog = build_default_catalog()
    for endpoint in catalog.get_endpoints(CatalogMode.PRIMARY):
        print(endpoint.id, endpoint.resolve_url())

Adding New Sources:
    1. Create an EndpointDescriptor (base_url, paths, rate_limit, normalizer_key)
    2. Register it with SourceCatalog
    3. Register a normalizer plugin under normalizer_key if none fits
"""

from data_sources.catalog import (
    SourceCatalog,
    build_default_catalog,
    default_endpoints,
    endpoint_for_feed,
)
from data_sources.models import (
    CatalogMode,
    EndpointDescriptor,
    RateLimitQuota,
    RatePeriod,
    RefreshTier,
)


__all__ = [
    # Models
    "CatalogMode",
    "EndpointDescriptor",
    "RateLimitQuota",
    "RatePeriod",
    "RefreshTier",

    # Catalog
    "SourceCatalog",
    "build_default_catalog",
    "default_endpoints",
    "endpoint_for_feed",
]
