"""
Data Ingestion - Normalizers Package.

Each normalizer converts one parsed payload into NormalizedItems.

Normalizers:
- feed_normalizer: RSS/Atom/HTML/text entries and the generic fallback
- hazard_normalizer: NOAA weather alerts, USGS earthquakes
- security_normalizer: GitHub security advisories
- social_normalizer: Reddit, Hacker News (with fan-out)
- market_normalizer: CoinGecko, NASA APOD
"""

from data_ingestion.normalizers.base import (
    FetchRelated,
    NormalizationContext,
    NormalizerPlugin,
    ValidationResult,
)
from data_ingestion.normalizers.classifier import classify_items, tier_for_category
from data_ingestion.normalizers.feed_normalizer import FeedNormalizer, GenericNormalizer
from data_ingestion.normalizers.hazard_normalizer import (
    NoaaAlertsNormalizer,
    UsgsEarthquakeNormalizer,
)
from data_ingestion.normalizers.market_normalizer import CoinGeckoNormalizer, NasaApodNormalizer
from data_ingestion.normalizers.registry import NormalizerRegistry, build_default_registry
from data_ingestion.normalizers.security_normalizer import GitHubAdvisoriesNormalizer
from data_ingestion.normalizers.social_normalizer import HackerNewsNormalizer, RedditNormalizer

__all__ = [
    "FetchRelated",
    "NormalizationContext",
    "NormalizerPlugin",
    "ValidationResult",
    "classify_items",
    "tier_for_category",
    "FeedNormalizer",
    "GenericNormalizer",
    "NoaaAlertsNormalizer",
    "UsgsEarthquakeNormalizer",
    "CoinGeckoNormalizer",
    "NasaApodNormalizer",
    "NormalizerRegistry",
    "build_default_registry",
    "GitHubAdvisoriesNormalizer",
    "HackerNewsNormalizer",
    "RedditNormalizer",
]
