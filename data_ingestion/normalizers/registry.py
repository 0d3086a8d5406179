"""
Normalizers - Plugin registry.

Maps normalizer keys (``EndpointDescriptor.normalizer_key``) to
plugin instances. Unknown keys resolve to the generic fallback.
"""

import logging
from typing import Dict, List, Optional

from data_ingestion.normalizers.base import NormalizerPlugin
from data_ingestion.normalizers.feed_normalizer import FeedNormalizer, GenericNormalizer
from data_ingestion.normalizers.hazard_normalizer import (
    NoaaAlertsNormalizer,
    UsgsEarthquakeNormalizer,
)
from data_ingestion.normalizers.market_normalizer import CoinGeckoNormalizer, NasaApodNormalizer
from data_ingestion.normalizers.security_normalizer import GitHubAdvisoriesNormalizer
from data_ingestion.normalizers.social_normalizer import HackerNewsNormalizer, RedditNormalizer


logger = logging.getLogger(__name__)


class NormalizerRegistry:
    """
    Registry of normalizer plugins.

    Example:
        registry = build_default_registry()
        plugin = registry.resolve(endpoint.normalizer_key)
    """

    def __init__(self, fallback: Optional[NormalizerPlugin] = None):
        self._plugins: Dict[str, NormalizerPlugin] = {}
        self._fallback = fallback or GenericNormalizer()

    @property
    def fallback(self) -> NormalizerPlugin:
        return self._fallback

    def register(self, key: str, plugin: NormalizerPlugin, replace: bool = False) -> None:
        """
        Register a plugin under a key.

        Raises:
            ValueError: If the key is taken and replace is False
        """
        if key in self._plugins and not replace:
            raise ValueError(f"Normalizer already registered: {key}")
        self._plugins[key] = plugin
        logger.debug(f"Registered normalizer: {key}")

    def unregister(self, key: str) -> bool:
        return self._plugins.pop(key, None) is not None

    def get(self, key: str) -> Optional[NormalizerPlugin]:
        return self._plugins.get(key)

    def resolve(self, key: Optional[str]) -> NormalizerPlugin:
        """Plugin for key, or the generic fallback."""
        plugin = self._plugins.get(key or "")
        if plugin is None:
            logger.debug(f"No normalizer for {key!r}, using generic fallback")
            return self._fallback
        return plugin

    def list_keys(self) -> List[str]:
        return sorted(self._plugins)

    def __contains__(self, key: str) -> bool:
        return key in self._plugins


def build_default_registry() -> NormalizerRegistry:
    """Registry with every built-in plugin."""
    registry = NormalizerRegistry()
    for plugin in (
        FeedNormalizer(),
        registry.fallback,
        NoaaAlertsNormalizer(),
        UsgsEarthquakeNormalizer(),
        GitHubAdvisoriesNormalizer(),
        RedditNormalizer(),
        HackerNewsNormalizer(),
        CoinGeckoNormalizer(),
        NasaApodNormalizer(),
    ):
        registry.register(plugin.key, plugin)
    return registry
