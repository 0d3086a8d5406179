"""
Tests for endpoint descriptors and the source catalog.
"""

import dataclasses

import pytest

from data_sources import (
    CatalogMode,
    EndpointDescriptor,
    RateLimitQuota,
    RatePeriod,
    RefreshTier,
    SourceCatalog,
    build_default_catalog,
    endpoint_for_feed,
)


# ============================================================
# FIXTURES
# ============================================================

@pytest.fixture
def hn_endpoint():
    return EndpointDescriptor(
        id="hn",
        name="HN",
        base_url="https://hacker-news.firebaseio.com/v0/",
        paths={"default": "/topstories.json", "item": "/item/{id}.json"},
        normalizer_key="hackernews",
    )


@pytest.fixture
def keyed_endpoint():
    return EndpointDescriptor(
        id="nasa",
        name="NASA",
        base_url="https://api.nasa.gov",
        paths={"default": "/planetary/apod?thumbs=true"},
        requires_auth=True,
        api_key_env="NASA_API_KEY",
    )


# ============================================================
# DESCRIPTORS
# ============================================================

class TestEndpointDescriptor:
    """Tests for URL resolution on descriptors."""

    def test_resolve_primary_path(self, hn_endpoint):
        assert hn_endpoint.resolve_url() == "https://hacker-news.firebaseio.com/v0/topstories.json"

    def test_resolve_templated_path(self, hn_endpoint):
        url = hn_endpoint.resolve_url("item", id=8863)
        assert url == "https://hacker-news.firebaseio.com/v0/item/8863.json"

    def test_missing_placeholder_value(self, hn_endpoint):
        with pytest.raises(KeyError):
            hn_endpoint.resolve_url("item")

    def test_unknown_path_name(self, hn_endpoint):
        with pytest.raises(KeyError):
            hn_endpoint.path_template("comments")

    def test_literal_path_allowed(self, hn_endpoint):
        assert hn_endpoint.render_path("/maxitem.json") == "/maxitem.json"

    def test_api_key_appended_as_query(self, keyed_endpoint):
        url = keyed_endpoint.resolve_url(api_key="s3cret")
        assert url == "https://api.nasa.gov/planetary/apod?thumbs=true&api_key=s3cret"

    def test_api_key_ignored_without_auth(self, hn_endpoint):
        assert "api_key" not in hn_endpoint.resolve_url(api_key="s3cret")

    def test_host_lowercased(self):
        endpoint = EndpointDescriptor(id="x", name="x", base_url="https://API.Weather.gov")
        assert endpoint.host == "api.weather.gov"

    def test_has_path(self, hn_endpoint):
        assert hn_endpoint.has_path("item")
        assert not hn_endpoint.has_path("comments")

    def test_quota_period_from_string(self):
        quota = RateLimitQuota(10, "hour")
        assert quota.period == RatePeriod.HOUR
        assert quota.window_seconds == 3600

    def test_descriptor_is_immutable(self, hn_endpoint):
        with pytest.raises(dataclasses.FrozenInstanceError):
            hn_endpoint.id = "other"


# ============================================================
# CATALOG
# ============================================================

class TestSourceCatalog:
    """Tests for SourceCatalog."""

    def test_duplicate_registration_rejected(self, hn_endpoint):
        catalog = SourceCatalog([hn_endpoint])
        with pytest.raises(ValueError):
            catalog.register(hn_endpoint)

    def test_replace_registration(self, hn_endpoint):
        catalog = SourceCatalog([hn_endpoint])
        replacement = EndpointDescriptor(id="hn", name="HN 2", base_url="https://example.com")
        catalog.register(replacement, replace=True)
        assert catalog.get("hn").name == "HN 2"
        assert len(catalog) == 1

    def test_unregister(self, hn_endpoint):
        catalog = SourceCatalog([hn_endpoint])
        assert catalog.unregister("hn") is True
        assert catalog.unregister("hn") is False
        assert "hn" not in catalog

    def test_mode_filter_and_disabled(self):
        catalog = build_default_catalog()

        primary = [e.id for e in catalog.get_endpoints(CatalogMode.PRIMARY)]
        social = [e.id for e in catalog.get_endpoints(CatalogMode.SOCIAL)]
        secondary = catalog.get_endpoints(CatalogMode.SECONDARY)

        assert "noaa-weather-alerts" in primary
        assert "reddit-worldnews" not in primary
        assert set(social) == {"reddit-worldnews", "reddit-security"}
        # NASA needs a key and ships disabled
        assert secondary == []
        assert [e.id for e in catalog.get_endpoints("secondary", include_disabled=True)] == [
            "nasa-space-data"
        ]

    def test_all_mode_keeps_registration_order(self):
        catalog = build_default_catalog()
        ids = [e.id for e in catalog.get_endpoints(CatalogMode.ALL)]
        assert ids[0] == "noaa-weather-alerts"
        assert len(ids) == len(set(ids))

    def test_default_catalog_endpoints_are_https(self):
        for endpoint in build_default_catalog().get_endpoints(include_disabled=True):
            assert endpoint.base_url.startswith("https://")
            assert endpoint.rate_limit is not None


# ============================================================
# AD HOC FEEDS
# ============================================================

class TestEndpointForFeed:
    """Tests for endpoint_for_feed."""

    def test_feed_descriptor(self):
        endpoint = endpoint_for_feed("https://example.com/news/rss.xml?lang=en")

        assert endpoint.id.startswith("feed-")
        assert endpoint.normalizer_key == "feed"
        assert endpoint.resolve_url() == "https://example.com/news/rss.xml?lang=en"
        assert endpoint.refresh_tier == RefreshTier.MEDIUM

    def test_same_url_same_id(self):
        a = endpoint_for_feed("https://example.com/rss")
        b = endpoint_for_feed("https://example.com/rss")
        c = endpoint_for_feed("https://example.com/atom")
        assert a.id == b.id
        assert a.id != c.id
