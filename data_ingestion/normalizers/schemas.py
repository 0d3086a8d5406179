"""
Pydantic schemas for normalizer payload validation.

Loose on purpose: they confirm the overall shape a normalizer walks
and let unknown fields through. A failed validation is logged, never
fatal.
"""

from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict


class LooseModel(BaseModel):
    model_config = ConfigDict(extra="allow")


# =======================
# GEOJSON (NOAA, USGS)
# =======================

class GeoFeature(LooseModel):
    id: Optional[str] = None
    properties: Optional[Dict[str, Any]] = None
    geometry: Optional[Dict[str, Any]] = None


class GeoFeatureCollection(LooseModel):
    features: Optional[List[GeoFeature]] = None


# =======================
# GITHUB ADVISORIES
# =======================

class AdvisoryEnvelope(LooseModel):
    security_advisories: List[Dict[str, Any]]


GitHubAdvisoriesSchema = Union[List[Dict[str, Any]], AdvisoryEnvelope]


# =======================
# REDDIT
# =======================

class RedditChild(LooseModel):
    data: Dict[str, Any]


class RedditListingData(LooseModel):
    children: List[RedditChild]


class RedditListing(LooseModel):
    data: RedditListingData


# =======================
# HACKER NEWS
# =======================

class HackerNewsItem(LooseModel):
    id: Optional[int] = None
    title: Optional[str] = None
    url: Optional[str] = None
    time: Optional[int] = None
    score: Optional[int] = None
    by: Optional[str] = None


HackerNewsSchema = Union[List[Union[int, HackerNewsItem]], HackerNewsItem]


# =======================
# COINGECKO
# =======================

class CoinGeckoEnvelope(LooseModel):
    coins: Optional[List[Dict[str, Any]]] = None
    data: Optional[Dict[str, Any]] = None


CoinGeckoSchema = Union[List[Dict[str, Any]], CoinGeckoEnvelope]


# =======================
# NASA APOD
# =======================

class ApodEntry(LooseModel):
    date: Optional[str] = None
    title: Optional[str] = None
    explanation: Optional[str] = None
    url: Optional[str] = None
    hdurl: Optional[str] = None


ApodSchema = Union[List[ApodEntry], ApodEntry]
