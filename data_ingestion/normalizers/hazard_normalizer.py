"""
Normalizers - Natural hazard sources.

============================================================
SOURCES
============================================================
- NOAA active weather alerts (GeoJSON, properties per alert)
- USGS earthquake summaries (GeoJSON, epoch millisecond times)

Both are high-trust government feeds; priority comes from the
alert severity or the quake magnitude.

============================================================
"""

from typing import Any, Dict, List

from data_ingestion.normalizers.base import NormalizationContext, NormalizerPlugin
from data_ingestion.normalizers.classifier import (
    priority_from_magnitude,
    priority_from_severity,
)
from data_ingestion.normalizers.helpers import (
    coerce_timestamp,
    first_of,
    stable_id,
    strip_html,
    unique,
)
from data_ingestion.normalizers.schemas import GeoFeatureCollection
from data_ingestion.parsers.base import ParsedPayload
from data_ingestion.types import NormalizedItem


NOAA_TRUST_RATING = 95
USGS_TRUST_RATING = 98


def _features(data: Any) -> List[Dict[str, Any]]:
    if isinstance(data, dict) and isinstance(data.get("features"), list):
        return [f for f in data["features"] if isinstance(f, dict)]
    return []


def _properties(feature: Dict[str, Any]) -> Dict[str, Any]:
    props = feature.get("properties")
    return props if isinstance(props, dict) else {}


# =============================================================
# NOAA
# =============================================================

class NoaaAlertsNormalizer(NormalizerPlugin):
    key = "noaa-alerts"
    schema = GeoFeatureCollection

    def normalize(
        self,
        payload: ParsedPayload,
        context: NormalizationContext,
    ) -> List[NormalizedItem]:
        items = []
        for feature in _features(payload.data):
            alert = _properties(feature)
            title = first_of(alert, ("headline", "event", "NWSheadline"), "NOAA Alert")
            if isinstance(title, list):
                title = title[0] if title else "NOAA Alert"
            severity = alert.get("severity")
            event = alert.get("event")
            link = first_of(alert, ("web", "@id"), "") or str(feature.get("id") or "")
            items.append(NormalizedItem(
                id=stable_id("noaa", first_of(alert, ("id",)) or feature.get("id"), title, link),
                title=strip_html(title, limit=0),
                link=link or context.source_url,
                published_at=coerce_timestamp(
                    first_of(alert, ("sent", "effective", "onset", "expires")),
                    context.ingested_at,
                ),
                source_id=context.source_id,
                description=strip_html(first_of(alert, ("description", "instruction"), "")),
                tags=unique([event, severity, "weather"]),
                priority=priority_from_severity(severity),
                category=context.endpoint.category,
                trust_rating=NOAA_TRUST_RATING,
                metadata={
                    "severity": severity,
                    "urgency": alert.get("urgency"),
                    "areas": alert.get("areaDesc"),
                    "event": event,
                },
            ))
        return items

    def enrich(
        self,
        items: List[NormalizedItem],
        context: NormalizationContext,
    ) -> List[NormalizedItem]:
        for item in items:
            extra = []
            if item.metadata.get("severity"):
                extra.append(f"severity:{str(item.metadata['severity']).lower()}")
            if item.metadata.get("event"):
                extra.append(f"event:{str(item.metadata['event']).lower()}")
            item.tags = unique([*item.tags, *extra])
        return super().enrich(items, context)


# =============================================================
# USGS
# =============================================================

class UsgsEarthquakeNormalizer(NormalizerPlugin):
    key = "usgs-earthquakes"
    schema = GeoFeatureCollection

    def normalize(
        self,
        payload: ParsedPayload,
        context: NormalizationContext,
    ) -> List[NormalizedItem]:
        items = []
        for feature in _features(payload.data):
            quake = _properties(feature)
            magnitude = quake.get("mag")
            place = quake.get("place") or "Unknown location"
            coordinates = (feature.get("geometry") or {}).get("coordinates") or []
            title = quake.get("title") or f"M{magnitude} Earthquake - {place}"
            items.append(NormalizedItem(
                id=stable_id("usgs", feature.get("id"), title, quake.get("time")),
                title=title,
                link=quake.get("url") or context.source_url,
                published_at=coerce_timestamp(quake.get("time"), context.ingested_at),
                source_id=context.source_id,
                description=strip_html(
                    f"Magnitude {magnitude} earthquake near {place}"
                    + (f" at {coordinates[2]} km depth" if len(coordinates) > 2 else "")
                ),
                tags=unique(["earthquake", "seismic", quake.get("type")]),
                priority=priority_from_magnitude(magnitude),
                category=context.endpoint.category,
                trust_rating=USGS_TRUST_RATING,
                metadata={
                    "magnitude": magnitude,
                    "location": place,
                    "depth": coordinates[2] if len(coordinates) > 2 else None,
                    "longitude": coordinates[0] if len(coordinates) > 0 else None,
                    "latitude": coordinates[1] if len(coordinates) > 1 else None,
                    "tsunami": bool(quake.get("tsunami")),
                },
            ))
        return items

    def enrich(
        self,
        items: List[NormalizedItem],
        context: NormalizationContext,
    ) -> List[NormalizedItem]:
        for item in items:
            extra = []
            magnitude = item.metadata.get("magnitude")
            if isinstance(magnitude, (int, float)) and not isinstance(magnitude, bool):
                extra.append(f"m:{magnitude:.1f}")
            if item.metadata.get("location"):
                extra.append(f"place:{str(item.metadata['location']).lower()}")
            item.tags = unique([*item.tags, *extra])
        return super().enrich(items, context)
