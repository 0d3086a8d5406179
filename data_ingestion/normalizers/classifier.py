"""
Normalizers - Priority and content tier classification.

============================================================
RESPONSIBILITY
============================================================
Maps source-specific signals onto the shared priority scale and
assigns a content tier from the item category.

- Severity words, vote scores, magnitudes and CVSS scores each
  have their own mapping
- Category decides the tier (threat, alert, intel, news)
- Urgent keywords in the title or description raise priority
  by one step

============================================================
"""

from typing import Any, Iterable, List, Optional

from data_ingestion.types import ContentTier, NormalizedItem, Priority


# =============================================================
# CATEGORY -> TIER
# =============================================================

CATEGORY_TIERS = {
    "security": ContentTier.THREAT,
    "cyberdefense": ContentTier.THREAT,
    "weather-alert": ContentTier.ALERT,
    "earthquake": ContentTier.ALERT,
    "seismic": ContentTier.ALERT,
    "space": ContentTier.INTEL,
    "technology": ContentTier.INTEL,
    "government": ContentTier.INTEL,
    "military": ContentTier.INTEL,
}

ESCALATION_KEYWORDS = (
    "zero-day",
    "0-day",
    "actively exploited",
    "ransomware",
    "data breach",
    "tsunami warning",
    "evacuation",
    "state of emergency",
    "critical vulnerability",
)


def tier_for_category(category: Optional[str]) -> ContentTier:
    return CATEGORY_TIERS.get((category or "").lower(), ContentTier.NEWS)


# =============================================================
# SIGNAL -> PRIORITY
# =============================================================

def priority_from_severity(severity: Any) -> Priority:
    value = str(severity or "").lower()
    if value in ("extreme", "critical"):
        return Priority.CRITICAL
    if value in ("severe", "major", "significant", "high"):
        return Priority.HIGH
    if value in ("moderate", "minor", "medium"):
        return Priority.MEDIUM
    return Priority.LOW


def priority_from_score(score: Any) -> Priority:
    """Community vote score (Reddit, Hacker News)."""
    try:
        value = float(score or 0)
    except (TypeError, ValueError):
        return Priority.LOW
    if value > 1000:
        return Priority.CRITICAL
    if value > 500:
        return Priority.HIGH
    if value > 100:
        return Priority.MEDIUM
    return Priority.LOW


def priority_from_magnitude(magnitude: Any) -> Priority:
    try:
        value = float(magnitude)
    except (TypeError, ValueError):
        return Priority.LOW
    if value >= 7:
        return Priority.CRITICAL
    if value >= 6:
        return Priority.HIGH
    if value >= 4:
        return Priority.MEDIUM
    return Priority.LOW


def priority_from_cvss(score: Any) -> Optional[Priority]:
    """CVSS base score; None when there is no usable score."""
    try:
        value = float(score)
    except (TypeError, ValueError):
        return None
    if value >= 9:
        return Priority.CRITICAL
    if value >= 7:
        return Priority.HIGH
    if value >= 4:
        return Priority.MEDIUM
    return Priority.LOW


# =============================================================
# CLASSIFICATION
# =============================================================

def mentions_urgent_keyword(text: str, keywords: Iterable[str] = ESCALATION_KEYWORDS) -> bool:
    lowered = text.lower()
    return any(keyword in lowered for keyword in keywords)


def classify_items(items: List[NormalizedItem]) -> List[NormalizedItem]:
    """
    Assign content tiers and apply keyword escalation in place.

    Args:
        items: Normalized items from a single source

    Returns:
        The same list, for chaining
    """
    for item in items:
        item.content_tier = tier_for_category(item.category)
        if mentions_urgent_keyword(f"{item.title} {item.description}"):
            item.priority = item.priority.raised()
    return items
