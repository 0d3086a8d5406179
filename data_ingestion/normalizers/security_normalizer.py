"""
Normalizers - GitHub security advisories.

Accepts the global advisories list or an object wrapping it in
``security_advisories``. Priority follows the CVSS score when one is
published and the severity label otherwise.
"""

from typing import Any, Dict, List, Optional

from data_ingestion.normalizers.base import NormalizationContext, NormalizerPlugin
from data_ingestion.normalizers.classifier import priority_from_cvss
from data_ingestion.normalizers.helpers import (
    coerce_timestamp,
    first_of,
    stable_id,
    strip_html,
    unique,
)
from data_ingestion.normalizers.schemas import GitHubAdvisoriesSchema
from data_ingestion.parsers.base import ParsedPayload
from data_ingestion.types import NormalizedItem, Priority


GITHUB_TRUST_RATING = 90

_SEVERITY_PRIORITY = {
    "critical": Priority.CRITICAL,
    "high": Priority.HIGH,
    "low": Priority.LOW,
}


def _advisories(data: Any) -> List[Dict[str, Any]]:
    if isinstance(data, list):
        advisories = data
    elif isinstance(data, dict) and isinstance(data.get("security_advisories"), list):
        advisories = data["security_advisories"]
    else:
        advisories = []
    return [a for a in advisories if isinstance(a, dict)]


def _cve(advisory: Dict[str, Any]) -> Optional[str]:
    if advisory.get("cve_id"):
        return advisory["cve_id"]
    for identifier in advisory.get("identifiers") or []:
        if isinstance(identifier, dict) and identifier.get("type") == "CVE":
            return identifier.get("value")
    return None


def _cvss_score(advisory: Dict[str, Any]) -> Any:
    cvss = advisory.get("cvss") or {}
    severities = advisory.get("cvss_severities") or {}
    return (
        cvss.get("score")
        or (severities.get("cvss_v3") or {}).get("score")
        or (severities.get("cvss_v4") or {}).get("score")
    )


class GitHubAdvisoriesNormalizer(NormalizerPlugin):
    key = "github-advisories"
    schema = GitHubAdvisoriesSchema

    def normalize(
        self,
        payload: ParsedPayload,
        context: NormalizationContext,
    ) -> List[NormalizedItem]:
        items = []
        for advisory in _advisories(payload.data):
            cve = _cve(advisory)
            summary = first_of(advisory, ("summary", "description"), "Security advisory")
            link = first_of(advisory, ("html_url", "url", "repository_advisory_url"), "")
            severity = str(advisory.get("severity") or "").lower()
            priority = priority_from_cvss(_cvss_score(advisory))
            if priority is None:
                priority = _SEVERITY_PRIORITY.get(severity, Priority.MEDIUM)

            items.append(NormalizedItem(
                id=stable_id(
                    "ghsa",
                    first_of(advisory, ("ghsa_id", "id")) or cve,
                    summary,
                    link,
                ),
                title=strip_html(summary, limit=0),
                link=link or context.source_url,
                published_at=coerce_timestamp(
                    first_of(advisory, ("published_at", "github_reviewed_at", "updated_at")),
                    context.ingested_at,
                ),
                source_id=context.source_id,
                description=strip_html(advisory.get("description") or summary),
                tags=unique(["security", "vulnerability", severity or "unknown", cve]),
                priority=priority,
                category=context.endpoint.category,
                trust_rating=GITHUB_TRUST_RATING,
                metadata={
                    "cve_id": cve,
                    "cvss": advisory.get("cvss") or advisory.get("cvss_severities"),
                    "cwes": advisory.get("cwes"),
                    "references": advisory.get("references"),
                    "withdrawn_at": advisory.get("withdrawn_at"),
                },
            ))
        return items

    def enrich(
        self,
        items: List[NormalizedItem],
        context: NormalizationContext,
    ) -> List[NormalizedItem]:
        for item in items:
            if item.metadata.get("cve_id"):
                item.tags = unique([*item.tags, "cve"])
        return super().enrich(items, context)
