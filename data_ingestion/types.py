"""
Data Ingestion - Type Definitions.

============================================================
PURPOSE
============================================================
Shared types for the ingestion pipeline.

- Fetch requests and outcomes
- Normalized items
- Per-source diagnostics and the ingestion report

============================================================
DESIGN PRINCIPLES
============================================================
- Clear typing for all fields
- No business logic beyond small helpers
- Serializable for the CLI and monitoring

============================================================
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Union
from uuid import UUID, uuid4

from core.exceptions import FailureKind, IngestionError


# =============================================================
# ENUMS
# =============================================================

class Priority(str, Enum):
    """Item priority, ordered low < medium < high < critical."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _PRIORITY_RANK[self]

    def raised(self) -> "Priority":
        """One step up, saturating at CRITICAL."""
        order = list(Priority)
        return order[min(len(order) - 1, order.index(self) + 1)]


_PRIORITY_RANK = {
    Priority.LOW: 1,
    Priority.MEDIUM: 2,
    Priority.HIGH: 3,
    Priority.CRITICAL: 4,
}


class ContentTier(str, Enum):
    """Coarse content type of an item."""
    ALERT = "alert"
    THREAT = "threat"
    INTEL = "intel"
    NEWS = "news"


class PayloadFormat(str, Enum):
    """Payload shape as decided by body sniffing."""
    XML = "xml"
    JSON = "json"
    HTML = "html"
    TEXT = "text"


class DiagnosticStatus(str, Enum):
    """Outcome of one source in an ingestion pass."""
    SUCCESS = "success"
    EMPTY = "empty"
    FAILED = "failed"


# =============================================================
# FETCH TYPES
# =============================================================

@dataclass(frozen=True)
class FetchRequest:
    """One resolved request; created per ingestion attempt."""
    url: str
    endpoint_id: str
    cache_key: str
    timeout_seconds: float
    use_cache: bool = True
    max_age_seconds: Optional[float] = None
    """Overrides the endpoint and global cache max-age when set."""


@dataclass
class FetchSuccess:
    """A usable response body."""
    status_code: int
    body: str
    content_type: str = ""
    url: str = ""
    response_time_ms: float = 0.0
    strategy: Optional[str] = None
    attempts: int = 0
    from_cache: bool = False
    stale: bool = False

    ok = True

    def to_cache_payload(self) -> Dict[str, Any]:
        return {
            "status_code": self.status_code,
            "body": self.body,
            "content_type": self.content_type,
            "url": self.url,
            "strategy": self.strategy,
        }

    @classmethod
    def from_cache_payload(cls, payload: Dict[str, Any], stale: bool = False) -> "FetchSuccess":
        return cls(
            status_code=int(payload.get("status_code", 200)),
            body=payload.get("body", ""),
            content_type=payload.get("content_type", ""),
            url=payload.get("url", ""),
            strategy=payload.get("strategy"),
            from_cache=True,
            stale=stale,
        )


@dataclass
class FetchFailure:
    """A request that produced no usable response."""
    kind: FailureKind
    message: str
    response_time_ms: float = 0.0
    status_code: Optional[int] = None
    attempts: int = 0
    error: Optional[IngestionError] = None

    ok = False

    @classmethod
    def from_error(
        cls,
        error: IngestionError,
        response_time_ms: float = 0.0,
        attempts: int = 0,
    ) -> "FetchFailure":
        return cls(
            kind=error.kind,
            message=error.message,
            response_time_ms=response_time_ms,
            status_code=getattr(error, "status_code", None),
            attempts=attempts,
            error=error,
        )


FetchOutcome = Union[FetchSuccess, FetchFailure]


# =============================================================
# NORMALIZED ITEM
# =============================================================

@dataclass
class NormalizedItem:
    """
    Canonical item produced by every normalizer.

    id is stable across re-fetches of the same payload.
    published_at is always a timezone-aware UTC instant.
    """
    id: str
    title: str
    link: str
    published_at: datetime
    source_id: str
    description: str = ""
    tags: List[str] = field(default_factory=list)
    priority: Priority = Priority.LOW
    content_tier: ContentTier = ContentTier.NEWS
    category: str = "news"
    trust_rating: int = 50
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "id": self.id,
            "title": self.title,
            "link": self.link,
            "published_at": self.published_at.isoformat(),
            "source_id": self.source_id,
            "description": self.description,
            "tags": list(self.tags),
            "priority": self.priority.value,
            "content_tier": self.content_tier.value,
            "category": self.category,
            "trust_rating": self.trust_rating,
            "metadata": self.metadata,
        }


# =============================================================
# DIAGNOSTICS
# =============================================================

@dataclass
class SourceDiagnostic:
    """Per-source result of an ingestion pass."""
    source_id: str
    status: DiagnosticStatus
    reason: Optional[str] = None
    failure_kind: Optional[FailureKind] = None
    item_count: int = 0
    from_cache: bool = False
    stale: bool = False
    strategy: Optional[str] = None
    attempts: int = 0
    duration_ms: float = 0.0
    warnings: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "source_id": self.source_id,
            "status": self.status.value,
            "reason": self.reason,
            "failure_kind": self.failure_kind.value if self.failure_kind else None,
            "item_count": self.item_count,
            "from_cache": self.from_cache,
            "stale": self.stale,
            "strategy": self.strategy,
            "attempts": self.attempts,
            "duration_ms": round(self.duration_ms, 1),
            "warnings": list(self.warnings),
        }


@dataclass
class IngestionReport:
    """Merged items and diagnostics of one ingestion pass."""
    run_id: UUID = field(default_factory=uuid4)
    items: List[NormalizedItem] = field(default_factory=list)
    diagnostics: List[SourceDiagnostic] = field(default_factory=list)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    duration_seconds: float = 0.0

    def mark_complete(self, completed_at: datetime) -> None:
        """Mark the pass as complete and calculate duration."""
        self.completed_at = completed_at
        if self.started_at:
            self.duration_seconds = (completed_at - self.started_at).total_seconds()

    def diagnostic_for(self, source_id: str) -> Optional[SourceDiagnostic]:
        for diagnostic in self.diagnostics:
            if diagnostic.source_id == source_id:
                return diagnostic
        return None

    @property
    def failed_sources(self) -> List[str]:
        return [d.source_id for d in self.diagnostics if d.status == DiagnosticStatus.FAILED]

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for output/monitoring."""
        return {
            "run_id": str(self.run_id),
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "duration_seconds": self.duration_seconds,
            "item_count": len(self.items),
            "items": [item.to_dict() for item in self.items],
            "diagnostics": [d.to_dict() for d in self.diagnostics],
        }
