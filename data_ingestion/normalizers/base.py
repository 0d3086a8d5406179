"""
Normalizers - Plugin contract.

============================================================
RESPONSIBILITY
============================================================
A normalizer plugin turns one parsed payload into canonical
NormalizedItems for the endpoint that produced it.

Stages, in order:
1. validate(raw)   - loose shape check, result is advisory
2. expand(...)     - optional fan-out for id-only listings
3. normalize(...)  - required, source-specific field mapping
4. enrich(items)   - optional extra tags and metadata
5. classify(items) - content tier and priority adjustments

============================================================
DESIGN PRINCIPLES
============================================================
- Plugins are stateless; everything they need is in the context
- Missing fields degrade to defaults, they never raise
- Ids depend only on payload content

============================================================
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, List, Optional

from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from data_ingestion.normalizers.classifier import classify_items
from data_ingestion.normalizers.helpers import unique
from data_ingestion.parsers.base import ParsedPayload
from data_ingestion.types import NormalizedItem
from data_sources.models import EndpointDescriptor


# Fetches a named path of the current endpoint with placeholder values.
# Resolves to None when the related fetch failed.
FetchRelated = Callable[[str, Dict[str, Any]], Awaitable[Optional[ParsedPayload]]]


@dataclass
class ValidationResult:
    ok: bool
    errors: List[str] = field(default_factory=list)


@dataclass
class NormalizationContext:
    """What a plugin knows about the payload it is normalizing."""
    endpoint: EndpointDescriptor
    ingested_at: datetime
    source_url: str = ""

    @property
    def source_id(self) -> str:
        return self.endpoint.id


class NormalizerPlugin(ABC):
    """
    Abstract base for normalizer plugins.

    Subclasses set ``key`` and optionally ``schema`` (a pydantic model
    or typing construct accepted by ``TypeAdapter``).
    """

    key: str = ""
    schema: Any = None

    def __init__(self) -> None:
        self._adapter = TypeAdapter(self.schema) if self.schema is not None else None

    @staticmethod
    def raw(payload: ParsedPayload) -> Any:
        """Decoded document for JSON payloads, feed entries otherwise."""
        return payload.data if payload.data is not None else payload.entries

    def validate(self, raw: Any) -> ValidationResult:
        if self._adapter is None:
            return ValidationResult(ok=True)
        try:
            self._adapter.validate_python(raw)
        except PydanticValidationError as e:
            errors = [
                f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}"
                for err in e.errors()
            ]
            return ValidationResult(ok=False, errors=errors)
        return ValidationResult(ok=True)

    async def expand(
        self,
        payload: ParsedPayload,
        context: NormalizationContext,
        fetch_related: FetchRelated,
    ) -> ParsedPayload:
        """Fetch dependent documents; the default has none."""
        return payload

    @abstractmethod
    def normalize(
        self,
        payload: ParsedPayload,
        context: NormalizationContext,
    ) -> List[NormalizedItem]:
        """Map a payload onto normalized items."""
        pass

    def enrich(
        self,
        items: List[NormalizedItem],
        context: NormalizationContext,
    ) -> List[NormalizedItem]:
        """Merge the endpoint's own tags into every item."""
        for item in items:
            item.tags = unique([*item.tags, *context.endpoint.tags])
        return items

    def classify(
        self,
        items: List[NormalizedItem],
        context: NormalizationContext,
    ) -> List[NormalizedItem]:
        return classify_items(items)

    def run(self, payload: ParsedPayload, context: NormalizationContext) -> List[NormalizedItem]:
        """normalize, enrich and classify in one call."""
        items = self.normalize(payload, context)
        items = self.enrich(items, context)
        return self.classify(items, context)
