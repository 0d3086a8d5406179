"""
Data Source Models - Immutable endpoint descriptors.

An EndpointDescriptor tells the pipeline where a source lives, how often
it may be called and which normalizer understands its payload. Nothing
downstream depends on a specific provider.
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional
from urllib.parse import urlencode, urlsplit

from core.constants import RATE_LIMIT_PERIOD_SECONDS


_PLACEHOLDER = re.compile(r"\{(\w+)\}")


class CatalogMode(str, Enum):
    """Groups of sources the catalog can hand out."""
    PRIMARY = "primary"
    SECONDARY = "secondary"
    SOCIAL = "social"
    ALL = "all"


class RefreshTier(str, Enum):
    """Refresh tier; selects the refresh interval and cache max-age."""
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class RatePeriod(str, Enum):
    """Quota window of a rate limit."""
    MINUTE = "minute"
    HOUR = "hour"
    DAY = "day"

    @property
    def seconds(self) -> int:
        return RATE_LIMIT_PERIOD_SECONDS[self.value]


@dataclass(frozen=True)
class RateLimitQuota:
    """Allowed request count per period."""
    count: int
    period: RatePeriod = RatePeriod.MINUTE

    def __post_init__(self) -> None:
        if self.count < 1:
            raise ValueError("rate limit count must be at least 1")
        if not isinstance(self.period, RatePeriod):
            object.__setattr__(self, "period", RatePeriod(self.period))

    @property
    def window_seconds(self) -> int:
        return self.period.seconds

    def to_dict(self) -> dict[str, Any]:
        return {"count": self.count, "period": self.period.value}


@dataclass(frozen=True)
class EndpointDescriptor:
    """
    Immutable description of one remote source.

    ``paths`` maps a path name to a template relative to ``base_url``.
    Templates may contain ``{name}`` placeholders (``/item/{id}.json``)
    that are filled when the URL is resolved.
    """
    id: str
    name: str
    base_url: str
    paths: dict[str, str] = field(default_factory=dict)
    category: str = "news"
    cors_capable: bool = True
    requires_auth: bool = False
    rate_limit: Optional[RateLimitQuota] = None
    cache_max_age_seconds: Optional[int] = None

    normalizer_key: str = "generic"
    primary_path: str = "default"
    refresh_tier: RefreshTier = RefreshTier.MEDIUM
    mode: CatalogMode = CatalogMode.PRIMARY
    api_key_env: Optional[str] = None
    api_key_param: str = "api_key"
    enabled: bool = True
    tags: tuple[str, ...] = ()
    trust_rating: int = 50
    """0-100; social sources are high volume and lower trust."""

    @property
    def host(self) -> str:
        return (urlsplit(self.base_url).hostname or "").lower()

    def has_path(self, name: str) -> bool:
        return name in self.paths

    def path_template(self, name: Optional[str] = None) -> str:
        """Return the template for a path name (primary path by default)."""
        name = name or self.primary_path
        if name in self.paths:
            return self.paths[name]
        # Literal paths are allowed so callers can address ad hoc resources.
        if name.startswith("/") or name == "":
            return name
        raise KeyError(f"Endpoint {self.id} has no path named {name!r}")

    def render_path(self, name: Optional[str] = None, **params: Any) -> str:
        """Fill ``{placeholder}`` values of a path template."""
        template = self.path_template(name)

        def substitute(match: re.Match) -> str:
            key = match.group(1)
            if key not in params:
                raise KeyError(f"Missing path parameter {key!r} for {self.id}")
            return str(params[key])

        return _PLACEHOLDER.sub(substitute, template)

    def resolve_url(
        self,
        path_name: Optional[str] = None,
        api_key: Optional[str] = None,
        **params: Any,
    ) -> str:
        """
        Build the absolute URL for a path.

        Args:
            path_name: Path name or literal path; the primary path if omitted
            api_key: Appended as a query parameter when the endpoint requires auth
            **params: Values for path placeholders

        Returns:
            Absolute URL string
        """
        url = self.base_url.rstrip("/") + self.render_path(path_name, **params)
        if self.requires_auth and api_key:
            separator = "&" if "?" in url else "?"
            url = f"{url}{separator}{urlencode({self.api_key_param: api_key})}"
        return url

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "id": self.id,
            "name": self.name,
            "base_url": self.base_url,
            "paths": dict(self.paths),
            "category": self.category,
            "cors_capable": self.cors_capable,
            "requires_auth": self.requires_auth,
            "rate_limit": self.rate_limit.to_dict() if self.rate_limit else None,
            "cache_max_age_seconds": self.cache_max_age_seconds,
            "normalizer_key": self.normalizer_key,
            "primary_path": self.primary_path,
            "refresh_tier": self.refresh_tier.value,
            "mode": self.mode.value,
            "enabled": self.enabled,
            "tags": list(self.tags),
            "trust_rating": self.trust_rating,
        }
