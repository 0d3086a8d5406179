"""
Fetch Strategies - Direct calls and proxy rewrites.

A strategy turns a target URL into the URL actually requested.
"direct" requests the target itself; a proxy strategy is a template
whose ``{url}`` placeholder receives the percent-encoded target.
Templates without a placeholder are treated as prefixes.
"""

from dataclasses import dataclass
from typing import Iterable, List, Optional
from urllib.parse import quote, urlsplit

from core.constants import DIRECT_STRATEGY


_REDIRECT_MARKERS = ("moved permanently", "301 moved", "302 found")


@dataclass(frozen=True)
class FetchStrategy:
    """One entry of a fallback chain."""
    name: str
    template: Optional[str] = None

    @property
    def is_direct(self) -> bool:
        return self.template is None

    @property
    def proxy_host(self) -> Optional[str]:
        if self.template is None:
            return None
        return (urlsplit(self.template.replace("{url}", "")).hostname or "").lower()

    def rewrite(self, url: str) -> str:
        """Build the URL to request for a target."""
        if self.template is None:
            return url
        encoded = quote(url, safe="")
        if "{url}" in self.template:
            return self.template.replace("{url}", encoded)
        return f"{self.template}{encoded}"

    def looks_like_redirect_page(self, body: str) -> bool:
        """
        Some proxies answer 200 with an HTML "Moved Permanently" page
        instead of the target's content.
        """
        if self.is_direct:
            return False
        head = body[:512].lower()
        return any(marker in head for marker in _REDIRECT_MARKERS) and len(body) < 2048

    @classmethod
    def parse(cls, entry: str) -> "FetchStrategy":
        """Build a strategy from a config value ("direct", "" or a template)."""
        entry = (entry or "").strip()
        if entry in ("", DIRECT_STRATEGY):
            return cls(name=DIRECT_STRATEGY)
        host = (urlsplit(entry.replace("{url}", "")).hostname or entry).lower()
        return cls(name=f"proxy:{host}", template=entry)

    def __str__(self) -> str:
        return self.name


DIRECT = FetchStrategy(name=DIRECT_STRATEGY)


def build_chain(
    cors_capable: bool,
    cors_strategy: str,
    fallback_chain: Iterable[str],
) -> List[FetchStrategy]:
    """
    Ordered strategies for one endpoint.

    The primary is direct for CORS-capable endpoints and the configured
    CORS strategy otherwise. Fallbacks follow in configured order; no
    strategy appears twice.
    """
    primary = DIRECT if cors_capable else FetchStrategy.parse(cors_strategy)
    chain = [primary]
    for entry in fallback_chain:
        strategy = FetchStrategy.parse(entry)
        if strategy not in chain:
            chain.append(strategy)
    return chain
