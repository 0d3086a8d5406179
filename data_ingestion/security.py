"""
Data Ingestion - Security Gate.

============================================================
RESPONSIBILITY
============================================================
Decides whether a URL may be fetched and whether a response
is small enough to read.

- Scheme must be http or https and a host must be present
- Non-empty allow-list: host (lower-cased, www. stripped) must be on it
- Private and loopback targets are refused when blocking is on
- Declared or streamed size above the ceiling is refused

Runs before every network call, proxy-rewritten attempts included,
and on every response's headers.

============================================================
"""

import ipaddress
import logging
from dataclasses import dataclass
from typing import Iterable, Optional, Tuple, Union
from urllib.parse import urlsplit

from core.config import IngestionConfig
from core.constants import (
    ARTICLE_URL_PATTERNS,
    DEFAULT_MAX_CONTENT_LENGTH_BYTES,
    FEED_URL_INDICATORS,
)
from core.exceptions import DisallowedHost, SizeLimitExceeded


logger = logging.getLogger(__name__)

_ALLOWED_SCHEMES = ("http", "https")


def normalize_host(host: Optional[str]) -> str:
    """Lower-case a host and strip a leading ``www.``."""
    host = (host or "").strip().lower().rstrip(".")
    if host.startswith("www."):
        host = host[4:]
    return host


def is_private_host(host: str) -> bool:
    """
    Loopback, private and link-local targets.

    Covers localhost, 127.*, 10.*, 192.168.*, 172.16-31.* and their
    IPv6 counterparts.
    """
    host = host.strip("[]").lower()
    if not host:
        return True
    if host == "localhost" or host.endswith(".localhost"):
        return True
    try:
        address = ipaddress.ip_address(host)
    except ValueError:
        return False
    return (
        address.is_private
        or address.is_loopback
        or address.is_link_local
        or address.is_unspecified
    )


@dataclass(frozen=True)
class IngestionPolicy:
    """Host and size policy applied by the gate."""
    allowed_hosts: Tuple[str, ...] = ()
    max_content_length_bytes: int = DEFAULT_MAX_CONTENT_LENGTH_BYTES
    block_private_networks: bool = True
    article_hosts: Tuple[str, ...] = ()
    """Hosts whose article-looking URLs still count as feeds."""

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "allowed_hosts", tuple(normalize_host(h) for h in self.allowed_hosts if h)
        )
        object.__setattr__(
            self, "article_hosts", tuple(normalize_host(h) for h in self.article_hosts if h)
        )

    @classmethod
    def from_config(cls, config: IngestionConfig) -> "IngestionPolicy":
        return cls(
            allowed_hosts=config.allowed_hosts,
            max_content_length_bytes=config.max_content_length_bytes,
            block_private_networks=config.block_private_networks,
            article_hosts=config.article_hosts,
        )


def check_url(url: str, policy: IngestionPolicy, enforce_allow_list: bool = True) -> str:
    """
    Validate a URL against the policy.

    enforce_allow_list=False is used for proxy URLs and redirect targets,
    whose hosts are not source hosts.

    Returns:
        The normalized host

    Raises:
        DisallowedHost: With the rule that rejected the URL
    """
    try:
        parts = urlsplit(url)
        host = parts.hostname
    except ValueError as e:
        raise DisallowedHost(f"Malformed URL: {e}", url=url, cause=e)

    if parts.scheme.lower() not in _ALLOWED_SCHEMES:
        raise DisallowedHost(f"Scheme {parts.scheme or '(none)'!r} is not allowed", url=url)
    if not host:
        raise DisallowedHost("URL has no host", url=url)

    normalized = normalize_host(host)
    if enforce_allow_list and policy.allowed_hosts and normalized not in policy.allowed_hosts:
        raise DisallowedHost(f"Host {normalized} is not on the allow-list", url=url)
    if policy.block_private_networks and is_private_host(host):
        raise DisallowedHost(f"Host {host} is a private network target", url=url)

    return normalized


def validate(url: str, policy: IngestionPolicy) -> bool:
    """True if the URL may be fetched under the policy."""
    try:
        check_url(url, policy)
    except DisallowedHost as e:
        logger.info(f"Rejected {url}: {e.message}")
        return False
    return True


def looks_like_feed_url(
    url: str,
    article_hosts: Iterable[str] = (),
) -> bool:
    """
    Heuristic: does this URL point at a feed rather than an article?

    Feed indicators win. Article-like paths are rejected unless the
    host is one whose articles are expected. Anything else passes.
    """
    lowered = url.lower()
    if any(indicator in lowered for indicator in FEED_URL_INDICATORS):
        return True
    if any(pattern in lowered for pattern in ARTICLE_URL_PATTERNS):
        try:
            host = normalize_host(urlsplit(url).hostname)
        except ValueError:
            return False
        return host in {normalize_host(h) for h in article_hosts}
    return True


class SecurityGate:
    """
    Policy holder used by the fetcher.

    Usage:
        gate = SecurityGate(IngestionPolicy(allowed_hosts=("api.weather.gov",)))
        gate.check_url(url)                      # raises DisallowedHost
        gate.check_declared_length(headers.get("Content-Length"), url)
    """

    def __init__(self, policy: Optional[IngestionPolicy] = None) -> None:
        self.policy = policy or IngestionPolicy()

    @property
    def max_content_length(self) -> int:
        return self.policy.max_content_length_bytes

    def validate(self, url: str) -> bool:
        return validate(url, self.policy)

    def check_url(self, url: str, enforce_allow_list: bool = True) -> str:
        return check_url(url, self.policy, enforce_allow_list)

    def check_declared_length(
        self,
        content_length: Union[int, str, None],
        url: Optional[str] = None,
    ) -> None:
        """
        Refuse a response whose declared length is over the ceiling.

        A missing or unparsable header is not an error; the streamed
        byte count is still enforced.
        """
        if content_length is None or content_length == "":
            return
        try:
            declared = int(content_length)
        except (TypeError, ValueError):
            logger.debug(f"Ignoring unparsable Content-Length {content_length!r} for {url}")
            return
        if declared > self.max_content_length:
            raise SizeLimitExceeded(
                f"Declared length {declared} exceeds {self.max_content_length} bytes",
                limit_bytes=self.max_content_length,
                observed_bytes=declared,
                context={"url": url} if url else None,
            )

    def check_observed_length(self, observed: int, url: Optional[str] = None) -> None:
        """Refuse once a streamed body crosses the ceiling."""
        if observed > self.max_content_length:
            raise SizeLimitExceeded(
                f"Body exceeded {self.max_content_length} bytes while streaming",
                limit_bytes=self.max_content_length,
                observed_bytes=observed,
                context={"url": url} if url else None,
            )

    def is_feed_url(self, url: str) -> bool:
        return looks_like_feed_url(url, self.policy.article_hosts)
