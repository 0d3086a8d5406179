"""
Core Module - Constants.

============================================================
RESPONSIBILITY
============================================================
Defines pipeline-wide constants.

- Single source of truth for defaults and magic values
- Related constants are grouped
- No business logic here

============================================================
"""

from typing import Dict, Tuple


# ============================================================
# SYSTEM CONSTANTS
# ============================================================

SYSTEM_NAME = "intel-feed-ingestion"
SYSTEM_VERSION = "0.1.0"

USER_AGENT = f"{SYSTEM_NAME}/{SYSTEM_VERSION}"


# ============================================================
# TIME CONSTANTS
# ============================================================

SECONDS_PER_MINUTE = 60
SECONDS_PER_HOUR = 3600
SECONDS_PER_DAY = 86400

RATE_LIMIT_PERIOD_SECONDS: Dict[str, int] = {
    "minute": SECONDS_PER_MINUTE,
    "hour": SECONDS_PER_HOUR,
    "day": SECONDS_PER_DAY,
}


# ============================================================
# FETCH DEFAULTS
# ============================================================

DEFAULT_REQUEST_TIMEOUT_SECONDS = 10.0
DEFAULT_RETRY_ATTEMPTS = 3
DEFAULT_RETRY_BACKOFF_SECONDS = 0.3
DEFAULT_MAX_CONCURRENT_REQUESTS = 5
DEFAULT_MAX_CONTENT_LENGTH_BYTES = 1_000_000
MAX_REDIRECTS = 5

# Proxy rewrite templates; "{url}" receives the percent-encoded target.
# "direct" means no rewrite.
DIRECT_STRATEGY = "direct"
DEFAULT_PROXY_CHAIN: Tuple[str, ...] = (
    DIRECT_STRATEGY,
    "https://api.allorigins.win/get?url={url}",
    "https://api.codetabs.com/v1/proxy?quest={url}",
)


# ============================================================
# CACHE DEFAULTS
# ============================================================

DEFAULT_CACHE_MAX_AGE_SECONDS = 300
DEFAULT_STALE_RETENTION_SECONDS = SECONDS_PER_DAY
CACHE_KEY_PREFIX = "ingest-cache:"

DEFAULT_REFRESH_INTERVALS: Dict[str, int] = {
    "critical": 300,
    "high": 600,
    "medium": 1800,
    "low": 3600,
}


# ============================================================
# HEALTH TRACKING
# ============================================================

HEALTH_EWMA_ALPHA = 0.1
INITIAL_SUCCESS_RATE = 100.0
DEGRADED_SUCCESS_RATE = 80.0
UNAVAILABLE_SUCCESS_RATE = 30.0


# ============================================================
# NORMALIZATION
# ============================================================

FAN_OUT_PAGE_SIZE = 20
FAN_OUT_CACHE_MAX_AGE_SECONDS = 300
MAX_TEXT_LINES = 500
MAX_UNWRAP_DEPTH = 3
REDACTED_FINGERPRINT_LENGTH = 12
MAX_DESCRIPTION_LENGTH = 500
ID_DIGEST_LENGTH = 16

FEED_URL_INDICATORS: Tuple[str, ...] = (
    "/rss", "/feed", ".xml", "/atom", "rss.xml", "feeds/", "/rss.php",
)

ARTICLE_URL_PATTERNS: Tuple[str, ...] = (
    "/2025/", "/2024/", "/2023/", "/article/", "/story/",
    "/news/2025", "/news/2024", "/post/", "/item/", "article_",
)
