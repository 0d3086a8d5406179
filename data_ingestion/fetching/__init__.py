"""
Fetching - Transport, strategies and the retrying fetcher.
"""

from data_ingestion.fetching.fetcher import RetryingFetcher
from data_ingestion.fetching.strategies import DIRECT, FetchStrategy, build_chain
from data_ingestion.fetching.transport import AiohttpTransport, RawResponse, Transport

__all__ = [
    "RetryingFetcher",
    "DIRECT",
    "FetchStrategy",
    "build_chain",
    "AiohttpTransport",
    "RawResponse",
    "Transport",
]
