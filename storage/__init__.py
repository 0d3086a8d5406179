"""
Storage Package.

Caching and persistence for the ingestion pipeline.

Modules:
- cache: Two-tier response cache
- kv_store: Persisted key/value stores
- models/: ORM models of the persisted tier
"""

from storage.cache import CacheEntry, MemoryCacheTier, PersistentCacheTier, ResponseCache
from storage.kv_store import KeyValueStore, MemoryKeyValueStore, SqlKeyValueStore

__all__ = [
    "CacheEntry",
    "MemoryCacheTier",
    "PersistentCacheTier",
    "ResponseCache",
    "KeyValueStore",
    "MemoryKeyValueStore",
    "SqlKeyValueStore",
]
