"""
Storage - Response Cache.

============================================================
RESPONSIBILITY
============================================================
Two-tier cache for fetched responses.

- MemoryCacheTier: process-lifetime dict
- PersistentCacheTier: JSON entries in a KeyValueStore, survives restarts
- ResponseCache: memory first, then persisted, promoting persisted hits

============================================================
FRESHNESS
============================================================
get() never returns an entry older than its max-age (or the
caller's override). Expired entries stay retrievable through
get_stale() for stale_retention_seconds past their expiry, after
which the next read deletes them. get_stale() is meant to be
called only once every live retrieval attempt has failed.

============================================================
"""

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional

from core.clock import ClockProtocol, SystemClock
from core.constants import (
    CACHE_KEY_PREFIX,
    DEFAULT_CACHE_MAX_AGE_SECONDS,
    DEFAULT_STALE_RETENTION_SECONDS,
)
from core.exceptions import StorageError
from storage.kv_store import KeyValueStore


logger = logging.getLogger(__name__)


# ============================================================
# ENTRY
# ============================================================

@dataclass
class CacheEntry:
    """A cached payload with its write time and max-age."""
    key: str
    payload: Any
    written_at: datetime
    max_age_seconds: float
    hits: int = 0

    def age_seconds(self, now: datetime) -> float:
        return (now - self.written_at).total_seconds()

    def is_expired(self, now: datetime, max_age_override: Optional[float] = None) -> bool:
        max_age = self.max_age_seconds if max_age_override is None else max_age_override
        return self.age_seconds(now) > max_age

    def is_retired(self, now: datetime, retention_seconds: float) -> bool:
        """Past expiry plus the stale retention window; safe to delete."""
        return self.age_seconds(now) > self.max_age_seconds + retention_seconds

    def to_json(self) -> str:
        return json.dumps({
            "key": self.key,
            "payload": self.payload,
            "written_at": self.written_at.isoformat(),
            "max_age_seconds": self.max_age_seconds,
        })

    @classmethod
    def from_json(cls, raw: str) -> "CacheEntry":
        data = json.loads(raw)
        return cls(
            key=data["key"],
            payload=data["payload"],
            written_at=datetime.fromisoformat(data["written_at"]),
            max_age_seconds=float(data["max_age_seconds"]),
        )


# ============================================================
# TIERS
# ============================================================

class CacheTier(ABC):
    """Contract shared by both cache tiers."""

    def __init__(
        self,
        clock: Optional[ClockProtocol] = None,
        stale_retention_seconds: float = DEFAULT_STALE_RETENTION_SECONDS,
    ) -> None:
        self._clock = clock or SystemClock()
        self._stale_retention = stale_retention_seconds

    @abstractmethod
    def _load(self, key: str) -> Optional[CacheEntry]:
        pass

    @abstractmethod
    def _store(self, entry: CacheEntry) -> None:
        pass

    @abstractmethod
    def invalidate(self, key: str) -> None:
        pass

    @abstractmethod
    def invalidate_prefix(self, prefix: str) -> int:
        pass

    @abstractmethod
    def clear(self) -> None:
        pass

    def get(self, key: str, max_age_override: Optional[float] = None) -> Optional[CacheEntry]:
        """Return a fresh entry or None."""
        entry = self._load(key)
        if entry is None:
            return None

        now = self._clock.now()
        if entry.is_retired(now, self._stale_retention):
            self.invalidate(key)
            return None
        if entry.is_expired(now, max_age_override):
            return None

        entry.hits += 1
        return entry

    def get_stale(self, key: str) -> Optional[CacheEntry]:
        """Return the entry regardless of age."""
        return self._load(key)

    def set(self, key: str, value: Any, max_age: float = DEFAULT_CACHE_MAX_AGE_SECONDS) -> CacheEntry:
        entry = CacheEntry(
            key=key,
            payload=value,
            written_at=self._clock.now(),
            max_age_seconds=max_age,
        )
        self._store(entry)
        return entry

    def put_entry(self, entry: CacheEntry) -> None:
        """Store an existing entry unchanged (used for promotion)."""
        self._store(entry)


class MemoryCacheTier(CacheTier):
    """Process-lifetime tier."""

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self._entries: Dict[str, CacheEntry] = {}

    def _load(self, key: str) -> Optional[CacheEntry]:
        return self._entries.get(key)

    def _store(self, entry: CacheEntry) -> None:
        self._entries[entry.key] = entry

    def invalidate(self, key: str) -> None:
        self._entries.pop(key, None)

    def invalidate_prefix(self, prefix: str) -> int:
        doomed = [k for k in self._entries if k.startswith(prefix)]
        for key in doomed:
            del self._entries[key]
        return len(doomed)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


class PersistentCacheTier(CacheTier):
    """
    Tier over a KeyValueStore.

    Keys are namespaced so the store can be shared. Unreadable or
    corrupt records are treated as misses and removed.
    """

    def __init__(
        self,
        store: KeyValueStore,
        clock: Optional[ClockProtocol] = None,
        stale_retention_seconds: float = DEFAULT_STALE_RETENTION_SECONDS,
        namespace: str = CACHE_KEY_PREFIX,
    ) -> None:
        super().__init__(clock, stale_retention_seconds)
        self._store_backend = store
        self._namespace = namespace

    def _storage_key(self, key: str) -> str:
        return f"{self._namespace}{key}"

    def _load(self, key: str) -> Optional[CacheEntry]:
        try:
            raw = self._store_backend.get_item(self._storage_key(key))
        except StorageError as e:
            logger.warning(f"Persisted cache read failed for {key}: {e}")
            return None
        if raw is None:
            return None
        try:
            return CacheEntry.from_json(raw)
        except (ValueError, KeyError, TypeError) as e:
            logger.warning(f"Dropping corrupt persisted cache entry {key}: {e}")
            self.invalidate(key)
            return None

    def _store(self, entry: CacheEntry) -> None:
        try:
            self._store_backend.set_item(self._storage_key(entry.key), entry.to_json())
        except StorageError as e:
            logger.warning(f"Persisted cache write failed for {entry.key}: {e}")
        except TypeError as e:
            logger.warning(f"Payload for {entry.key} is not serializable, not persisted: {e}")

    def invalidate(self, key: str) -> None:
        try:
            self._store_backend.remove_item(self._storage_key(key))
        except StorageError as e:
            logger.warning(f"Persisted cache delete failed for {key}: {e}")

    def invalidate_prefix(self, prefix: str) -> int:
        try:
            keys = self._store_backend.keys(self._storage_key(prefix))
            for storage_key in keys:
                self._store_backend.remove_item(storage_key)
        except StorageError as e:
            logger.warning(f"Persisted cache prefix delete failed for {prefix}: {e}")
            return 0
        return len(keys)

    def clear(self) -> None:
        self.invalidate_prefix("")


# ============================================================
# TWO-TIER CACHE
# ============================================================

class ResponseCache:
    """
    Two-tier response cache.

    Usage:
        cache = ResponseCache(clock=clock, store=SqlKeyValueStore(url))
        cache.set("noaa-weather-alerts-/alerts/active", payload, max_age=300)
        entry = cache.get("noaa-weather-alerts-/alerts/active")
    """

    def __init__(
        self,
        clock: Optional[ClockProtocol] = None,
        store: Optional[KeyValueStore] = None,
        default_max_age_seconds: float = DEFAULT_CACHE_MAX_AGE_SECONDS,
        stale_retention_seconds: float = DEFAULT_STALE_RETENTION_SECONDS,
    ) -> None:
        self._clock = clock or SystemClock()
        self._default_max_age = default_max_age_seconds
        self._memory = MemoryCacheTier(self._clock, stale_retention_seconds)
        self._persistent: Optional[PersistentCacheTier] = None
        if store is not None:
            self._persistent = PersistentCacheTier(
                store, self._clock, stale_retention_seconds
            )

        self._hits = 0
        self._misses = 0
        self._stale_hits = 0

    @property
    def memory(self) -> MemoryCacheTier:
        return self._memory

    @property
    def persistent(self) -> Optional[PersistentCacheTier]:
        return self._persistent

    def get(self, key: str, max_age_override: Optional[float] = None) -> Optional[CacheEntry]:
        """
        Read a fresh entry: memory first, then the persisted tier.

        A persisted hit is promoted into memory with its original
        write time, so promotion never extends freshness.
        """
        entry = self._memory.get(key, max_age_override)
        if entry is None and self._persistent is not None:
            entry = self._persistent.get(key, max_age_override)
            if entry is not None:
                self._memory.put_entry(entry)
                logger.debug(f"Promoted persisted cache entry: {key}")

        if entry is None:
            self._misses += 1
            return None

        self._hits += 1
        return entry

    def get_stale(self, key: str) -> Optional[CacheEntry]:
        """Return the newest entry for key regardless of age."""
        candidates = [self._memory.get_stale(key)]
        if self._persistent is not None:
            candidates.append(self._persistent.get_stale(key))
        candidates = [c for c in candidates if c is not None]
        if not candidates:
            return None

        entry = max(candidates, key=lambda c: c.written_at)
        self._stale_hits += 1
        logger.warning(
            f"Serving stale cache entry {key} "
            f"(age={entry.age_seconds(self._clock.now()):.1f}s, max_age={entry.max_age_seconds:.0f}s)"
        )
        return entry

    def set(self, key: str, value: Any, max_age: Optional[float] = None) -> CacheEntry:
        """Write through both tiers."""
        max_age = self._default_max_age if max_age is None else max_age
        entry = self._memory.set(key, value, max_age)
        if self._persistent is not None:
            self._persistent.put_entry(entry)
        return entry

    def invalidate(self, key: str) -> None:
        self._memory.invalidate(key)
        if self._persistent is not None:
            self._persistent.invalidate(key)

    def invalidate_prefix(self, prefix: str) -> int:
        """Drop every key starting with prefix, e.g. one endpoint's entries."""
        removed = self._memory.invalidate_prefix(prefix)
        if self._persistent is not None:
            removed = max(removed, self._persistent.invalidate_prefix(prefix))
        return removed

    def clear(self) -> None:
        self._memory.clear()
        if self._persistent is not None:
            self._persistent.clear()

    def get_stats(self) -> Dict[str, Any]:
        """Get cache statistics."""
        lookups = self._hits + self._misses
        return {
            "entries": len(self._memory),
            "hits": self._hits,
            "misses": self._misses,
            "stale_hits": self._stale_hits,
            "hit_rate": self._hits / lookups if lookups else 0.0,
            "persistent": self._persistent is not None,
        }
