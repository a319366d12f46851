"""
Per-domain TTL caches.

Each domain (wait times, park hours, ...) gets its own ``DomainCache`` with
an independent TTL, so a slow-moving domain is not evicted at the rate of a
fast-moving one. Entries expire lazily: an expired key is dropped the next
time it is read or listed.
"""

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Optional

logger = logging.getLogger(__name__)


@dataclass
class CacheEntry:
    value: Any
    stored_at: float
    expires_at: float


@dataclass
class CacheStats:
    hits: int = 0
    misses: int = 0
    sets: int = 0


class DomainCache:
    """Key/value store where every entry lives for ``ttl_seconds``."""

    def __init__(self, name: str, ttl_seconds: float, clock: Callable[[], float] = time.time):
        self.name = name
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._stats = CacheStats()

    def _live(self, key: str, now: float) -> Optional[CacheEntry]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.expires_at <= now:
            del self._entries[key]
            return None
        return entry

    def get_entry(self, key: str) -> Optional[CacheEntry]:
        """The live entry for ``key`` (value plus timestamps), or None."""
        entry = self._live(key, self._clock())
        if entry is None:
            self._stats.misses += 1
        else:
            self._stats.hits += 1
        return entry

    def get(self, key: str) -> Any:
        entry = self.get_entry(key)
        return entry.value if entry else None

    def set(self, key: str, value: Any) -> None:
        """Store ``value``, replacing any existing entry and restarting its TTL."""
        now = self._clock()
        self._entries[key] = CacheEntry(value=value, stored_at=now, expires_at=now + self.ttl_seconds)
        self._stats.sets += 1

    def age(self, entry: CacheEntry) -> float:
        return max(0.0, self._clock() - entry.stored_at)

    def keys(self) -> list[str]:
        now = self._clock()
        return [key for key in list(self._entries) if self._live(key, now) is not None]

    def flush(self) -> int:
        """Drop every entry; returns how many were still live."""
        count = len(self.keys())
        self._entries.clear()
        logger.info(f"Flushed {count} entries from {self.name} cache")
        return count

    def stats(self) -> dict:
        keys = self.keys()
        return {
            "ttlSeconds": self.ttl_seconds,
            "hits": self._stats.hits,
            "misses": self._stats.misses,
            "sets": self._stats.sets,
            "keys": len(keys),
            "entries": keys,
        }


def cache_key(domain: str, park_id: str) -> str:
    return f"{domain}_{park_id}"


class CacheStore:
    """One DomainCache per domain, addressed by ``(domain, park)``."""

    def __init__(self, ttls: dict[str, float], clock: Callable[[], float] = time.time):
        self._caches = {domain: DomainCache(domain, ttl, clock) for domain, ttl in ttls.items()}

    @property
    def domains(self) -> Iterable[str]:
        return self._caches.keys()

    def for_domain(self, domain: str) -> DomainCache:
        try:
            return self._caches[domain]
        except KeyError:
            raise KeyError(f"No cache for domain '{domain}'") from None

    def get_entry(self, domain: str, park_id: str) -> Optional[CacheEntry]:
        return self.for_domain(domain).get_entry(cache_key(domain, park_id))

    def get(self, domain: str, park_id: str) -> Any:
        return self.for_domain(domain).get(cache_key(domain, park_id))

    def put(self, domain: str, park_id: str, value: Any) -> None:
        self.for_domain(domain).set(cache_key(domain, park_id), value)

    def flush(self, domain: str) -> int:
        return self.for_domain(domain).flush()

    def stats(self, domain: str = None) -> dict:
        if domain is not None:
            return self.for_domain(domain).stats()
        return {name: cache.stats() for name, cache in self._caches.items()}
