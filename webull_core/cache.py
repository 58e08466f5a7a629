"""
Response Cache

Provides:
- ResponseCache: keyed TTL cache with bounded capacity
- CacheKey: (method, path, query, body) lookup key
- CacheManager: explicit registry of named cache instances

Eviction is a FIFO/TTL hybrid, not LRU: expired entries are purged first,
then the oldest-inserted entries go.
"""

from __future__ import annotations

import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Callable, Dict, Generic, Optional, TypeVar

from loguru import logger

V = TypeVar("V")

DEFAULT_TTL_SECONDS = 60.0
DEFAULT_MAX_ENTRIES = 1000


@dataclass(frozen=True)
class CacheKey:
    """Lookup key. Auth headers and other request metadata are not part of it."""

    method: str
    path: str
    query: Optional[str] = None
    body: Optional[str] = None

    @classmethod
    def build(
        cls,
        method: str,
        path: str,
        query: Optional[str] = None,
        body: Optional[str] = None,
    ) -> "CacheKey":
        return cls(method.upper(), path, query or None, body or None)


@dataclass
class CacheEntry(Generic[V]):
    value: V
    created_at: float
    ttl: float

    def is_expired(self, now: float) -> bool:
        return now - self.created_at > self.ttl


class ResponseCache(Generic[V]):
    """
    Thread-safe TTL cache with capacity bound.

    Args:
        default_ttl: Seconds an entry stays valid when set() gets no ttl.
        max_entries: Capacity bound.
        name: Label for logs and stats.
        clock: Monotonic time source, injectable for tests.

    Example:
        >>> cache = ResponseCache(default_ttl=60, max_entries=100, name="get")
        >>> cache.set("GET", "/api/quote/AAPL", {"last": 190.1})
        >>> cache.get("GET", "/api/quote/AAPL")
        {'last': 190.1}
    """

    def __init__(
        self,
        default_ttl: float = DEFAULT_TTL_SECONDS,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        name: str = "cache",
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_entries <= 0:
            raise ValueError("max_entries must be positive")
        if default_ttl < 0:
            raise ValueError("default_ttl must be non-negative")

        self._default_ttl = default_ttl
        self._max_entries = max_entries
        self._name = name
        self._clock = clock
        self._entries: "OrderedDict[CacheKey, CacheEntry[V]]" = OrderedDict()
        self._lock = threading.Lock()

        self._hits = 0
        self._misses = 0
        self._evictions = 0
        self._expirations = 0

    @property
    def name(self) -> str:
        return self._name

    @property
    def default_ttl(self) -> float:
        return self._default_ttl

    @property
    def max_entries(self) -> int:
        return self._max_entries

    def get(
        self,
        method: str,
        path: str,
        query: Optional[str] = None,
        body: Optional[str] = None,
    ) -> Optional[V]:
        """Return the cached value, or None on miss. Expired hits are evicted here."""
        return self.get_key(CacheKey.build(method, path, query, body))

    def get_key(self, key: CacheKey) -> Optional[V]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._misses += 1
                return None
            if entry.is_expired(self._clock()):
                del self._entries[key]
                self._expirations += 1
                self._misses += 1
                logger.debug(f"[{self._name}] expired {key.method} {key.path}")
                return None
            self._hits += 1
            return entry.value

    def set(
        self,
        method: str,
        path: str,
        value: V,
        query: Optional[str] = None,
        body: Optional[str] = None,
        ttl: Optional[float] = None,
    ) -> None:
        self.set_key(CacheKey.build(method, path, query, body), value, ttl)

    def set_key(self, key: CacheKey, value: V, ttl: Optional[float] = None) -> None:
        """
        Insert or replace an entry.

        A replaced entry counts as newly inserted for eviction order.
        """
        with self._lock:
            now = self._clock()
            if key in self._entries:
                del self._entries[key]
            elif len(self._entries) >= self._max_entries:
                self._purge_expired_locked(now)
                while len(self._entries) >= self._max_entries:
                    evicted, _ = self._entries.popitem(last=False)
                    self._evictions += 1
                    logger.debug(f"[{self._name}] evicted {evicted.method} {evicted.path}")
            self._entries[key] = CacheEntry(
                value=value,
                created_at=now,
                ttl=self._default_ttl if ttl is None else ttl,
            )

    def invalidate(
        self,
        method: str,
        path: str,
        query: Optional[str] = None,
        body: Optional[str] = None,
    ) -> bool:
        """Drop one entry. Returns True if it existed."""
        with self._lock:
            return self._entries.pop(CacheKey.build(method, path, query, body), None) is not None

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def cleanup(self) -> int:
        """
        Remove every expired entry now.

        Returns:
            Number of entries removed.
        """
        with self._lock:
            return self._purge_expired_locked(self._clock())

    def _purge_expired_locked(self, now: float) -> int:
        expired = [k for k, e in self._entries.items() if e.is_expired(now)]
        for k in expired:
            del self._entries[k]
        self._expirations += len(expired)
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._entries

    def get_stats(self) -> Dict[str, Any]:
        """
        Get cache statistics.

        Returns:
            Dict with size, hits, misses, evictions, expirations, hit_rate.
        """
        with self._lock:
            lookups = self._hits + self._misses
            return {
                'name': self._name,
                'size': len(self._entries),
                'max_entries': self._max_entries,
                'hits': self._hits,
                'misses': self._misses,
                'evictions': self._evictions,
                'expirations': self._expirations,
                'hit_rate': round(self._hits / lookups, 4) if lookups else 0.0,
            }

    def __repr__(self) -> str:
        return (
            f"ResponseCache(name={self._name!r}, default_ttl={self._default_ttl}, "
            f"max_entries={self._max_entries})"
        )


class CacheManager:
    """
    Registry of named caches, each constructed explicitly up front.

    There is no lookup-or-create: asking for a name that was never
    registered is a programming error and raises KeyError.
    """

    GET = "get"
    POST = "post"

    def __init__(self) -> None:
        self._caches: Dict[str, ResponseCache[Any]] = {}

    @classmethod
    def with_defaults(
        cls,
        default_ttl: float = DEFAULT_TTL_SECONDS,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        clock: Callable[[], float] = time.monotonic,
    ) -> "CacheManager":
        """Manager holding the ``get`` and ``post`` caches the dispatcher uses."""
        manager = cls()
        for name in (cls.GET, cls.POST):
            manager.register(ResponseCache(default_ttl, max_entries, name=name, clock=clock))
        return manager

    def register(self, cache: ResponseCache[Any]) -> ResponseCache[Any]:
        if cache.name in self._caches:
            raise ValueError(f"Cache {cache.name!r} already registered")
        self._caches[cache.name] = cache
        return cache

    def cache(self, name: str) -> ResponseCache[Any]:
        try:
            return self._caches[name]
        except KeyError:
            raise KeyError(f"No cache registered under {name!r}") from None

    def names(self) -> list:
        return list(self._caches)

    def clear_all(self) -> None:
        for cache in self._caches.values():
            cache.clear()

    def cleanup_all(self) -> int:
        return sum(cache.cleanup() for cache in self._caches.values())

    def get_stats(self) -> Dict[str, Dict[str, Any]]:
        return {name: cache.get_stats() for name, cache in self._caches.items()}
