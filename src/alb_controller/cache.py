"""Expiring read-through cache for slowly changing AWS lookups.

Subnet to VPC mappings and similar attributes change rarely but are needed
on every pass. Entries are cached with a fixed expiry and every lookup is
counted as a hit or a miss in prometheus.

The cache is shared by all reconciliation passes, so ``get`` and ``set``
are atomic with respect to each other.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from prometheus_client import REGISTRY, CollectorRegistry, Counter

# Default maximum number of entries per cache
DEFAULT_MAX_SIZE = 4096


class CacheMetrics:
    """Hit/miss counters for named caches.

    One ``aws_cache_total`` counter labelled by ``cache`` and ``action``.
    Pass a dedicated ``CollectorRegistry`` in tests to avoid duplicate
    registration in the global registry.
    """

    def __init__(self, registry: CollectorRegistry | None = None) -> None:
        self._counter = Counter(
            "aws_cache",
            "AWS API lookups served from or missing the cache",
            labelnames=("cache", "action"),
            registry=registry if registry is not None else REGISTRY,
        )

    def hit(self, cache: str) -> None:
        self._counter.labels(cache=cache, action="hit").inc()

    def miss(self, cache: str) -> None:
        self._counter.labels(cache=cache, action="miss").inc()


_default_metrics: CacheMetrics | None = None
_default_metrics_lock = threading.Lock()


def get_cache_metrics() -> CacheMetrics:
    """Get the process-wide metrics bound to the default registry."""
    global _default_metrics
    with _default_metrics_lock:
        if _default_metrics is None:
            _default_metrics = CacheMetrics()
        return _default_metrics


@dataclass
class CacheEntry:
    """A cached value and its expiry."""

    value: Any
    expiry: float  # time.monotonic() deadline

    def is_expired(self, now: float | None = None) -> bool:
        if now is None:
            now = time.monotonic()
        return now >= self.expiry


class TTLCache:
    """Thread-safe key/value cache with per-entry expiry.

    Example:
        cache = TTLCache("vpc", default_ttl=3600)

        vpc_id = cache.get_or_load("subnet-1-vpc", lambda: describe_vpc("subnet-1"))
    """

    def __init__(
        self,
        name: str,
        default_ttl: float,
        metrics: CacheMetrics | None = None,
        max_size: int = DEFAULT_MAX_SIZE,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if default_ttl <= 0:
            raise ValueError(f"default_ttl must be positive: {default_ttl}")
        self._name = name
        self._default_ttl = default_ttl
        self._metrics = metrics
        self._max_size = max_size
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._lock = threading.Lock()

    @property
    def name(self) -> str:
        return self._name

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def get(self, key: str) -> Any | None:
        """Return the cached value, or None if missing or expired."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if entry.is_expired(self._clock()):
                del self._entries[key]
                return None
            return entry.value

    def set(self, key: str, value: Any, ttl: float | None = None) -> None:
        """Store a value that expires ``ttl`` seconds from now."""
        effective_ttl = self._default_ttl if ttl is None else ttl
        with self._lock:
            now = self._clock()
            if key not in self._entries and len(self._entries) >= self._max_size:
                self._evict(now)
            self._entries[key] = CacheEntry(value=value, expiry=now + effective_ttl)

    def delete(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def get_or_load(self, key: str, loader: Callable[[], Any], ttl: float | None = None) -> Any:
        """Read through the cache, recording a hit or a miss.

        The loader runs outside the lock; concurrent misses on the same key
        may each call it and the last result wins. Loader errors propagate
        and nothing is cached.
        """
        value = self.get(key)
        if value is not None:
            if self._metrics is not None:
                self._metrics.hit(self._name)
            return value

        value = loader()
        self.set(key, value, ttl)
        if self._metrics is not None:
            self._metrics.miss(self._name)
        return value

    def _evict(self, now: float) -> None:
        """Drop expired entries, then the entry closest to expiry. Must hold lock."""
        expired = [key for key, entry in self._entries.items() if entry.is_expired(now)]
        for key in expired:
            del self._entries[key]
        if len(self._entries) >= self._max_size:
            soonest = min(self._entries, key=lambda k: self._entries[k].expiry)
            del self._entries[soonest]
