"""Thread-safe memoization cache shared by the engines.

One cache instance holds every memoized structure, separated by namespace
("matrix", "equilibria", "tree", "utility"). A single lock guards the whole
map, so invalidating every namespace is atomic with respect to concurrent
inserts.

Cached values are immutable (frozen dataclasses, frozen models, tuples), so
handing the same instance to several threads is safe.
"""

from __future__ import annotations

import logging
import threading
from collections import OrderedDict
from collections.abc import Callable, Hashable
from dataclasses import dataclass
from typing import TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class CacheStats:
    """Point-in-time cache counters."""

    hits: int
    misses: int
    size: int
    capacity: int


class StrategyCache:
    """Bounded LRU map keyed by (namespace, key).

    Example:
        >>> cache = StrategyCache(max_size=128)
        >>> cache.get_or_create("matrix", ("a", "b"), lambda: build())
    """

    def __init__(self, max_size: int = 512):
        """Initialize the cache.

        Args:
            max_size: Maximum entries across all namespaces. 0 disables caching.
        """
        if max_size < 0:
            raise ValueError(f"max_size must be non-negative, got {max_size}")
        self._max_size = max_size
        self._entries: OrderedDict[tuple[str, Hashable], object] = OrderedDict()
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0

    @property
    def max_size(self) -> int:
        return self._max_size

    def get(self, namespace: str, key: Hashable) -> object | None:
        """Return a cached value or None, refreshing its LRU position."""
        with self._lock:
            full_key = (namespace, key)
            if full_key not in self._entries:
                self._misses += 1
                return None
            self._hits += 1
            self._entries.move_to_end(full_key)
            return self._entries[full_key]

    def put(self, namespace: str, key: Hashable, value: object) -> None:
        """Insert a value, evicting least recently used entries past capacity."""
        if self._max_size == 0:
            return
        with self._lock:
            full_key = (namespace, key)
            self._entries[full_key] = value
            self._entries.move_to_end(full_key)
            while len(self._entries) > self._max_size:
                evicted, _ = self._entries.popitem(last=False)
                logger.debug(f"Evicted cache entry {evicted[0]}:{evicted[1]!r}")

    def get_or_create(self, namespace: str, key: Hashable, factory: Callable[[], T]) -> T:
        """Return the cached value for key, building it with factory on a miss.

        The factory runs outside the lock. If two threads race on the same
        key, the first insert wins and both callers receive that value; the
        values are equal anyway because every factory is a pure function.
        """
        cached = self.get(namespace, key)
        if cached is not None:
            return cached  # type: ignore[return-value]

        value = factory()
        if self._max_size == 0:
            return value

        with self._lock:
            full_key = (namespace, key)
            existing = self._entries.get(full_key)
            if existing is not None:
                self._entries.move_to_end(full_key)
                return existing  # type: ignore[return-value]
            self._entries[full_key] = value
            while len(self._entries) > self._max_size:
                self._entries.popitem(last=False)
        return value

    def invalidate(self, namespace: str | None = None) -> int:
        """Drop cached entries.

        Args:
            namespace: Only drop this namespace. None drops everything.

        Returns:
            Number of entries removed
        """
        with self._lock:
            if namespace is None:
                removed = len(self._entries)
                self._entries.clear()
            else:
                doomed = [k for k in self._entries if k[0] == namespace]
                for k in doomed:
                    del self._entries[k]
                removed = len(doomed)
        logger.debug(f"Invalidated {removed} cache entries (namespace={namespace})")
        return removed

    def resize(self, max_size: int) -> None:
        """Change capacity and clear every entry in one locked step."""
        if max_size < 0:
            raise ValueError(f"max_size must be non-negative, got {max_size}")
        with self._lock:
            self._max_size = max_size
            self._entries.clear()

    def stats(self) -> CacheStats:
        with self._lock:
            return CacheStats(
                hits=self._hits,
                misses=self._misses,
                size=len(self._entries),
                capacity=self._max_size,
            )

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
