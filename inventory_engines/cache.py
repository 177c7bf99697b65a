"""
Module: inventory_engines.cache
Responsibility:
    Instance-owned, bounded memoization for engine results.

Architecture position:
    Engines -- pure support code, zero I/O.

Invariants enforced:
    - ``len(cache) <= max_size`` at all times; inserting into a full cache
      evicts the least-recently-used entry.
    - No module-level state: every owner constructs its own cache, so two
      calculators (or two tests) never observe each other's entries.
    - Thread-safe: a single lock guards the ordered map and the counters.

Failure modes:
    - ValueError if ``max_size`` is negative.  ``max_size == 0`` disables
      caching (every lookup is a miss, nothing is stored).
"""

from __future__ import annotations

import threading
from collections import OrderedDict
from collections.abc import Callable, Hashable
from dataclasses import dataclass
from typing import Generic, TypeVar

from inventory_kernel.logging_config import get_logger

logger = get_logger("engines.cache")

V = TypeVar("V")

_MISSING = object()


@dataclass(frozen=True)
class CacheStats:
    """Point-in-time counters for a BoundedCache."""

    size: int
    max_size: int
    hits: int
    misses: int
    evictions: int

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total else 0.0


class BoundedCache(Generic[V]):
    """LRU cache with a hard size limit."""

    def __init__(self, max_size: int = 256, name: str = "cache"):
        if max_size < 0:
            raise ValueError(f"max_size cannot be negative: {max_size}")
        self._max_size = max_size
        self._name = name
        self._entries: OrderedDict[Hashable, V] = OrderedDict()
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    @property
    def max_size(self) -> int:
        return self._max_size

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: Hashable) -> bool:
        with self._lock:
            return key in self._entries

    def get(self, key: Hashable, default: V | None = None) -> V | None:
        with self._lock:
            value = self._entries.get(key, _MISSING)
            if value is _MISSING:
                self._misses += 1
                return default
            self._entries.move_to_end(key)
            self._hits += 1
            return value

    def put(self, key: Hashable, value: V) -> None:
        if self._max_size == 0:
            return
        with self._lock:
            if key in self._entries:
                self._entries.move_to_end(key)
            self._entries[key] = value
            while len(self._entries) > self._max_size:
                self._entries.popitem(last=False)
                self._evictions += 1

    def get_or_compute(self, key: Hashable, compute: Callable[[], V]) -> V:
        """
        Return the cached value for ``key`` or compute, store and return it.

        ``compute`` runs outside the lock; two threads racing on the same key
        may both compute, and the later result wins.
        """
        value = self.get(key, _MISSING)
        if value is not _MISSING:
            return value
        value = compute()
        self.put(key, value)
        return value

    def clear(self) -> None:
        with self._lock:
            dropped = len(self._entries)
            self._entries.clear()
        logger.debug("cache_cleared", extra={"cache": self._name, "dropped": dropped})

    def stats(self) -> CacheStats:
        with self._lock:
            return CacheStats(
                size=len(self._entries),
                max_size=self._max_size,
                hits=self._hits,
                misses=self._misses,
                evictions=self._evictions,
            )
