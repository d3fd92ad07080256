"""Bounded, time-limited results cache for data connectors.

Each data connector owns at most one ResultsCache; its lifetime is the
lifetime of the initialized plugin graph. The cache is the only mutable
state shared between concurrent resolution contexts, so every operation
holds the cache lock.
"""

from __future__ import annotations

import threading
import time
from collections import OrderedDict
from collections.abc import Callable
from dataclasses import dataclass
from typing import Generic, TypeVar

V = TypeVar("V")


@dataclass(frozen=True, slots=True)
class _Entry(Generic[V]):
    value: V
    expires_at: float


class ResultsCache(Generic[V]):
    """Thread-safe LRU cache with a per-entry time-to-live.

    Keys are request fingerprints (see core.canonical.stable_hash).
    Least recently used entries are evicted once max_size is reached;
    expired entries are dropped lazily on access.

    Example:
        cache = ResultsCache[dict[str, IdPAttribute]](max_size=1000, ttl_seconds=300)
        attrs = cache.get_or_compute(fingerprint, lambda: query_source(ctx))
    """

    def __init__(
        self,
        *,
        max_size: int,
        ttl_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_size < 1:
            raise ValueError("max_size must be >= 1")
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be > 0")
        self._max_size = max_size
        self._ttl = ttl_seconds
        self._clock = clock
        self._entries: OrderedDict[str, _Entry[V]] = OrderedDict()
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0

    def get_or_compute(self, key: str, compute: Callable[[], V]) -> V:
        """Return the cached value, computing and storing it on a miss.

        The lock is released while compute() runs: external calls must not
        serialize unrelated requests. Two concurrent misses on the same key
        may both compute; the later result replaces the earlier one.

        Exceptions from compute() propagate and nothing is cached.
        """
        with self._lock:
            cached = self._get_locked(key)
            if cached is not None:
                return cached

        value = compute()

        with self._lock:
            self._put_locked(key, value)
        return value

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    @property
    def hits(self) -> int:
        return self._hits

    @property
    def misses(self) -> int:
        return self._misses

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def _get_locked(self, key: str) -> V | None:
        entry = self._entries.get(key)
        if entry is None:
            self._misses += 1
            return None
        if entry.expires_at <= self._clock():
            del self._entries[key]
            self._misses += 1
            return None
        self._entries.move_to_end(key)
        self._hits += 1
        return entry.value

    def _put_locked(self, key: str, value: V) -> None:
        self._entries[key] = _Entry(value, self._clock() + self._ttl)
        self._entries.move_to_end(key)
        while len(self._entries) > self._max_size:
            self._entries.popitem(last=False)
