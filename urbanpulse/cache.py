"""In-process TTL cache with optional size bound and single-flight reads."""

from __future__ import annotations

import threading
import time
from concurrent.futures import Future
from dataclasses import dataclass
from typing import Any, Callable, Generic, Hashable, Optional, TypeVar

from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="cache")

T = TypeVar("T")


@dataclass
class CacheEntry(Generic[T]):
    """A cached value and the clock reading at which it was written."""
    key: Hashable
    value: T
    written_at: float


class TTLCache(Generic[T]):
    """
    Thread-safe key/value cache where entries expire `ttl_seconds` after being written.

    Expired entries are not removed on read; they stay in the map until the key is
    written again, evicted, or pruned to make room when `max_entries` is reached.
    """

    def __init__(
        self,
        ttl_seconds: float,
        max_entries: int | None = None,
        *,
        clock: Callable[[], float] = time.monotonic,
        name: str = "cache",
    ) -> None:
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        if max_entries is not None and max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self.ttl = ttl_seconds
        self.max_entries = max_entries
        self.name = name
        self._clock = clock
        self._entries: dict[Hashable, CacheEntry[T]] = {}
        self._in_flight: dict[Hashable, Future] = {}
        self._lock = threading.Lock()

    def _is_fresh(self, entry: CacheEntry[T], now: float) -> bool:
        return now - entry.written_at < self.ttl

    def _lookup(self, key: Hashable) -> Optional[CacheEntry[T]]:
        """Return the entry for key if fresh. Caller holds the lock."""
        entry = self._entries.get(key)
        if entry is None or not self._is_fresh(entry, self._clock()):
            return None
        return entry

    def _store(self, key: Hashable, value: T) -> None:
        """Write an entry, making room first if the cache is full. Caller holds the lock."""
        if self.max_entries is not None and key not in self._entries and len(self._entries) >= self.max_entries:
            now = self._clock()
            stale = [k for k, e in self._entries.items() if not self._is_fresh(e, now)]
            for k in stale:
                del self._entries[k]
            if len(self._entries) >= self.max_entries:
                oldest = min(self._entries.values(), key=lambda e: e.written_at)
                del self._entries[oldest.key]
                logger.debug("Evicted oldest entry", extra={"cache": self.name, "key": oldest.key})
        self._entries[key] = CacheEntry(key=key, value=value, written_at=self._clock())

    def get(self, key: Hashable, default: Any = None) -> T | Any:
        """Return the cached value if it is still fresh, otherwise `default`."""
        with self._lock:
            entry = self._lookup(key)
        return default if entry is None else entry.value

    def set(self, key: Hashable, value: T) -> None:
        """Store (or overwrite) a value, stamping it with the current time."""
        with self._lock:
            self._store(key, value)

    def evict(self, key: Hashable) -> None:
        """Remove a key if present."""
        with self._lock:
            self._entries.pop(key, None)

    def clear(self) -> None:
        """Drop every entry."""
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: Hashable) -> bool:
        """Physical presence, fresh or not."""
        with self._lock:
            return key in self._entries

    def get_or_fetch(self, key: Hashable, fetch: Callable[[], T]) -> T:
        """
        Return a fresh cached value or compute it with `fetch()` and cache it.

        Concurrent misses on the same key share one call to `fetch`: the first
        caller runs it and the rest wait for its result. Exceptions raised by
        `fetch` reach every waiter and nothing is cached.
        """
        with self._lock:
            entry = self._lookup(key)
            if entry is not None:
                logger.debug("Cache hit", extra={"cache": self.name, "key": key})
                return entry.value
            future = self._in_flight.get(key)
            owner = future is None
            if owner:
                future = Future()
                self._in_flight[key] = future

        if not owner:
            logger.debug("Joining in-flight fetch", extra={"cache": self.name, "key": key})
            return future.result()

        logger.debug("Cache miss", extra={"cache": self.name, "key": key})
        try:
            value = fetch()
        except BaseException as exc:
            with self._lock:
                self._in_flight.pop(key, None)
            future.set_exception(exc)
            raise

        with self._lock:
            self._store(key, value)
            self._in_flight.pop(key, None)
        future.set_result(value)
        return value
