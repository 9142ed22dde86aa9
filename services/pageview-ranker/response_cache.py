"""In-memory response cache for upstream API payloads.

This module provides the ResponseCache class, a bounded key/value store
keyed by exact request identity (the resolved URL). Entries carry their
insertion time so readers can decide freshness against a TTL; capacity
pressure evicts entries in insertion order regardless of their age.
"""

import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Callable, Hashable, Iterator, Optional


@dataclass(frozen=True)
class CacheEntry:
    """Cached payload together with its insertion timestamp.

    Attributes:
        value: Decoded response payload
        inserted_at: Clock reading when the entry was stored
    """

    value: Any
    inserted_at: float

    def age(self, now: float) -> float:
        return now - self.inserted_at


class FIFOEviction:
    """Evict the oldest-inserted key. Reads never refresh a key's position."""

    def select_victim(self, entries: "OrderedDict[Hashable, CacheEntry]") -> Hashable:
        return next(iter(entries))


class ResponseCache:
    """Bounded TTL cache for decoded API responses.

    The cache never hides stale entries itself: ``get`` returns whatever is
    physically stored and ``is_fresh`` tells the caller whether the entry is
    still inside the TTL.

    Attributes:
        max_entries: Capacity bound
        ttl_seconds: Freshness window used by ``is_fresh``
    """

    def __init__(
        self,
        max_entries: int = 100,
        ttl_seconds: float = 15 * 60,
        eviction_policy: Optional[FIFOEviction] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the response cache.

        Args:
            max_entries: Maximum number of entries kept in memory
            ttl_seconds: Age after which an entry counts as stale
            eviction_policy: Strategy choosing the entry to drop when full
            clock: Monotonic time source, injectable for tests
        """
        if max_entries < 1:
            raise ValueError("Cache capacity must be at least 1")
        if ttl_seconds <= 0:
            raise ValueError("Cache TTL must be positive")

        self.max_entries = max_entries
        self.ttl_seconds = ttl_seconds
        self.eviction_policy = eviction_policy or FIFOEviction()
        self._clock = clock
        self._entries: "OrderedDict[Hashable, CacheEntry]" = OrderedDict()
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: Hashable) -> bool:
        with self._lock:
            return key in self._entries

    def __iter__(self) -> Iterator[Hashable]:
        with self._lock:
            return iter(list(self._entries))

    def get(self, key: Hashable) -> Optional[CacheEntry]:
        """Return the stored entry for ``key``, fresh or not."""
        with self._lock:
            return self._entries.get(key)

    def is_fresh(self, entry: CacheEntry) -> bool:
        return entry.age(self._clock()) < self.ttl_seconds

    def put(self, key: Hashable, value: Any) -> CacheEntry:
        """Store ``value`` under ``key``, evicting one entry when at capacity.

        Re-inserting an existing key replaces it and moves it to the newest
        position.
        """
        entry = CacheEntry(value=value, inserted_at=self._clock())
        with self._lock:
            if key in self._entries:
                del self._entries[key]
            elif len(self._entries) >= self.max_entries:
                self._evict_locked()
            self._entries[key] = entry
        return entry

    def evict(self) -> Optional[Hashable]:
        """Drop the entry selected by the eviction policy and return its key."""
        with self._lock:
            return self._evict_locked()

    def _evict_locked(self) -> Optional[Hashable]:
        if not self._entries:
            return None
        victim = self.eviction_policy.select_victim(self._entries)
        del self._entries[victim]
        return victim

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def get_stats(self) -> dict:
        """Return size information for health reporting."""
        with self._lock:
            size = len(self._entries)
        return {
            "entries": size,
            "max_entries": self.max_entries,
            "ttl_seconds": self.ttl_seconds,
        }
