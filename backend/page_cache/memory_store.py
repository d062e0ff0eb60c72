"""
Page Memory Store

Thread-safe in-memory storage for proxied pages.

Features:
- One reader/writer lock guards the entry map and the size counter together
- Size accounting in whole KB (len(body) // 1024), kept incrementally
- Oldest-created eviction, never below one entry
- Timestamps stamped by the store itself from a single monotonic clock

Eviction scans every entry (O(n)). The proxy keeps very few keys, so a
priority queue keyed by creation time is not used.
"""

import logging
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple

logger = logging.getLogger(__name__)

KB = 1024


class KeyNotFoundError(LookupError):
    """Raised when deleting a key that is not in the cache."""

    def __init__(self, key: str):
        super().__init__(f"key not found: {key}")
        self.key = key


@dataclass(frozen=True)
class CacheEntry:
    """
    A stored page.

    Entries are immutable; re-setting a key replaces the whole entry.
    """
    value: bytes
    created_at: float
    charged_kb: int = 0  # size charged against the budget when stored

    @property
    def size_bytes(self) -> int:
        return len(self.value)


def size_in_kb(value: bytes) -> int:
    """Budget size of a value: whole KB, truncated (a 500 byte page costs 0)."""
    return len(value) // KB


class ReadWriteLock:
    """
    Shared/exclusive lock built on a Condition.

    Any number of readers may hold the lock at once; a writer holds it
    alone. Waiting writers block new readers so a steady stream of reads
    cannot starve a write.
    """

    def __init__(self):
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    def acquire_read(self) -> None:
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1

    def release_read(self) -> None:
        with self._cond:
            self._readers -= 1
            if self._readers == 0:
                self._cond.notify_all()

    def acquire_write(self) -> None:
        with self._cond:
            self._writers_waiting += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._writers_waiting -= 1
            self._writer = True

    def release_write(self) -> None:
        with self._cond:
            self._writer = False
            self._cond.notify_all()

    @contextmanager
    def read_locked(self) -> Iterator[None]:
        self.acquire_read()
        try:
            yield
        finally:
            self.release_read()

    @contextmanager
    def write_locked(self) -> Iterator[None]:
        self.acquire_write()
        try:
            yield
        finally:
            self.release_write()


class PageCache:
    """
    Thread-safe page cache with a KB size budget.

    ``set`` is a pure storage primitive and never charges the budget.
    ``populate`` is the miss path: it charges the page's size, stores it
    and evicts the oldest entry once, all in one write critical section.

    Invariant: ``total_size_kb`` equals the sum of ``charged_kb`` over all
    stored entries whenever no writer holds the lock.
    """

    def __init__(
        self,
        budget_kb: int = 0,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize page cache

        Args:
            budget_kb: Size budget in KB; reaching it triggers one eviction
            clock: Timestamp source for created_at (monotonic by default)
        """
        self._entries: Dict[str, CacheEntry] = {}
        self._lock = ReadWriteLock()
        self._clock = clock
        self._total_size_kb = 0
        self.budget_kb = budget_kb

        # hit/miss counters are not part of the cache state proper
        self._stats_lock = threading.Lock()
        self._hits = 0
        self._misses = 0

    # ============================================
    # Core operations
    # ============================================

    def set(self, key: str, value: bytes) -> None:
        """
        Insert or replace the entry for key with a fresh timestamp.

        The new entry is not charged against the budget. A replaced entry's
        charge is released so the size counter stays consistent.
        """
        with self._lock.write_locked():
            self._store(key, value, charged_kb=0)

    def get(self, key: str) -> Tuple[Optional[bytes], float, bool]:
        """
        Look up a key.

        Returns:
            (value, created_at, True) when present, (None, 0.0, False) otherwise.
        """
        with self._lock.read_locked():
            entry = self._entries.get(key)

        with self._stats_lock:
            if entry is None:
                self._misses += 1
            else:
                self._hits += 1

        if entry is None:
            return None, 0.0, False
        return entry.value, entry.created_at, True

    def delete(self, key: str) -> None:
        """
        Remove the entry for key.

        Raises:
            KeyNotFoundError: if the key is absent (also on a second delete)
        """
        with self._lock.write_locked():
            self._remove(key)

    def evict_oldest(self) -> Optional[str]:
        """
        Remove the entry with the smallest created_at.

        Ties go to the lexicographically smallest key. A cache holding zero
        or one entries is left alone.

        Returns:
            The evicted key, or None if nothing was evicted.
        """
        with self._lock.write_locked():
            return self._evict_oldest()

    def populate(self, key: str, value: bytes) -> int:
        """
        Store a freshly fetched page and charge it against the budget.

        Charging, storing and the single budget-driven eviction happen in one
        write critical section, so concurrent misses on the same key leave
        exactly one charge behind (last writer wins).

        Returns:
            The running total in KB after the step.
        """
        size_kb = size_in_kb(value)
        with self._lock.write_locked():
            self._store(key, value, charged_kb=size_kb)
            logger.info(
                f"[PageCache] Stored {key} ({size_kb} KB), total {self._total_size_kb} KB"
            )
            if self._total_size_kb >= self.budget_kb:
                evicted = self._evict_oldest()
                if evicted is not None:
                    logger.info(
                        f"[PageCache] Over budget ({self.budget_kb} KB), evicted {evicted}"
                    )
            return self._total_size_kb

    # ============================================
    # Introspection
    # ============================================

    @property
    def total_size_kb(self) -> int:
        with self._lock.read_locked():
            return self._total_size_kb

    def __len__(self) -> int:
        with self._lock.read_locked():
            return len(self._entries)

    def __contains__(self, key: object) -> bool:
        with self._lock.read_locked():
            return key in self._entries

    def keys(self) -> List[str]:
        with self._lock.read_locked():
            return list(self._entries)

    def clear(self) -> int:
        """
        Remove all entries and reset the size counter.

        Returns:
            Number of entries removed
        """
        with self._lock.write_locked():
            count = len(self._entries)
            self._entries.clear()
            self._total_size_kb = 0
        logger.info(f"[PageCache] Cleared all {count} entries")
        return count

    def stats(self) -> Dict[str, Any]:
        """Get cache statistics."""
        with self._lock.read_locked():
            entries = len(self._entries)
            total_kb = self._total_size_kb
            total_bytes = sum(e.size_bytes for e in self._entries.values())
        with self._stats_lock:
            hits, misses = self._hits, self._misses
        return {
            "total_entries": entries,
            "total_size_kb": total_kb,
            "total_size_bytes": total_bytes,
            "budget_kb": self.budget_kb,
            "usage_percent": round(total_kb / self.budget_kb * 100, 1) if self.budget_kb > 0 else 0,
            "hits": hits,
            "misses": misses,
        }

    # ============================================
    # Internal helpers (write lock held)
    # ============================================

    def _store(self, key: str, value: bytes, charged_kb: int) -> None:
        old = self._entries.get(key)
        if old is not None:
            self._total_size_kb -= old.charged_kb
        self._entries[key] = CacheEntry(
            value=bytes(value),
            created_at=self._clock(),
            charged_kb=charged_kb,
        )
        self._total_size_kb += charged_kb

    def _remove(self, key: str) -> CacheEntry:
        entry = self._entries.pop(key, None)
        if entry is None:
            raise KeyNotFoundError(key)
        self._total_size_kb -= entry.charged_kb
        return entry

    def _evict_oldest(self) -> Optional[str]:
        if len(self._entries) <= 1:
            return None
        oldest = min(
            self._entries,
            key=lambda k: (self._entries[k].created_at, k),
        )
        # selection and removal share the write lock, so the target cannot vanish
        self._remove(oldest)
        return oldest
