"""
Page Cache Module

In-memory, thread-safe store for proxied pages.

Features:
- Reader/writer locking (concurrent reads, exclusive writes)
- Incremental size accounting in KB
- Oldest-created eviction once the size budget is reached
"""

from .memory_store import CacheEntry, KeyNotFoundError, PageCache, ReadWriteLock

__all__ = [
    "CacheEntry",
    "KeyNotFoundError",
    "PageCache",
    "ReadWriteLock",
]
