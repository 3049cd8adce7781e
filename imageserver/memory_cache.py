"""
MemoryCache - In-process cache for image records and blob existence flags.
"""

import enum
import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Tuple


class CachePriority(enum.IntEnum):
    """Eviction priority; lower priorities are evicted first."""
    LOW = 0
    NORMAL = 1
    HIGH = 2


@dataclass
class CacheEntryOptions:
    """
    Expiration policy for one cache entry.

    Attributes:
        sliding_seconds: Entry expires this long after its last read or write
        absolute_seconds: Entry expires this long after it was written
        priority: Eviction priority when the cache is over its size limit
    """
    sliding_seconds: Optional[float] = None
    absolute_seconds: Optional[float] = None
    priority: CachePriority = CachePriority.NORMAL


@dataclass
class _CacheEntry:
    value: Any
    options: CacheEntryOptions
    created: float
    last_access: float

    def is_expired(self, now: float) -> bool:
        if self.options.absolute_seconds is not None and now - self.created >= self.options.absolute_seconds:
            return True
        if self.options.sliding_seconds is not None and now - self.last_access >= self.options.sliding_seconds:
            return True
        return False


class MemoryCache:
    """
    Thread-safe key/value cache with sliding and absolute expiration.

    Entries are non-authoritative: concurrent writes to a key are
    last-write-wins and readers may see a value up to its TTL old.
    """

    def __init__(
        self,
        size_limit: Optional[int] = None,
        clock: Callable[[], float] = time.monotonic,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize the cache.

        Args:
            size_limit: Maximum number of entries, or None for unbounded
            clock: Monotonic time source (seconds)
            logger: Optional logger instance
        """
        self.size_limit = size_limit
        self._clock = clock
        self._entries: Dict[str, _CacheEntry] = {}
        self._lock = threading.Lock()
        self.logger = logger or logging.getLogger(__name__)

    def try_get(self, key: str) -> Tuple[Any, bool]:
        """
        Look up a key.

        Returns:
            Tuple of (value, found); reading renews sliding expiration
        """
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None, False
            now = self._clock()
            if entry.is_expired(now):
                del self._entries[key]
                return None, False
            entry.last_access = now
            return entry.value, True

    def get(self, key: str, default: Any = None) -> Any:
        value, found = self.try_get(key)
        return value if found else default

    def set(self, key: str, value: Any, options: Optional[CacheEntryOptions] = None) -> None:
        """Store a value, replacing any existing entry for the key."""
        options = options or CacheEntryOptions()
        with self._lock:
            now = self._clock()
            self._entries[key] = _CacheEntry(value=value, options=options, created=now, last_access=now)
            if self.size_limit is not None and len(self._entries) > self.size_limit:
                self._compact(now)

    def remove(self, key: str) -> bool:
        """Remove a key; returns True if an entry was present."""
        with self._lock:
            return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return self.try_get(key)[1]

    def _compact(self, now: float) -> None:
        """Drop expired entries, then the lowest priority, least recently used ones."""
        for key in [k for k, e in self._entries.items() if e.is_expired(now)]:
            del self._entries[key]

        overflow = len(self._entries) - self.size_limit
        if overflow <= 0:
            return

        victims = sorted(
            self._entries.items(),
            key=lambda item: (item[1].options.priority, item[1].last_access)
        )[:overflow]
        for key, _ in victims:
            del self._entries[key]
        self.logger.debug(f"Cache compacted: evicted {len(victims)} entries")
