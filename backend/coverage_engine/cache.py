"""
Coverage Cache

Time-boxed, size-bounded memoization of LocationCoverage results keyed by
quantized coordinates and provider selector.
"""

import asyncio
import logging
import threading
import time
from collections import OrderedDict
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from .errors import CacheReadError
from .models import LocationCoverage
from .providers import AUTO, is_auto

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 30 * 60
DEFAULT_MAX_ENTRIES = 1024


def make_key(lat: float, lng: float, provider: Optional[str] = None) -> str:
    """Rounding to 3 decimals (~111 m) lets nearby queries share one entry."""
    selector = AUTO if is_auto(provider) else provider.strip()
    return f"{round(lat, 3)}_{round(lng, 3)}_{selector}"


@dataclass(frozen=True)
class CacheEntry:
    data: LocationCoverage
    timestamp: float


class CoverageCache:
    """Lock-guarded TTL cache with LRU eviction once max_entries is reached.

    Expiry is lazy: an expired entry is removed the next time it is read.
    """

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self.clock = clock
        self._entries: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self._lock = threading.Lock()
        self._key_locks: Dict[str, asyncio.Lock] = {}
        self._key_lock_users: Dict[str, int] = {}

    def get(self, key: str) -> Optional[LocationCoverage]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None

            try:
                self._check_entry(entry)
            except CacheReadError as e:
                logger.warning("Evicting unreadable cache entry %s: %s", key, e)
                del self._entries[key]
                return None

            if self.clock() - entry.timestamp >= self.ttl_seconds:
                logger.debug("Cache entry %s expired", key)
                del self._entries[key]
                return None

            self._entries.move_to_end(key)
            return entry.data

    def set(self, key: str, value: LocationCoverage) -> None:
        with self._lock:
            self._entries[key] = CacheEntry(data=value, timestamp=self.clock())
            self._entries.move_to_end(key)
            while len(self._entries) > self.max_entries:
                evicted, _ = self._entries.popitem(last=False)
                logger.debug("Evicted least recently used cache entry %s", evicted)

    @asynccontextmanager
    async def key_lock(self, key: str):
        """Hold the per-key lock so concurrent misses for the same key compute once.

        A key's lock lives only while some request holds or waits on it.
        """
        with self._lock:
            lock = self._key_locks.get(key)
            if lock is None:
                lock = self._key_locks[key] = asyncio.Lock()
            self._key_lock_users[key] = self._key_lock_users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            with self._lock:
                self._key_lock_users[key] -= 1
                if not self._key_lock_users[key]:
                    del self._key_lock_users[key]
                    del self._key_locks[key]

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._entries

    @staticmethod
    def _check_entry(entry) -> None:
        if not isinstance(entry, CacheEntry):
            raise CacheReadError(f"unexpected entry type {type(entry).__name__}")
        if not isinstance(entry.data, LocationCoverage):
            raise CacheReadError(f"unexpected payload type {type(entry.data).__name__}")
        if not isinstance(entry.timestamp, (int, float)):
            raise CacheReadError("entry timestamp is not numeric")
