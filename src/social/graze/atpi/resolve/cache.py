import math
import time
from dataclasses import dataclass
from typing import Callable, Dict, Generic, Optional, TypeVar

T = TypeVar("T")

DEFAULT_CACHE_TTL = 5 * 60
DEFAULT_MAX_ENTRIES = 1000
EVICTION_RATIO = 0.2


@dataclass
class CacheEntry(Generic[T]):
    value: T
    timestamp: float


class TimedCache(Generic[T]):
    """
    Memory-resident cache with a fixed time-to-live per entry.

    Entries expire ``ttl`` seconds after they were inserted; reading an entry does not extend its life. When an
    insert pushes the cache over ``max_entries``, the oldest 20% of entries (by insertion time) are dropped in one
    pass instead of sweeping expired entries individually.

    The cache is not thread-safe. It is owned by a single resolver component and used from one event loop.
    """

    def __init__(
        self,
        ttl: float = DEFAULT_CACHE_TTL,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._ttl = ttl
        self._max_entries = max_entries
        self._clock = clock
        self._entries: Dict[str, CacheEntry[T]] = {}

    def get(self, key: str) -> Optional[T]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._clock() - entry.timestamp > self._ttl:
            del self._entries[key]
            return None
        return entry.value

    def set(self, key: str, value: T) -> None:
        self._entries.pop(key, None)
        self._entries[key] = CacheEntry(value=value, timestamp=self._clock())
        if len(self._entries) > self._max_entries:
            self._evict_oldest()

    def clear(self) -> None:
        self._entries.clear()

    def _evict_oldest(self) -> None:
        to_remove = math.floor(len(self._entries) * EVICTION_RATIO)
        oldest = sorted(self._entries.items(), key=lambda item: item[1].timestamp)
        for key, _ in oldest[:to_remove]:
            del self._entries[key]

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries
