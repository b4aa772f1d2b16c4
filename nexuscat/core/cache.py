"""Time-boxed caches owned by the resolver and discovery components.

Each cache stores :class:`CacheEntry` values stamped with the time they were
written. An entry is fresh while ``now - timestamp < ttl``; callers that can
tolerate older data may pass a longer ``max_age`` to :meth:`TTLCache.get_fresh`.

Storage is a bounded ``cachetools.TTLCache`` whose lifetime is the cache's
``retention``, so stale entries stay readable until that horizon and are then
evicted. Keys are compared case-insensitively. The cache performs no locking
of its own; owners that share it across threads wrap mutations in their own
lock.
"""

from __future__ import annotations

import enum
import time
from dataclasses import dataclass
from typing import Callable, Generic, Iterator, TypeVar

import cachetools

T = TypeVar("T")

Clock = Callable[[], float]

DEFAULT_MAXSIZE = 1024
DEFAULT_RETENTION_FACTOR = 3


class CacheState(str, enum.Enum):
    """Lifecycle state of a single cache key."""

    NO_ENTRY = "no_entry"
    FRESH = "fresh"
    STALE = "stale"


@dataclass(frozen=True)
class CacheEntry(Generic[T]):
    """A cached value plus the clock reading at which it was stored."""

    value: T
    timestamp: float

    def age(self, now: float) -> float:
        return now - self.timestamp

    def is_fresh(self, ttl: float, now: float) -> bool:
        return self.age(now) < ttl


class TTLCache(Generic[T]):
    """Mapping of case-insensitive keys to timestamped values.

    Args:
        ttl: Lifetime in seconds after which an entry is considered stale.
        clock: Monotonic clock; ``time.monotonic`` when omitted.
        retention: Age at which an entry is evicted outright. Defaults to
            three times ``ttl`` and is never shorter than ``ttl``.
        maxsize: Number of keys kept before the least recently used is evicted.
    """

    def __init__(
        self,
        ttl: float,
        clock: Clock | None = None,
        *,
        retention: float | None = None,
        maxsize: int = DEFAULT_MAXSIZE,
    ) -> None:
        if ttl <= 0:
            raise ValueError("ttl must be positive")
        if retention is None:
            retention = ttl * DEFAULT_RETENTION_FACTOR
        self.ttl = ttl
        self.retention = max(ttl, retention)
        self._clock = clock or time.monotonic
        self._entries = cachetools.TTLCache(
            maxsize=maxsize, ttl=self.retention, timer=self._clock
        )

    @staticmethod
    def _key(key: str) -> str:
        return key.strip().casefold()

    def now(self) -> float:
        return self._clock()

    def set(self, key: str, value: T) -> CacheEntry[T]:
        """Store ``value`` under ``key`` stamped with the current time."""
        entry = CacheEntry(value=value, timestamp=self._clock())
        self._entries[self._key(key)] = entry
        return entry

    def get_entry(self, key: str) -> CacheEntry[T] | None:
        """Return the entry regardless of freshness, if it is still retained."""
        return self._entries.get(self._key(key))

    def get_fresh(self, key: str, max_age: float | None = None) -> CacheEntry[T] | None:
        """Return the entry if it is younger than ``max_age`` (defaults to ``ttl``)."""
        entry = self.get_entry(key)
        if entry is None:
            return None
        limit = self.ttl if max_age is None else max_age
        if entry.is_fresh(limit, self._clock()):
            return entry
        return None

    def state(self, key: str) -> CacheState:
        entry = self.get_entry(key)
        if entry is None:
            return CacheState.NO_ENTRY
        if entry.is_fresh(self.ttl, self._clock()):
            return CacheState.FRESH
        return CacheState.STALE

    def invalidate(self, key: str) -> bool:
        """Drop ``key``; returns True if an entry was removed."""
        return self._entries.pop(self._key(key), None) is not None

    def invalidate_where(self, predicate: Callable[[str], bool]) -> int:
        """Drop every entry whose normalized key matches ``predicate``."""
        doomed = [key for key in list(self._entries) if predicate(key)]
        for key in doomed:
            self._entries.pop(key, None)
        return len(doomed)

    def clear(self) -> None:
        self._entries.clear()

    def items(self) -> Iterator[tuple[str, CacheEntry[T]]]:
        """Iterate over a snapshot of retained ``(normalized key, entry)`` pairs."""
        snapshot = []
        for key in list(self._entries):
            entry = self._entries.get(key)
            if entry is not None:
                snapshot.append((key, entry))
        return iter(snapshot)

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and self._key(key) in self._entries

    def __len__(self) -> int:
        self._entries.expire()
        return len(self._entries)
