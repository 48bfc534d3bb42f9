"""
TTL memoization for oracle calls.

Keys are frozen dataclasses built from coordinates rounded to 5 decimal
places (about 1.1 m), so programmatically generated near-duplicates share a
slot. Concurrent misses on the same key are not coalesced.
"""
import logging
import time
from dataclasses import dataclass, replace
from typing import Any, Awaitable, Callable, Dict, Generic, Hashable, TypeVar

from .models import GeoPoint, TravelMode

logger = logging.getLogger(__name__)

T = TypeVar('T')

CACHE_TTL_SECONDS = 300
COORDINATE_PRECISION = 5


def _round(value: float) -> float:
    return round(value, COORDINATE_PRECISION)


@dataclass(frozen=True)
class RouteKey:
    origin_lat: float
    origin_lng: float
    dest_lat: float
    dest_lng: float
    mode: TravelMode

    @classmethod
    def build(cls, origin: GeoPoint, destination: GeoPoint, mode: TravelMode) -> "RouteKey":
        return cls(_round(origin.lat), _round(origin.lng),
                   _round(destination.lat), _round(destination.lng), mode)


@dataclass(frozen=True)
class PlaceKey:
    lat: float
    lng: float
    category: str
    radius: int

    @classmethod
    def build(cls, center: GeoPoint, category: str, radius: int) -> "PlaceKey":
        return cls(_round(center.lat), _round(center.lng), category.lower(), int(radius))


@dataclass(frozen=True)
class CacheEntry(Generic[T]):
    value: T
    created_at: float


@dataclass
class CacheMetrics:
    requests: int = 0
    hits: int = 0
    oracle_calls: int = 0
    evictions: int = 0

    @property
    def hit_rate(self) -> float:
        return round(self.hits / self.requests * 100, 1) if self.requests else 0.0

    def to_dict(self) -> Dict:
        return {
            'requests': self.requests,
            'hits': self.hits,
            'oracle_calls': self.oracle_calls,
            'evictions': self.evictions,
            'hit_rate': self.hit_rate,
        }


class QueryCache(Generic[T]):
    """Memoizes async fetches by structured key for a fixed TTL"""

    def __init__(self, name: str, ttl_seconds: float = CACHE_TTL_SECONDS,
                 clock: Callable[[], float] = time.monotonic):
        self.name = name
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: Dict[Hashable, CacheEntry[T]] = {}
        self._metrics = CacheMetrics()

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def metrics(self) -> CacheMetrics:
        return replace(self._metrics)

    def reset_metrics(self):
        self._metrics = CacheMetrics()

    def _is_fresh(self, entry: CacheEntry) -> bool:
        return self._clock() - entry.created_at < self.ttl_seconds

    def get(self, key: Hashable) -> Any:
        """Return the fresh cached value for key, or None"""
        entry = self._entries.get(key)
        if entry is not None and self._is_fresh(entry):
            return entry.value
        return None

    def put(self, key: Hashable, value: T):
        self._entries[key] = CacheEntry(value=value, created_at=self._clock())

    async def get_or_fetch(self, key: Hashable, fetch_fn: Callable[[], Awaitable[T]]) -> T:
        self._metrics.requests += 1
        entry = self._entries.get(key)
        if entry is not None:
            if self._is_fresh(entry):
                self._metrics.hits += 1
                logger.debug("%s cache hit: %s", self.name, key)
                return entry.value
            del self._entries[key]
            self._metrics.evictions += 1

        self._metrics.oracle_calls += 1
        value = await fetch_fn()
        self.put(key, value)
        return value

    def purge_expired(self) -> int:
        stale = [k for k, e in self._entries.items() if not self._is_fresh(e)]
        for k in stale:
            del self._entries[k]
        self._metrics.evictions += len(stale)
        return len(stale)
