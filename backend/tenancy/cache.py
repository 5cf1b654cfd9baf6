"""
TTL cache for paginated directory listings.

The cache is a plain object: the web app creates one per application instance
(`app.state.listing_cache`) and passes it to the service. Entries are keyed by
(query shape, page) where the shape is the listing name plus its normalized
filters.
"""
from __future__ import annotations

from dataclasses import dataclass
from threading import Lock
from typing import Any, Callable, Dict, Hashable, Mapping, Optional, Tuple
import time

CacheKey = Tuple[Hashable, int]


@dataclass
class _Entry:
    value: Any
    expires_at: float


def query_shape(name: str, filters: Optional[Mapping[str, object]] = None) -> Tuple:
    """Normalize a listing name and its filters into a hashable shape.

    Filters set to None are dropped so `{"search": None}` and `{}` share a key.
    """
    items = tuple(sorted((str(k), v) for k, v in (filters or {}).items() if v is not None))
    return (name, items)


class ListingCache:
    def __init__(self, ttl_seconds: float = 300, *, max_entries: int = 512, clock: Callable[[], float] = time.monotonic):
        if ttl_seconds < 0:
            raise ValueError("ttl_seconds must be >= 0")
        self.ttl_seconds = float(ttl_seconds)
        self.max_entries = max(1, int(max_entries))
        self._clock = clock
        self._entries: Dict[CacheKey, _Entry] = {}
        self._lock = Lock()

    def get(self, shape: Hashable, page: int) -> Optional[Any]:
        key = (shape, int(page))
        now = self._clock()
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if entry.expires_at <= now:
                del self._entries[key]
                return None
            return entry.value

    def put(self, shape: Hashable, page: int, value: Any) -> None:
        if self.ttl_seconds == 0:
            return
        key = (shape, int(page))
        now = self._clock()
        with self._lock:
            if key not in self._entries and len(self._entries) >= self.max_entries:
                self._evict_locked(now)
            self._entries[key] = _Entry(value=value, expires_at=now + self.ttl_seconds)

    def get_or_load(self, shape: Hashable, page: int, loader: Callable[[], Any]) -> Any:
        """Return the cached value or call `loader` and cache its result.

        Loader exceptions propagate and nothing is cached.
        """
        cached = self.get(shape, page)
        if cached is not None:
            return cached
        value = loader()
        self.put(shape, page, value)
        return value

    def invalidate(self, name: Optional[str] = None) -> None:
        """Drop every entry, or only those whose shape starts with `name`."""
        with self._lock:
            if name is None:
                self._entries.clear()
                return
            for key in [k for k in self._entries if isinstance(k[0], tuple) and k[0][:1] == (name,)]:
                del self._entries[key]

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def _evict_locked(self, now: float) -> None:
        expired = [k for k, e in self._entries.items() if e.expires_at <= now]
        for key in expired:
            del self._entries[key]
        if len(self._entries) >= self.max_entries:
            # Oldest insertion first (dicts keep insertion order).
            oldest = next(iter(self._entries))
            del self._entries[oldest]
