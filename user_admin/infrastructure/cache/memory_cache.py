import math
import time
import threading
from typing import Callable, Dict, Optional, Tuple

from cachetools import TLRUCache

from ...application.ports.cache import Cache


def _expires_at(key: str, entry: Tuple[str, int], now: float) -> float:
    ttl_seconds = entry[1]
    return now + ttl_seconds if ttl_seconds > 0 else math.inf


class InMemoryCache(Cache):
    """Bounded per-process cache; entries expire after their own TTL or are evicted least-recently-used.

    Counters live apart from the evicting store so a generation number never
    falls back to an earlier value.
    """

    def __init__(self, maxsize: int = 1024, timer: Callable[[], float] = time.monotonic) -> None:
        self._store: TLRUCache = TLRUCache(maxsize=maxsize, ttu=_expires_at, timer=timer)
        self._counters: Dict[str, int] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            if key in self._counters:
                return str(self._counters[key])
            entry = self._store.get(key)
            return entry[0] if entry is not None else None

    def set(self, key: str, value: str, ttl_seconds: int) -> None:
        with self._lock:
            self._store[key] = (value, ttl_seconds)

    def delete(self, *keys: str) -> None:
        with self._lock:
            for key in keys:
                self._store.pop(key, None)
                self._counters.pop(key, None)

    def incr(self, key: str) -> int:
        with self._lock:
            self._counters[key] = self._counters.get(key, 0) + 1
            return self._counters[key]
