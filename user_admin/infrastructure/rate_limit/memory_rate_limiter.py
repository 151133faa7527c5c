import time
import threading
from typing import Dict, List

from ...application.ports.rate_limiter import RateLimiter, RateDecision


class InMemoryRateLimiter(RateLimiter):
    """Sliding-window limiter kept in process memory."""

    def __init__(self) -> None:
        self._hits: Dict[str, List[float]] = {}
        self._lock = threading.Lock()

    def hit(self, key: str, max_requests: int, window_seconds: int) -> RateDecision:
        now = time.time()
        window_start = now - window_seconds
        with self._lock:
            times = [t for t in self._hits.get(key, []) if t > window_start]
            if len(times) >= max_requests:
                self._hits[key] = times
                retry_after = int(times[0] + window_seconds - now) + 1
                return RateDecision(allowed=False, limit=max_requests, remaining=0, retry_after=retry_after)
            times.append(now)
            self._hits[key] = times
            return RateDecision(allowed=True, limit=max_requests, remaining=max_requests - len(times))
