from typing import Protocol
from dataclasses import dataclass


@dataclass(frozen=True)
class RateDecision:
    allowed: bool
    limit: int
    remaining: int
    retry_after: int = 0


class RateLimiter(Protocol):
    def hit(self, key: str, max_requests: int, window_seconds: int) -> RateDecision:
        ...
