import redis

from ...application.ports.rate_limiter import RateLimiter, RateDecision


class RedisRateLimiter(RateLimiter):
    """Fixed-window limiter shared across workers through Redis."""

    def __init__(self, url: str, prefix: str = "rl:") -> None:
        self.client = redis.Redis.from_url(url)
        self.prefix = prefix

    def hit(self, key: str, max_requests: int, window_seconds: int) -> RateDecision:
        rk = f"{self.prefix}{key}:{window_seconds}"
        pipe = self.client.pipeline()
        pipe.incr(rk, 1)
        pipe.expire(rk, window_seconds, nx=True)
        pipe.ttl(rk)
        count, _, ttl = pipe.execute()
        count = int(count)
        if count > max_requests:
            return RateDecision(allowed=False, limit=max_requests, remaining=0, retry_after=max(int(ttl), 1))
        return RateDecision(allowed=True, limit=max_requests, remaining=max_requests - count)
