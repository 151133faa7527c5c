import pytest

from user_admin.infrastructure.rate_limit import memory_rate_limiter
from user_admin.infrastructure.rate_limit.memory_rate_limiter import InMemoryRateLimiter


def test_memory_rate_limiter_allows_then_blocks():
    rl = InMemoryRateLimiter()
    key = "k1"
    first = rl.hit(key, max_requests=2, window_seconds=60)
    assert first.allowed is True and first.remaining == 1
    assert rl.hit(key, max_requests=2, window_seconds=60).remaining == 0
    blocked = rl.hit(key, max_requests=2, window_seconds=60)
    assert blocked.allowed is False
    assert 1 <= blocked.retry_after <= 61


def test_memory_rate_limiter_window_slides(monkeypatch):
    now = [1000.0]
    monkeypatch.setattr(memory_rate_limiter.time, "time", lambda: now[0])
    rl = InMemoryRateLimiter()
    assert rl.hit("k1", 1, 60).allowed is True
    assert rl.hit("k1", 1, 60).allowed is False
    assert rl.hit("k2", 1, 60).allowed is True
    now[0] += 61
    assert rl.hit("k1", 1, 60).allowed is True


def test_redis_rate_limiter_with_fake(monkeypatch):
    redis = pytest.importorskip("redis")

    class FakePipe:
        def __init__(self, client):
            self.client = client
            self.ops = []

        def incr(self, k, n):
            self.ops.append(("incr", k, n))
            return self

        def expire(self, k, s, nx=False):
            self.ops.append(("expire", k, s, nx))
            return self

        def ttl(self, k):
            self.ops.append(("ttl", k))
            return self

        def execute(self):
            results = []
            for op in self.ops:
                if op[0] == "incr":
                    self.client.store[op[1]] = self.client.store.get(op[1], 0) + op[2]
                    results.append(self.client.store[op[1]])
                elif op[0] == "expire":
                    fresh = op[1] not in self.client.ttls
                    if fresh or not op[3]:
                        self.client.ttls[op[1]] = op[2]
                    results.append(fresh)
                else:
                    results.append(self.client.ttls.get(op[1], -1))
            return results

    class FakeRedis:
        def __init__(self):
            self.store = {}
            self.ttls = {}

        @classmethod
        def from_url(cls, url):
            return cls()

        def pipeline(self):
            return FakePipe(self)

    from user_admin.infrastructure.rate_limit import redis_rate_limiter as mod
    monkeypatch.setattr(mod.redis, "Redis", FakeRedis)

    rl = mod.RedisRateLimiter(url="redis://fake")

    assert rl.hit("k1", 2, 60).allowed is True
    assert rl.hit("k1", 2, 60).remaining == 0
    blocked = rl.hit("k1", 2, 60)
    assert blocked.allowed is False
    assert blocked.retry_after == 60
    assert rl.client.store == {"rl:k1:60": 3}
