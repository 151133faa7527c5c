from typing import Optional

import redis

from ...application.ports.cache import Cache


class RedisCache(Cache):
    def __init__(self, url: str, prefix: str = "cache:") -> None:
        self.client = redis.Redis.from_url(url, decode_responses=True)
        self.prefix = prefix

    def _key(self, key: str) -> str:
        return f"{self.prefix}{key}"

    def get(self, key: str) -> Optional[str]:
        return self.client.get(self._key(key))

    def set(self, key: str, value: str, ttl_seconds: int) -> None:
        if ttl_seconds > 0:
            self.client.set(self._key(key), value, ex=ttl_seconds)
        else:
            self.client.set(self._key(key), value)

    def delete(self, *keys: str) -> None:
        if keys:
            self.client.delete(*[self._key(k) for k in keys])

    def incr(self, key: str) -> int:
        return int(self.client.incr(self._key(key)))
