from typing import Protocol, Optional


class Cache(Protocol):
    def get(self, key: str) -> Optional[str]:
        ...

    def set(self, key: str, value: str, ttl_seconds: int) -> None:
        ...

    def delete(self, *keys: str) -> None:
        ...

    def incr(self, key: str) -> int:
        ...
