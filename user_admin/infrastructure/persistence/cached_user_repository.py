from typing import Optional, Dict, Any, Iterator, Set
from contextlib import contextmanager
import json
import logging

from ...application.ports.cache import Cache
from ...application.ports.user_repo import UserRepository, UserDto, UserFilters, UserPage

logger = logging.getLogger(__name__)

LIST_VERSION_KEY = "list:version"


class CachedUserRepository(UserRepository):
    """Read-through cache in front of another user repository.

    find_by_id and paginate results are cached for ``ttl_seconds``. Writes
    drop the user's entries and bump the list generation once the enclosing
    transaction commits. Cache failures degrade to direct reads.
    """

    def __init__(self, inner: UserRepository, cache: Cache, ttl_seconds: int = 300):
        self.inner = inner
        self.cache = cache
        self.ttl_seconds = ttl_seconds
        self._in_transaction = False
        self._pending_ids: Set[int] = set()
        self._pending_list = False

    def _user_keys(self, user_id: int) -> tuple:
        return (f"user:{user_id}:live", f"user:{user_id}:all")

    def _list_version(self) -> str:
        return self.cache.get(LIST_VERSION_KEY) or "0"

    def _read(self, key: str) -> Optional[str]:
        try:
            return self.cache.get(key)
        except Exception as e:
            logger.warning(f"Cache read failed for {key}: {e}")
            return None

    def _write(self, key: str, value: str) -> None:
        try:
            self.cache.set(key, value, self.ttl_seconds)
        except Exception as e:
            logger.warning(f"Cache write failed for {key}: {e}")

    def _invalidate(self, user_id: Optional[int]) -> None:
        if user_id is not None:
            self._pending_ids.add(user_id)
        self._pending_list = True
        if not self._in_transaction:
            self._flush_invalidations()

    def _flush_invalidations(self) -> None:
        ids, self._pending_ids = self._pending_ids, set()
        bump_list, self._pending_list = self._pending_list, False
        try:
            keys = [key for user_id in ids for key in self._user_keys(user_id)]
            if keys:
                self.cache.delete(*keys)
            if bump_list:
                self.cache.incr(LIST_VERSION_KEY)
        except Exception as e:
            logger.warning(f"Cache invalidation failed for users {sorted(ids)}: {e}")

    def paginate(self, filters: UserFilters) -> UserPage:
        try:
            key = f"list:{self._list_version()}:{filters.cache_key()}"
        except Exception as e:
            logger.warning(f"Cache unavailable, reading users directly: {e}")
            return self.inner.paginate(filters)

        cached = self._read(key)
        if cached is not None:
            return UserPage.model_validate_json(cached)

        page = self.inner.paginate(filters)
        self._write(key, page.model_dump_json())
        return page

    def find_by_id(self, user_id: int, include_deleted: bool = False) -> Optional[UserDto]:
        key = self._user_keys(user_id)[1 if include_deleted else 0]
        cached = self._read(key)
        if cached is not None:
            return UserDto.model_validate_json(cached)

        user = self.inner.find_by_id(user_id, include_deleted=include_deleted)
        if user is not None:
            self._write(key, user.model_dump_json())
        return user

    def email_taken(self, email: str, ignore_id: Optional[int] = None) -> bool:
        return self.inner.email_taken(email, ignore_id=ignore_id)

    def create(self, fields: Dict[str, Any]) -> UserDto:
        user = self.inner.create(fields)
        self._invalidate(user.id)
        return user

    def update(self, user_id: int, fields: Dict[str, Any]) -> bool:
        updated = self.inner.update(user_id, fields)
        if updated:
            self._invalidate(user_id)
        return updated

    def soft_delete(self, user_id: int) -> bool:
        deleted = self.inner.soft_delete(user_id)
        if deleted:
            self._invalidate(user_id)
        return deleted

    def restore(self, user_id: int) -> bool:
        restored = self.inner.restore(user_id)
        if restored:
            self._invalidate(user_id)
        return restored

    def force_delete(self, user_id: int) -> bool:
        deleted = self.inner.force_delete(user_id)
        if deleted:
            self._invalidate(user_id)
        return deleted

    @contextmanager
    def transaction(self) -> Iterator[None]:
        if self._in_transaction:
            yield
            return
        self._in_transaction = True
        try:
            with self.inner.transaction():
                yield
        except Exception:
            self._pending_ids.clear()
            self._pending_list = False
            raise
        finally:
            self._in_transaction = False
        self._flush_invalidations()
