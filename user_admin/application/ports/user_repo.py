from typing import Protocol, Optional, List, Dict, Any, ContextManager
from datetime import datetime
import math

from pydantic import BaseModel, ConfigDict, Field

from ...db.models import UserStatus, UserLifecycle


class UserDto(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    first_name: str
    last_name: str
    email: str
    phone: Optional[str] = None
    status: UserStatus
    password_hash: str = Field(default="", repr=False)
    avatar: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    deleted_at: Optional[datetime] = None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def lifecycle(self) -> UserLifecycle:
        return UserLifecycle.DELETED if self.deleted_at is not None else UserLifecycle.ACTIVE

    @property
    def is_deleted(self) -> bool:
        return self.lifecycle is UserLifecycle.DELETED


class UserFilters(BaseModel):
    search: str = ""
    status: Optional[UserStatus] = None
    with_trashed: bool = False
    page: int = 1
    per_page: int = 10

    @classmethod
    def from_query(
        cls,
        search: Optional[str] = None,
        status: Optional[str] = None,
        with_trashed: bool = False,
        page: Optional[int] = None,
        per_page: Optional[int] = None,
        default_per_page: int = 10,
        max_per_page: int = 100,
    ) -> "UserFilters":
        size = per_page if per_page is not None else default_per_page
        if size < 1:
            size = default_per_page
        size = min(size, max_per_page)

        status_value = None
        if status:
            try:
                status_value = UserStatus(status.strip().lower())
            except ValueError:
                # Unknown statuses are ignored rather than rejected
                status_value = None

        return cls(
            search=(search or "").strip(),
            status=status_value,
            with_trashed=bool(with_trashed),
            page=max(page or 1, 1),
            per_page=size,
        )

    def cache_key(self) -> str:
        status = self.status.value if self.status else ""
        return f"s={self.search.lower()}|st={status}|t={int(self.with_trashed)}|p={self.page}|pp={self.per_page}"


class UserPage(BaseModel):
    items: List[UserDto]
    total: int
    current_page: int
    per_page: int

    @property
    def last_page(self) -> int:
        return max(math.ceil(self.total / self.per_page), 1)

    @property
    def first_item(self) -> Optional[int]:
        if not self.items:
            return None
        return (self.current_page - 1) * self.per_page + 1

    @property
    def last_item(self) -> Optional[int]:
        if not self.items:
            return None
        return (self.first_item or 0) + len(self.items) - 1


class UserRepository(Protocol):
    def paginate(self, filters: UserFilters) -> UserPage:
        ...

    def find_by_id(self, user_id: int, include_deleted: bool = False) -> Optional[UserDto]:
        ...

    def email_taken(self, email: str, ignore_id: Optional[int] = None) -> bool:
        ...

    def create(self, fields: Dict[str, Any]) -> UserDto:
        ...

    def update(self, user_id: int, fields: Dict[str, Any]) -> bool:
        ...

    def soft_delete(self, user_id: int) -> bool:
        ...

    def restore(self, user_id: int) -> bool:
        ...

    def force_delete(self, user_id: int) -> bool:
        ...

    def transaction(self) -> ContextManager[None]:
        ...
