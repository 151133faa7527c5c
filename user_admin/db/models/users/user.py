# user_admin/db/models/users/user.py
from typing import Optional
from datetime import datetime, timezone
from enum import Enum

from sqlalchemy import Index
from sqlmodel import SQLModel, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UserStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class UserLifecycle(str, Enum):
    ACTIVE = "active"
    DELETED = "deleted"


class User(SQLModel, table=True):
    __tablename__ = "users"
    __table_args__ = (
        Index("idx_users_status_deleted", "status", "deleted_at"),
        Index("idx_users_created_deleted", "created_at", "deleted_at"),
        Index("ft_users_names", "first_name", "last_name", mysql_prefix="FULLTEXT"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    first_name: str = Field(max_length=100)
    last_name: str = Field(max_length=100)
    email: str = Field(max_length=255, index=True)
    phone: Optional[str] = Field(max_length=20, default=None)
    status: str = Field(max_length=20, default=UserStatus.ACTIVE.value)
    password: str = Field(max_length=255)
    avatar: Optional[str] = Field(max_length=255, default=None)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    deleted_at: Optional[datetime] = Field(default=None, index=True)

    @property
    def lifecycle(self) -> UserLifecycle:
        return UserLifecycle.DELETED if self.deleted_at is not None else UserLifecycle.ACTIVE
