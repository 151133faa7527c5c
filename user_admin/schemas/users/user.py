# user_admin/schemas/users/user.py
from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, List, Callable
from datetime import datetime

from ...db.models import UserStatus
from ...application.ports.user_repo import UserDto, UserPage


class UserResponse(BaseModel):
    id: int
    first_name: str
    last_name: str
    full_name: str
    email: str
    phone: Optional[str] = None
    status: UserStatus
    avatar: Optional[str] = None
    avatar_url: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    deleted_at: Optional[datetime] = None

    @classmethod
    def from_dto(cls, user: UserDto, avatar_url: Optional[str] = None) -> "UserResponse":
        return cls(
            id=user.id,
            first_name=user.first_name,
            last_name=user.last_name,
            full_name=user.full_name,
            email=user.email,
            phone=user.phone,
            status=user.status,
            avatar=user.avatar,
            avatar_url=avatar_url,
            created_at=user.created_at,
            updated_at=user.updated_at,
            deleted_at=user.deleted_at,
        )


class PaginationMeta(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    current_page: int
    from_: Optional[int] = Field(default=None, alias="from")
    last_page: int
    per_page: int
    to: Optional[int] = None
    total: int


class UserListResponse(BaseModel):
    data: List[UserResponse]
    meta: PaginationMeta

    @classmethod
    def from_page(cls, page: UserPage, url_for: Callable[[Optional[str]], Optional[str]]) -> "UserListResponse":
        return cls(
            data=[UserResponse.from_dto(user, url_for(user.avatar)) for user in page.items],
            meta=PaginationMeta(
                current_page=page.current_page,
                from_=page.first_item,
                last_page=page.last_page,
                per_page=page.per_page,
                to=page.last_item,
                total=page.total,
            ),
        )


class UserDetail(BaseModel):
    user: UserResponse


class UserEnvelope(BaseModel):
    message: str
    user: UserResponse


class MessageResponse(BaseModel):
    message: str
