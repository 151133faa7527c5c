from typing import Optional, Dict, Any, Tuple
from dataclasses import dataclass, field
import json
import logging

from fastapi import APIRouter, BackgroundTasks, Depends, Query, Request
from sqlmodel import Session
from starlette.datastructures import UploadFile

from ..application.ports.avatar_storage import AvatarUpload
from ..application.ports.user_repo import UserRepository, UserDto, UserFilters
from ..application.services.user_service import UserService
from ..application.validation.user_rules import (
    CREATE_USER_RULES,
    UPDATE_USER_RULES,
    FieldRules,
    RuleContext,
    validate,
)
from ..database import get_session
from ..exceptions import ValidationFailedError
from ..infrastructure.notifications.background import BackgroundNotifier
from ..infrastructure.persistence.cached_user_repository import CachedUserRepository
from ..infrastructure.persistence.sqlalchemy.repositories.user_repository_sql import SqlUserRepository
from ..schemas.users.user import MessageResponse, UserDetail, UserEnvelope, UserListResponse, UserResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users", tags=["Users"])

FORM_CONTENT_TYPES = ("multipart/form-data", "application/x-www-form-urlencoded")


@dataclass
class UserPayload:
    data: Dict[str, Any] = field(default_factory=dict)
    avatar: Optional[AvatarUpload] = None


async def read_user_payload(request: Request) -> UserPayload:
    """Accept either a JSON body or a (multipart) form with an optional avatar file."""
    content_type = request.headers.get("content-type", "")
    if content_type.startswith(FORM_CONTENT_TYPES):
        form = await request.form()
        payload = UserPayload()
        for key, value in form.multi_items():
            if isinstance(value, UploadFile):
                if key == "avatar" and value.filename:
                    payload.avatar = AvatarUpload(
                        filename=value.filename,
                        content_type=value.content_type or "",
                        data=await value.read(),
                    )
                continue
            payload.data[key] = value
        return payload

    body = await request.body()
    if not body:
        return UserPayload()
    try:
        data = json.loads(body)
    except ValueError:
        raise ValidationFailedError({"body": ["The request body must be valid JSON."]})
    if not isinstance(data, dict):
        raise ValidationFailedError({"body": ["The request body must be a JSON object."]})
    return UserPayload(data=data)


def get_user_repository(request: Request, session: Session = Depends(get_session)) -> UserRepository:
    settings = request.app.state.settings
    repo = SqlUserRepository(session, fulltext_search=settings.USERS_FULLTEXT_SEARCH)
    cache = request.app.state.cache
    if cache is not None:
        return CachedUserRepository(repo, cache, ttl_seconds=settings.CACHE_TTL_SECONDS)
    return repo


def get_user_service(
    request: Request,
    background_tasks: BackgroundTasks,
    user_repo: UserRepository = Depends(get_user_repository),
) -> UserService:
    state = request.app.state
    return UserService(
        user_repo=user_repo,
        avatar_storage=state.avatar_storage,
        password_hasher=state.password_hasher,
        notifier=BackgroundNotifier(background_tasks, state.notifier),
        audit=state.audit_logger,
        password_length=state.settings.PASSWORD_LENGTH,
    )


def validate_payload(request: Request, payload: UserPayload, rules: Tuple[FieldRules, ...], user_repo: UserRepository, ignore_id: Optional[int] = None) -> None:
    settings = request.app.state.settings
    ctx = RuleContext(
        user_repo=user_repo,
        ignore_id=ignore_id,
        avatar_max_kb=settings.AVATAR_MAX_KB,
        allowed_avatar_types=tuple(settings.ALLOWED_AVATAR_TYPES),
        password_min_length=settings.PASSWORD_MIN_LENGTH,
    )
    data = dict(payload.data)
    if payload.avatar is not None:
        data["avatar"] = payload.avatar
    errors = validate(data, rules, ctx)
    if errors:
        raise ValidationFailedError(errors)


def present(request: Request, user: UserDto) -> UserResponse:
    return UserResponse.from_dto(user, request.app.state.avatar_storage.url_for(user.avatar))


@router.get("", response_model=UserListResponse)
def list_users(
    request: Request,
    search: Optional[str] = Query(None),
    status: Optional[str] = Query(None),
    with_trashed: bool = Query(False, alias="withTrashed"),
    page: int = Query(1),
    per_page: Optional[int] = Query(None),
    service: UserService = Depends(get_user_service),
):
    settings = request.app.state.settings
    filters = UserFilters.from_query(
        search=search,
        status=status,
        with_trashed=with_trashed,
        page=page,
        per_page=per_page,
        default_per_page=settings.USERS_PER_PAGE,
        max_per_page=settings.USERS_MAX_PER_PAGE,
    )
    page_result = service.list_users(filters)
    return UserListResponse.from_page(page_result, request.app.state.avatar_storage.url_for)


@router.post("", status_code=201, response_model=UserEnvelope)
def create_user(
    request: Request,
    payload: UserPayload = Depends(read_user_payload),
    user_repo: UserRepository = Depends(get_user_repository),
    service: UserService = Depends(get_user_service),
):
    validate_payload(request, payload, CREATE_USER_RULES, user_repo)
    user = service.create_user(payload.data, avatar=payload.avatar)
    logger.info(f"Created user {user.id}")
    return UserEnvelope(message="User created successfully.", user=present(request, user))


@router.get("/{user_id}", response_model=UserDetail)
def show_user(
    request: Request,
    user_id: int,
    with_trashed: bool = Query(False, alias="withTrashed"),
    service: UserService = Depends(get_user_service),
):
    user = service.find_user(user_id, include_deleted=with_trashed)
    return UserDetail(user=present(request, user))


@router.put("/{user_id}", response_model=UserEnvelope)
def update_user(
    request: Request,
    user_id: int,
    with_trashed: bool = Query(False, alias="withTrashed"),
    payload: UserPayload = Depends(read_user_payload),
    user_repo: UserRepository = Depends(get_user_repository),
    service: UserService = Depends(get_user_service),
):
    service.find_user(user_id, include_deleted=with_trashed)
    validate_payload(request, payload, UPDATE_USER_RULES, user_repo, ignore_id=user_id)
    user = service.update_user(user_id, payload.data, avatar=payload.avatar, include_deleted=with_trashed)
    return UserEnvelope(message="User updated successfully.", user=present(request, user))


@router.delete("/{user_id}", response_model=MessageResponse)
def delete_user(user_id: int, service: UserService = Depends(get_user_service)):
    service.delete_user(user_id)
    return MessageResponse(message="User deleted successfully.")


@router.put("/{user_id}/restore", response_model=UserEnvelope)
def restore_user(request: Request, user_id: int, service: UserService = Depends(get_user_service)):
    user = service.restore_user(user_id)
    return UserEnvelope(message="User restored successfully.", user=present(request, user))


@router.delete("/{user_id}/force", response_model=MessageResponse)
def force_delete_user(user_id: int, service: UserService = Depends(get_user_service)):
    service.force_delete_user(user_id)
    return MessageResponse(message="User permanently deleted.")
