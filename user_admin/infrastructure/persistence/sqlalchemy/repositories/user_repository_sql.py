from typing import Optional, Dict, Any, Iterator, List
from contextlib import contextmanager
import logging

from sqlalchemy import func, or_, text
from sqlmodel import Session, select

from .....db.models import User, utcnow
from .....application.ports.user_repo import UserRepository, UserDto, UserFilters, UserPage

logger = logging.getLogger(__name__)

WRITABLE_FIELDS = ("first_name", "last_name", "email", "phone", "status", "password", "avatar")


def escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class SqlUserRepository(UserRepository):
    def __init__(self, session: Session, fulltext_search: bool = True):
        self.session = session
        self.fulltext_search = fulltext_search
        self._in_transaction = False

    def _to_dto(self, user: User) -> UserDto:
        return UserDto(
            id=user.id,
            first_name=user.first_name,
            last_name=user.last_name,
            email=user.email,
            phone=user.phone,
            status=user.status,
            password_hash=user.password,
            avatar=user.avatar,
            created_at=user.created_at,
            updated_at=user.updated_at,
            deleted_at=user.deleted_at,
        )

    def _get(self, user_id: int, include_deleted: bool = False) -> Optional[User]:
        statement = select(User).where(User.id == user_id)
        if not include_deleted:
            statement = statement.where(User.deleted_at.is_(None))
        return self.session.exec(statement).first()

    def _save(self, user: User) -> None:
        self.session.add(user)
        if self._in_transaction:
            self.session.flush()
        else:
            self.session.commit()
        self.session.refresh(user)

    def _search_clause(self, search: str):
        pattern = f"%{escape_like(search.lower())}%"
        clauses = [
            func.lower(User.first_name).like(pattern, escape="\\"),
            func.lower(User.last_name).like(pattern, escape="\\"),
            func.lower(User.email).like(pattern, escape="\\"),
            func.lower(User.phone).like(pattern, escape="\\"),
        ]
        dialect = self.session.get_bind().dialect.name
        if self.fulltext_search and dialect in ("mysql", "mariadb"):
            # Uses ft_users_names; LIKE clauses keep substring recall
            clauses.insert(0, text("MATCH(first_name, last_name) AGAINST (:fts IN BOOLEAN MODE)").bindparams(fts=search))
        return or_(*clauses)

    def _conditions(self, filters: UserFilters) -> List[Any]:
        conditions = []
        if not filters.with_trashed:
            conditions.append(User.deleted_at.is_(None))
        if filters.search:
            conditions.append(self._search_clause(filters.search))
        if filters.status is not None:
            conditions.append(User.status == filters.status.value)
        return conditions

    def paginate(self, filters: UserFilters) -> UserPage:
        conditions = self._conditions(filters)
        total = self.session.exec(select(func.count()).select_from(User).where(*conditions)).one()
        rows = self.session.exec(
            select(User)
            .where(*conditions)
            .order_by(User.id.desc())
            .offset((filters.page - 1) * filters.per_page)
            .limit(filters.per_page)
        ).all()
        return UserPage(
            items=[self._to_dto(row) for row in rows],
            total=int(total),
            current_page=filters.page,
            per_page=filters.per_page,
        )

    def find_by_id(self, user_id: int, include_deleted: bool = False) -> Optional[UserDto]:
        user = self._get(user_id, include_deleted=include_deleted)
        return self._to_dto(user) if user else None

    def email_taken(self, email: str, ignore_id: Optional[int] = None) -> bool:
        statement = select(User.id).where(
            func.lower(User.email) == email.lower(),
            User.deleted_at.is_(None),
        )
        if ignore_id is not None:
            statement = statement.where(User.id != ignore_id)
        return self.session.exec(statement.limit(1)).first() is not None

    def create(self, fields: Dict[str, Any]) -> UserDto:
        user = User(**{key: value for key, value in fields.items() if key in WRITABLE_FIELDS})
        self._save(user)
        return self._to_dto(user)

    def update(self, user_id: int, fields: Dict[str, Any]) -> bool:
        user = self._get(user_id, include_deleted=True)
        if not user:
            return False
        for key, value in fields.items():
            if key in WRITABLE_FIELDS:
                setattr(user, key, value)
        user.updated_at = utcnow()
        self._save(user)
        return True

    def soft_delete(self, user_id: int) -> bool:
        user = self._get(user_id)
        if not user:
            return False
        user.deleted_at = utcnow()
        self._save(user)
        return True

    def restore(self, user_id: int) -> bool:
        user = self._get(user_id, include_deleted=True)
        if not user or user.deleted_at is None:
            return False
        user.deleted_at = None
        user.updated_at = utcnow()
        self._save(user)
        return True

    def force_delete(self, user_id: int) -> bool:
        user = self._get(user_id, include_deleted=True)
        if not user:
            return False
        self.session.delete(user)
        if self._in_transaction:
            self.session.flush()
        else:
            self.session.commit()
        return True

    @contextmanager
    def transaction(self) -> Iterator[None]:
        if self._in_transaction:
            yield
            return
        self._in_transaction = True
        try:
            yield
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise
        finally:
            self._in_transaction = False
