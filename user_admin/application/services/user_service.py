from typing import Optional, Dict, Any, Callable
from dataclasses import dataclass
import logging

from ..ports.user_repo import UserRepository, UserDto, UserFilters, UserPage
from ..ports.avatar_storage import AvatarStorage, AvatarUpload
from ..ports.notifier import Notifier, UserCreated
from ..ports.audit_logger import AuditLogger
from ..ports.password_hasher import PasswordHasher
from ...exceptions import UserNotFoundError, UserOperationError, ValidationFailedError
from .passwords import generate_password
from .phone_normalization import normalize_phone

logger = logging.getLogger(__name__)

PROFILE_FIELDS = ("first_name", "last_name", "email", "phone", "status")


@dataclass
class UserService:
    user_repo: UserRepository
    avatar_storage: AvatarStorage
    password_hasher: PasswordHasher
    notifier: Notifier
    audit: AuditLogger
    password_length: int = 12

    def _profile_fields(self, data: Dict[str, Any]) -> Dict[str, Any]:
        fields = {key: data[key] for key in PROFILE_FIELDS if key in data}
        for key in ("first_name", "last_name", "email"):
            if isinstance(fields.get(key), str):
                fields[key] = fields[key].strip()
        if "status" in fields and hasattr(fields["status"], "value"):
            fields["status"] = fields["status"].value
        return fields

    def _discard_avatar(self, path: Optional[str]) -> None:
        if path:
            self.avatar_storage.delete(path)

    def _notify(self, event: UserCreated) -> None:
        try:
            self.notifier.notify(event)
        except Exception as e:
            logger.warning(f"Could not dispatch welcome notification for user {event.user.id}: {e}")

    def list_users(self, filters: UserFilters) -> UserPage:
        return self.user_repo.paginate(filters)

    def find_user(self, user_id: int, include_deleted: bool = False) -> UserDto:
        user = self.user_repo.find_by_id(user_id, include_deleted=include_deleted)
        if user is None:
            raise UserNotFoundError()
        return user

    def create_user(self, data: Dict[str, Any], avatar: Optional[AvatarUpload] = None) -> UserDto:
        fields = self._profile_fields(data)
        fields["phone"] = normalize_phone(data.get("phone"))
        stored_avatar = None
        try:
            with self.user_repo.transaction():
                plain_password = generate_password(self.password_length)
                fields["password"] = self.password_hasher.hash(plain_password)
                if avatar is not None:
                    stored_avatar = self.avatar_storage.store(avatar)
                    fields["avatar"] = stored_avatar
                user = self.user_repo.create(fields)
        except ValidationFailedError:
            self._discard_avatar(stored_avatar)
            raise
        except Exception as e:
            self._discard_avatar(stored_avatar)
            logger.error(f"Failed to create user (fields={sorted(k for k in fields if k != 'password')}): {e}")
            self.audit.log("user.create", email=fields.get("email"), success=False, details={"error": type(e).__name__})
            raise UserOperationError(f"Failed to create user: {e}") from e

        self.audit.log("user.create", user_id=user.id, email=user.email, details={"avatar": stored_avatar is not None})
        self._notify(UserCreated(user=user, plain_password=plain_password))
        return user

    def update_user(self, user_id: int, data: Dict[str, Any], avatar: Optional[AvatarUpload] = None, include_deleted: bool = False) -> UserDto:
        current = self.user_repo.find_by_id(user_id, include_deleted=include_deleted)
        if current is None:
            raise UserNotFoundError()

        fields = self._profile_fields(data)
        if "phone" in data:
            fields["phone"] = normalize_phone(data.get("phone"))
        new_avatar = None
        try:
            with self.user_repo.transaction():
                password = data.get("password")
                if isinstance(password, str) and password.strip():
                    fields["password"] = self.password_hasher.hash(password)
                if avatar is not None:
                    new_avatar = self.avatar_storage.store(avatar)
                    fields["avatar"] = new_avatar
                if not self.user_repo.update(user_id, fields):
                    raise UserOperationError("Failed to update user.")
        except ValidationFailedError:
            self._discard_avatar(new_avatar)
            raise
        except UserOperationError:
            self._discard_avatar(new_avatar)
            self.audit.log("user.update", user_id=user_id, email=current.email, success=False)
            raise
        except Exception as e:
            self._discard_avatar(new_avatar)
            logger.error(f"Failed to update user {user_id}: {e}")
            self.audit.log("user.update", user_id=user_id, email=current.email, success=False, details={"error": type(e).__name__})
            raise UserOperationError(f"Failed to update user: {e}") from e

        if new_avatar and current.avatar and current.avatar != new_avatar:
            self._discard_avatar(current.avatar)

        changed = sorted(k if k != "password" else "password_changed" for k in fields)
        self.audit.log("user.update", user_id=user_id, email=current.email, details={"fields": changed})
        return self.find_user(user_id, include_deleted=True)

    def _apply(self, action: str, user: UserDto, write: Callable[[int], bool], failure: str) -> None:
        """Run a single-row lifecycle write in a transaction, mapping any failure to UserOperationError."""
        try:
            with self.user_repo.transaction():
                done = write(user.id)
        except Exception as e:
            logger.error(f"{failure[:-1]} {user.id}: {e}")
            self.audit.log(action, user_id=user.id, email=user.email, success=False, details={"error": type(e).__name__})
            raise UserOperationError(f"{failure[:-1]}: {e}") from e
        if not done:
            self.audit.log(action, user_id=user.id, email=user.email, success=False)
            raise UserOperationError(failure)
        self.audit.log(action, user_id=user.id, email=user.email)

    def delete_user(self, user_id: int) -> None:
        user = self.find_user(user_id)
        self._apply("user.delete", user, self.user_repo.soft_delete, "Failed to delete user.")

    def restore_user(self, user_id: int) -> UserDto:
        user = self.user_repo.find_by_id(user_id, include_deleted=True)
        if user is None or not user.is_deleted:
            raise UserNotFoundError()
        # The address may have been reused while this record was trashed
        if self.user_repo.email_taken(user.email, ignore_id=user.id):
            self.audit.log("user.restore", user_id=user.id, email=user.email, success=False, details={"error": "email_taken"})
            raise ValidationFailedError({"email": ["This email is already in use."]})
        self._apply("user.restore", user, self.user_repo.restore, "Failed to restore user.")
        return self.find_user(user_id)

    def force_delete_user(self, user_id: int) -> None:
        user = self.find_user(user_id, include_deleted=True)
        self._apply("user.force_delete", user, self.user_repo.force_delete, "Failed to permanently delete user.")
        self._discard_avatar(user.avatar)
