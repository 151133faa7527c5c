import os
import uuid
import logging
from typing import Optional, Sequence

from ...application.ports.avatar_storage import AvatarStorage, AvatarUpload
from ...application.services.image_inspection import FORMAT_EXTENSIONS, detect_image_format, mime_type_for
from ...exceptions import ValidationFailedError

logger = logging.getLogger(__name__)


class LocalAvatarStorage(AvatarStorage):
    def __init__(
        self,
        upload_dir: str,
        subdir: str = "avatars",
        max_bytes: int = 2048 * 1024,
        allowed_types: Sequence[str] = ("image/jpeg", "image/jpg", "image/png", "image/gif", "image/webp"),
        base_url: str = "",
    ) -> None:
        self.upload_dir = upload_dir
        self.subdir = subdir
        self.max_bytes = max_bytes
        self.allowed_types = tuple(t.lower() for t in allowed_types)
        self.base_url = base_url.rstrip("/")
        os.makedirs(os.path.join(self.upload_dir, self.subdir), exist_ok=True)

    def _absolute(self, path: str) -> str:
        root = os.path.abspath(self.upload_dir)
        full = os.path.abspath(os.path.join(root, path))
        if os.path.commonpath([root, full]) != root:
            raise ValueError(f"Path escapes upload directory: {path}")
        return full

    def _check(self, upload: AvatarUpload) -> str:
        if upload.size > self.max_bytes:
            raise ValidationFailedError({"avatar": [f"Avatar may not be larger than {self.max_bytes // 1024} kilobytes."]})

        image_format = detect_image_format(upload.data)
        if image_format is None:
            raise ValidationFailedError({"avatar": ["Avatar must be an image file."]})

        declared = (upload.content_type or "").lower()
        if mime_type_for(image_format) not in self.allowed_types or (declared and declared not in self.allowed_types):
            raise ValidationFailedError({"avatar": [f"Avatar type not allowed. Allowed: {', '.join(self.allowed_types)}"]})
        return image_format

    def store(self, upload: AvatarUpload) -> str:
        image_format = self._check(upload)
        filename = f"{uuid.uuid4().hex}{FORMAT_EXTENSIONS.get(image_format, '.img')}"
        relative = f"{self.subdir}/{filename}"
        with open(self._absolute(relative), "wb") as f:
            f.write(upload.data)
        logger.info(f"Stored avatar {relative} ({upload.size} bytes)")
        return relative

    def delete(self, path: Optional[str]) -> bool:
        if not path:
            return False
        try:
            full = self._absolute(path)
            if not os.path.exists(full):
                return False
            os.remove(full)
            logger.info(f"Deleted avatar {path}")
            return True
        except (OSError, ValueError) as e:
            logger.warning(f"Could not delete avatar {path}: {e}")
            return False

    def url_for(self, path: Optional[str]) -> Optional[str]:
        if not path:
            return None
        return f"{self.base_url}/uploads/{path}"
