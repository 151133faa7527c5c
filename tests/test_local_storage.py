import os

import pytest

from conftest import make_image
from user_admin.application.ports.avatar_storage import AvatarUpload
from user_admin.exceptions import ValidationFailedError
from user_admin.infrastructure.storage.local_storage import LocalAvatarStorage


@pytest.fixture
def storage(tmp_path):
    return LocalAvatarStorage(upload_dir=str(tmp_path), max_bytes=4096, base_url="http://testserver/")


def test_store_writes_under_avatar_dir(storage, tmp_path, png_bytes):
    path = storage.store(AvatarUpload("me.png", "image/png", png_bytes))

    assert path.startswith("avatars/") and path.endswith(".png")
    with open(os.path.join(tmp_path, path), "rb") as f:
        assert f.read() == png_bytes
    assert os.path.exists(os.path.join(tmp_path, path))
    assert storage.url_for(path) == f"http://testserver/uploads/{path}"


def test_store_uses_detected_format_for_extension(storage):
    path = storage.store(AvatarUpload("photo.png", "image/jpeg", make_image("JPEG")))
    assert path.endswith(".jpg")


def test_store_rejects_non_images(storage):
    with pytest.raises(ValidationFailedError) as exc:
        storage.store(AvatarUpload("notes.png", "image/png", b"definitely not an image"))
    assert list(exc.value.errors) == ["avatar"]


def test_store_rejects_oversized_files(storage):
    big = make_image("BMP", size=(64, 64))
    with pytest.raises(ValidationFailedError):
        storage.store(AvatarUpload("big.bmp", "image/bmp", big))


def test_store_rejects_disallowed_types(tmp_path):
    storage = LocalAvatarStorage(upload_dir=str(tmp_path), allowed_types=("image/png",))
    with pytest.raises(ValidationFailedError):
        storage.store(AvatarUpload("pic.gif", "image/gif", make_image("GIF")))


def test_delete_is_best_effort(storage, png_bytes):
    path = storage.store(AvatarUpload("me.png", "image/png", png_bytes))
    assert storage.delete(path) is True
    assert storage.delete(path) is False
    assert storage.delete(None) is False
    assert storage.delete("../../etc/passwd") is False


def test_url_for_empty_path(storage):
    assert storage.url_for(None) is None
    assert storage.url_for("") is None
