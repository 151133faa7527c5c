import io
from typing import List

import pytest
from fastapi.testclient import TestClient
from PIL import Image
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from user_admin.core.config import Settings
from user_admin.db.models import User  # noqa: F401  (registers the users table)
from user_admin.main import create_app


def make_image(fmt: str = "PNG", size=(8, 8)) -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", size, (200, 30, 30)).save(buf, format=fmt)
    return buf.getvalue()


class RecordingNotifier:
    def __init__(self):
        self.events: List = []

    def notify(self, event):
        self.events.append(event)


@pytest.fixture
def png_bytes() -> bytes:
    return make_image("PNG")


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        _env_file=None,
        DATABASE_URL="sqlite://",
        UPLOAD_DIR=str(tmp_path / "uploads"),
        BASE_URL="http://testserver",
        BCRYPT_ROUNDS=4,
        CACHE_ENABLED=False,
        REDIS_URL=None,
        RATE_LIMIT_PER_MINUTE=1000,
        SMTP_HOST="",
    )


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def app(settings, notifier):
    return create_app(settings, notifier=notifier)


@pytest.fixture
def client(app):
    with TestClient(app) as client:
        yield client
