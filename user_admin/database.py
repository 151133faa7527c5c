from typing import Iterator
import logging

from fastapi import Request
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, create_engine, Session

from .core.config import Settings
from .db import models  # noqa: F401  (registers tables on SQLModel.metadata)

logger = logging.getLogger(__name__)


def build_engine(settings: Settings) -> Engine:
    """Create the engine with options suited to the configured backend."""
    db_url = settings.DATABASE_URL
    engine_kwargs = {}

    if db_url.startswith("sqlite"):
        engine_kwargs["connect_args"] = {"check_same_thread": False}
        if ":memory:" in db_url or db_url in ("sqlite://", "sqlite:///"):
            # One shared connection so every session sees the same in-memory database
            engine_kwargs["poolclass"] = StaticPool
    else:
        engine_kwargs.update({
            "pool_pre_ping": True,
            "pool_recycle": 300,
            "pool_size": 5,
            "max_overflow": 10,
        })

    return create_engine(db_url, echo=settings.DATABASE_ECHO, **engine_kwargs)


def create_db_and_tables(engine: Engine) -> None:
    SQLModel.metadata.create_all(engine)
    logger.info("Database tables ensured")


def get_session(request: Request) -> Iterator[Session]:
    with Session(request.app.state.engine) as session:
        yield session
