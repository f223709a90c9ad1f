# app/db/session.py
import logging
import os
from collections.abc import AsyncGenerator
from typing import Any

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from app.core.config import get_settings
from app.db.base import Base

# Registering the models on Base.metadata; must follow the Base import.
from app.models.meeting import Meeting, meeting_participants  # noqa: F401
from app.models.user import User  # noqa: F401

logger = logging.getLogger(__name__)

settings = get_settings()

IS_TEST = "PYTEST_CURRENT_TEST" in os.environ or settings.APP_ENV == "test"


def engine_options(db_url: str, testing: bool = False) -> dict[str, Any]:
    """
    Engine keyword arguments for the configured backend.

    - Under pytest, TestClient drives requests from its own event loop, so
      pooled connections are never reused (NullPool).
    - PostgreSQL pools are pinged before use; scheduling locks live in the
      transaction, so a dead connection would surface as a lost lock.
    """
    if testing:
        return {"poolclass": NullPool}

    backend = make_url(db_url).get_backend_name()
    if backend == "postgresql":
        return {"pool_pre_ping": True, "pool_size": 10, "max_overflow": 20}
    return {}


engine = create_async_engine(
    settings.DB_URL,
    echo=False,
    future=True,
    **engine_options(settings.DB_URL, testing=IS_TEST),
)

AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    autoflush=False,
    expire_on_commit=False,
    class_=AsyncSession,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency that provides an async SQLAlchemy session.

    One session per request; the scheduling managers commit or roll it back
    themselves, and it is closed when the request is completed.
    """
    async with AsyncSessionLocal() as session:
        yield session


async def init_db_for_startup() -> None:
    """
    Create the users, meetings and roster tables if they do not exist yet.
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database schema ready (%s)", make_url(settings.DB_URL).get_backend_name())


async def dispose_engine() -> None:
    await engine.dispose()
