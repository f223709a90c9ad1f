# tests/conftest.py
import os
import tempfile

# Point the app at a throwaway SQLite file before any app module is imported.
_DB_DIR = tempfile.mkdtemp(prefix="scheduler-tests-")
os.environ["DB_URL"] = f"sqlite+aiosqlite:///{_DB_DIR}/scheduler.db"
os.environ.setdefault("APP_ENV", "test")

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.ext.asyncio import (  # noqa: E402
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool  # noqa: E402

from app.core.config import Settings  # noqa: E402
from app.db.base import Base  # noqa: E402
# Importing the session module registers every ORM model on Base.metadata.
import app.db.session  # noqa: E402,F401
from app.main import create_app  # noqa: E402
from app.repositories.user_directory import UserDirectory  # noqa: E402
from app.schemas.user import UserRole  # noqa: E402
from app.services.meeting_lifecycle import MeetingLifecycleManager  # noqa: E402
from app.services.participant_assignment import ParticipantAssignmentManager  # noqa: E402
from app.services.scheduling_lock import SchedulingLock  # noqa: E402
from tests.helpers import NOW  # noqa: E402


@pytest.fixture(scope="session")
def client() -> TestClient:
    """
    Shared TestClient fixture for API tests.

    Uses the application factory; the startup hook creates the schema in
    the temporary SQLite database.
    """
    app = create_app()
    with TestClient(app) as test_client:
        yield test_client


@pytest_asyncio.fixture
async def session() -> AsyncSession:
    """
    Fresh in-memory database per test.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = async_sessionmaker(
        bind=engine,
        autoflush=False,
        expire_on_commit=False,
        class_=AsyncSession,
    )
    async with factory() as db:
        yield db

    await engine.dispose()


@pytest.fixture
def settings() -> Settings:
    return Settings(MAX_MEETING_DURATION_HOURS=8, ALLOW_PAST_SCHEDULING=False)


@pytest.fixture
def locks() -> SchedulingLock:
    return SchedulingLock()


@pytest.fixture
def lifecycle(session, settings, locks) -> MeetingLifecycleManager:
    return MeetingLifecycleManager(session, settings=settings, clock=lambda: NOW, locks=locks)


@pytest.fixture
def assignment(session, locks) -> ParticipantAssignmentManager:
    return ParticipantAssignmentManager(session, locks=locks)


@pytest.fixture
def make_user(session):
    """
    Factory that registers a user and returns its id.

    Ids are returned as plain strings: a rejected operation rolls the
    session back and expires every loaded ORM object.
    """
    counter = {"n": 0}

    async def _make_user(
        name: str = "user",
        role: UserRole = UserRole.PARTICIPANT,
        is_active: bool = True,
    ) -> str:
        counter["n"] += 1
        directory = UserDirectory(session)
        user = await directory.create(
            email=f"{name}{counter['n']}@example.com",
            first_name=name.title(),
            last_name="Tester",
            role=role,
        )
        if not is_active:
            user.is_active = False
        await session.commit()
        return user.id

    return _make_user
