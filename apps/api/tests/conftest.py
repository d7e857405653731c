"""
Shared fixtures: an in-memory SQLite database with every table created,
plus helpers to seed users.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import app.modules.mentor_applications.models  # noqa: F401
import app.modules.mentors.models  # noqa: F401
import app.modules.students.models  # noqa: F401
import app.modules.users.models  # noqa: F401
from app.core.database import Base
from app.modules.users import UserRepository, UserRole


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def notify():
    """Recording notifier; nothing is delivered."""
    return MagicMock()


@pytest.fixture
def mock_db():
    """Create a mock database session."""
    db = AsyncMock()
    db.commit = AsyncMock()
    db.rollback = AsyncMock()
    db.refresh = AsyncMock()
    db.execute = AsyncMock()
    db.add = MagicMock()
    return db


@pytest.fixture
def make_user(db):
    """Create and commit a user account."""

    async def _make_user(
        email: str,
        role: UserRole = UserRole.UNSET,
        locked: bool = False,
        interests: list[str] | None = None,
    ):
        user = await UserRepository.create(
            db,
            email=email,
            full_name=email.split("@")[0].title(),
            role=role,
            role_selection_completed=locked,
            interests=interests,
        )
        await db.commit()
        return user

    return _make_user
