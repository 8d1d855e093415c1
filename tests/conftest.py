"""Shared test fixtures."""

from collections.abc import AsyncIterator, Iterator

import pytest
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import breath_flow_server.models  # noqa: F401  (registers every mapper)
from breath_flow_server.core.password import hash_password
from breath_flow_server.models.base import Base
from breath_flow_server.services.sessions import SessionManager, set_session_manager

TEST_PASSWORD = "correct-horse-battery"


@pytest.fixture
async def async_engine():
    """Create async SQLite engine for testing."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # Enable foreign keys for SQLite
    @event.listens_for(engine.sync_engine, "connect")
    def set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def session_factory(async_engine) -> async_sessionmaker[AsyncSession]:
    """Session factory bound to the test engine."""
    return async_sessionmaker(async_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def async_session(session_factory) -> AsyncIterator[AsyncSession]:
    """Create async session for testing."""
    async with session_factory() as session:
        yield session


@pytest.fixture(scope="session")
def password_hash() -> str:
    """Argon2 hash of TEST_PASSWORD, computed once."""
    return hash_password(TEST_PASSWORD)


@pytest.fixture
async def test_user(async_session: AsyncSession, password_hash: str):
    """Create a test user."""
    from breath_flow_server.models.user import User

    user = User(
        id="test-user-uuid-1",
        name="Ada",
        email="ada@example.com",
        password_hash=password_hash,
        is_active=True,
    )
    async_session.add(user)
    await async_session.commit()
    await async_session.refresh(user)
    return user


@pytest.fixture
async def test_user_2(async_session: AsyncSession, password_hash: str):
    """Create a second test user."""
    from breath_flow_server.models.user import User

    user = User(
        id="test-user-uuid-2",
        name="Grace",
        email="grace@example.com",
        password_hash=password_hash,
        is_active=True,
    )
    async_session.add(user)
    await async_session.commit()
    await async_session.refresh(user)
    return user


@pytest.fixture
async def user_api_key(async_session: AsyncSession, test_user):
    """Issue an API key for the test user."""
    from breath_flow_server.core.api_keys import issue_api_key

    api_key, raw_key = await issue_api_key(test_user.id, "Test Key", async_session)
    await async_session.commit()
    return api_key, raw_key


@pytest.fixture
def session_manager() -> Iterator[SessionManager]:
    """Fresh process-wide session registry for each test."""
    manager = SessionManager(max_target_seconds=3600)
    set_session_manager(manager)
    yield manager
    set_session_manager(None)
