"""Global test configuration."""

from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel

from tests.utils.factories import TEST_BCRYPT_ROUNDS, FakeClock, UserFactory
from undangan.api.app import app

# Import all models to ensure metadata is populated
from undangan.models import *  # noqa: F403
from undangan.models import User
from undangan.settings import settings
from undangan.utils.database import get_async_session


@pytest.fixture(autouse=True)
def fast_password_hashing(monkeypatch):
    """Use the cheapest bcrypt cost for passwords hashed by the services."""
    monkeypatch.setattr(settings, "bcrypt_rounds", TEST_BCRYPT_ROUNDS)


@pytest_asyncio.fixture
async def test_engine():
    """Create an in-memory test database engine."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine) -> async_sessionmaker[AsyncSession]:
    """Session factory bound to the test engine."""
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def test_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create test database session."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def clock() -> FakeClock:
    """Clock frozen at 2024-05-01 10:00 UTC."""
    return FakeClock()


@pytest_asyncio.fixture
async def test_user(test_session: AsyncSession) -> User:
    """Active user with password ``testpassword``."""
    return await UserFactory.create_user(test_session, username="alice", email="alice@example.com")


@pytest_asyncio.fixture
async def other_user(test_session: AsyncSession) -> User:
    """A second active user."""
    return await UserFactory.create_user(test_session, username="bob", email="bob@example.com")


@pytest_asyncio.fixture
async def client(test_session) -> AsyncGenerator[AsyncClient, None]:
    """Create test API client."""

    async def override_get_session():
        yield test_session

    app.dependency_overrides[get_async_session] = override_get_session

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
