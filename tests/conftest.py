"""Pytest configuration and shared fixtures."""

from collections.abc import AsyncGenerator, Callable
from typing import Any

import pytest
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from warden.config import Settings
from warden.core.audit import MemoryAuditLogger
from warden.core.cache import MemoryCache
from warden.core.database import create_schema, create_session_factory
from warden.permissions import ContextRef, SubjectRef, Warden
from tests.factories.subject import ContextRefFactory, SubjectRefFactory


TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


def build_settings(**overrides: Any) -> Settings:
    """Settings isolated from the environment and any .env file."""
    values: dict[str, Any] = {"database_url": TEST_DATABASE_URL}
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture
def settings() -> Settings:
    """Default test settings (every optional feature off)."""
    return build_settings()


@pytest.fixture
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    """Create an in-memory grant store shared by every session of a test."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    await create_schema(engine)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory bound to the test engine."""
    return create_session_factory(engine)


@pytest.fixture
async def db(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """Provide a database session for store-level tests."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def cache() -> MemoryCache:
    return MemoryCache()


@pytest.fixture
def audit() -> MemoryAuditLogger:
    return MemoryAuditLogger()


@pytest.fixture
def make_warden(
    session_factory: async_sessionmaker[AsyncSession],
    cache: MemoryCache,
    audit: MemoryAuditLogger,
) -> Callable[..., Warden]:
    """Build engines sharing the test store and cache, with setting overrides.

    Usage:
        warden = make_warden(wildcards_enabled=True)
    """

    def _make(**overrides: Any) -> Warden:
        return Warden(session_factory, cache, build_settings(**overrides), audit=audit)

    return _make


@pytest.fixture
def warden(make_warden: Callable[..., Warden]) -> Warden:
    """Engine with default settings."""
    return make_warden()


@pytest.fixture
def user() -> SubjectRef:
    """A random subject of type User on the default guard."""
    return SubjectRefFactory.build()


@pytest.fixture
def team() -> ContextRef:
    """A random Team context."""
    return ContextRefFactory.build()
