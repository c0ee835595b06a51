"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import os
from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio

from typing import TYPE_CHECKING

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from poolstats.helpers.clock import FixedClock
from poolstats.helpers.db import Base, create_tables
from poolstats.stats.repository import StatsRepository


if TYPE_CHECKING:
    from collections.abc import AsyncGenerator


# Apply timeout to integration tests
def pytest_collection_modifyitems(
    config: pytest.Config, items: list[pytest.Item]
) -> None:
    """Add timeout marker to integration tests."""
    for item in items:
        if "integration" in item.keywords:
            item.add_marker(pytest.mark.timeout(60))


@pytest.fixture
def now() -> datetime:
    """Fixed "now" shared by a test and the repository it exercises."""
    return datetime(2024, 5, 1, 12, 30, tzinfo=UTC)


@pytest.fixture
def clock(now: datetime) -> FixedClock:
    """Clock frozen at :func:`now`."""
    return FixedClock(now)


@pytest.fixture
def repository(clock: FixedClock) -> StatsRepository:
    """Repository reading time from the frozen clock."""
    return StatsRepository(clock=clock)


@pytest.fixture(scope="session")
def test_database_url() -> str:
    """PostgreSQL URL for integration tests.

    Returns:
        Database connection URL from TEST_DATABASE_URL
    """
    url = os.getenv("TEST_DATABASE_URL")
    if not url:
        pytest.skip("TEST_DATABASE_URL is not set")
    return url


@pytest_asyncio.fixture
async def test_db_session(test_database_url: str) -> AsyncGenerator[AsyncSession]:
    """Create the Miningcore tables in a scratch database.

    Args:
        test_database_url: PostgreSQL URL (psycopg async driver)

    Yields:
        AsyncSession: Test database session
    """
    engine = create_async_engine(
        test_database_url,
        echo=False,
        connect_args={"options": "-c timezone=utc"},
    )

    try:
        # Cleanup first - drop all tables if they exist
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
        await create_tables(engine)
    except (OSError, SQLAlchemyError) as e:
        await engine.dispose()
        pytest.skip(f"Database not available: {e}")

    async_session_maker = async_sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False
    )

    async with async_session_maker() as session:
        yield session
        await session.rollback()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


class MockSessionContext:
    """Async context manager handing out a mocked session."""

    def __init__(self, session: AsyncMock) -> None:
        self.session = session

    async def __aenter__(self) -> AsyncMock:
        return self.session

    async def __aexit__(
        self, exc_type: object, exc_val: object, exc_tb: object
    ) -> None:
        return None


@pytest.fixture
def mock_session(monkeypatch: pytest.MonkeyPatch) -> AsyncMock:
    """Replace the session factory so self-opened sessions are mocks.

    Returns:
        AsyncMock: The session every store operation will receive
    """
    session = AsyncMock()
    session.execute = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()

    factory = MagicMock(side_effect=lambda: MockSessionContext(session))
    monkeypatch.setattr(
        "poolstats.helpers.db.get_session_factory", lambda: factory
    )
    return session
