"""Database connection helpers."""

from __future__ import annotations

from contextlib import asynccontextmanager
from functools import cache

from typing import TYPE_CHECKING

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from poolstats.helpers.config import get_bool_env, get_database_url
from poolstats.helpers.errors import StoreError
from poolstats.helpers.logging import get_logger


if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from sqlalchemy.ext.asyncio import AsyncEngine


Base = declarative_base()

logger = get_logger(__name__)


@cache
def get_engine() -> AsyncEngine:
    """Create the shared async engine on first use.

    Sessions run in UTC so that ``date_trunc`` on ``timestamptz`` columns
    buckets by UTC hours and days.

    Raises:
        ValueError: If the database settings are missing
    """
    return create_async_engine(
        get_database_url(),
        echo=get_bool_env("DB_ECHO"),
        pool_pre_ping=True,
        connect_args={"options": "-c timezone=utc"},
    )


@cache
def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Session factory bound to :func:`get_engine`."""
    return async_sessionmaker(
        get_engine(),
        class_=AsyncSession,
        expire_on_commit=False,
    )


async def create_tables(engine: AsyncEngine | None = None) -> None:
    """Create all mapped tables that don't exist yet.

    Miningcore owns the production schema; this is for fresh databases and
    tests.
    """
    # Register the models on Base.metadata
    import poolstats.data.miners.db
    import poolstats.data.payments.db
    import poolstats.data.pool.db  # noqa: F401

    engine = engine or get_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


@asynccontextmanager
async def store_session(
    operation: str,
    session: AsyncSession | None = None,
    *,
    commit: bool = False,
) -> AsyncIterator[AsyncSession]:
    """Run one store operation, translating SQLAlchemy failures.

    With a caller-supplied ``session`` the work joins the caller's
    transaction and nothing is committed here. Without one, a session is
    opened from :func:`get_session_factory` and, when ``commit`` is set,
    committed as soon as the block finishes.

    Args:
        operation: Name used in logs and in the raised :class:`StoreError`
        session: Optional session owned by the caller
        commit: Commit the self-opened session on success

    Raises:
        StoreError: If any statement or the commit fails
    """
    try:
        if session is not None:
            yield session
            return

        async with get_session_factory()() as own_session:
            try:
                yield own_session
                if commit:
                    await own_session.commit()
            except Exception:
                await own_session.rollback()
                raise
    except SQLAlchemyError as e:
        logger.error(f"Store operation {operation} failed: {e}")
        raise StoreError(operation, e) from e


__all__ = [
    "Base",
    "create_tables",
    "get_engine",
    "get_session_factory",
    "store_session",
]
