"""
Database Module
===============
Async SQLAlchemy engine and session factory for the OTP tables.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

import structlog
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine as sa_create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

logger = structlog.get_logger(__name__)


class Base(DeclarativeBase):
    """Base class for SQLAlchemy models."""
    pass


def create_async_engine(
    database_url: str,
    pool_pre_ping: bool = True,
    echo: bool = False,
    **engine_kwargs,
) -> AsyncEngine:
    """
    Create the async database engine.

    Args:
        database_url: Async connection string (postgresql+asyncpg://..., sqlite+aiosqlite://...)
        pool_pre_ping: Enable connection health checks (default: True)
        echo: Log SQL statements (default: False)
        **engine_kwargs: Passed through (pool_size, max_overflow, ...)

    Returns:
        Configured AsyncEngine instance
    """
    engine = sa_create_async_engine(
        database_url,
        pool_pre_ping=pool_pre_ping,
        echo=echo,
        **engine_kwargs,
    )
    logger.info("Database engine initialized", dialect=engine.dialect.name)
    return engine


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """
    Build the session factory used by the SQL-backed stores.

    Usage:
        async with factory() as session:
            ...
    """
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@asynccontextmanager
async def get_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """
    Session scope that commits on success and rolls back on exception.

    Usage:
        async with get_session(factory) as db:
            result = await db.execute(...)
    """
    async with session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def create_tables(engine: AsyncEngine) -> None:
    """Create all OTP tables that do not exist yet."""
    # Register the mapped classes on Base.metadata
    from otp_core import models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables ensured")


async def close_engine(engine: Optional[AsyncEngine]) -> None:
    """Dispose the engine. Call during application shutdown."""
    if engine is not None:
        await engine.dispose()
        logger.info("Database engine closed")
