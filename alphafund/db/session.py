"""
Database session management.

Provides the async SQLAlchemy engine that mirrors fund state to PostgreSQL
(or in-memory SQLite) and a session factory for the snapshot repository.
"""

from collections.abc import AsyncGenerator

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from alphafund.core.config import Settings, settings


def build_engine(config: Settings) -> AsyncEngine:
    """Create the async engine for ``config`` (SQLite or PostgreSQL)."""
    if config.USE_SQLITE:
        # StaticPool makes every connection share the same in-memory database;
        # without it each connection would see its own empty database.
        return create_async_engine(
            config.DATABASE_URL,
            echo=config.DEBUG,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    return create_async_engine(
        config.DATABASE_URL,
        echo=config.DEBUG,
        pool_size=config.DB_POOL_SIZE,
        max_overflow=config.DB_MAX_OVERFLOW,
        pool_timeout=config.DB_POOL_TIMEOUT,
        pool_recycle=config.DB_POOL_RECYCLE,
        pool_pre_ping=True,
    )


def build_session_factory(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    # expire_on_commit=False: attribute access after commit must not trigger
    # a lazy load, which async sessions cannot perform.
    return async_sessionmaker(bind=bind, class_=AsyncSession, expire_on_commit=False)


engine = build_engine(settings)
AsyncSessionLocal = build_session_factory(engine)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Yield a session that is closed when the caller is done with it."""
    async with AsyncSessionLocal() as session:
        yield session
