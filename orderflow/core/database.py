"""
Database connection management with SQLAlchemy async.
Provides session dependency injection and connection pooling.
"""
import re
from collections.abc import AsyncGenerator
from typing import Annotated, Any

from fastapi import Depends
from sqlalchemy import JSON
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from orderflow.core.config import settings
from orderflow.core.logging import get_logger

logger = get_logger(__name__)


class Base(DeclarativeBase):
    """SQLAlchemy declarative base for all models."""
    pass


# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JsonType = JSON().with_variant(JSONB(), "postgresql")


def create_engine(database_url: str | None = None) -> AsyncEngine:
    """Create async database engine with proper configuration."""
    database_url = database_url or settings.database_url
    # Convert postgresql:// to postgresql+asyncpg://
    if database_url.startswith("postgresql://"):
        database_url = database_url.replace("postgresql://", "postgresql+asyncpg://", 1)

    sanitized = re.sub(r":([^:@/]+)@", ":***@", database_url)
    logger.info("Creating database engine", url=sanitized)

    options: dict[str, Any] = {"echo": settings.database_echo}
    if not database_url.startswith("sqlite"):
        options.update(
            pool_size=settings.database_pool_size,
            max_overflow=settings.database_max_overflow,
            pool_pre_ping=True,  # Verify connections before use
        )
    return create_async_engine(database_url, **options)


def create_session_factory(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


SessionFactory = async_sessionmaker[AsyncSession]

# Global engine and session factory
engine = create_engine()
async_session_factory = create_session_factory(engine)


def get_session_factory() -> SessionFactory:
    """
    Dependency for services that open their own sessions (one per
    transaction or side effect).
    """
    return async_session_factory


async def get_db_session(
    factory: Annotated[SessionFactory, Depends(get_session_factory)],
) -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency that provides a database session.

    Services own their transaction boundaries (``session.begin()``), so the
    session is only closed here, never committed on the caller's behalf.
    """
    async with factory() as session:
        yield session


# Type aliases for dependency injection
DbSession = Annotated[AsyncSession, Depends(get_db_session)]
DbSessionFactory = Annotated[SessionFactory, Depends(get_session_factory)]


async def init_db() -> None:
    """Create tables for every registered model."""
    # Register all models on the metadata
    import orderflow.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database initialized")


async def close_db() -> None:
    """Close database connections."""
    await engine.dispose()
    logger.info("Database connections closed")
