"""Async SQLAlchemy database session and engine configuration."""

import logging
from functools import lru_cache

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy import text

from firewire.config import get_settings

logger = logging.getLogger(__name__)

_db_available = False


class Base(DeclarativeBase):
    """SQLAlchemy declarative base for all ORM models."""

    pass


@lru_cache()
def get_engine() -> AsyncEngine:
    settings = get_settings()
    url = settings.async_database_url
    options: dict = {"echo": settings.debug}
    if not url.startswith("sqlite"):
        options.update(pool_size=10, max_overflow=20, pool_pre_ping=True)
    return create_async_engine(url, **options)


@lru_cache()
def get_session_factory() -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        get_engine(),
        class_=AsyncSession,
        expire_on_commit=False,
    )


async def get_db():
    """FastAPI dependency — yields an async database session."""
    async with get_session_factory()() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def create_tables() -> None:
    # Import models so they register on Base.metadata
    from firewire.models import configuration  # noqa: F401

    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def init_db() -> None:
    """Check DB connectivity and optionally create tables."""
    global _db_available
    settings = get_settings()
    try:
        async with get_engine().connect() as conn:
            await conn.execute(text("SELECT 1"))

        if settings.auto_create_tables:
            await create_tables()
        _db_available = True
        logger.info("Database connected.")
    except Exception as exc:
        _db_available = False
        logger.warning(
            "Database unavailable — running without the configuration "
            "repository. Error: %s",
            exc,
        )


async def close_db() -> None:
    """Dispose engine. Called during app shutdown."""
    await get_engine().dispose()


def is_db_available() -> bool:
    """Check if the database connection was established."""
    return _db_available
