"""
Database configuration and session management.
Uses SQLAlchemy 2.0 with async support (asyncpg in production, aiosqlite locally).
"""

from typing import Any, Dict
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    AsyncEngine,
    create_async_engine,
    async_sessionmaker,
)
from sqlalchemy.orm import DeclarativeBase
from billing_jobs.config import settings


class Base(DeclarativeBase):
    """Base class for all database models."""
    pass


def enum_values(enum_cls) -> list:
    """Persist enum members by value rather than by name."""
    return [member.value for member in enum_cls]


def get_async_database_url(url: str) -> str:
    """Convert standard postgresql:// URL to async postgresql+asyncpg:// URL."""
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+asyncpg://", 1)
    return url


def _engine_options(url: str) -> Dict[str, Any]:
    # SQLite pools reject pool sizing arguments
    if url.startswith("sqlite"):
        return {}
    return {"pool_size": 5, "max_overflow": 10}


_database_url = get_async_database_url(settings.DATABASE_URL)

# Create async engine
engine: AsyncEngine = create_async_engine(
    _database_url,
    echo=False,  # Set to True for SQL query logging in development
    pool_pre_ping=True,  # Verify connections before using them
    **_engine_options(_database_url),
)

# Create async session factory
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


async def close_db() -> None:
    """
    Close database connections.
    Should be called during application shutdown.
    """
    await engine.dispose()
