"""
Database Session Module

This module manages database connections and sessions with:
- Async SQLAlchemy engine configuration
- Session factory and dependency injection
- Connection health checks
- Error handling and logging
"""

import contextlib
from typing import Any, AsyncGenerator, AsyncIterator, Dict

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from crestcat.core.logging import get_logger
from crestcat.core.settings import settings
from crestcat.db.base import Base

# Initialize logger
logger = get_logger(__name__)


def create_db_engine() -> AsyncEngine:
    """
    Create the async SQLAlchemy engine with proper configuration.

    Returns:
        AsyncEngine: Configured engine
    """
    options: Dict[str, Any] = {"echo": settings.db.ECHO, "pool_pre_ping": True}
    if not settings.db.is_sqlite:
        options.update(
            pool_size=settings.db.POOL_SIZE,
            max_overflow=settings.db.MAX_OVERFLOW,
            pool_recycle=settings.db.POOL_RECYCLE,
        )

    engine = create_async_engine(settings.db.URL, **options)
    logger.info(
        "Database engine created",
        extra={"dialect": engine.dialect.name, "sqlite": settings.db.is_sqlite}
    )
    return engine


# Create engine instance
engine = create_db_engine()

# AsyncSessionLocal is a factory for new AsyncSession objects
AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency for database sessions.

    Services commit their own unit of work; anything left uncommitted
    when the request fails is rolled back here.

    Yields:
        AsyncSession: Database session
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except SQLAlchemyError as e:
            logger.error(
                "Database session error",
                exc_info=True,
                extra={"error": str(e)}
            )
            await session.rollback()
            raise
        except Exception:
            await session.rollback()
            raise


@contextlib.asynccontextmanager
async def get_db_context() -> AsyncIterator[AsyncSession]:
    """
    Context manager for database sessions outside a request.

    Yields:
        AsyncSession: Database session
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except SQLAlchemyError as e:
            logger.error(
                "Database session error",
                exc_info=True,
                extra={"error": str(e)}
            )
            await session.rollback()
            raise


async def check_db_connection() -> bool:
    """
    Check database connectivity.

    Returns:
        bool: True if connection successful, False otherwise
    """
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.error(
            "Database connection check failed",
            exc_info=True,
            extra={"error": str(e)}
        )
        return False


async def create_tables(bind: AsyncEngine = engine) -> None:
    """Create any missing tables; existing tables are left untouched."""
    # Imported for the side effect of registering every mapper
    import crestcat.models  # noqa: F401

    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


__all__ = [
    "AsyncSessionLocal",
    "engine",
    "get_db",
    "get_db_context",
    "check_db_connection",
    "create_tables",
]
