"""FastAPI dependencies shared by the route modules."""

from functools import lru_cache
from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession

from crestcat.auth.dependencies import AdminPrincipal, CurrentPrincipal, get_current_principal
from crestcat.db.session import get_db as _get_db
from crestcat.services.notification import NotificationService


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency that provides an async SQLAlchemy session.
    """
    async for session in _get_db():
        yield session


@lru_cache()
def get_notifier() -> NotificationService:
    """Process-wide notifier; overridden in tests."""
    return NotificationService()


__all__ = [
    "AdminPrincipal",
    "CurrentPrincipal",
    "get_current_principal",
    "get_db",
    "get_notifier",
]
