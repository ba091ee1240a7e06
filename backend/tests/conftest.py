"""
Test Configuration

This module contains shared fixtures and configuration for tests.
"""

import os

os.environ.setdefault("APP_ENVIRONMENT", "test")
os.environ.setdefault("DB_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("NOTIFY_EMAIL_ENABLED", "false")

from typing import AsyncGenerator, Dict  # noqa: E402

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

import crestcat.models  # noqa: E402,F401
from crestcat.api import deps  # noqa: E402
from crestcat.auth.jwt import create_access_token  # noqa: E402
from crestcat.auth.principal import Principal  # noqa: E402
from crestcat.db.base import Base  # noqa: E402
from crestcat.main import app  # noqa: E402
from crestcat.models.user import User, UserRole  # noqa: E402
from tests.utils.factories import create_user  # noqa: E402
from tests.utils.notification import FakeMailer, FakeWhatsApp, RecordingNotifier  # noqa: E402

TEST_DATABASE_URL = "sqlite+aiosqlite://"


@pytest.fixture
async def test_engine():
    """Create a fresh in-memory database per test."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False
    )


@pytest.fixture
async def db(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create test database session."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def mailer() -> FakeMailer:
    return FakeMailer()


@pytest.fixture
def whatsapp() -> FakeWhatsApp:
    return FakeWhatsApp()


@pytest.fixture
def notifier(session_factory, mailer, whatsapp) -> RecordingNotifier:
    return RecordingNotifier(session_factory, mailer=mailer, whatsapp=whatsapp)


@pytest.fixture
async def client(session_factory, notifier) -> AsyncGenerator[AsyncClient, None]:
    """Create test client backed by the test database and notifier."""
    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[deps.get_db] = override_get_db
    app.dependency_overrides[deps.get_notifier] = lambda: notifier

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
async def user(db) -> User:
    return await create_user(db, email="investor@crestcat.com", full_name="Ivy Investor")


@pytest.fixture
async def other_user(db) -> User:
    return await create_user(db, email="someone@crestcat.com", full_name="Sam Someone")


@pytest.fixture
async def admin(db) -> User:
    return await create_user(db, email="admin@crestcat.com", full_name="Ada Admin", role=UserRole.ADMIN)


@pytest.fixture
def user_principal(user) -> Principal:
    return Principal(user_id=user.id)


@pytest.fixture
def other_principal(other_user) -> Principal:
    return Principal(user_id=other_user.id)


@pytest.fixture
def admin_principal(admin) -> Principal:
    return Principal(user_id=admin.id, role=UserRole.ADMIN)


def token_headers(account: User) -> Dict[str, str]:
    token = create_access_token(account.id, UserRole(account.role))
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def user_headers(user) -> Dict[str, str]:
    return token_headers(user)


@pytest.fixture
def other_headers(other_user) -> Dict[str, str]:
    return token_headers(other_user)


@pytest.fixture
def admin_headers(admin) -> Dict[str, str]:
    return token_headers(admin)
