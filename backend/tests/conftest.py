"""
Pytest fixtures for BinQR backend tests.

Provides an in-memory SQLite database, users in each lifecycle state, and an
HTTP client bound to the app with the database dependency overridden.
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("AUTH_SECRET", "test-secret")
os.environ.setdefault("VERIFICATION_POLL_INTERVAL", "0.01")

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from core.inventory_store import InventoryStore
from db.database import Base, get_async_session, get_session_maker, import_models
from db.profile import Profile
from db.users import User


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    import_models()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(engine):
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_maker):
    async with session_maker() as session:
        yield session


async def make_user(session, email, verified=True, onboarded=True, full_name=None):
    user = User(
        email=email,
        hashed_password="not-a-real-hash",
        is_active=True,
        is_superuser=False,
        is_verified=verified,
        full_name=full_name,
    )
    session.add(user)
    await session.commit()
    if onboarded:
        session.add(Profile(id=user.id, email=email, has_completed_onboarding=True))
        await session.commit()
    return user


@pytest_asyncio.fixture
async def user_a(db_session):
    """Active user A (verified and onboarded)."""
    return await make_user(db_session, "user_a@example.com")


@pytest_asyncio.fixture
async def user_b(db_session):
    """Active user B (verified and onboarded)."""
    return await make_user(db_session, "user_b@example.com")


@pytest.fixture
def store_a(db_session, user_a):
    return InventoryStore(db_session, user_a)


@pytest.fixture
def store_b(db_session, user_b):
    return InventoryStore(db_session, user_b)


@pytest_asyncio.fixture
async def client(session_maker):
    from main import app

    async def override_session():
        async with session_maker() as session:
            yield session

    app.dependency_overrides[get_async_session] = override_session
    app.dependency_overrides[get_session_maker] = lambda: session_maker
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
