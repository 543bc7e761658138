from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from libs.auth.dependencies import get_current_user
from libs.common.config import get_settings
from libs.db.base import Base
from libs.db.session import get_async_db
from services.payments_service.stripe_client import get_stripe_client
from tests.factories import FakeStripeClient, make_user

# Import all models so metadata includes every table
from services.payments_service import models as _payments_models  # noqa: F401
from services.rewards_service import models as _rewards_models  # noqa: F401
from services.store_service import models as _store_models  # noqa: F401

settings = get_settings()

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest_asyncio.fixture
async def test_engine():
    """
    A fresh in-memory database per test. StaticPool keeps the single
    connection alive so every session sees the same tables.
    """
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(test_engine) -> AsyncGenerator[AsyncSession, None]:
    session_factory = async_sessionmaker(
        bind=test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )
    async with session_factory() as session:
        yield session


@pytest.fixture
def fake_stripe() -> FakeStripeClient:
    return FakeStripeClient()


@pytest.fixture
def customer():
    return make_user(user_id="customer-1", email="customer@example.com")


# ---------------------------------------------------------------------------
# Service clients
# ---------------------------------------------------------------------------


async def _client_for(app, db_session, user, stripe) -> AsyncGenerator[AsyncClient, None]:
    async def _override_db():
        yield db_session

    app.dependency_overrides[get_async_db] = _override_db
    app.dependency_overrides[get_current_user] = lambda: user
    app.dependency_overrides[get_stripe_client] = lambda: stripe

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def store_client(db_session, customer, fake_stripe):
    from services.store_service.app.main import app

    async for ac in _client_for(app, db_session, customer, fake_stripe):
        yield ac


@pytest_asyncio.fixture
async def rewards_client(db_session, customer, fake_stripe):
    from services.rewards_service.app.main import app

    async for ac in _client_for(app, db_session, customer, fake_stripe):
        yield ac


@pytest_asyncio.fixture
async def payments_client(db_session, customer, fake_stripe):
    from services.payments_service.app.main import app

    async for ac in _client_for(app, db_session, customer, fake_stripe):
        yield ac
