"""Shared test fixtures for the factorguard test suite.

Uses SQLite + aiosqlite for a fast, self-contained test database and
fakeredis for the rate-limit counters.
"""

from __future__ import annotations

import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timezone

import fakeredis
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from factorguard.catalog import seed_catalog
from factorguard.config import settings
from factorguard.hashchain import HashChain
from factorguard.models.api_key import ApiKey
from factorguard.models.base import Base
from factorguard.models.subscription_tier import SubscriptionTier
from factorguard.models.tenant import Tenant

# Import all models so Base.metadata has them
import factorguard.models  # noqa: F401

TEST_HMAC_KEY = "test-hmac-key"


# ---------------------------------------------------------------------------
# Test database engine (SQLite in-memory via aiosqlite)
# ---------------------------------------------------------------------------

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

test_engine = create_async_engine(TEST_DATABASE_URL, echo=False, poolclass=StaticPool)
TestSessionLocal = async_sessionmaker(
    test_engine, class_=AsyncSession, expire_on_commit=False
)


@pytest_asyncio.fixture
async def db_session():
    """Create tables, seed the catalogue, and yield a fresh async session for each test."""
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with TestSessionLocal() as session:
        await seed_catalog(session)
        yield session

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture
def hash_chain() -> HashChain:
    return HashChain(TEST_HMAC_KEY)


@pytest_asyncio.fixture
async def redis():
    client = fakeredis.FakeAsyncRedis(decode_responses=True)
    yield client
    await client.flushall()
    await client.aclose()


async def get_tier(db: AsyncSession, name: str) -> SubscriptionTier:
    result = await db.execute(select(SubscriptionTier).where(SubscriptionTier.name == name))
    return result.scalar_one()


async def make_tenant(
    db: AsyncSession,
    slug: str,
    *,
    tier: SubscriptionTier | None = None,
    track_attribution: bool = True,
    **kwargs,
) -> Tenant:
    tenant = Tenant(
        id=uuid.uuid4(),
        name=slug.replace("-", " ").title(),
        slug=slug,
        subscription_tier_id=tier.id if tier else None,
        track_attribution=track_attribution,
        rate_limit_daily=kwargs.pop("rate_limit_daily", settings.default_rate_limit_daily),
        rate_limit_monthly=kwargs.pop("rate_limit_monthly", settings.default_rate_limit_monthly),
        created_at=datetime.now(timezone.utc),
        **kwargs,
    )
    db.add(tenant)
    await db.flush()
    return tenant


async def make_api_key(db: AsyncSession, tenant: Tenant, raw_key: str) -> str:
    db.add(
        ApiKey(
            id=uuid.uuid4(),
            tenant_id=tenant.id,
            key_hash=ApiKey.hash_key(raw_key, settings.api_key_salt),
            name="test-key",
            is_active=True,
            created_at=datetime.now(timezone.utc),
        )
    )
    await db.flush()
    return raw_key


# ---------------------------------------------------------------------------
# Tenants and keys
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture
async def test_tenant(db_session: AsyncSession) -> Tenant:
    """A tenant on the unlimited tier that consents to attribution."""
    tier = await get_tier(db_session, "enterprise")
    return await make_tenant(db_session, "test-funder", tier=tier)


@pytest_asyncio.fixture
async def other_tenant(db_session: AsyncSession) -> Tenant:
    tier = await get_tier(db_session, "enterprise")
    return await make_tenant(db_session, "other-funder", tier=tier)


@pytest_asyncio.fixture
async def test_api_key(db_session: AsyncSession, test_tenant: Tenant) -> str:
    return await make_api_key(db_session, test_tenant, "fg_test_key_abc123")


@pytest_asyncio.fixture
async def other_api_key(db_session: AsyncSession, other_tenant: Tenant) -> str:
    return await make_api_key(db_session, other_tenant, "fg_other_key_def456")


@pytest.fixture
def auth(test_api_key: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {test_api_key}"}


@pytest.fixture
def other_auth(other_api_key: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {other_api_key}"}


# ---------------------------------------------------------------------------
# Override FastAPI dependencies for tests
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture
async def client(
    db_session: AsyncSession,
    redis,
    hash_chain: HashChain,
) -> AsyncClient:
    """Create an httpx AsyncClient wired to the FastAPI app with test overrides."""
    from factorguard.api.deps import get_hash_chain
    from factorguard.database import get_db, get_session_factory
    from factorguard.main import app
    from factorguard.metering.ratelimit import get_redis

    async def _override_get_db():
        yield db_session

    @asynccontextmanager
    async def _reuse_session():
        yield db_session

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_redis] = lambda: redis
    app.dependency_overrides[get_session_factory] = lambda: _reuse_session
    app.dependency_overrides[get_hash_chain] = lambda: hash_chain

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as ac:
        yield ac

    app.dependency_overrides.clear()
