"""
Shared test fixtures.

Uses an in-memory SQLite database (via aiosqlite) so tests run without
Docker / PostgreSQL / Redis.  Reference-data loaders are replaced by
in-memory fakes, and Redis by ``AsyncMock`` where a test needs one.
"""

import asyncio
from typing import AsyncGenerator, Optional

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from src.config import Settings
from src.domain.enums import ServiceType
from src.infrastructure.database import Base
from src.infrastructure.models import ServiceTierModel  # noqa: F401  (registers the table)
from src.services.context import FlowContext
from src.services.flow_store import FlowStore


# ── Test DB (SQLite in-memory) ────────────────────────────────────────

TEST_DB_URL = "sqlite+aiosqlite:///:memory:"

test_engine = create_async_engine(TEST_DB_URL, echo=False, poolclass=StaticPool)
TestSessionFactory = async_sessionmaker(
    test_engine, class_=AsyncSession, expire_on_commit=False
)


# ── Fakes ─────────────────────────────────────────────────────────────


class FakeLoader:
    """In-memory ``ReferenceDataLoader`` that records how it was used."""

    def __init__(
        self,
        service: ServiceType,
        *,
        cached=None,
        fresh=None,
        fail: Optional[Exception] = None,
        required_before_render: bool = False,
        delay: float = 0.0,
    ):
        self.service = service
        self.required_before_render = required_before_render
        self.cached = cached
        self.fresh = fresh if fresh is not None else [f"{service.value}-tier"]
        self.fail = fail
        self.delay = delay
        self.cache_calls = 0
        self.fetch_calls = 0

    async def load_cached_reference_data(self):
        self.cache_calls += 1
        return self.cached

    async def fetch_reference_data(self):
        self.fetch_calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail is not None:
            raise self.fail
        return self.fresh


def make_settings(**overrides) -> Settings:
    values = {"terminal_reset_grace_seconds": 0.01}
    values.update(overrides)
    return Settings(**values)


# ── Fixtures ──────────────────────────────────────────────────────────


@pytest.fixture
def store() -> FlowStore:
    return FlowStore()


@pytest.fixture
def strict_store() -> FlowStore:
    return FlowStore(strict=True)


@pytest.fixture
def context():
    ctx = FlowContext(settings=make_settings(), loaders={}, strict=False)
    yield ctx
    ctx.close()


@pytest_asyncio.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Create tables, yield a session, then drop everything."""
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with TestSessionFactory() as session:
        yield session

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture
def session_factory() -> async_sessionmaker[AsyncSession]:
    """Factory bound to the same in-memory database as ``db_session``."""
    return TestSessionFactory
