"""Shared test fixtures."""

from collections.abc import AsyncGenerator
from datetime import UTC, datetime

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from src.models.base import Base
from src.parsers.address_registry import AddressRegistry
from src.parsers.models import Chain, LaunchEvent


@pytest_asyncio.fixture(scope="function")
async def session_factory() -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """Fresh in-memory SQLite database per test.

    StaticPool keeps the single aiosqlite connection alive so every session
    sees the same in-memory database.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest.fixture
def registry() -> AddressRegistry:
    return AddressRegistry.with_defaults()


BASE_TOKEN = "0x1111111111111111111111111111111111111111"
BASE_CREATOR = "0x2222222222222222222222222222222222222222"
BASE_PAIR = "0x3333333333333333333333333333333333333333"


@pytest.fixture
def base_event() -> LaunchEvent:
    return LaunchEvent(
        chain=Chain.BASE,
        launchpad="Virtuals Protocol (Base)",
        token_address=BASE_TOKEN,
        creator_address=BASE_CREATOR,
        launched_at=datetime(2025, 3, 4, 17, 20, tzinfo=UTC),
        tx_id="0x" + "ab" * 32,
        position=27_000_000,
        name="Agent Smith",
        symbol="SMITH",
        selling_address=BASE_PAIR,
        args={"pair": BASE_PAIR},
    )
