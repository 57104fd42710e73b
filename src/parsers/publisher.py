"""LaunchPublisher contract and its two adapters (in-memory and SQLAlchemy).

The publisher's existence check on token address is the idempotence backstop
for the whole ingestion path: live and backfill may both see the same launch.
"""

from datetime import datetime
from enum import Enum
from typing import Protocol

from loguru import logger
from pydantic import BaseModel
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.models.launch import Launch
from src.parsers.models import Chain, LaunchRecord, TokenStats


class UpsertResult(str, Enum):
    INSERTED = "inserted"
    UPDATED = "updated"
    SKIPPED = "skipped"


class StoredLaunch(BaseModel):
    """A persisted launch. First-class creator fields may be missing on old rows."""

    id: int
    launchpad: str
    chain: Chain | None = None
    title: str = ""
    description: str = ""
    launched_at: datetime | None = None
    image_url: str | None = None
    token_address: str | None = None
    creator_address: str | None = None
    creator_initial_tokens: str | None = None
    launchpad_specific_id: str | None = None
    launch_position: int | None = None
    creator_tokens_held: str | None = None
    creator_holding_percentage: str | None = None
    movement_narrative: str | None = None
    sent_to_burn_address: bool = False
    main_selling_address: str | None = None
    token_stats_updated_at: datetime | None = None

    model_config = {"extra": "ignore", "from_attributes": True}


class LaunchPublisher(Protocol):
    async def upsert_launch(self, record: LaunchRecord, overwrite: bool = False) -> UpsertResult: ...

    async def exists(self, token_address: str) -> bool: ...

    async def exists_launchpad_id(self, launchpad_specific_id: str) -> bool: ...

    async def get_launch(self, launch_id: int) -> StoredLaunch | None: ...

    async def update_token_stats(
        self, launch_id: int, stats: TokenStats, description: str | None = None
    ) -> bool: ...

    async def list_launch_ids(self) -> list[int]: ...


def _token_key(address: str) -> str:
    return address.lower() if address.startswith("0x") else address


def _sanitize(val: str | None) -> str | None:
    """Strip null bytes that PostgreSQL rejects (on-chain names can carry them)."""
    if val is None:
        return None
    return val.replace("\x00", "")


def _stats_values(stats: TokenStats) -> dict[str, object]:
    values: dict[str, object] = {
        "creator_tokens_held": stats.tokens_held,
        "creator_holding_percentage": stats.holding_percentage,
        "movement_narrative": stats.movement_narrative,
        "sent_to_burn_address": stats.sent_to_burn_address,
        "balance_source": stats.balance_source.value,
        "balance_is_approximate": stats.is_approximate,
        "token_stats_updated_at": stats.updated_at,
    }
    if stats.main_selling_address:
        values["main_selling_address"] = stats.main_selling_address
    return values


class InMemoryLaunchPublisher:
    """Dict-backed publisher for tests and dry runs."""

    def __init__(self) -> None:
        self._rows: dict[int, StoredLaunch] = {}
        self._by_token: dict[str, int] = {}
        self._next_id = 1

    def _store(self, row_id: int, data: dict) -> StoredLaunch:
        stored = StoredLaunch.model_validate({**data, "id": row_id})
        self._rows[row_id] = stored
        if stored.token_address:
            self._by_token[_token_key(stored.token_address)] = row_id
        return stored

    def add_stored(self, **fields: object) -> StoredLaunch:
        """Insert a raw row, e.g. a legacy record that only has a description."""
        row_id = self._next_id
        self._next_id += 1
        return self._store(row_id, fields)

    async def upsert_launch(self, record: LaunchRecord, overwrite: bool = False) -> UpsertResult:
        existing = self._by_token.get(_token_key(record.token_address))
        if existing is not None and not overwrite:
            return UpsertResult.SKIPPED
        data = record.model_dump()
        if existing is not None:
            self._store(existing, data)
            return UpsertResult.UPDATED
        self.add_stored(**data)
        return UpsertResult.INSERTED

    async def exists(self, token_address: str) -> bool:
        return _token_key(token_address) in self._by_token

    async def exists_launchpad_id(self, launchpad_specific_id: str) -> bool:
        return any(
            row.launchpad_specific_id == launchpad_specific_id for row in self._rows.values()
        )

    async def get_launch(self, launch_id: int) -> StoredLaunch | None:
        return self._rows.get(launch_id)

    async def update_token_stats(
        self, launch_id: int, stats: TokenStats, description: str | None = None
    ) -> bool:
        row = self._rows.get(launch_id)
        if row is None:
            return False
        update = _stats_values(stats)
        if description is not None:
            update["description"] = description
        self._rows[launch_id] = row.model_copy(update=update)
        return True

    async def list_launch_ids(self) -> list[int]:
        return sorted(self._rows)


class SqlLaunchPublisher:
    """Publisher over the ``launches`` table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    @staticmethod
    def _find_stmt(token_address: str):
        if token_address.startswith("0x"):
            # EVM addresses arrive both checksummed and lowercased
            return select(Launch).where(func.lower(Launch.token_address) == token_address.lower())
        return select(Launch).where(Launch.token_address == token_address)

    @staticmethod
    def _row_values(record: LaunchRecord) -> dict[str, object]:
        return {
            "launchpad": record.launchpad,
            "chain": record.chain.value,
            "title": _sanitize(record.title),
            "url": record.url,
            "description": _sanitize(record.description),
            "launched_at": record.launched_at,
            "image_url": record.image_url,
            "launchpad_specific_id": record.launchpad_specific_id,
            "tx_id": record.tx_id,
            "launch_position": record.launch_position,
            "token_address": record.token_address,
            "creator_address": record.creator_address,
            "total_token_supply": record.total_token_supply,
            "creator_initial_tokens": record.creator_initial_tokens,
            "tokens_for_sale": record.tokens_for_sale,
            "creator_allocation": record.creator_allocation,
            "creator_tokens_held": record.creator_tokens_held,
            "creator_holding_percentage": record.creator_holding_percentage,
            "movement_narrative": record.movement_narrative,
            "sent_to_burn_address": record.sent_to_burn_address,
            "main_selling_address": record.main_selling_address,
            "balance_source": record.balance_source.value,
            "balance_is_approximate": record.balance_is_approximate,
            "token_stats_updated_at": record.token_stats_updated_at,
        }

    async def upsert_launch(self, record: LaunchRecord, overwrite: bool = False) -> UpsertResult:
        values = self._row_values(record)
        async with self._session_factory() as session:
            existing = (
                await session.execute(self._find_stmt(record.token_address))
            ).scalar_one_or_none()
            if existing is not None:
                if not overwrite:
                    return UpsertResult.SKIPPED
                for key, value in values.items():
                    setattr(existing, key, value)
                await session.commit()
                logger.info(f"[PUBLISH] Updated launch {existing.id} ({record.title})")
                return UpsertResult.UPDATED

            launch = Launch(**values)
            session.add(launch)
            try:
                await session.commit()
            except IntegrityError:
                # Another writer inserted the same token between our select and commit.
                await session.rollback()
                logger.debug(f"[PUBLISH] {record.token_address} inserted concurrently, skipping")
                return UpsertResult.SKIPPED
            logger.info(f"[PUBLISH] Inserted launch {launch.id} ({record.title})")
            return UpsertResult.INSERTED

    async def exists(self, token_address: str) -> bool:
        async with self._session_factory() as session:
            result = await session.execute(self._find_stmt(token_address))
            return result.scalar_one_or_none() is not None

    async def exists_launchpad_id(self, launchpad_specific_id: str) -> bool:
        async with self._session_factory() as session:
            result = await session.execute(
                select(Launch.id)
                .where(Launch.launchpad_specific_id == launchpad_specific_id)
                .limit(1)
            )
            return result.scalar_one_or_none() is not None

    async def get_launch(self, launch_id: int) -> StoredLaunch | None:
        async with self._session_factory() as session:
            launch = await session.get(Launch, launch_id)
            if launch is None:
                return None
            return StoredLaunch.model_validate(launch)

    async def update_token_stats(
        self, launch_id: int, stats: TokenStats, description: str | None = None
    ) -> bool:
        async with self._session_factory() as session:
            launch = await session.get(Launch, launch_id)
            if launch is None:
                return False
            for key, value in _stats_values(stats).items():
                setattr(launch, key, value)
            if description is not None:
                launch.description = _sanitize(description) or launch.description
            await session.commit()
            return True

    async def list_launch_ids(self) -> list[int]:
        async with self._session_factory() as session:
            result = await session.execute(select(Launch.id).order_by(Launch.id))
            return list(result.scalars().all())

