"""Per-event pipeline: LaunchEvent -> balances -> movements -> LaunchRecord -> publisher.

Also owns the stats refresh path used for already stored launches.
"""

from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any, Protocol

from loguru import logger

from src.parsers.address_registry import AddressKind, AddressRegistry
from src.parsers.description import extract_description_fields, replace_recent_developments
from src.parsers.exceptions import RpcError
from src.parsers.models import (
    BalanceResult,
    Chain,
    DestinationInfo,
    LaunchEvent,
    MovementSummary,
    TokenStats,
    Transfer,
)
from src.parsers.movement_classifier import TokenMovementClassifier
from src.parsers.normalizer import (
    LaunchEventNormalizer,
    OffChainMetadata,
    TokenFigures,
    build_token_stats,
)
from src.parsers.publisher import LaunchPublisher, UpsertResult
from src.parsers.token_math import format_token_balance, to_raw_units
from src.parsers.virtuals.client import VirtualsApiClient

# Events older than this get their current balance looked up; fresher ones
# cannot have moved yet, so current == initial.
HISTORICAL_EVENT_AGE_SEC = 600


class BalanceResolver(Protocol):
    async def token_supply(self, token: str) -> tuple[int, int]: ...

    async def resolve_balance(
        self,
        token: str,
        owner: str,
        at: int | None = None,
        *,
        tx_id: str | None = None,
        tx: Any = None,
    ) -> BalanceResult: ...


class TransferScanner(Protocol):
    async def outgoing_transfers(
        self, token: str, owner: str, since: int | None = None
    ) -> list[Transfer]: ...

    async def inspect_destination(self, address: str) -> DestinationInfo: ...


@dataclass(frozen=True)
class ChainAdapter:
    chain: Chain
    balances: BalanceResolver
    transfers: TransferScanner


def chain_for_address(address: str) -> Chain:
    return Chain.BASE if address.startswith("0x") else Chain.SOLANA


def _utcnow() -> datetime:
    return datetime.now(UTC)


class LaunchPipeline:
    def __init__(
        self,
        *,
        publisher: LaunchPublisher,
        registry: AddressRegistry,
        classifier: TokenMovementClassifier,
        adapters: dict[Chain, ChainAdapter],
        normalizer: LaunchEventNormalizer | None = None,
        virtuals: VirtualsApiClient | None = None,
        historical_age_sec: float = HISTORICAL_EVENT_AGE_SEC,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._publisher = publisher
        self._registry = registry
        self._classifier = classifier
        self._adapters = adapters
        self._normalizer = normalizer or LaunchEventNormalizer()
        self._virtuals = virtuals
        self._historical_age_sec = historical_age_sec
        self._clock = clock
        self._in_flight: set[str] = set()

    @staticmethod
    def _key(token_address: str) -> str:
        return token_address.lower() if token_address.startswith("0x") else token_address

    def _adapter(self, chain: Chain) -> ChainAdapter:
        adapter = self._adapters.get(chain)
        if adapter is None:
            raise ValueError(f"No adapter configured for chain {chain.value}")
        return adapter

    async def process(self, event: LaunchEvent, overwrite: bool = False) -> UpsertResult:
        key = self._key(event.token_address)
        if key in self._in_flight:
            logger.debug(f"[PIPELINE] {event.token_address} already in flight, skipping")
            return UpsertResult.SKIPPED
        self._in_flight.add(key)
        try:
            if not overwrite and await self._publisher.exists(event.token_address):
                logger.debug(f"[PIPELINE] {event.token_address} already stored, skipping")
                return UpsertResult.SKIPPED
            return await self._process(event, overwrite)
        finally:
            self._in_flight.discard(key)

    async def _process(self, event: LaunchEvent, overwrite: bool) -> UpsertResult:
        adapter = self._adapter(event.chain)
        chain = event.chain.value
        token, creator = event.token_address, event.creator_address

        if event.selling_address:
            self._registry.register(
                chain,
                event.selling_address,
                f"{event.launchpad} pool (${event.symbol})",
                AddressKind.LAUNCH_POOL,
            )

        metadata = await self._offchain_metadata(event)

        supply_raw, decimals = await adapter.balances.token_supply(token)
        initial = await adapter.balances.resolve_balance(
            token, creator, event.position, tx_id=event.tx_id, tx=event.transaction
        )

        as_of = self._clock()
        age = (as_of - event.launched_at).total_seconds()
        current = initial
        if age > self._historical_age_sec:
            current = await adapter.balances.resolve_balance(token, creator)

        movement = await self._movements(
            adapter, creator, token, initial.raw, current.raw, decimals, since=event.position
        )
        figures = TokenFigures(
            total_supply_raw=supply_raw,
            decimals=decimals,
            initial_raw=initial.raw,
            current_raw=current.raw,
            balance_source=initial.source,
            is_approximate=initial.is_approximate or current.is_approximate,
        )
        record = self._normalizer.build_record(
            event, figures, movement, as_of=as_of, metadata=metadata
        )
        result = await self._publisher.upsert_launch(record, overwrite)
        logger.info(
            f"[PIPELINE] {chain} {record.title} {token} -> {result.value} "
            f"(initial={record.creator_initial_tokens}, held={record.creator_tokens_held}, "
            f"balance={figures.balance_source.value})"
        )
        return result

    async def _offchain_metadata(self, event: LaunchEvent) -> OffChainMetadata | None:
        if self._virtuals is None:
            return None
        prototype = await self._virtuals.get_prototype(event.token_address)
        if prototype is None:
            return None
        if prototype.pre_token_pair:
            self._registry.register(
                event.chain.value,
                prototype.pre_token_pair,
                f"{event.launchpad} pair (${event.symbol})",
                AddressKind.LAUNCH_POOL,
            )
        return OffChainMetadata(
            image_url=prototype.image_url, launchpad_specific_id=str(prototype.id)
        )

    async def _movements(
        self,
        adapter: ChainAdapter,
        creator: str,
        token: str,
        initial_raw: int,
        current_raw: int,
        decimals: int,
        *,
        since: int | None,
    ) -> MovementSummary:
        delta = current_raw - initial_raw
        if delta == 0:
            return MovementSummary(narrative="", sent_to_burn_address=False)
        transfers = await adapter.transfers.outgoing_transfers(token, creator, since=since)
        return await self._classifier.classify(
            adapter.chain.value,
            creator,
            token,
            delta,
            transfers,
            decimals,
            inspector=adapter.transfers.inspect_destination,
        )

    # ── Refresh ─────────────────────────────────────────────────────

    async def refresh_token_stats(
        self,
        launch_id: int,
        token_address: str,
        creator_address: str,
        creator_initial_tokens: str,
        *,
        since: int | None = None,
    ) -> TokenStats:
        """Fresh TokenStats for a stored launch. Identity fields are not touched.

        ``since`` is the launch block or slot; without it only recent activity is scanned.
        """
        adapter = self._adapter(chain_for_address(token_address))
        _, decimals = await adapter.balances.token_supply(token_address)
        current = await adapter.balances.resolve_balance(token_address, creator_address)
        initial_raw = to_raw_units(int(creator_initial_tokens), decimals)

        movement = await self._movements(
            adapter,
            creator_address,
            token_address,
            initial_raw,
            current.raw,
            decimals,
            since=since,
        )
        figures = TokenFigures(
            total_supply_raw=0,
            decimals=decimals,
            initial_raw=initial_raw,
            current_raw=current.raw,
            balance_source=current.source,
            is_approximate=current.is_approximate,
        )
        stats = build_token_stats(figures, movement, self._clock())
        logger.debug(
            f"[REFRESH] launch {launch_id}: held={stats.tokens_held} "
            f"({stats.holding_percentage}%), burn={stats.sent_to_burn_address}"
        )
        return stats

    async def refresh_launch(self, launch_id: int) -> TokenStats | None:
        stored = await self._publisher.get_launch(launch_id)
        if stored is None:
            logger.warning(f"[REFRESH] launch {launch_id} not found")
            return None

        token = stored.token_address
        creator = stored.creator_address
        initial = stored.creator_initial_tokens
        if not (token and creator and initial):
            parsed = extract_description_fields(stored.description)
            token = token or parsed.token_address
            creator = creator or parsed.creator_address
            initial = initial or parsed.creator_initial_tokens
        if not (token and creator and initial):
            logger.warning(f"[REFRESH] launch {launch_id} lacks token/creator/initial tokens, skipping")
            return None

        stats = await self.refresh_token_stats(
            launch_id, token, creator, initial, since=stored.launch_position
        )
        if stored.sent_to_burn_address and not stats.sent_to_burn_address:
            # A burn seen once stays a burn, even if it left the scanned range
            stats = stats.model_copy(update={"sent_to_burn_address": True})
        description = None
        if stored.description:
            description = replace_recent_developments(
                stored.description,
                tokens_held_display=format_token_balance(stats.tokens_held),
                holding_percentage=stats.holding_percentage,
                as_of=stats.updated_at,
                movement_narrative=stats.movement_narrative,
            )
        await self._publisher.update_token_stats(launch_id, stats, description)
        return stats

    async def refresh_all(self) -> dict[str, int]:
        counts = {"refreshed": 0, "skipped": 0, "failed": 0}
        for launch_id in await self._publisher.list_launch_ids():
            try:
                stats = await self.refresh_launch(launch_id)
            except (RpcError, ValueError) as e:
                logger.warning(f"[REFRESH] launch {launch_id} failed: {e}")
                counts["failed"] += 1
                continue
            except Exception as e:
                logger.opt(exception=True).error(
                    f"[REFRESH] launch {launch_id} unexpected error: {type(e).__name__}: {e}"
                )
                counts["failed"] += 1
                continue
            counts["refreshed" if stats is not None else "skipped"] += 1
        logger.info(
            f"[REFRESH] done: {counts['refreshed']} refreshed, "
            f"{counts['skipped']} skipped, {counts['failed']} failed"
        )
        return counts
