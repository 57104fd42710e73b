"""Virtuals (Base) launch event source: live eth_subscribe + backwards getLogs windows.

Log arguments come typed from the node, but the bonding contract only emits
token and pair. The creator is the sender of the launch transaction and the
timestamp comes from the block header.
"""

from collections.abc import AsyncIterator, Awaitable, Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from eth_abi.exceptions import DecodingError
from loguru import logger

from src.parsers.evm.constants import (
    BLOCK_TIME_SEC,
    LAUNCHED_TOPIC,
    LAUNCHPAD_NAME,
    VIRTUALS_FACTORY_ADDRESS,
)
from src.parsers.evm.models import EvmLog
from src.parsers.evm.rpc_client import EvmRpcClient, address_from_topic, topic_for_address
from src.parsers.evm.ws_client import LaunchedLogSubscriber
from src.parsers.exceptions import RpcResponseError
from src.parsers.history import HistoryItem, HistoryPage, iter_events
from src.parsers.models import Chain, LaunchEvent
from src.parsers.subscription import SubscriptionHandle, start_subscription


@dataclass(frozen=True)
class DecodedLaunch:
    token: str
    pair: str


def decode_launched_log(log: EvmLog) -> DecodedLaunch | None:
    """Token and pair from a Launched log; None for any other log."""
    if len(log.topics) < 3 or log.topics[0].lower() != LAUNCHED_TOPIC.lower():
        return None
    try:
        return DecodedLaunch(
            token=address_from_topic(log.topics[1]),
            pair=address_from_topic(log.topics[2]),
        )
    except ValueError:
        return None


class EvmLaunchSource:
    chain = Chain.BASE

    def __init__(
        self,
        rpc: EvmRpcClient,
        *,
        factory_address: str = VIRTUALS_FACTORY_ADDRESS,
        ws_url: str = "",
        launchpad: str = LAUNCHPAD_NAME,
        reconnect: dict[str, float] | None = None,
    ) -> None:
        self._rpc = rpc
        self._factory = factory_address
        self._ws_url = ws_url
        self._launchpad = launchpad
        self._reconnect = reconnect or {}

    async def event_from_log(self, log: EvmLog) -> LaunchEvent | None:
        if log.removed:
            return None
        decoded = decode_launched_log(log)
        if decoded is None:
            return None

        creator = await self._rpc.get_transaction_sender(log.transaction_hash)
        if not creator:
            logger.warning(f"[EVM] No sender for launch tx {log.transaction_hash[:18]}, dropping")
            return None

        try:
            name = await self._rpc.name(decoded.token)
            symbol = await self._rpc.symbol(decoded.token)
        except (RpcResponseError, DecodingError) as e:
            logger.warning(f"[EVM] name/symbol unreadable for {decoded.token}: {e}, dropping")
            return None
        if not name or not symbol:
            logger.warning(f"[EVM] Launch {decoded.token} missing name/symbol, dropping")
            return None

        timestamp = await self._rpc.get_block_timestamp(log.block_number)
        if timestamp is None:
            logger.warning(f"[EVM] No header for block {log.block_number}, dropping")
            return None

        return LaunchEvent(
            chain=Chain.BASE,
            launchpad=self._launchpad,
            token_address=decoded.token,
            creator_address=creator,
            launched_at=datetime.fromtimestamp(timestamp, tz=UTC),
            tx_id=log.transaction_hash,
            position=log.block_number,
            name=name,
            symbol=symbol,
            selling_address=decoded.pair,
            args={"pair": decoded.pair},
        )

    # ── Live mode ───────────────────────────────────────────────────

    async def event_from_notification(self, log: EvmLog) -> LaunchEvent | None:
        return await self.event_from_log(log)

    def build_subscriber(self) -> LaunchedLogSubscriber:
        return LaunchedLogSubscriber(self._ws_url, self._factory, **self._reconnect)

    async def start_live(
        self,
        on_candidate: Callable[[EvmLog], Awaitable[None]],
        previous: SubscriptionHandle | None = None,
    ) -> SubscriptionHandle:
        subscriber = self.build_subscriber()
        subscriber.on_notification = on_candidate
        return await start_subscription("base", subscriber, previous)

    # ── Historical mode ─────────────────────────────────────────────

    async def fetch_history_page(
        self, cursor: Any, limit: int, start: int, end: int | None
    ) -> HistoryPage:
        """One block window ending at ``cursor`` (inclusive), newest log first."""
        to_block = cursor
        if to_block is None:
            to_block = end if end is not None else await self._rpc.block_number()
        from_block = max(start, to_block - limit + 1, 0)

        logs = await self._rpc.get_logs(self._factory, [LAUNCHED_TOPIC], from_block, to_block)
        logs.sort(key=lambda lg: (lg.block_number, lg.log_index), reverse=True)
        items = [
            HistoryItem(ref=log.key, position=log.block_number, payload=log)
            for log in logs
            if not log.removed
        ]
        exhausted = from_block <= start or from_block == 0
        return HistoryPage(
            items=items,
            next_cursor=None if exhausted else from_block - 1,
            oldest_position=from_block,
            exhausted=exhausted,
        )

    async def event_from_history_item(self, item: HistoryItem) -> LaunchEvent | None:
        return await self.event_from_log(item.payload)

    def iter_historical(
        self, start: int, end: int | None = None, **kwargs: Any
    ) -> AsyncIterator[LaunchEvent]:
        return iter_events(self, start, end, **kwargs)

    # ── Token lookup ────────────────────────────────────────────────

    async def event_for_token(
        self, token: str, launched_at: datetime | None = None, *, window: int = 1800
    ) -> LaunchEvent | None:
        """Launch of a known token, found by its indexed topic.

        Without ``launched_at`` only the latest ``window`` blocks are searched;
        with it the search is centred on the block estimated from block time.
        """
        latest = await self._rpc.block_number()
        center = latest
        if launched_at is not None:
            latest_ts = await self._rpc.get_block_timestamp(latest)
            if latest_ts is not None:
                behind = int(latest_ts - launched_at.timestamp()) // BLOCK_TIME_SEC
                center = max(0, latest - max(0, behind))
        from_block = max(0, center - window)
        to_block = min(latest, center + window)

        logs = await self._rpc.get_logs(
            self._factory, [LAUNCHED_TOPIC, topic_for_address(token)], from_block, to_block
        )
        for log in logs:
            event = await self.event_from_log(log)
            if event is not None:
                return event
        logger.info(f"[EVM] No Launched log for {token} in blocks [{from_block}, {to_block}]")
        return None
