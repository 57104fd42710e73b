"""Virtuals (Solana) launch event source: live logsSubscribe + signature history."""

import asyncio
from collections.abc import AsyncIterator, Awaitable, Callable
from datetime import UTC, datetime
from typing import Any

from loguru import logger
from solders.pubkey import Pubkey  # type: ignore[import-untyped]

from src.parsers.history import HistoryItem, HistoryPage, iter_events
from src.parsers.models import Chain, LaunchEvent
from src.parsers.solana.constants import LAUNCHPAD_NAME, VIRTUALS_PROGRAM_ID, VPOOL_SEED
from src.parsers.solana.decoder import InstructionDecoder, LaunchInstruction
from src.parsers.solana.models import CompiledInstruction, SolanaTransaction
from src.parsers.solana.rpc_client import SolanaRpcClient
from src.parsers.solana.ws_client import LaunchLogNotification, VirtualsLogSubscriber
from src.parsers.subscription import SubscriptionHandle, start_subscription


def derive_vpool_address(token_mint: str, program_id: str = VIRTUALS_PROGRAM_ID) -> str | None:
    """Bonding pool PDA for ``token_mint``: seeds ["vpool", mint]."""
    try:
        mint = Pubkey.from_string(token_mint)
        program = Pubkey.from_string(program_id)
    except ValueError:
        return None
    pda, _bump = Pubkey.find_program_address([VPOOL_SEED, bytes(mint)], program)
    return str(pda)


class SolanaLaunchSource:
    """Turns program activity into LaunchEvents.

    Live mode listens to logsSubscribe. Historical mode pages
    getSignaturesForAddress(program) backwards. Both paths fetch the full
    transaction and decode top-level and inner instructions, since the
    launch can be CPI'd from another program.
    """

    chain = Chain.SOLANA

    def __init__(
        self,
        rpc: SolanaRpcClient,
        decoder: InstructionDecoder,
        *,
        program_id: str = VIRTUALS_PROGRAM_ID,
        ws_url: str = "",
        commitment: str = "confirmed",
        launchpad: str = LAUNCHPAD_NAME,
        tx_fetch_attempts: int = 3,
        tx_fetch_delay: float = 2.0,
        reconnect: dict[str, float] | None = None,
    ) -> None:
        self._rpc = rpc
        self._decoder = decoder
        self._program_id = program_id
        self._ws_url = ws_url
        self._commitment = commitment
        self._launchpad = launchpad
        self._tx_fetch_attempts = tx_fetch_attempts
        self._tx_fetch_delay = tx_fetch_delay
        self._reconnect = reconnect or {}

    @property
    def program_id(self) -> str:
        return self._program_id

    # ── Decoding ────────────────────────────────────────────────────

    def _program_of(self, ix: CompiledInstruction, keys: list[str]) -> str | None:
        if ix.program_id:
            return ix.program_id
        if ix.program_id_index is not None and 0 <= ix.program_id_index < len(keys):
            return keys[ix.program_id_index]
        return None

    def extract_launch(self, tx: SolanaTransaction) -> LaunchInstruction | None:
        """First launch instruction of our program, top-level or inner."""
        keys = tx.account_keys
        instructions = list(tx.transaction.message.instructions)
        if tx.meta:
            for inner in tx.meta.inner_instructions:
                instructions.extend(inner.instructions)

        for ix in instructions:
            if self._program_of(ix, keys) != self._program_id:
                continue
            launch = self._decoder.decode_launch(ix.data, ix.accounts, keys)
            if launch is not None:
                return launch
        return None

    async def event_from_transaction(
        self, tx: SolanaTransaction, *, block_time: int | None = None
    ) -> LaunchEvent | None:
        if tx.failed:
            return None
        launch = self.extract_launch(tx)
        if launch is None:
            return None

        if not launch.name or not launch.symbol:
            logger.warning(
                f"[SVM] Launch {tx.signature[:16]} missing name/symbol, dropping"
            )
            return None

        timestamp = tx.block_time or block_time
        if timestamp is None:
            timestamp = await self._rpc.get_block_time(tx.slot)
        if timestamp is None:
            logger.warning(f"[SVM] No block time for slot {tx.slot} ({tx.signature[:16]}), dropping")
            return None

        return LaunchEvent(
            chain=Chain.SOLANA,
            launchpad=self._launchpad,
            token_address=launch.token_mint,
            creator_address=launch.creator,
            launched_at=datetime.fromtimestamp(timestamp, tz=UTC),
            tx_id=tx.signature,
            position=tx.slot,
            name=launch.name,
            symbol=launch.symbol,
            uri=launch.uri,
            selling_address=derive_vpool_address(launch.token_mint, self._program_id),
            transaction=tx,
        )

    async def fetch_transaction(self, signature: str, *, attempts: int = 1) -> SolanaTransaction | None:
        """getTransaction, retrying a null result (the RPC index lags the log stream)."""
        for attempt in range(attempts):
            tx = await self._rpc.get_transaction(signature)
            if tx is not None:
                return tx
            if attempt < attempts - 1:
                await asyncio.sleep(self._tx_fetch_delay * 2**attempt)
        logger.debug(f"[SVM] Transaction {signature[:16]} not available")
        return None

    async def event_from_signature(
        self, signature: str, *, attempts: int = 1, block_time: int | None = None
    ) -> LaunchEvent | None:
        tx = await self.fetch_transaction(signature, attempts=attempts)
        if tx is None:
            return None
        return await self.event_from_transaction(tx, block_time=block_time)

    # ── Token lookup ────────────────────────────────────────────────

    async def event_for_token(
        self, mint: str, launched_at: datetime | None = None, *, max_pages: int = 5
    ) -> LaunchEvent | None:
        """Launch of a known mint: the mint's oldest successful transaction."""
        before: str | None = None
        oldest = None
        for _ in range(max_pages):
            sigs = await self._rpc.get_signatures_for_address(mint, before=before, limit=1000)
            ok = [sig for sig in sigs if sig.err is None]
            if ok:
                oldest = ok[-1]
            if len(sigs) < 1000:
                break
            before = sigs[-1].signature
        else:
            logger.warning(f"[SVM] {mint[:12]} history longer than {max_pages} pages, launch tx not reached")
            return None

        if oldest is None:
            return None
        event = await self.event_from_signature(oldest.signature, block_time=oldest.block_time)
        if event is None or event.token_address != mint:
            logger.info(f"[SVM] Oldest tx of {mint[:12]} is not its launch ({oldest.signature[:16]})")
            return None
        return event

    # ── Live mode ───────────────────────────────────────────────────

    async def event_from_notification(self, note: LaunchLogNotification) -> LaunchEvent | None:
        return await self.event_from_signature(note.signature, attempts=self._tx_fetch_attempts)

    def build_subscriber(self) -> VirtualsLogSubscriber:
        return VirtualsLogSubscriber(
            self._ws_url,
            self._program_id,
            commitment=self._commitment,
            **self._reconnect,
        )

    async def start_live(
        self,
        on_candidate: Callable[[LaunchLogNotification], Awaitable[None]],
        previous: SubscriptionHandle | None = None,
    ) -> SubscriptionHandle:
        subscriber = self.build_subscriber()
        subscriber.on_notification = on_candidate
        return await start_subscription("solana", subscriber, previous)

    # ── Historical mode ─────────────────────────────────────────────

    async def fetch_history_page(
        self, cursor: Any, limit: int, start: int, end: int | None
    ) -> HistoryPage:
        sigs = await self._rpc.get_signatures_for_address(
            self._program_id, before=cursor, limit=limit
        )
        if not sigs:
            return HistoryPage(exhausted=True)
        items = [
            HistoryItem(ref=sig.signature, position=sig.slot, payload=sig.block_time)
            for sig in sigs
            if sig.err is None
        ]
        return HistoryPage(
            items=items,
            next_cursor=sigs[-1].signature,
            oldest_position=sigs[-1].slot,
            exhausted=len(sigs) < limit,
        )

    async def event_from_history_item(self, item: HistoryItem) -> LaunchEvent | None:
        return await self.event_from_signature(item.ref, block_time=item.payload)

    def iter_historical(
        self, start: int, end: int | None = None, **kwargs: Any
    ) -> AsyncIterator[LaunchEvent]:
        return iter_events(self, start, end, **kwargs)
