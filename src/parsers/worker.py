"""Per-chain runner: backfill first, then the live listener feeding one worker.

Live notifications are cheap to receive but expensive to turn into records
(several RPC calls each), so they go through an asyncio.Queue consumed by a
single task per chain. The backfill and the live path share one pipeline,
whose in-flight set and the publisher's existence check keep them from
producing duplicates.
"""

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any, Protocol

from loguru import logger

from src.parsers.backfill import BackfillReport, HistoricalBacklogProcessor
from src.parsers.exceptions import RpcError
from src.parsers.models import Chain, LaunchEvent
from src.parsers.pipeline import LaunchPipeline
from src.parsers.subscription import SubscriptionHandle
from src.parsers.virtuals.poller import VirtualsLaunchPoller

# Gives the backfill's last writes a moment before live events start landing.
LIVE_HANDOFF_DELAY_SEC = 3.0


class LiveLaunchSource(Protocol):
    chain: Chain

    async def start_live(
        self,
        on_candidate: Callable[[Any], Awaitable[None]],
        previous: SubscriptionHandle | None = None,
    ) -> SubscriptionHandle: ...

    async def event_from_notification(self, candidate: Any) -> LaunchEvent | None: ...


class ChainRunner:
    def __init__(
        self,
        source: LiveLaunchSource,
        pipeline: LaunchPipeline,
        *,
        backfill: HistoricalBacklogProcessor | None = None,
        backfill_start: int | None = None,
        backfill_end: int | None = None,
        backfill_overwrite: bool = False,
        handoff_delay: float = LIVE_HANDOFF_DELAY_SEC,
    ) -> None:
        self._source = source
        self._pipeline = pipeline
        self._backfill = backfill
        self._backfill_start = backfill_start
        self._backfill_end = backfill_end
        self._backfill_overwrite = backfill_overwrite
        self._handoff_delay = handoff_delay
        self._queue: asyncio.Queue[Any] = asyncio.Queue()
        self._handle: SubscriptionHandle | None = None
        self._running = False
        self.processed = 0
        self.failed = 0

    @property
    def name(self) -> str:
        return self._source.chain.value

    async def _enqueue(self, candidate: Any) -> None:
        await self._queue.put(candidate)

    async def run_backfill(self) -> BackfillReport | None:
        if self._backfill is None or self._backfill_start is None:
            return None
        return await self._backfill.run(
            self._backfill_start, self._backfill_end, overwrite=self._backfill_overwrite
        )

    async def start_live(self) -> None:
        """(Re)start the chain's subscription, retiring the previous one."""
        self._handle = await self._source.start_live(self._enqueue, self._handle)

    async def run(self) -> None:
        self._running = True
        await self.run_backfill()
        if not self._running:
            return
        await asyncio.sleep(self._handoff_delay)
        await self.start_live()
        logger.info(f"[RUNNER] {self.name} live listener started")
        await self._consume()

    async def _consume(self) -> None:
        while self._running:
            candidate = await self._queue.get()
            try:
                await self._handle_candidate(candidate)
            finally:
                self._queue.task_done()

    async def _handle_candidate(self, candidate: Any) -> None:
        try:
            event = await self._source.event_from_notification(candidate)
            if event is None:
                return
            result = await self._pipeline.process(event)
            self.processed += 1
            logger.info(f"[RUNNER] {self.name} live launch {event.token_address}: {result.value}")
        except RpcError as e:
            self.failed += 1
            logger.warning(f"[RUNNER] {self.name} candidate failed: {e}")
        except Exception as e:
            self.failed += 1
            logger.opt(exception=True).error(
                f"[RUNNER] {self.name} unexpected error on candidate: {type(e).__name__}: {e}"
            )

    async def stop(self) -> None:
        self._running = False
        if self._handle is not None:
            await self._handle.cancel()
            self._handle = None


async def stats_refresh_loop(pipeline: LaunchPipeline, interval: float) -> None:
    """Periodically recompute creator stats for every stored launch."""
    while True:
        await asyncio.sleep(interval)
        try:
            await pipeline.refresh_all()
        except RpcError as e:
            logger.warning(f"[REFRESH] Batch aborted: {e}")
        except Exception as e:
            logger.opt(exception=True).error(
                f"[REFRESH] Batch aborted on unexpected error: {type(e).__name__}: {e}"
            )


async def virtuals_poll_loop(poller: VirtualsLaunchPoller, interval: float) -> None:
    """Sweep the Virtuals launch listing now and then every ``interval`` seconds."""
    while True:
        try:
            await poller.poll_once()
        except Exception as e:
            logger.opt(exception=True).error(
                f"[VIRTUALS] Sweep aborted: {type(e).__name__}: {e}"
            )
        await asyncio.sleep(interval)
