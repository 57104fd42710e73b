"""Historical backlog run over a slot/block range, driving the normal pipeline.

State flow: FETCHING_SIGNATURES -> FILTERING_BY_RANGE -> PROCESSING -> DONE.
A pagination failure that survives the retry budget ends in FAILED, but
whatever was already collected is still processed so the run hands off to
live mode with as much data as it could get.
"""

import asyncio
from dataclasses import dataclass
from enum import Enum

from loguru import logger

from src.parsers.exceptions import RpcError
from src.parsers.history import HistoryItem, HistorySource, fetch_page_with_shrink, filter_page
from src.parsers.pipeline import LaunchPipeline
from src.parsers.publisher import LaunchPublisher, UpsertResult


class BackfillState(str, Enum):
    IDLE = "idle"
    FETCHING_SIGNATURES = "fetching_signatures"
    FILTERING_BY_RANGE = "filtering_by_range"
    PROCESSING = "processing"
    DONE = "done"
    FAILED = "failed"


@dataclass
class BackfillReport:
    chain: str
    start: int
    end: int | None
    items_scanned: int = 0
    launches_found: int = 0
    inserted: int = 0
    updated: int = 0
    skipped: int = 0
    failures: int = 0
    state: BackfillState = BackfillState.IDLE

    def summary(self) -> str:
        return (
            f"{self.chain} [{self.start}, {self.end if self.end is not None else 'latest'}] "
            f"{self.state.value}: scanned={self.items_scanned} found={self.launches_found} "
            f"inserted={self.inserted} updated={self.updated} skipped={self.skipped} "
            f"failures={self.failures}"
        )


class HistoricalBacklogProcessor:
    def __init__(
        self,
        source: HistorySource,
        pipeline: LaunchPipeline,
        publisher: LaunchPublisher,
        *,
        page_size: int = 100,
        page_delay: float = 0.5,
        item_delay: float = 0.2,
        max_retries: int = 3,
        retry_delay: float = 2.0,
    ) -> None:
        self._source = source
        self._pipeline = pipeline
        self._publisher = publisher
        self._page_size = page_size
        self._page_delay = page_delay
        self._item_delay = item_delay
        self._max_retries = max_retries
        self._retry_delay = retry_delay
        self.state = BackfillState.IDLE

    async def _collect(
        self, start: int, end: int | None, report: BackfillReport, candidates: list[HistoryItem]
    ) -> None:
        cursor = None
        limit = self._page_size
        while True:
            self.state = BackfillState.FETCHING_SIGNATURES
            page, limit = await fetch_page_with_shrink(
                self._source,
                cursor,
                limit,
                start,
                end,
                max_retries=self._max_retries,
                retry_delay=self._retry_delay,
            )
            report.items_scanned += len(page.items)

            self.state = BackfillState.FILTERING_BY_RANGE
            in_range, passed_start = filter_page(page, start, end)
            candidates.extend(in_range)
            logger.debug(
                f"[BACKFILL] {report.chain} page: {len(page.items)} items, "
                f"{len(in_range)} in range, oldest={page.oldest_position}"
            )
            if passed_start or page.exhausted or page.next_cursor is None:
                return
            cursor = page.next_cursor
            await asyncio.sleep(self._page_delay)

    async def run(self, start: int, end: int | None = None, overwrite: bool = False) -> BackfillReport:
        chain = self._source.chain.value
        report = BackfillReport(chain=chain, start=start, end=end)
        logger.info(f"[BACKFILL] {chain} starting [{start}, {end if end is not None else 'latest'}]")

        # _collect appends in place, so a failure keeps what was already gathered.
        failed = False
        candidates: list[HistoryItem] = []
        try:
            await self._collect(start, end, report, candidates)
        except RpcError as e:
            failed = True
            logger.error(f"[BACKFILL] {chain} pagination failed after retries: {e}")
        except Exception as e:
            failed = True
            logger.opt(exception=True).error(
                f"[BACKFILL] {chain} pagination aborted: {type(e).__name__}: {e}"
            )

        self.state = BackfillState.PROCESSING
        seen_refs: set[str] = set()
        seen_tokens: set[str] = set()
        for item in candidates:
            if item.ref in seen_refs:
                continue
            seen_refs.add(item.ref)
            await self._process_item(item, overwrite, seen_tokens, report)
            await asyncio.sleep(self._item_delay)

        self.state = BackfillState.FAILED if failed else BackfillState.DONE
        report.state = self.state
        logger.info(f"[BACKFILL] {report.summary()}")
        return report

    async def _process_item(
        self,
        item: HistoryItem,
        overwrite: bool,
        seen_tokens: set[str],
        report: BackfillReport,
    ) -> None:
        try:
            event = await self._source.event_from_history_item(item)
        except RpcError as e:
            report.failures += 1
            logger.warning(f"[BACKFILL] {report.chain} could not load {item.ref[:20]}: {e}")
            return
        except Exception as e:
            report.failures += 1
            logger.opt(exception=True).error(
                f"[BACKFILL] {report.chain} unexpected error loading {item.ref[:20]}: "
                f"{type(e).__name__}: {e}"
            )
            return
        if event is None:
            return

        report.launches_found += 1
        token_key = event.token_address
        if token_key.startswith("0x"):
            token_key = token_key.lower()
        if token_key in seen_tokens:
            report.skipped += 1
            return
        seen_tokens.add(token_key)

        try:
            if not overwrite and await self._publisher.exists(event.token_address):
                report.skipped += 1
                logger.debug(f"[BACKFILL] {event.token_address} already stored")
                return
            result = await self._pipeline.process(event, overwrite)
        except RpcError as e:
            report.failures += 1
            logger.warning(f"[BACKFILL] {report.chain} {event.token_address} failed: {e}")
            return
        except Exception as e:
            report.failures += 1
            logger.opt(exception=True).error(
                f"[BACKFILL] {report.chain} unexpected error on {event.token_address}: "
                f"{type(e).__name__}: {e}"
            )
            return

        if result is UpsertResult.INSERTED:
            report.inserted += 1
        elif result is UpsertResult.UPDATED:
            report.updated += 1
        else:
            report.skipped += 1
