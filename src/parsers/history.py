"""Backwards pagination over a chain's launchpad history.

Both chains page newest-to-oldest: Solana by signature cursor, Base by block
window. A source yields HistoryPage objects; this module adds page-size
shrinking on storage-window errors and slot/block range filtering, and is
used both by the sources' lazy historical mode and by the backfill run.
"""

import asyncio
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from typing import Any, Protocol

from loguru import logger

from src.parsers.exceptions import StorageWindowError
from src.parsers.models import Chain, LaunchEvent


@dataclass(frozen=True)
class HistoryItem:
    """One candidate in the history: a signature (Solana) or a log (Base)."""

    ref: str
    position: int
    payload: Any = None


@dataclass
class HistoryPage:
    items: list[HistoryItem] = field(default_factory=list)  # newest first
    next_cursor: Any = None
    oldest_position: int | None = None
    exhausted: bool = False


class HistorySource(Protocol):
    chain: Chain

    async def fetch_history_page(
        self, cursor: Any, limit: int, start: int, end: int | None
    ) -> HistoryPage: ...

    async def event_from_history_item(self, item: HistoryItem) -> LaunchEvent | None: ...


def filter_page(page: HistoryPage, start: int, end: int | None) -> tuple[list[HistoryItem], bool]:
    """Items of ``page`` inside [start, end] and whether pagination has passed ``start``."""
    in_range = [
        item
        for item in page.items
        if item.position >= start and (end is None or item.position <= end)
    ]
    passed_start = page.oldest_position is not None and page.oldest_position < start
    return in_range, passed_start


async def fetch_page_with_shrink(
    source: HistorySource,
    cursor: Any,
    limit: int,
    start: int,
    end: int | None,
    *,
    max_retries: int = 3,
    retry_delay: float = 2.0,
) -> tuple[HistoryPage, int]:
    """Fetch one page, halving ``limit`` on storage-window errors.

    Returns the page and the limit that worked, so later pages keep the
    smaller size. Raises the last StorageWindowError once the budget is spent.
    """
    attempt = 0
    while True:
        try:
            return await source.fetch_history_page(cursor, limit, start, end), limit
        except StorageWindowError as e:
            attempt += 1
            if attempt > max_retries or limit <= 1:
                raise
            limit = max(1, limit // 2)
            delay = retry_delay * 2 ** (attempt - 1)
            logger.warning(
                f"[HISTORY] {source.chain.value} storage window error, page size -> {limit}, "
                f"retry {attempt}/{max_retries} in {delay:.1f}s: {e.message}"
            )
            await asyncio.sleep(delay)


async def paginate(
    source: HistorySource,
    start: int,
    end: int | None = None,
    *,
    page_size: int = 100,
    page_delay: float = 0.5,
    max_retries: int = 3,
    retry_delay: float = 2.0,
) -> AsyncIterator[list[HistoryItem]]:
    """Yield in-range items page by page until the window's lower bound is passed."""
    cursor: Any = None
    limit = page_size
    while True:
        page, limit = await fetch_page_with_shrink(
            source, cursor, limit, start, end, max_retries=max_retries, retry_delay=retry_delay
        )
        in_range, passed_start = filter_page(page, start, end)
        if in_range:
            yield in_range
        if passed_start or page.exhausted or page.next_cursor is None:
            return
        cursor = page.next_cursor
        await asyncio.sleep(page_delay)


async def iter_events(
    source: HistorySource, start: int, end: int | None = None, **kwargs: Any
) -> AsyncIterator[LaunchEvent]:
    """Lazy launch events in [start, end]; every call starts a fresh pagination."""
    async for items in paginate(source, start, end, **kwargs):
        for item in items:
            event = await source.event_from_history_item(item)
            if event is not None:
                yield event
