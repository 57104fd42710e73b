"""Tests for the historical backlog processor."""

from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from sqlalchemy.exc import OperationalError

from src.parsers.backfill import BackfillState, HistoricalBacklogProcessor
from src.parsers.exceptions import StorageWindowError, TransientRpcError
from src.parsers.history import HistoryItem, HistoryPage
from src.parsers.models import Chain, LaunchEvent
from src.parsers.publisher import UpsertResult


def _event(token: str, position: int) -> LaunchEvent:
    return LaunchEvent(
        chain=Chain.SOLANA,
        launchpad="Virtuals Protocol (Solana)",
        token_address=token,
        creator_address="7xKXtg2CW87d97TXJSDpbD5jBkheTqA83TZRuJosgAsU",
        launched_at=datetime(2025, 3, 4, 17, 20, tzinfo=UTC),
        tx_id=f"sig-{token}",
        position=position,
        name=token,
        symbol=token[:4].upper(),
    )


def _item(ref: str, position: int, token: str | None) -> HistoryItem:
    return HistoryItem(ref=ref, position=position, payload=token)


class FakeSource:
    chain = Chain.SOLANA

    def __init__(self, pages: list) -> None:
        self.fetch_history_page = AsyncMock(side_effect=pages)
        self.event_from_history_item = AsyncMock(side_effect=self._event)

    async def _event(self, item: HistoryItem) -> LaunchEvent | None:
        if item.payload is None:
            return None
        return _event(item.payload, item.position)


def _processor(source, *, exists=False, results=None):
    pipeline = MagicMock()
    pipeline.process = AsyncMock(side_effect=results or (lambda event, overwrite: UpsertResult.INSERTED))
    publisher = MagicMock()
    publisher.exists = AsyncMock(return_value=exists)
    processor = HistoricalBacklogProcessor(
        source, pipeline, publisher, page_size=10, page_delay=0, item_delay=0, retry_delay=0
    )
    return processor, pipeline, publisher


@pytest.mark.asyncio
async def test_backfill_processes_range_and_dedups():
    pages = [
        HistoryPage(
            items=[
                _item("sigA", 950, None),  # above end
                _item("sigB", 900, "TokenB"),
                _item("sigC", 850, "TokenC"),
            ],
            next_cursor="sigC",
            oldest_position=850,
        ),
        HistoryPage(
            items=[
                _item("sigC", 850, "TokenC"),  # repeated across pages
                _item("sigD", 800, "TokenB"),  # same token, second transaction
                _item("sigE", 700, "TokenE"),
                _item("sigF", 400, "TokenF"),  # below start
            ],
            next_cursor="sigF",
            oldest_position=400,
        ),
    ]
    source = FakeSource(pages)
    processor, pipeline, _ = _processor(source)

    report = await processor.run(500, 920)

    processed = [call.args[0].token_address for call in pipeline.process.await_args_list]
    assert processed == ["TokenB", "TokenC", "TokenE"]
    assert report.state is BackfillState.DONE
    assert processor.state is BackfillState.DONE
    assert report.items_scanned == 7
    assert report.launches_found == 4
    assert report.inserted == 3
    assert report.skipped == 1
    assert source.fetch_history_page.await_count == 2


@pytest.mark.asyncio
async def test_backfill_skips_stored_unless_overwrite():
    page = HistoryPage(items=[_item("sig1", 600, "Token1")], oldest_position=600, exhausted=True)

    processor, pipeline, _ = _processor(FakeSource([page]), exists=True)
    report = await processor.run(500)
    assert report.skipped == 1
    pipeline.process.assert_not_awaited()

    processor, pipeline, publisher = _processor(
        FakeSource([page]), exists=True, results=[UpsertResult.UPDATED]
    )
    report = await processor.run(500, overwrite=True)
    assert report.updated == 1
    publisher.exists.assert_not_awaited()
    pipeline.process.assert_awaited_once()
    assert pipeline.process.await_args.args[1] is True


@pytest.mark.asyncio
async def test_backfill_counts_item_failures_and_continues():
    page = HistoryPage(
        items=[_item("sig1", 700, "Token1"), _item("sig2", 600, "Token2")],
        oldest_position=600,
        exhausted=True,
    )
    processor, pipeline, _ = _processor(
        FakeSource([page]),
        results=[TransientRpcError("timeout"), UpsertResult.INSERTED],
    )

    report = await processor.run(500)

    assert report.failures == 1
    assert report.inserted == 1
    assert report.state is BackfillState.DONE


@pytest.mark.asyncio
async def test_pagination_failure_keeps_collected_items():
    first = HistoryPage(
        items=[_item("sig1", 900, "Token1")], next_cursor="sig1", oldest_position=900
    )
    storage_error = StorageWindowError("getSignaturesForAddress", -32019, "long-term storage")
    source = FakeSource([first] + [storage_error] * 4)
    processor, pipeline, _ = _processor(source)

    with patch("src.parsers.history.asyncio.sleep", new=AsyncMock()):
        report = await processor.run(100)

    assert report.state is BackfillState.FAILED
    assert report.inserted == 1
    pipeline.process.assert_awaited_once()
    assert "failed" in report.summary()


@pytest.mark.asyncio
async def test_backfill_survives_database_errors():
    page = HistoryPage(
        items=[_item("sig1", 700, "Token1"), _item("sig2", 600, "Token2")],
        oldest_position=600,
        exhausted=True,
    )
    processor, pipeline, _ = _processor(
        FakeSource([page]),
        results=[
            OperationalError("INSERT INTO launches", {}, Exception("database is locked")),
            UpsertResult.INSERTED,
        ],
    )

    report = await processor.run(500)

    assert pipeline.process.await_count == 2
    assert report.failures == 1
    assert report.inserted == 1
    assert report.state is BackfillState.DONE


@pytest.mark.asyncio
async def test_backfill_survives_undecodable_history_item():
    page = HistoryPage(
        items=[_item("sig1", 700, "Token1"), _item("sig2", 600, "Token2")],
        oldest_position=600,
        exhausted=True,
    )
    source = FakeSource([page])
    source.event_from_history_item.side_effect = [KeyError("accountKeys"), _event("Token2", 600)]
    processor, pipeline, _ = _processor(source)

    report = await processor.run(500)

    assert report.failures == 1
    assert report.inserted == 1
    pipeline.process.assert_awaited_once()
