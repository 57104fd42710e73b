"""Tests for LaunchPipeline: ingestion, idempotence and the stats refresh path."""

import asyncio
import struct
from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, MagicMock

import base58
import pytest

from src.parsers.address_registry import AddressKind
from src.parsers.description import render_description
from src.parsers.evm.constants import TRANSFER_TOPIC
from src.parsers.evm.models import EvmLog
from src.parsers.evm.rpc_client import topic_for_address
from src.parsers.evm.transfers import EvmTransferScanner
from src.parsers.models import BalanceResult, BalanceSource, Chain, DestinationInfo, Transfer
from src.parsers.movement_classifier import TokenMovementClassifier
from src.parsers.pipeline import ChainAdapter, LaunchPipeline, chain_for_address
from src.parsers.publisher import InMemoryLaunchPublisher, SqlLaunchPublisher, UpsertResult
from src.parsers.solana.balance import SolanaBalanceResolver
from src.parsers.solana.constants import VIRTUALS_PROGRAM_ID
from src.parsers.solana.decoder import InstructionDecoder, anchor_discriminator
from src.parsers.solana.event_source import SolanaLaunchSource
from src.parsers.solana.models import SolanaTransaction
from src.parsers.virtuals.models import VirtualsPrototype

UNIT = 10**18
DEAD = "0x000000000000000000000000000000000000dEaD"
LAUNCHED_AT = datetime(2025, 3, 4, 17, 20, tzinfo=UTC)


def _adapter(initial: int = 150_000_000 * UNIT, current: int | None = None) -> ChainAdapter:
    balances = MagicMock()
    balances.token_supply = AsyncMock(return_value=(1_000_000_000 * UNIT, 18))
    results = [BalanceResult(initial, BalanceSource.BLOCK_CALL)]
    if current is not None:
        results.append(BalanceResult(current, BalanceSource.LATEST))
    balances.resolve_balance = AsyncMock(side_effect=results)

    transfers = MagicMock()
    transfers.outgoing_transfers = AsyncMock(return_value=[])
    transfers.inspect_destination = AsyncMock(return_value=DestinationInfo(is_contract=False))
    return ChainAdapter(chain=Chain.BASE, balances=balances, transfers=transfers)


def _pipeline(registry, publisher, adapter, now: datetime, virtuals=None) -> LaunchPipeline:
    return LaunchPipeline(
        publisher=publisher,
        registry=registry,
        classifier=TokenMovementClassifier(registry),
        adapters={Chain.BASE: adapter},
        virtuals=virtuals,
        clock=lambda: now,
    )


def test_chain_for_address():
    assert chain_for_address("0xabc") is Chain.BASE
    assert chain_for_address("DoLPHiNaiXnE4uKZ3mVYqG4Jc1f8Y3GmW9vTzB2kPump") is Chain.SOLANA


# ── Ingestion ───────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_fresh_launch_is_published_once(registry, base_event):
    publisher = InMemoryLaunchPublisher()
    adapter = _adapter()
    pipeline = _pipeline(registry, publisher, adapter, LAUNCHED_AT + timedelta(minutes=5))

    first = await pipeline.process(base_event)
    second = await pipeline.process(base_event)

    assert first is UpsertResult.INSERTED
    assert second is UpsertResult.SKIPPED
    assert await publisher.list_launch_ids() == [1]

    stored = await publisher.get_launch(1)
    assert stored.creator_initial_tokens == "150000000"
    assert stored.creator_tokens_held == "150000000"
    assert stored.creator_holding_percentage == "100.00"
    # fresh launch: no current balance lookup, no transfer scan
    adapter.balances.resolve_balance.assert_awaited_once_with(
        base_event.token_address,
        base_event.creator_address,
        27_000_000,
        tx_id=base_event.tx_id,
        tx=None,
    )
    adapter.transfers.outgoing_transfers.assert_not_awaited()


@pytest.mark.asyncio
async def test_launch_pool_registered_as_selling_venue(registry, base_event):
    pipeline = _pipeline(registry, InMemoryLaunchPublisher(), _adapter(), LAUNCHED_AT)

    await pipeline.process(base_event)

    known = registry.lookup("base", base_event.selling_address)
    assert known is not None
    assert known.kind is AddressKind.LAUNCH_POOL


@pytest.mark.asyncio
async def test_old_launch_gets_current_balance_and_movements(registry, base_event):
    publisher = InMemoryLaunchPublisher()
    adapter = _adapter(current=100_000_000 * UNIT)
    adapter.transfers.outgoing_transfers.return_value = [
        Transfer(destination=DEAD, amount_raw=50_000_000 * UNIT, tx_id="0xburn")
    ]
    pipeline = _pipeline(registry, publisher, adapter, LAUNCHED_AT + timedelta(days=3))

    result = await pipeline.process(base_event)

    assert result is UpsertResult.INSERTED
    stored = await publisher.get_launch(1)
    assert stored.creator_tokens_held == "100000000"
    assert stored.creator_holding_percentage == "66.67"
    assert stored.sent_to_burn_address is True
    assert "Burned 50,000,000 tokens (Dead address)" in stored.description
    adapter.transfers.outgoing_transfers.assert_awaited_once_with(
        base_event.token_address, base_event.creator_address, since=27_000_000
    )


@pytest.mark.asyncio
async def test_overwrite_updates_existing(registry, base_event):
    publisher = InMemoryLaunchPublisher()
    pipeline = _pipeline(registry, publisher, _adapter(), LAUNCHED_AT)
    await pipeline.process(base_event)

    pipeline = _pipeline(registry, publisher, _adapter(), LAUNCHED_AT)
    result = await pipeline.process(base_event, overwrite=True)

    assert result is UpsertResult.UPDATED
    assert await publisher.list_launch_ids() == [1]


@pytest.mark.asyncio
async def test_virtuals_metadata_attached(registry, base_event):
    prototype = VirtualsPrototype.model_validate(
        {
            "id": 4242,
            "name": "Agent Smith",
            "symbol": "SMITH",
            "preToken": base_event.token_address,
            "preTokenPair": "0x4444444444444444444444444444444444444444",
            "image": {"url": "https://img.test/smith.png"},
        }
    )
    virtuals = MagicMock()
    virtuals.get_prototype = AsyncMock(return_value=prototype)
    publisher = InMemoryLaunchPublisher()
    pipeline = _pipeline(registry, publisher, _adapter(), LAUNCHED_AT, virtuals=virtuals)

    await pipeline.process(base_event)

    assert registry.lookup("base", "0x4444444444444444444444444444444444444444") is not None
    stored = await publisher.get_launch(1)
    assert stored.image_url == "https://img.test/smith.png"
    virtuals.get_prototype.assert_awaited_once_with(base_event.token_address)


# ── Refresh ─────────────────────────────────────────────────────────


def _legacy_description(token: str, creator: str) -> str:
    return render_description(
        chain=Chain.BASE,
        launchpad="Virtuals Protocol (Base)",
        name="Agent Smith",
        symbol="SMITH",
        url=f"https://app.virtuals.io/prototypes/{token}",
        token_address=token,
        creator_address=creator,
        tx_id="0x" + "ab" * 32,
        launched_at=LAUNCHED_AT,
        total_supply_display="1,000,000,000",
        initial_tokens_display="150,000,000",
        allocation="15.00%",
        tokens_held_display="150,000,000",
        holding_percentage="100.00",
        as_of=LAUNCHED_AT,
    )


@pytest.mark.asyncio
async def test_refresh_legacy_row_reads_fields_from_description(registry, base_event):
    publisher = InMemoryLaunchPublisher()
    legacy = publisher.add_stored(
        launchpad="Virtuals Protocol (Base)",
        title="Agent Smith ($SMITH)",
        description=_legacy_description(base_event.token_address, base_event.creator_address),
    )
    adapter = _adapter(initial=0)
    adapter.balances.resolve_balance = AsyncMock(
        return_value=BalanceResult(0, BalanceSource.LATEST)
    )
    adapter.transfers.outgoing_transfers.return_value = [
        Transfer(
            destination="0x4752ba5DBc23f44D87826276BF6Fd6b1C372aD24",
            amount_raw=150_000_000 * UNIT,
            tx_id="0xsell",
        )
    ]
    now = datetime(2025, 3, 10, 9, 0, tzinfo=UTC)
    pipeline = _pipeline(registry, publisher, adapter, now)

    stats = await pipeline.refresh_launch(legacy.id)

    assert stats is not None
    assert stats.tokens_held == "0"
    assert stats.holding_percentage == "0.00"
    assert stats.main_selling_address == "0x4752ba5DBc23f44D87826276BF6Fd6b1C372aD24"

    stored = await publisher.get_launch(legacy.id)
    assert stored.creator_tokens_held == "0"
    assert "Mon, 10 Mar 2025 09:00 GMT: 0 (0.00% of initial allocation)" in stored.description
    assert "Sold 150,000,000 tokens via Uniswap V2 Router" in stored.description
    assert stored.description.count("## Recent developments") == 1
    adapter.balances.resolve_balance.assert_awaited_once_with(
        base_event.token_address, base_event.creator_address
    )


def _burn_scan_rpc(creator: str, token: str, burn_block: int = 27_000_100) -> MagicMock:
    """Base RPC whose only creator Transfer is a burn at ``burn_block``."""
    burn = EvmLog.model_validate(
        {
            "address": token,
            "topics": [TRANSFER_TOPIC, topic_for_address(creator), topic_for_address(DEAD)],
            "data": "0x" + (50_000_000 * UNIT).to_bytes(32, "big").hex(),
            "blockNumber": hex(burn_block),
            "transactionHash": "0x" + "cd" * 32,
            "logIndex": "0x0",
        }
    )

    async def get_logs(address, topics, from_block, to_block):
        return [burn] if from_block <= burn_block <= to_block else []

    rpc = MagicMock()
    rpc.block_number = AsyncMock(return_value=27_000_500)
    rpc.get_logs = AsyncMock(side_effect=get_logs)
    rpc.get_code = AsyncMock(return_value="0x")
    return rpc


@pytest.mark.asyncio
async def test_refresh_scans_from_launch_block_and_keeps_burn(registry, base_event):
    publisher = InMemoryLaunchPublisher()
    rpc = _burn_scan_rpc(base_event.creator_address, base_event.token_address)
    adapter = _adapter(current=100_000_000 * UNIT)
    adapter.balances.resolve_balance.side_effect = [
        BalanceResult(150_000_000 * UNIT, BalanceSource.BLOCK_CALL),
        BalanceResult(100_000_000 * UNIT, BalanceSource.LATEST),
        BalanceResult(100_000_000 * UNIT, BalanceSource.LATEST),
    ]
    adapter = ChainAdapter(
        chain=Chain.BASE,
        balances=adapter.balances,
        transfers=EvmTransferScanner(rpc, block_window=100),
    )
    pipeline = _pipeline(registry, publisher, adapter, LAUNCHED_AT + timedelta(days=12))

    await pipeline.process(base_event)
    stored = await publisher.get_launch(1)
    assert stored.launch_position == 27_000_000
    assert stored.sent_to_burn_address is True

    rpc.get_logs.reset_mock()
    stats = await pipeline.refresh_launch(1)

    assert stats is not None
    assert stats.sent_to_burn_address is True
    assert "Burned 50,000,000 tokens (Dead address)" in stats.movement_narrative
    assert (await publisher.get_launch(1)).sent_to_burn_address is True
    first_window = rpc.get_logs.await_args_list[0].args[2:]
    assert first_window == (27_000_000, 27_000_099)


@pytest.mark.asyncio
async def test_refresh_never_clears_stored_burn_flag(registry, base_event):
    publisher = InMemoryLaunchPublisher()
    stored = publisher.add_stored(
        launchpad="Virtuals Protocol (Base)",
        token_address=base_event.token_address,
        creator_address=base_event.creator_address,
        creator_initial_tokens="150000000",
        sent_to_burn_address=True,
    )
    adapter = _adapter()
    adapter.balances.resolve_balance = AsyncMock(
        return_value=BalanceResult(150_000_000 * UNIT, BalanceSource.LATEST)
    )
    pipeline = _pipeline(registry, publisher, adapter, datetime(2025, 3, 20, tzinfo=UTC))

    stats = await pipeline.refresh_launch(stored.id)

    assert stats.sent_to_burn_address is True
    assert (await publisher.get_launch(stored.id)).sent_to_burn_address is True


@pytest.mark.asyncio
async def test_refresh_skips_rows_without_identity(registry):
    publisher = InMemoryLaunchPublisher()
    publisher.add_stored(launchpad="Virtuals Protocol (Base)", description="no fields here")
    pipeline = _pipeline(registry, publisher, _adapter(), LAUNCHED_AT)

    counts = await pipeline.refresh_all()

    assert counts == {"refreshed": 0, "skipped": 1, "failed": 0}


@pytest.mark.asyncio
async def test_refresh_missing_launch_returns_none(registry):
    pipeline = _pipeline(registry, InMemoryLaunchPublisher(), _adapter(), LAUNCHED_AT)
    assert await pipeline.refresh_launch(99) is None


@pytest.mark.asyncio
async def test_refresh_all_counts_unexpected_errors_and_continues(registry, base_event):
    publisher = InMemoryLaunchPublisher()
    for _ in range(2):
        publisher.add_stored(
            launchpad="Virtuals Protocol (Base)",
            token_address=base_event.token_address,
            creator_address=base_event.creator_address,
            creator_initial_tokens="150000000",
        )
    adapter = _adapter()
    adapter.balances.resolve_balance = AsyncMock(
        side_effect=[
            KeyError("result"),
            BalanceResult(150_000_000 * UNIT, BalanceSource.LATEST),
        ]
    )
    pipeline = _pipeline(registry, publisher, adapter, datetime(2025, 3, 20, tzinfo=UTC))

    counts = await pipeline.refresh_all()

    assert counts == {"refreshed": 1, "skipped": 0, "failed": 1}


# ── Concurrency ─────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_concurrent_duplicates_publish_one_row(registry, base_event, session_factory):
    publisher = SqlLaunchPublisher(session_factory)
    pipeline = _pipeline(registry, publisher, _adapter(), LAUNCHED_AT + timedelta(minutes=5))

    results = await asyncio.gather(pipeline.process(base_event), pipeline.process(base_event))

    assert sorted(r.value for r in results) == ["inserted", "skipped"]
    assert await publisher.list_launch_ids() == [1]


@pytest.mark.asyncio
async def test_live_and_backfill_pipelines_share_publisher_backstop(registry, base_event):
    publisher = InMemoryLaunchPublisher()
    live = _pipeline(registry, publisher, _adapter(), LAUNCHED_AT + timedelta(minutes=5))
    backfill = _pipeline(registry, publisher, _adapter(), LAUNCHED_AT + timedelta(minutes=5))

    results = await asyncio.gather(live.process(base_event), backfill.process(base_event))

    assert results.count(UpsertResult.INSERTED) == 1
    assert await publisher.list_launch_ids() == [1]


# ── Solana end to end ───────────────────────────────────────────────

SOL_CREATOR = "7xKXtg2CW87d97TXJSDpbD5jBkheTqA83TZRuJosgAsU"
SOL_CREATOR_ATA = "9WzDXwBbmkg8ZTbNMqUxvQRAyrZzDsGYdLVL9zYtAWWM"
SOL_MINT = "DoLPHiNaiXnE4uKZ3mVYqG4Jc1f8Y3GmW9vTzB2kPump"


def _solana_launch_tx() -> SolanaTransaction:
    def borsh_str(value: str) -> bytes:
        return struct.pack("<I", len(value)) + value.encode()

    data = (
        anchor_discriminator("launch")
        + borsh_str("DOLPHIN")
        + borsh_str("Dolphin Ai")
        + borsh_str("https://x.test/m.json")
    )
    keys = [SOL_CREATOR, SOL_CREATOR_ATA, SOL_MINT, VIRTUALS_PROGRAM_ID]
    launch_ix = {"programIdIndex": 3, "accounts": [0, 1, 2], "data": base58.b58encode(data).decode()}
    return SolanaTransaction.model_validate(
        {
            "slot": 320_000_000,
            "blockTime": int(LAUNCHED_AT.timestamp()),
            "transaction": {
                "signatures": ["5launchSig"],
                "message": {"accountKeys": keys, "instructions": [launch_ix]},
            },
            "meta": {
                "err": None,
                "preTokenBalances": [],
                "postTokenBalances": [
                    {
                        "accountIndex": 1,
                        "mint": SOL_MINT,
                        "owner": SOL_CREATOR,
                        "uiTokenAmount": {"amount": str(150_000_000 * 10**9), "decimals": 9},
                    }
                ],
            },
        }
    )


@pytest.mark.asyncio
async def test_solana_launch_flows_from_transaction_to_record(registry):
    rpc = MagicMock()
    rpc.get_token_supply = AsyncMock(return_value=(1_000_000_000 * 10**9, 9))
    rpc.get_transaction = AsyncMock(return_value=None)
    source = SolanaLaunchSource(rpc, InstructionDecoder.from_idl(), tx_fetch_delay=0)
    transfers = MagicMock()
    transfers.outgoing_transfers = AsyncMock(return_value=[])
    adapter = ChainAdapter(
        chain=Chain.SOLANA, balances=SolanaBalanceResolver(rpc), transfers=transfers
    )
    publisher = InMemoryLaunchPublisher()
    pipeline = LaunchPipeline(
        publisher=publisher,
        registry=registry,
        classifier=TokenMovementClassifier(registry),
        adapters={Chain.SOLANA: adapter},
        clock=lambda: LAUNCHED_AT + timedelta(minutes=2),
    )

    event = await source.event_from_transaction(_solana_launch_tx())
    result = await pipeline.process(event)

    assert result is UpsertResult.INSERTED
    stored = await publisher.get_launch(1)
    assert stored.chain is Chain.SOLANA
    assert stored.token_address == SOL_MINT
    assert stored.creator_address == SOL_CREATOR
    assert stored.launch_position == 320_000_000
    assert stored.creator_initial_tokens == "150000000"
    assert stored.creator_holding_percentage == "100.00"
    assert stored.title == "Dolphin Ai ($DOLPHIN)"
    # the decoded launch transaction is reused for the initial balance
    rpc.get_transaction.assert_not_awaited()
    transfers.outgoing_transfers.assert_not_awaited()
