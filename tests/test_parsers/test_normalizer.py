"""Tests for LaunchEventNormalizer and the description renderer."""

from datetime import UTC, datetime, timedelta, timezone

from src.parsers.description import (
    extract_description_fields,
    format_utc,
    replace_recent_developments,
)
from src.parsers.models import BalanceSource, Chain, MovementSummary
from src.parsers.normalizer import (
    LaunchEventNormalizer,
    OffChainMetadata,
    TokenFigures,
    launch_title,
    launch_url,
)

BASE_TOKEN = "0x1111111111111111111111111111111111111111"
BASE_CREATOR = "0x2222222222222222222222222222222222222222"
BASE_PAIR = "0x3333333333333333333333333333333333333333"
AS_OF = datetime(2025, 3, 4, 17, 30, tzinfo=UTC)
UNIT = 10**18


def _figures(current_whole: int = 150_000_000) -> TokenFigures:
    return TokenFigures(
        total_supply_raw=1_000_000_000 * UNIT,
        decimals=18,
        initial_raw=150_000_000 * UNIT,
        current_raw=current_whole * UNIT,
    )


# ── Record fields ───────────────────────────────────────────────────


def test_base_launch_record(base_event):
    record = LaunchEventNormalizer().build_record(base_event, _figures(), None, as_of=AS_OF)

    assert record.chain is Chain.BASE
    assert record.title == "Agent Smith ($SMITH)"
    assert record.url == f"https://app.virtuals.io/prototypes/{BASE_TOKEN}"
    assert record.total_token_supply == "1000000000"
    assert record.creator_initial_tokens == "150000000"
    assert record.tokens_for_sale == "850000000"
    assert record.creator_allocation == "15.00%"
    assert record.creator_tokens_held == "150000000"
    assert record.creator_holding_percentage == "100.00"
    assert record.movement_narrative == ""
    assert record.sent_to_burn_address is False
    assert record.main_selling_address == BASE_PAIR
    assert record.balance_source is BalanceSource.TX_META
    assert record.token_stats_updated_at == AS_OF


def test_metadata_carried_through(base_event):
    metadata = OffChainMetadata(image_url="https://img.test/a.png", launchpad_specific_id="4242")
    record = LaunchEventNormalizer().build_record(
        base_event, _figures(), None, as_of=AS_OF, metadata=metadata
    )
    assert record.image_url == "https://img.test/a.png"
    assert record.launchpad_specific_id == "4242"


def test_movement_summary_drives_stats(base_event):
    movement = MovementSummary(narrative="- Burned 50,000,000 tokens (Dead address)", sent_to_burn_address=True)
    record = LaunchEventNormalizer().build_record(
        base_event, _figures(current_whole=100_000_000), movement, as_of=AS_OF
    )

    assert record.creator_tokens_held == "100000000"
    assert record.creator_holding_percentage == "66.67"
    assert record.sent_to_burn_address is True
    assert "- Burned 50,000,000 tokens" in record.description


def test_build_record_is_deterministic(base_event):
    normalizer = LaunchEventNormalizer()
    first = normalizer.build_record(base_event, _figures(), None, as_of=AS_OF)
    second = normalizer.build_record(base_event, _figures(), None, as_of=AS_OF)
    assert first == second


def test_title_and_url_helpers():
    assert launch_title("Dolphin Ai", "DOLPHIN") == "Dolphin Ai ($DOLPHIN)"
    assert launch_url(Chain.SOLANA, "Mint111") == "https://app.virtuals.io/prototypes/Mint111"


# ── Description layout ──────────────────────────────────────────────


def test_description_sections_in_order(base_event):
    description = LaunchEventNormalizer().build_record(
        base_event, _figures(), None, as_of=AS_OF
    ).description

    positions = [
        description.index("# Agent Smith"),
        description.index("## Token details and tokenomics"),
        description.index("## Creator info"),
        description.index("## Recent developments"),
    ]
    assert positions == sorted(positions)
    assert "Launched at: Tue, 04 Mar 2025 17:20 GMT" in description
    assert f"Launched in transaction: https://basescan.org/tx/{base_event.tx_id}" in description
    assert "Token supply: 1,000,000,000" in description
    assert "Creator initial number of tokens: 150,000,000 (15.00% of token supply)" in description
    assert f"Liquidity contract: https://basescan.org/address/{BASE_PAIR}" in description
    assert f"Creator on basescan.org: https://basescan.org/address/{BASE_CREATOR}" in description
    assert (
        "Number of tokens held as of Tue, 04 Mar 2025 17:30 GMT: "
        "150,000,000 (100.00% of initial allocation)"
    ) in description


def test_not_available_percentage_omits_suffix(base_event):
    figures = TokenFigures(total_supply_raw=10 * UNIT, decimals=18, initial_raw=0, current_raw=0)
    description = LaunchEventNormalizer().build_record(
        base_event, figures, None, as_of=AS_OF
    ).description

    assert "Number of tokens held as of Tue, 04 Mar 2025 17:30 GMT: 0\n" in description + "\n"
    assert "of initial allocation" not in description


def test_format_utc_treats_naive_as_utc():
    assert format_utc(datetime(2025, 1, 2, 3, 4)) == "Thu, 02 Jan 2025 03:04 GMT"


def test_format_utc_converts_offset_times():
    berlin = timezone(timedelta(hours=1))
    assert format_utc(datetime(2025, 1, 2, 4, 4, tzinfo=berlin)) == "Thu, 02 Jan 2025 03:04 GMT"


# ── Read-back and refresh ───────────────────────────────────────────


def test_extract_fields_from_rendered_description(base_event):
    description = LaunchEventNormalizer().build_record(
        base_event, _figures(), None, as_of=AS_OF
    ).description

    fields = extract_description_fields(description)

    assert fields.token_address == BASE_TOKEN
    assert fields.creator_address == BASE_CREATOR
    assert fields.creator_initial_tokens == "150000000"


def test_extract_fields_from_unrelated_text():
    fields = extract_description_fields("Just some words\nwithout any addresses")
    assert fields.token_address is None
    assert fields.creator_address is None
    assert fields.creator_initial_tokens is None


def test_replace_recent_developments_keeps_head(base_event):
    original = LaunchEventNormalizer().build_record(
        base_event, _figures(), None, as_of=AS_OF
    ).description
    later = datetime(2025, 3, 10, 9, 0, tzinfo=UTC)

    updated = replace_recent_developments(
        original,
        tokens_held_display="0",
        holding_percentage="0.00",
        as_of=later,
        movement_narrative="- Sold 150,000,000 tokens via Uniswap V2 Router",
    )

    head = original.partition("## Recent developments")[0]
    assert updated.startswith(head.rstrip())
    assert updated.count("## Recent developments") == 1
    assert "Mon, 10 Mar 2025 09:00 GMT: 0 (0.00% of initial allocation)" in updated
    assert updated.endswith("- Sold 150,000,000 tokens via Uniswap V2 Router")
    assert "100.00% of initial allocation" not in updated
