"""LaunchEvent + on-chain figures -> canonical LaunchRecord.

Pure: no I/O, no clock. The "as of" moment is passed in, so the same inputs
always give the same record.
"""

from dataclasses import dataclass
from datetime import datetime

from src.parsers.description import render_description
from src.parsers.evm import constants as evm
from src.parsers.models import (
    BalanceSource,
    Chain,
    LaunchEvent,
    LaunchRecord,
    MovementSummary,
    TokenStats,
)
from src.parsers.solana import constants as svm
from src.parsers.token_math import (
    allocation_percentage,
    format_token_balance,
    holding_percentage,
    to_whole_units,
    tokens_for_sale,
)


@dataclass(frozen=True)
class TokenFigures:
    """Raw on-chain numbers for one launch, all in smallest units."""

    total_supply_raw: int
    decimals: int
    initial_raw: int
    current_raw: int
    balance_source: BalanceSource = BalanceSource.TX_META
    is_approximate: bool = False


@dataclass(frozen=True)
class OffChainMetadata:
    image_url: str | None = None
    launchpad_specific_id: str | None = None


def launch_url(chain: Chain, token_address: str) -> str:
    if chain is Chain.SOLANA:
        return svm.PROTOTYPE_URL.format(mint=token_address)
    return evm.PROTOTYPE_URL.format(token=token_address)


def launch_title(name: str, symbol: str) -> str:
    return f"{name} (${symbol})"


def build_token_stats(
    figures: TokenFigures, movement: MovementSummary | None, as_of: datetime
) -> TokenStats:
    return TokenStats(
        tokens_held=str(to_whole_units(figures.current_raw, figures.decimals)),
        holding_percentage=holding_percentage(figures.current_raw, figures.initial_raw),
        movement_narrative=movement.narrative if movement else "",
        sent_to_burn_address=movement.sent_to_burn_address if movement else False,
        main_selling_address=movement.main_selling_address if movement else None,
        updated_at=as_of,
        balance_source=figures.balance_source,
        is_approximate=figures.is_approximate,
    )


class LaunchEventNormalizer:
    def build_record(
        self,
        event: LaunchEvent,
        figures: TokenFigures,
        movement: MovementSummary | None,
        *,
        as_of: datetime,
        metadata: OffChainMetadata | None = None,
    ) -> LaunchRecord:
        metadata = metadata or OffChainMetadata()
        name = event.name or event.symbol or event.token_address
        symbol = event.symbol or ""

        supply = to_whole_units(figures.total_supply_raw, figures.decimals)
        initial = to_whole_units(figures.initial_raw, figures.decimals)
        stats = build_token_stats(figures, movement, as_of)
        allocation = allocation_percentage(figures.initial_raw, figures.total_supply_raw)
        url = launch_url(event.chain, event.token_address)
        main_selling = stats.main_selling_address or event.selling_address

        description = render_description(
            chain=event.chain,
            launchpad=event.launchpad,
            name=name,
            symbol=symbol,
            url=url,
            token_address=event.token_address,
            creator_address=event.creator_address,
            tx_id=event.tx_id,
            launched_at=event.launched_at,
            total_supply_display=format_token_balance(supply),
            initial_tokens_display=format_token_balance(initial),
            allocation=allocation,
            tokens_held_display=format_token_balance(stats.tokens_held),
            holding_percentage=stats.holding_percentage,
            as_of=as_of,
            movement_narrative=stats.movement_narrative,
            liquidity_address=event.selling_address,
        )

        return LaunchRecord(
            launchpad=event.launchpad,
            chain=event.chain,
            title=launch_title(name, symbol),
            url=url,
            creator_address=event.creator_address,
            token_address=event.token_address,
            launchpad_specific_id=metadata.launchpad_specific_id,
            description=description,
            launched_at=event.launched_at,
            image_url=metadata.image_url,
            tx_id=event.tx_id,
            launch_position=event.position,
            total_token_supply=str(supply),
            creator_initial_tokens=str(initial),
            tokens_for_sale=str(tokens_for_sale(supply, initial)),
            creator_tokens_held=stats.tokens_held,
            creator_holding_percentage=stats.holding_percentage,
            creator_allocation=allocation,
            movement_narrative=stats.movement_narrative,
            sent_to_burn_address=stats.sent_to_burn_address,
            main_selling_address=main_selling,
            balance_source=stats.balance_source,
            balance_is_approximate=stats.is_approximate,
            token_stats_updated_at=as_of,
        )
