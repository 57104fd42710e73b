"""Chain-agnostic launch models shared by both chain adapters and the pipeline."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class Chain(str, Enum):
    SOLANA = "solana"
    BASE = "base"


class BalanceSource(str, Enum):
    """Where a balance figure came from. Everything but LATEST/TX_META/BLOCK_CALL is a fallback."""

    LATEST = "latest"
    TX_META = "tx_meta"
    ACCOUNT_HISTORY = "account_history"
    CURRENT_FALLBACK = "current_fallback"
    BLOCK_CALL = "block_call"
    LATEST_FALLBACK = "latest_fallback"


@dataclass(frozen=True)
class BalanceResult:
    raw: int
    source: BalanceSource
    is_approximate: bool = False


class LaunchEvent(BaseModel):
    """Raw launch detected on chain. Lives only while one event is processed."""

    chain: Chain
    launchpad: str
    token_address: str
    creator_address: str
    launched_at: datetime
    tx_id: str
    position: int  # slot on Solana, block number on Base
    name: str | None = None
    symbol: str | None = None
    uri: str | None = None
    selling_address: str | None = None
    args: dict[str, Any] = {}
    # Decoded source transaction when the event source already fetched it
    transaction: Any = Field(default=None, exclude=True, repr=False)

    model_config = {"extra": "ignore", "frozen": True}


@dataclass(frozen=True)
class Transfer:
    """One outgoing token transfer from the creator."""

    destination: str
    amount_raw: int
    tx_id: str
    position: int | None = None


@dataclass(frozen=True)
class DestinationInfo:
    """What a transfer receiver looks like on chain. ``program`` is the Solana account owner."""

    is_contract: bool
    program: str | None = None


class MovementCategory(str, Enum):
    BURN = "burn"
    LOCKED = "locked"
    SOLD = "sold"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class ClassifiedTransfer:
    transfer: Transfer
    category: MovementCategory
    label: str | None = None


@dataclass
class MovementSummary:
    """Classifier output: narrative plus the burn flag and the per-category totals."""

    narrative: str
    sent_to_burn_address: bool
    classified: list[ClassifiedTransfer] = field(default_factory=list)
    other_transfers_raw: int = 0
    other_transfers_count: int = 0
    totals_raw: dict[MovementCategory, int] = field(default_factory=dict)

    @property
    def total_out_raw(self) -> int:
        return sum(c.transfer.amount_raw for c in self.classified) + self.other_transfers_raw

    @property
    def main_selling_address(self) -> str | None:
        sold = [c for c in self.classified if c.category is MovementCategory.SOLD]
        if not sold:
            return None
        return max(sold, key=lambda c: c.transfer.amount_raw).transfer.destination


class TokenStats(BaseModel):
    """Mutable half of a launch record, recomputed on every refresh."""

    tokens_held: str
    holding_percentage: str
    movement_narrative: str = ""
    sent_to_burn_address: bool = False
    main_selling_address: str | None = None
    updated_at: datetime
    balance_source: BalanceSource = BalanceSource.LATEST
    is_approximate: bool = False

    model_config = {"extra": "ignore", "frozen": True}


class LaunchRecord(BaseModel):
    """Canonical output handed to the publisher."""

    launchpad: str
    chain: Chain
    title: str
    url: str
    creator_address: str
    token_address: str
    launchpad_specific_id: str | None = None
    description: str
    launched_at: datetime
    image_url: str | None = None
    tx_id: str
    launch_position: int | None = None
    total_token_supply: str
    creator_initial_tokens: str
    tokens_for_sale: str
    creator_tokens_held: str
    creator_holding_percentage: str
    creator_allocation: str
    movement_narrative: str = ""
    sent_to_burn_address: bool = False
    main_selling_address: str | None = None
    balance_source: BalanceSource = BalanceSource.TX_META
    balance_is_approximate: bool = False
    token_stats_updated_at: datetime

    model_config = {"extra": "ignore", "frozen": True}

    def with_stats(self, stats: TokenStats) -> "LaunchRecord":
        """New record carrying refreshed stats; identity fields stay put."""
        return self.model_copy(
            update={
                "creator_tokens_held": stats.tokens_held,
                "creator_holding_percentage": stats.holding_percentage,
                "movement_narrative": stats.movement_narrative,
                "sent_to_burn_address": stats.sent_to_burn_address,
                "main_selling_address": stats.main_selling_address or self.main_selling_address,
                "balance_source": stats.balance_source,
                "balance_is_approximate": stats.is_approximate,
                "token_stats_updated_at": stats.updated_at,
            }
        )
