"""Classify the creator's outgoing token transfers into burn / locked / sold / unknown.

Only the largest ``top_n`` transfers are inspected in detail (each may cost an
RPC call); the rest are summed into one "other transfers" line. Burn sinks are
a constant registry lookup and are checked for every transfer.
"""

from collections.abc import Awaitable, Callable

from loguru import logger

from src.parsers.address_registry import AddressKind, AddressRegistry
from src.parsers.exceptions import RpcError
from src.parsers.models import (
    ClassifiedTransfer,
    DestinationInfo,
    MovementCategory,
    MovementSummary,
    Transfer,
)
from src.parsers.token_math import format_token_balance, to_whole_units

DestinationInspector = Callable[[str], Awaitable[DestinationInfo]]

NO_TRANSFERS_NARRATIVE = (
    "No outgoing transfers found despite a balance reduction - possible contract interaction"
)
BURN_NOTE = (
    "Tokens sent to a burn address usually mean the token graduated to a new token "
    "address, not necessarily a red flag"
)

_KIND_TO_CATEGORY = {
    AddressKind.LOCK: MovementCategory.LOCKED,
    AddressKind.DEX: MovementCategory.SOLD,
    AddressKind.LAUNCH_POOL: MovementCategory.SOLD,
}


def short_address(address: str) -> str:
    if len(address) <= 12:
        return address
    return f"{address[:6]}...{address[-4:]}"


class TokenMovementClassifier:
    def __init__(self, registry: AddressRegistry, *, top_n: int = 10) -> None:
        self._registry = registry
        self._top_n = top_n

    async def classify(
        self,
        chain: str,
        creator: str,
        token: str,
        balance_delta_raw: int,
        transfers: list[Transfer],
        decimals: int,
        *,
        inspector: DestinationInspector | None = None,
    ) -> MovementSummary:
        """Narrative for the creator's outflows. ``balance_delta_raw`` is current minus initial."""
        if balance_delta_raw == 0:
            return MovementSummary(narrative="", sent_to_burn_address=False)

        outgoing = sorted(
            (t for t in transfers if t.amount_raw > 0),
            key=lambda t: t.amount_raw,
            reverse=True,
        )
        if not outgoing:
            narrative = NO_TRANSFERS_NARRATIVE if balance_delta_raw < 0 else ""
            return MovementSummary(narrative=narrative, sent_to_burn_address=False)

        detailed: list[ClassifiedTransfer] = []
        rest: list[Transfer] = []
        for index, transfer in enumerate(outgoing):
            known = self._registry.lookup(chain, transfer.destination) if transfer.destination else None
            if known is not None and known.kind is AddressKind.BURN:
                detailed.append(
                    ClassifiedTransfer(transfer, MovementCategory.BURN, known.label)
                )
            elif index < self._top_n:
                detailed.append(await self._classify_one(chain, transfer, inspector))
            else:
                rest.append(transfer)

        summary = MovementSummary(
            narrative="",
            sent_to_burn_address=any(c.category is MovementCategory.BURN for c in detailed),
            classified=detailed,
            other_transfers_raw=sum(t.amount_raw for t in rest),
            other_transfers_count=len(rest),
        )
        for item in detailed:
            summary.totals_raw[item.category] = (
                summary.totals_raw.get(item.category, 0) + item.transfer.amount_raw
            )
        summary.narrative = self._narrative(summary, decimals)
        logger.debug(
            f"[MOVES] {creator[:10]} {token[:10]}: {len(detailed)} classified, "
            f"{len(rest)} other, burn={summary.sent_to_burn_address}"
        )
        return summary

    async def _classify_one(
        self, chain: str, transfer: Transfer, inspector: DestinationInspector | None
    ) -> ClassifiedTransfer:
        destination = transfer.destination
        if not destination:
            return ClassifiedTransfer(transfer, MovementCategory.UNKNOWN)

        known = self._registry.lookup(chain, destination)
        if known is not None and known.kind in _KIND_TO_CATEGORY:
            return ClassifiedTransfer(transfer, _KIND_TO_CATEGORY[known.kind], known.label)

        if inspector is None:
            return ClassifiedTransfer(transfer, MovementCategory.UNKNOWN)

        try:
            info = await inspector(destination)
        except RpcError as e:
            logger.debug(f"[MOVES] Could not inspect {destination}: {e}")
            return ClassifiedTransfer(transfer, MovementCategory.UNKNOWN)

        # A Solana token account's owner program can itself be a known locker or DEX.
        # System Program ownership is a plain wallet and must not read as a burn.
        if info.program:
            owner = self._registry.lookup(chain, info.program)
            if owner is not None and owner.kind in _KIND_TO_CATEGORY:
                return ClassifiedTransfer(transfer, _KIND_TO_CATEGORY[owner.kind], owner.label)

        if info.is_contract:
            return ClassifiedTransfer(transfer, MovementCategory.SOLD, None)
        return ClassifiedTransfer(transfer, MovementCategory.UNKNOWN)

    def _narrative(self, summary: MovementSummary, decimals: int) -> str:
        lines: list[str] = []
        for item in summary.classified:
            amount = format_token_balance(to_whole_units(item.transfer.amount_raw, decimals))
            dest = short_address(item.transfer.destination) if item.transfer.destination else ""
            if item.category is MovementCategory.BURN:
                lines.append(f"- Burned {amount} tokens ({item.label or dest})")
            elif item.category is MovementCategory.LOCKED:
                lines.append(f"- Locked {amount} tokens in {item.label or dest}")
            elif item.category is MovementCategory.SOLD and item.label:
                lines.append(f"- Sold {amount} tokens via {item.label}")
            elif item.category is MovementCategory.SOLD:
                lines.append(
                    f"- Sent {amount} tokens to a contract ({dest}), probable sale or liquidity add"
                )
            elif dest:
                lines.append(f"- Transferred {amount} tokens to {dest}")
            else:
                lines.append(f"- Transferred out {amount} tokens (destination unclear)")

        if summary.other_transfers_count:
            amount = format_token_balance(to_whole_units(summary.other_transfers_raw, decimals))
            lines.append(
                f"- {summary.other_transfers_count} other transfers totalling {amount} tokens"
            )
        if summary.sent_to_burn_address:
            lines.append(BURN_NOTE)
        return "\n".join(lines)
