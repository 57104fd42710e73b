"""Outgoing creator token transfers on Solana, from pre/post token balance diffs."""

from loguru import logger
from solders.pubkey import Pubkey  # type: ignore[import-untyped]

from src.parsers.address_registry import SOLANA_BURN_ADDRESSES
from src.parsers.models import DestinationInfo, Transfer
from src.parsers.solana.models import SolanaTransaction
from src.parsers.solana.rpc_client import SolanaRpcClient

_BURN_LOG_MARKERS = ("Instruction: Burn", "Instruction: BurnChecked")


def outgoing_transfer(tx: SolanaTransaction, owner: str, mint: str) -> Transfer | None:
    """Creator's net outflow of ``mint`` in ``tx``, with the main receiving owner.

    SPL burns have no receiver; they are attributed to the incinerator so the
    classifier reports them as burns.
    """
    if tx.meta is None:
        return None
    pre = tx.pre_balance(owner, mint)
    post = tx.post_balance(owner, mint)
    if pre is None and post is None:
        return None
    sent = (pre.raw_amount if pre else 0) - (post.raw_amount if post else 0)
    if sent <= 0:
        return None

    pre_by_index = {
        b.account_index: b.raw_amount for b in tx.meta.pre_token_balances if b.mint == mint
    }
    best_owner = ""
    best_gain = 0
    for balance in tx.meta.post_token_balances:
        if balance.mint != mint or not balance.owner or balance.owner == owner:
            continue
        gain = balance.raw_amount - pre_by_index.get(balance.account_index, 0)
        if gain > best_gain:
            best_owner, best_gain = balance.owner, gain

    if not best_owner and any(
        marker in line for line in tx.meta.log_messages for marker in _BURN_LOG_MARKERS
    ):
        best_owner = SOLANA_BURN_ADDRESSES[1]

    return Transfer(destination=best_owner, amount_raw=sent, tx_id=tx.signature, position=tx.slot)


class SolanaTransferScanner:
    """Walks the creator's recent signatures and collects outgoing transfers of one mint."""

    def __init__(self, rpc: SolanaRpcClient, *, history_limit: int = 50) -> None:
        self._rpc = rpc
        self._history_limit = history_limit

    async def outgoing_transfers(
        self, token: str, owner: str, since: int | None = None
    ) -> list[Transfer]:
        sigs = await self._rpc.get_signatures_for_address(owner, limit=self._history_limit)
        transfers: list[Transfer] = []
        for sig in sigs:
            if sig.err is not None:
                continue
            if since is not None and sig.slot < since:
                continue
            tx = await self._rpc.get_transaction(sig.signature)
            if tx is None:
                continue
            transfer = outgoing_transfer(tx, owner, token)
            if transfer is not None:
                transfers.append(transfer)
        logger.debug(
            f"[MOVES] {owner[:8]} {len(transfers)} outgoing transfers of {token[:8]} "
            f"in last {len(sigs)} txs"
        )
        return transfers

    async def inspect_destination(self, address: str) -> DestinationInfo:
        """Executable accounts and off-curve (PDA) owners count as contracts."""
        try:
            on_curve = Pubkey.from_string(address).is_on_curve()
        except ValueError:
            on_curve = True
        info = await self._rpc.get_account_info(address)
        if info is None:
            return DestinationInfo(is_contract=not on_curve)
        return DestinationInfo(is_contract=info.executable or not on_curve, program=info.owner)
