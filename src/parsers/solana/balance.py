"""Creator token balances on Solana, current or at a past slot.

Solana has no historical balance call, so a past balance is reconstructed:
  1. post-token-balances of the launch transaction itself (exact)
  2. nearest earlier transaction on the owner's token account (exact if found)
  3. the current balance, flagged approximate
Each step logs under its own tag so data quality can be audited later.
"""

from loguru import logger

from src.parsers.exceptions import RpcResponseError
from src.parsers.models import BalanceResult, BalanceSource
from src.parsers.solana.constants import DEFAULT_DECIMALS, DEFAULT_TOTAL_SUPPLY
from src.parsers.solana.models import SolanaTransaction
from src.parsers.solana.rpc_client import SolanaRpcClient


class SolanaBalanceResolver:
    def __init__(
        self,
        rpc: SolanaRpcClient,
        *,
        history_page_size: int = 100,
        history_max_pages: int = 5,
    ) -> None:
        self._rpc = rpc
        self._history_page_size = history_page_size
        self._history_max_pages = history_max_pages

    async def token_supply(self, token: str) -> tuple[int, int]:
        """Raw supply and decimals; falls back to the launchpad's fixed 1B supply."""
        try:
            return await self._rpc.get_token_supply(token)
        except RpcResponseError as e:
            logger.warning(f"[BALANCE] getTokenSupply failed for {token[:12]}, using defaults: {e}")
            return DEFAULT_TOTAL_SUPPLY * 10**DEFAULT_DECIMALS, DEFAULT_DECIMALS

    async def latest_balance(self, token: str, owner: str) -> int:
        return await self._rpc.get_token_balance(owner, token)

    async def resolve_balance(
        self,
        token: str,
        owner: str,
        at: int | None = None,
        *,
        tx_id: str | None = None,
        tx: SolanaTransaction | None = None,
    ) -> BalanceResult:
        if at is None and tx is None and tx_id is None:
            return BalanceResult(await self.latest_balance(token, owner), BalanceSource.LATEST)

        if tx is None and tx_id:
            tx = await self._rpc.get_transaction(tx_id)
        if tx is not None:
            post = tx.post_balance(owner, token)
            if post is not None:
                logger.debug(f"[BALANCE:TX_META] {owner[:8]} {post.raw_amount} in {tx.signature[:16]}")
                return BalanceResult(post.raw_amount, BalanceSource.TX_META)
            logger.info(f"[BALANCE:TX_META] no post balance for {owner[:8]} in {tx.signature[:16]}")

        if at is not None:
            raw = await self._balance_from_history(token, owner, at)
            if raw is not None:
                logger.info(f"[BALANCE:HISTORY] {owner[:8]} {raw} at or before slot {at}")
                return BalanceResult(raw, BalanceSource.ACCOUNT_HISTORY)

        raw = await self.latest_balance(token, owner)
        logger.warning(
            f"[BALANCE:CURRENT_FALLBACK] {owner[:8]} token {token[:8]}: no historical balance "
            f"for slot {at}, using current balance {raw} (approximate)"
        )
        return BalanceResult(raw, BalanceSource.CURRENT_FALLBACK, is_approximate=True)

    async def _balance_from_history(self, token: str, owner: str, at: int) -> int | None:
        """Post balance of the newest token-account transaction at or before ``at``."""
        accounts = await self._rpc.get_token_accounts_by_owner(owner, token)
        if not accounts:
            return None
        account = accounts[0].pubkey

        before: str | None = None
        for _ in range(self._history_max_pages):
            sigs = await self._rpc.get_signatures_for_address(
                account, before=before, limit=self._history_page_size
            )
            if not sigs:
                return None
            for sig in sigs:
                if sig.slot > at or sig.err is not None:
                    continue
                tx = await self._rpc.get_transaction(sig.signature)
                if tx is None:
                    continue
                post = tx.post_balance(owner, token)
                if post is not None:
                    return post.raw_amount
            if len(sigs) < self._history_page_size or sigs[-1].slot <= at:
                return None
            before = sigs[-1].signature
        return None
