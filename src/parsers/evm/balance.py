"""Creator ERC-20 balances on Base, current or pinned to a block."""

from eth_abi.exceptions import DecodingError
from loguru import logger

from src.parsers.evm.constants import DEFAULT_DECIMALS, DEFAULT_TOTAL_SUPPLY
from src.parsers.evm.rpc_client import EvmRpcClient
from src.parsers.exceptions import RpcResponseError
from src.parsers.models import BalanceResult, BalanceSource


class EvmBalanceResolver:
    def __init__(self, rpc: EvmRpcClient) -> None:
        self._rpc = rpc

    async def token_supply(self, token: str) -> tuple[int, int]:
        """Raw totalSupply and decimals; falls back to the launchpad's fixed 1B supply."""
        try:
            decimals = await self._rpc.decimals(token)
        except (RpcResponseError, DecodingError) as e:
            logger.warning(f"[BALANCE] decimals() failed for {token}, assuming {DEFAULT_DECIMALS}: {e}")
            decimals = DEFAULT_DECIMALS
        try:
            supply = await self._rpc.total_supply(token)
        except (RpcResponseError, DecodingError) as e:
            logger.warning(f"[BALANCE] totalSupply() failed for {token}, assuming 1B: {e}")
            supply = DEFAULT_TOTAL_SUPPLY * 10**decimals
        return supply, decimals

    async def latest_balance(self, token: str, owner: str) -> int:
        return await self._rpc.balance_of(token, owner)

    async def resolve_balance(
        self,
        token: str,
        owner: str,
        at: int | None = None,
        *,
        tx_id: str | None = None,
        tx: object | None = None,
    ) -> BalanceResult:
        if at is None:
            return BalanceResult(await self.latest_balance(token, owner), BalanceSource.LATEST)

        try:
            raw = await self._rpc.balance_of(token, owner, block=at)
            return BalanceResult(raw, BalanceSource.BLOCK_CALL)
        except (RpcResponseError, DecodingError) as e:
            logger.warning(
                f"[BALANCE:LATEST_FALLBACK] balanceOf({owner[:10]}) at block {at} unavailable, "
                f"using latest (approximate): {e}"
            )

        raw = await self.latest_balance(token, owner)
        return BalanceResult(raw, BalanceSource.LATEST_FALLBACK, is_approximate=True)
