"""Solana JSON-RPC client. Every method dispatches through the shared rate limiter."""

from typing import Any

from loguru import logger

from src.parsers.jsonrpc import JsonRpcTransport
from src.parsers.rate_limiter import RateLimitedRpcClient
from src.parsers.solana.models import (
    AccountInfo,
    SignatureInfo,
    SolanaTransaction,
    TokenAccount,
)


class SolanaRpcClient:
    """Typed wrapper over the Solana RPC methods the scanner uses."""

    def __init__(
        self,
        rpc_url: str,
        limiter: RateLimitedRpcClient,
        *,
        commitment: str = "confirmed",
        timeout: float = 15.0,
    ) -> None:
        self._rpc = JsonRpcTransport(rpc_url, limiter, timeout=timeout, tag="SVM")
        self._commitment = commitment

    async def close(self) -> None:
        await self._rpc.close()

    async def get_slot(self) -> int:
        return int(await self._rpc.call("getSlot", [{"commitment": self._commitment}]))

    async def get_signatures_for_address(
        self,
        address: str,
        *,
        before: str | None = None,
        until: str | None = None,
        limit: int = 100,
    ) -> list[SignatureInfo]:
        """Newest-first signature page for ``address``."""
        opts: dict[str, Any] = {"limit": min(limit, 1000), "commitment": self._commitment}
        if before:
            opts["before"] = before
        if until:
            opts["until"] = until
        result = await self._rpc.call("getSignaturesForAddress", [address, opts])
        return [SignatureInfo.model_validate(item) for item in result or []]

    async def get_transaction(self, signature: str) -> SolanaTransaction | None:
        result = await self._rpc.call(
            "getTransaction",
            [
                signature,
                {
                    "encoding": "json",
                    "commitment": self._commitment,
                    "maxSupportedTransactionVersion": 0,
                },
            ],
        )
        if result is None:
            return None
        return SolanaTransaction.model_validate(result)

    async def get_block_time(self, slot: int) -> int | None:
        result = await self._rpc.call("getBlockTime", [slot])
        return int(result) if result is not None else None

    async def get_account_info(self, address: str) -> AccountInfo | None:
        result = await self._rpc.call(
            "getAccountInfo",
            [address, {"encoding": "base64", "commitment": self._commitment}],
        )
        value = (result or {}).get("value")
        if not value:
            return None
        return AccountInfo.model_validate(value)

    async def get_token_accounts_by_owner(self, owner: str, mint: str) -> list[TokenAccount]:
        result = await self._rpc.call(
            "getTokenAccountsByOwner",
            [
                owner,
                {"mint": mint},
                {"encoding": "jsonParsed", "commitment": self._commitment},
            ],
        )
        accounts: list[TokenAccount] = []
        for item in (result or {}).get("value", []):
            try:
                info = item["account"]["data"]["parsed"]["info"]
                token_amount = info["tokenAmount"]
                accounts.append(
                    TokenAccount(
                        pubkey=item["pubkey"],
                        mint=info["mint"],
                        owner=info["owner"],
                        amount=int(token_amount["amount"]),
                        decimals=int(token_amount["decimals"]),
                    )
                )
            except (KeyError, TypeError, ValueError) as e:
                logger.debug(f"[SVM] Unparseable token account for {owner[:12]}: {e}")
        return accounts

    async def get_token_account_balance(self, token_account: str) -> int:
        result = await self._rpc.call(
            "getTokenAccountBalance", [token_account, {"commitment": self._commitment}]
        )
        return int(result["value"]["amount"])

    async def get_token_supply(self, mint: str) -> tuple[int, int]:
        """Raw supply and decimals of ``mint``."""
        result = await self._rpc.call(
            "getTokenSupply", [mint, {"commitment": self._commitment}]
        )
        value = result["value"]
        return int(value["amount"]), int(value["decimals"])

    async def get_token_balance(self, owner: str, mint: str) -> int:
        """Current raw balance of ``owner`` summed over its token accounts for ``mint``."""
        accounts = await self.get_token_accounts_by_owner(owner, mint)
        return sum(acc.amount for acc in accounts)
