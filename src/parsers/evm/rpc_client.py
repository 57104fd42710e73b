"""Base (EVM) JSON-RPC client with ERC-20 read helpers.

Calls go over the shared rate-limited JSON-RPC transport; web3/eth_abi are
used for ABI encoding, decoding and checksumming only.
"""

from typing import Any

from eth_abi import encode as abi_encode
from eth_abi.abi import decode as abi_decode
from web3 import Web3

from src.parsers.evm.constants import (
    SELECTOR_BALANCE_OF,
    SELECTOR_DECIMALS,
    SELECTOR_NAME,
    SELECTOR_SYMBOL,
    SELECTOR_TOTAL_SUPPLY,
)
from src.parsers.evm.models import EvmLog
from src.parsers.jsonrpc import JsonRpcTransport
from src.parsers.rate_limiter import RateLimitedRpcClient


def block_tag(block: int | None) -> str:
    return "latest" if block is None else hex(block)


def topic_for_address(address: str) -> str:
    """Left-pad an address to a 32-byte indexed topic."""
    return "0x" + "0" * 24 + address.lower().removeprefix("0x")


def address_from_topic(topic: str) -> str:
    return Web3.to_checksum_address("0x" + topic[-40:])


def _hex_bytes(value: str) -> bytes:
    return bytes.fromhex(value.removeprefix("0x"))


def decode_string_result(raw: bytes) -> str:
    """ABI string return value; tolerates legacy bytes32 tokens."""
    if len(raw) == 32:
        return raw.rstrip(b"\x00").decode("utf-8", errors="replace")
    (value,) = abi_decode(["string"], raw)
    return value


class EvmRpcClient:
    def __init__(
        self,
        rpc_url: str,
        limiter: RateLimitedRpcClient,
        *,
        timeout: float = 15.0,
    ) -> None:
        self._rpc = JsonRpcTransport(rpc_url, limiter, timeout=timeout, tag="EVM")

    async def close(self) -> None:
        await self._rpc.close()

    async def block_number(self) -> int:
        return int(await self._rpc.call("eth_blockNumber"), 16)

    async def get_logs(
        self,
        address: str,
        topics: list[str | None],
        from_block: int,
        to_block: int,
    ) -> list[EvmLog]:
        result = await self._rpc.call(
            "eth_getLogs",
            [
                {
                    "address": address,
                    "topics": topics,
                    "fromBlock": hex(from_block),
                    "toBlock": hex(to_block),
                }
            ],
        )
        return [EvmLog.model_validate(item) for item in result or []]

    async def get_block_timestamp(self, block: int) -> int | None:
        result = await self._rpc.call("eth_getBlockByNumber", [hex(block), False])
        if not result:
            return None
        return int(result["timestamp"], 16)

    async def get_transaction_sender(self, tx_hash: str) -> str | None:
        result = await self._rpc.call("eth_getTransactionByHash", [tx_hash])
        if not result or not result.get("from"):
            return None
        return Web3.to_checksum_address(result["from"])

    async def get_code(self, address: str) -> str:
        return await self._rpc.call("eth_getCode", [address, "latest"]) or "0x"

    async def eth_call(self, to: str, data: bytes, block: int | None = None) -> bytes:
        params: list[Any] = [{"to": to, "data": "0x" + data.hex()}, block_tag(block)]
        return _hex_bytes(await self._rpc.call("eth_call", params) or "0x")

    # ── ERC-20 ──────────────────────────────────────────────────────

    async def balance_of(self, token: str, owner: str, block: int | None = None) -> int:
        data = bytes(SELECTOR_BALANCE_OF) + abi_encode(
            ["address"], [Web3.to_checksum_address(owner)]
        )
        raw = await self.eth_call(token, data, block)
        (balance,) = abi_decode(["uint256"], raw)
        return balance

    async def decimals(self, token: str) -> int:
        (value,) = abi_decode(["uint8"], await self.eth_call(token, bytes(SELECTOR_DECIMALS)))
        return value

    async def total_supply(self, token: str) -> int:
        (value,) = abi_decode(["uint256"], await self.eth_call(token, bytes(SELECTOR_TOTAL_SUPPLY)))
        return value

    async def name(self, token: str) -> str:
        return decode_string_result(await self.eth_call(token, bytes(SELECTOR_NAME)))

    async def symbol(self, token: str) -> str:
        return decode_string_result(await self.eth_call(token, bytes(SELECTOR_SYMBOL)))
