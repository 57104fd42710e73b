"""Outgoing creator ERC-20 transfers on Base, from Transfer logs."""

from eth_abi.abi import decode as abi_decode
from eth_abi.exceptions import DecodingError
from loguru import logger

from src.parsers.evm.constants import TRANSFER_TOPIC
from src.parsers.evm.models import EvmLog
from src.parsers.evm.rpc_client import EvmRpcClient, address_from_topic, topic_for_address
from src.parsers.exceptions import StorageWindowError
from src.parsers.models import DestinationInfo, Transfer


def decode_transfer(log: EvmLog) -> Transfer | None:
    if len(log.topics) < 3 or log.topics[0].lower() != TRANSFER_TOPIC.lower():
        return None
    try:
        (amount,) = abi_decode(["uint256"], bytes.fromhex(log.data.removeprefix("0x")))
    except (DecodingError, ValueError):
        return None
    return Transfer(
        destination=address_from_topic(log.topics[2]),
        amount_raw=amount,
        tx_id=log.transaction_hash,
        position=log.block_number,
    )


class EvmTransferScanner:
    """Transfer(from=creator) logs of one token, scanned in block windows."""

    def __init__(
        self, rpc: EvmRpcClient, *, block_window: int = 10_000, max_windows: int = 200
    ) -> None:
        self._rpc = rpc
        self._block_window = block_window
        self._max_windows = max_windows

    async def outgoing_transfers(
        self, token: str, owner: str, since: int | None = None
    ) -> list[Transfer]:
        latest = await self._rpc.block_number()
        window = self._block_window
        start = since if since is not None else max(0, latest - window + 1)
        topics: list[str | None] = [TRANSFER_TOPIC, topic_for_address(owner)]

        transfers: list[Transfer] = []
        from_block = start
        windows = 0
        while from_block <= latest and windows < self._max_windows:
            to_block = min(latest, from_block + window - 1)
            try:
                logs = await self._rpc.get_logs(token, topics, from_block, to_block)
            except StorageWindowError:
                if window <= 1:
                    raise
                window = max(1, window // 2)
                logger.debug(f"[MOVES] getLogs window too large, shrinking to {window} blocks")
                continue
            windows += 1
            for log in logs:
                transfer = decode_transfer(log)
                if transfer is not None and transfer.amount_raw > 0:
                    transfers.append(transfer)
            from_block = to_block + 1

        if from_block <= latest:
            logger.warning(
                f"[MOVES] {owner[:10]} transfer scan stopped at block {from_block - 1} "
                f"of {latest} (window budget)"
            )
        return transfers

    async def inspect_destination(self, address: str) -> DestinationInfo:
        code = await self._rpc.get_code(address)
        return DestinationInfo(is_contract=code not in ("0x", "0x0", ""))
