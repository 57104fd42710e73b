"""eth_subscribe("logs") listener for the Virtuals bonding contract."""

from typing import Any

from loguru import logger
from pydantic import ValidationError

from src.parsers.evm.constants import LAUNCHED_TOPIC
from src.parsers.evm.models import EvmLog
from src.parsers.subscription import WebSocketSubscriber


class LaunchedLogSubscriber(WebSocketSubscriber[EvmLog]):
    tag = "EVM-WS"
    notification_method = "eth_subscription"

    def __init__(self, ws_url: str, factory_address: str, **kwargs: Any) -> None:
        super().__init__(ws_url, **kwargs)
        self._factory = factory_address

    def subscribe_request(self) -> dict[str, Any]:
        return {
            "jsonrpc": "2.0",
            "id": 1,
            "method": "eth_subscribe",
            "params": ["logs", {"address": self._factory, "topics": [LAUNCHED_TOPIC]}],
        }

    def parse_notification(self, params: dict[str, Any]) -> EvmLog | None:
        # {"subscription": "0x..", "result": {log object}}
        raw = params.get("result")
        if not isinstance(raw, dict):
            return None
        try:
            log = EvmLog.model_validate(raw)
        except ValidationError as e:
            logger.debug(f"[{self.tag}] Unparseable log notification: {e}")
            return None
        if log.removed or not log.topics or log.topics[0].lower() != LAUNCHED_TOPIC.lower():
            return None
        return log
