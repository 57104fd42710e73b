"""logsSubscribe listener for the Virtuals program.

logsSubscribe only gives us the signature and log lines. A notification
becomes a candidate when its logs show the Launch instruction and the
transaction did not fail; the event source then fetches and decodes the
full transaction.
"""

from dataclasses import dataclass
from typing import Any

from src.parsers.solana.constants import INSTRUCTION_LAUNCH_LOG
from src.parsers.subscription import WebSocketSubscriber


@dataclass(frozen=True)
class LaunchLogNotification:
    signature: str
    slot: int | None
    logs: tuple[str, ...]


def mentions_launch(logs: list[str] | tuple[str, ...]) -> bool:
    return any(INSTRUCTION_LAUNCH_LOG in line for line in logs)


class VirtualsLogSubscriber(WebSocketSubscriber[LaunchLogNotification]):
    tag = "SVM-WS"
    notification_method = "logsNotification"

    def __init__(
        self,
        ws_url: str,
        program_id: str,
        *,
        commitment: str = "confirmed",
        **kwargs: Any,
    ) -> None:
        super().__init__(ws_url, **kwargs)
        self._program_id = program_id
        self._commitment = commitment

    def subscribe_request(self) -> dict[str, Any]:
        return {
            "jsonrpc": "2.0",
            "id": 1,
            "method": "logsSubscribe",
            "params": [
                {"mentions": [self._program_id]},
                {"commitment": self._commitment},
            ],
        }

    def parse_notification(self, params: dict[str, Any]) -> LaunchLogNotification | None:
        # {"result": {"context": {"slot": N}, "value": {"signature", "err", "logs"}}}
        result = params.get("result", {})
        value = result.get("value", {})
        signature = value.get("signature")
        logs = value.get("logs") or []

        if not signature or not logs:
            return None
        if value.get("err"):
            return None
        if not mentions_launch(logs):
            return None

        slot = result.get("context", {}).get("slot")
        return LaunchLogNotification(signature=signature, slot=slot, logs=tuple(logs))
