"""Live WebSocket subscription lifecycle shared by the Solana and EVM listeners.

A subscriber runs one connect/subscribe/listen loop with reconnect backoff.
Whoever starts it gets a SubscriptionHandle back and must retire that handle
before starting another one for the same chain. Cancelling the handle also
cancels a pending reconnect sleep, since the sleep lives inside the task.
"""

import asyncio
import json
from collections.abc import Awaitable, Callable
from enum import Enum
from typing import Any, Generic, TypeVar

import websockets
from loguru import logger
from websockets.exceptions import WebSocketException

T = TypeVar("T")


class ConnectionState(Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    ACTIVE = "active"


class SubscriptionError(Exception):
    """The node refused or never confirmed the subscription request."""


def reconnect_delay(
    retry_count: int, base_delay: float = 5.0, step: float = 10.0, max_delay: float = 60.0
) -> float:
    """Delay before reconnect attempt ``retry_count`` (0-based), grows linearly, capped."""
    if retry_count <= 0:
        return min(base_delay, max_delay)
    return min(step * retry_count, max_delay)


class WebSocketSubscriber(Generic[T]):
    """JSON-RPC pub/sub client: subclasses provide the request and notification parsing."""

    tag = "WS"
    notification_method = ""

    def __init__(
        self,
        ws_url: str,
        *,
        reconnect_base_delay: float = 5.0,
        reconnect_step: float = 10.0,
        reconnect_max_delay: float = 60.0,
    ) -> None:
        self._ws_url = ws_url
        self._ws: Any = None
        self._state = ConnectionState.DISCONNECTED
        self._running = False
        self._retry_count = 0
        self._reconnect_base_delay = reconnect_base_delay
        self._reconnect_step = reconnect_step
        self._reconnect_max_delay = reconnect_max_delay
        self._message_count = 0
        self._subscription_id: int | str | None = None

        self.on_notification: Callable[[T], Awaitable[None]] | None = None
        self._pending_tasks: set[asyncio.Task] = set()

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def message_count(self) -> int:
        return self._message_count

    @property
    def retry_count(self) -> int:
        return self._retry_count

    def subscribe_request(self) -> dict[str, Any]:
        raise NotImplementedError

    def parse_notification(self, params: dict[str, Any]) -> T | None:
        """Turn a notification's ``params`` into a candidate, or None to ignore it."""
        raise NotImplementedError

    async def run(self) -> None:
        """Connect, subscribe and listen until stopped. Reconnects forever."""
        self._running = True
        while self._running:
            try:
                self._state = ConnectionState.CONNECTING
                async with websockets.connect(
                    self._ws_url,
                    ping_interval=30,
                    ping_timeout=10,
                    close_timeout=5,
                ) as ws:
                    self._ws = ws
                    self._state = ConnectionState.CONNECTED
                    await self._subscribe()
                    self._retry_count = 0
                    self._state = ConnectionState.ACTIVE
                    logger.info(f"[{self.tag}] Subscription active (id={self._subscription_id})")
                    await self._listen()
            except (
                WebSocketException,
                SubscriptionError,
                ConnectionError,
                OSError,
                asyncio.TimeoutError,
            ) as e:
                logger.warning(f"[{self.tag}] WS disconnected: {type(e).__name__}: {e}")

            self._state = ConnectionState.DISCONNECTED
            self._ws = None
            self._subscription_id = None
            if self._running:
                delay = reconnect_delay(
                    self._retry_count,
                    self._reconnect_base_delay,
                    self._reconnect_step,
                    self._reconnect_max_delay,
                )
                self._retry_count += 1
                logger.info(
                    f"[{self.tag}] Reconnecting in {delay:.0f}s (retry {self._retry_count})"
                )
                await asyncio.sleep(delay)

    async def _subscribe(self) -> None:
        await self._ws.send(json.dumps(self.subscribe_request()))
        try:
            response = await asyncio.wait_for(self._ws.recv(), timeout=10.0)
            data = json.loads(response)
        except json.JSONDecodeError as e:
            raise SubscriptionError(f"unreadable subscribe response: {e}") from e
        if "error" in data or "result" not in data:
            raise SubscriptionError(f"subscribe rejected: {data.get('error', data)}")
        self._subscription_id = data["result"]

    async def _listen(self) -> None:
        async for message in self._ws:
            self._message_count += 1
            try:
                data = json.loads(message)
            except json.JSONDecodeError:
                continue
            if data.get("method") != self.notification_method:
                continue
            params = data.get("params")
            if not params:
                continue

            candidate = self.parse_notification(params)
            if candidate is not None and self.on_notification:
                task = asyncio.create_task(self._safe_callback(self.on_notification, candidate))
                self._pending_tasks.add(task)
                task.add_done_callback(self._pending_tasks.discard)

    async def _safe_callback(self, callback: Callable[..., Awaitable[None]], event: object) -> None:
        try:
            await asyncio.wait_for(callback(event), timeout=30.0)
        except asyncio.TimeoutError:
            logger.error(f"[{self.tag}] Callback timed out for {type(event).__name__}")
        except Exception as e:
            logger.error(f"[{self.tag}] Callback error: {e}")

    async def stop(self) -> None:
        self._running = False
        if self._ws:
            await self._ws.close()
            self._ws = None
        self._state = ConnectionState.DISCONNECTED


class SubscriptionHandle:
    """Owned reference to one running subscriber task."""

    def __init__(self, name: str, subscriber: WebSocketSubscriber, task: asyncio.Task) -> None:
        self.name = name
        self.subscriber = subscriber
        self._task = task

    @property
    def active(self) -> bool:
        return not self._task.done()

    async def cancel(self) -> None:
        await self.subscriber.stop()
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        logger.info(f"[{self.subscriber.tag}] Subscription {self.name} torn down")


async def start_subscription(
    name: str,
    subscriber: WebSocketSubscriber,
    previous: SubscriptionHandle | None = None,
) -> SubscriptionHandle:
    """Start ``subscriber`` after retiring ``previous`` so at most one runs per chain."""
    if previous is not None and previous.active:
        logger.info(f"[{subscriber.tag}] Retiring previous subscription {previous.name}")
        await previous.cancel()
    task = asyncio.create_task(subscriber.run(), name=f"subscription:{name}")
    return SubscriptionHandle(name, subscriber, task)
