import asyncio
from collections import deque
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

from loguru import logger

from src.parsers.exceptions import RetryableRpcError, RetryBudgetExhausted

T = TypeVar("T")


class RateLimiter:
    """Minimum-interval rate limiter for async HTTP clients."""

    def __init__(self, max_rps: float) -> None:
        self._min_interval = 1.0 / max_rps
        self._last_request = 0.0
        self._lock = asyncio.Lock()

    async def acquire(self) -> None:
        async with self._lock:
            loop = asyncio.get_running_loop()
            now = loop.time()
            wait = self._min_interval - (now - self._last_request)
            if wait > 0:
                await asyncio.sleep(wait)
            self._last_request = loop.time()


@dataclass(frozen=True)
class RetryPolicy:
    """Exponential backoff: initial_delay * backoff_factor ** (attempt - 1), capped."""

    max_retries: int = 6
    initial_delay: float = 1.0
    backoff_factor: float = 2.0
    max_delay: float = 60.0

    def delay_for(self, attempt: int) -> float:
        """Delay before retry number ``attempt`` (1-based)."""
        return min(self.initial_delay * self.backoff_factor ** (attempt - 1), self.max_delay)


class RateLimitedRpcClient:
    """Queue in front of a chain RPC endpoint.

    Dispatch rules:
      - at most ``max_rps`` dispatches in any rolling one-second window
      - at least ``min_delay`` seconds between two consecutive dispatches
      - waiters are released in submission order (asyncio.Lock is FIFO)

    A fractional ``max_rps`` above one is rounded down; below one it becomes a
    minimum spacing of ``1 / max_rps`` seconds.

    Once released, calls run concurrently; the lock only guards dispatch.
    Retryable failures (rate limits, timeouts, 5xx) go back to the end of the
    queue after an exponential backoff. Any other RpcError is raised to the
    caller immediately. When the retry budget runs out the caller gets
    RetryBudgetExhausted carrying the last error.
    """

    def __init__(
        self,
        max_rps: float = 10.0,
        min_delay: float = 0.0,
        retry_policy: RetryPolicy | None = None,
        *,
        name: str = "RPC",
    ) -> None:
        if max_rps <= 0:
            raise ValueError(f"max_rps must be positive, got {max_rps}")
        self._max_rps = max(1, int(max_rps))
        self._min_delay = min_delay
        if max_rps < 1:
            # Below one call per second the window is too coarse; space calls instead
            self._min_delay = max(min_delay, 1.0 / max_rps)
        self._policy = retry_policy or RetryPolicy()
        self._name = name
        self._window: deque[float] = deque()
        self._last_dispatch: float | None = None
        self._lock = asyncio.Lock()
        self._dispatched = 0
        self._retried = 0

    @property
    def stats(self) -> dict[str, int]:
        return {"dispatched": self._dispatched, "retried": self._retried}

    async def _acquire_slot(self) -> None:
        async with self._lock:
            loop = asyncio.get_running_loop()
            while True:
                now = loop.time()
                while self._window and now - self._window[0] >= 1.0:
                    self._window.popleft()

                wait = 0.0
                if len(self._window) >= self._max_rps:
                    wait = 1.0 - (now - self._window[0])
                if self._last_dispatch is not None:
                    wait = max(wait, self._min_delay - (now - self._last_dispatch))
                if wait <= 0:
                    break
                await asyncio.sleep(wait)

            now = loop.time()
            self._window.append(now)
            self._last_dispatch = now
            self._dispatched += 1

    async def submit(
        self, operation: Callable[[], Awaitable[T]], *, label: str = "rpc"
    ) -> T:
        """Run ``operation`` under the rate limit, retrying retryable failures."""
        attempt = 0
        while True:
            await self._acquire_slot()
            try:
                return await operation()
            except RetryableRpcError as e:
                attempt += 1
                if attempt > self._policy.max_retries:
                    logger.warning(
                        f"[{self._name}] {label} gave up after {attempt} attempts: {e}"
                    )
                    raise RetryBudgetExhausted(label, attempt, e) from e
                delay = self._policy.delay_for(attempt)
                self._retried += 1
                logger.debug(
                    f"[{self._name}] {label} retry {attempt}/{self._policy.max_retries} "
                    f"in {delay:.1f}s: {e}"
                )
                await asyncio.sleep(delay)
