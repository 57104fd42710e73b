"""JSON-RPC over HTTP, shared by the Solana and EVM RPC clients.

Every call goes through a RateLimitedRpcClient. HTTP and JSON-RPC failures are
mapped onto the exception taxonomy so the limiter knows which ones to retry.
"""

from typing import Any

import httpx
from loguru import logger

from src.parsers.exceptions import (
    HistoricalStateUnavailable,
    RateLimitedError,
    RpcResponseError,
    StorageWindowError,
    TransientRpcError,
)
from src.parsers.rate_limiter import RateLimitedRpcClient

_RATE_LIMIT_MARKERS = ("too many requests", "rate limit", "429")
_STORAGE_WINDOW_MARKERS = (
    "long-term storage",
    "block range",
    "more than",
    "range is too large",
    "response size exceeded",
)
_HISTORICAL_STATE_MARKERS = (
    "missing trie node",
    "header not found",
    "historical state",
    "state not available",
    "pruned",
    "unknown block",
)


def classify_rpc_error(method: str, error: dict[str, Any]) -> Exception:
    """Map a JSON-RPC error object onto the exception taxonomy."""
    code = error.get("code")
    message = str(error.get("message", ""))
    lowered = message.lower()

    if code == 429 or any(m in lowered for m in _RATE_LIMIT_MARKERS):
        return RateLimitedError(f"{method}: {message}")
    if any(m in lowered for m in _STORAGE_WINDOW_MARKERS):
        return StorageWindowError(method, code, message)
    if any(m in lowered for m in _HISTORICAL_STATE_MARKERS):
        return HistoricalStateUnavailable(method, code, message)
    if code == -32603 and "timeout" in lowered:
        return TransientRpcError(f"{method}: {message}")
    return RpcResponseError(method, code, message)


class JsonRpcTransport:
    """Rate-limited JSON-RPC client over a single httpx.AsyncClient."""

    def __init__(
        self,
        url: str,
        limiter: RateLimitedRpcClient,
        *,
        timeout: float = 15.0,
        tag: str = "RPC",
    ) -> None:
        self._url = url
        self._limiter = limiter
        self._tag = tag
        self._request_id = 0
        self._http = httpx.AsyncClient(timeout=timeout)

    @property
    def limiter(self) -> RateLimitedRpcClient:
        return self._limiter

    async def close(self) -> None:
        await self._http.aclose()

    async def call(self, method: str, params: list[Any] | None = None) -> Any:
        """Submit one JSON-RPC call through the limiter and return its ``result``."""
        return await self._limiter.submit(
            lambda: self._post(method, params or []), label=method
        )

    async def _post(self, method: str, params: list[Any]) -> Any:
        self._request_id += 1
        payload = {
            "jsonrpc": "2.0",
            "id": self._request_id,
            "method": method,
            "params": params,
        }
        try:
            resp = await self._http.post(self._url, json=payload)
        except httpx.TransportError as e:
            raise TransientRpcError(f"{method}: {type(e).__name__}: {e}") from e

        if resp.status_code == 429:
            raise RateLimitedError(f"{method}: HTTP 429")
        if resp.status_code >= 500:
            raise TransientRpcError(f"{method}: HTTP {resp.status_code}")
        if resp.status_code != 200:
            logger.debug(f"[{self._tag}] {method} HTTP {resp.status_code}: {resp.text[:200]}")
            raise RpcResponseError(method, resp.status_code, resp.text[:200])

        try:
            data = resp.json()
        except ValueError as e:
            raise TransientRpcError(f"{method}: invalid JSON body") from e

        error = data.get("error")
        if error:
            raise classify_rpc_error(method, error)
        return data.get("result")
