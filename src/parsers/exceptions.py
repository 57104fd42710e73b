class RpcError(Exception):
    pass


class RetryableRpcError(RpcError):
    """Failure worth retrying with backoff (rate limit, timeout, 5xx)."""


class RateLimitedError(RetryableRpcError):
    pass


class TransientRpcError(RetryableRpcError):
    pass


class RpcResponseError(RpcError):
    """JSON-RPC error object returned by the node."""

    def __init__(self, method: str, code: int | None, message: str) -> None:
        super().__init__(f"{method}: [{code}] {message}")
        self.method = method
        self.code = code
        self.message = message


class StorageWindowError(RpcResponseError):
    """Node could not serve the requested history window (long-term storage, block range)."""


class HistoricalStateUnavailable(RpcResponseError):
    """Node cannot serve state at the requested block (non-archive node)."""


class RetryBudgetExhausted(RpcError):
    def __init__(self, label: str, attempts: int, last_error: Exception) -> None:
        super().__init__(f"{label} failed after {attempts} attempts: {last_error}")
        self.label = label
        self.attempts = attempts
        self.last_error = last_error
