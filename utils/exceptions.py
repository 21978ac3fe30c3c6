class RetriableValueError(ValueError):
    """Raised for JSON-RPC failures that may succeed on another attempt or node."""


class RpcRequestError(Exception):
    """Raised when every provider failed a request after all retries."""

    def __init__(self, method_name: str, attempts: int):
        super().__init__(f"{method_name} failed on all providers after {attempts} attempts")
        self.method_name = method_name
        self.attempts = attempts


class GovernorLogDecodeError(ValueError):
    """Raised when a log cannot be decoded as a Governor event."""
