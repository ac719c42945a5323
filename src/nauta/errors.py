"""Base error types shared across nauta modules."""

from __future__ import annotations

from typing import Any, Optional


class NautaError(RuntimeError):
    """Base class; ``exit_code`` is what the CLI exits with."""

    exit_code: int = 1


class NetworkUnavailable(NautaError):
    """Transport-level failure talking to the RPC node."""

    exit_code = 6

    def __init__(self, message: str, *, method: Optional[str] = None) -> None:
        super().__init__(message)
        self.method = method


class MalformedResponse(NetworkUnavailable):
    """The node answered, but the result is not what the method returns."""


class RpcError(NautaError):
    """The node answered with a JSON-RPC ``error`` member."""

    exit_code = 6

    def __init__(
        self,
        method: str,
        code: Optional[int],
        message: str,
        data: Any = None,
    ) -> None:
        super().__init__(f"{method} failed: {message} (code {code})")
        self.method = method
        self.code = code
        self.message = message
        self.data = data
