"""
JSON-RPC client for an EVM execution-layer node.

Lightweight alternative to web3.py: httpx for HTTP, plain dicts on the wire.
Covers the read calls the transfer pipeline needs, raw transaction
broadcast, and receipt polling.
"""

from __future__ import annotations

import threading
import time
from typing import Any, Callable, Optional, TypeVar

import httpx

from ..errors import MalformedResponse, NautaError, NetworkUnavailable, RpcError
from ..log import get_logger
from ..models import Block, ProbeTransaction, Receipt
from ..units import hex_to_int, to_checksum_address

log = get_logger(__name__)

# Default RPC endpoint (Arbitrum Sepolia)
DEFAULT_RPC_URL = "https://sepolia-rollup.arbitrum.io/rpc"
DEFAULT_CHAIN_ID = 421614

DEFAULT_POLL_INTERVAL = 2.0
MAX_POLL_BACKOFF = 30.0


class ConfirmationTimeout(NautaError):
    exit_code = 7

    def __init__(self, tx_hash: str, timeout: float) -> None:
        super().__init__(
            f"Transaction {tx_hash} not confirmed within {timeout:g}s"
        )
        self.tx_hash = tx_hash
        self.timeout = timeout


class ConfirmationCancelled(NautaError):
    exit_code = 7

    def __init__(self, tx_hash: str) -> None:
        super().__init__(f"Stopped waiting for transaction {tx_hash}")
        self.tx_hash = tx_hash


T = TypeVar("T")


def _hex_to_bytes(value: Any) -> bytes:
    if not isinstance(value, str):
        raise TypeError(f"expected hex data, got {value!r}")
    return bytes.fromhex(value[2:] if value.startswith("0x") else value)


def _tx_hash(value: Any) -> str:
    if value is not None and not isinstance(value, str):
        raise TypeError(f"expected a transaction hash, got {value!r}")
    return value


class ChainClient:
    """
    Synchronous JSON-RPC client.

    Args:
        rpc_url: Node endpoint URL
        timeout: Per-request timeout in seconds
        transport: Optional httpx transport (tests pass a MockTransport)
    """

    def __init__(
        self,
        rpc_url: str = DEFAULT_RPC_URL,
        timeout: float = 30.0,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.rpc_url = rpc_url
        self._client = httpx.Client(timeout=timeout, transport=transport)
        self._request_id = 0

    def __enter__(self) -> "ChainClient":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        self._client.close()

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def _rpc_call(self, method: str, params: list) -> Any:
        """
        Make a JSON-RPC call.

        Returns:
            Result field from the RPC response

        Raises:
            NetworkUnavailable: Transport failure, HTTP error status, or a
                body that is not a JSON-RPC response
            RpcError: The node returned a JSON-RPC error object

        Callers decode the result through ``_decode``, which raises
        MalformedResponse (a NetworkUnavailable) when it has the wrong shape.
        """
        self._request_id += 1
        payload = {
            "jsonrpc": "2.0",
            "method": method,
            "params": params,
            "id": self._request_id,
        }
        log.debug("rpc_call", method=method, id=self._request_id)

        try:
            response = self._client.post(self.rpc_url, json=payload)
        except httpx.HTTPError as exc:
            raise NetworkUnavailable(
                f"{method}: cannot reach {self.rpc_url}: {exc}", method=method
            ) from exc

        try:
            data = response.json()
        except ValueError:
            data = None

        # Some providers pair a JSON-RPC error with a 4xx/5xx status
        if isinstance(data, dict) and data.get("error"):
            error = data["error"]
            if isinstance(error, dict):
                raise RpcError(
                    method,
                    error.get("code"),
                    str(error.get("message", "unknown error")),
                    error.get("data"),
                )
            raise RpcError(method, None, str(error))

        if response.is_error:
            raise NetworkUnavailable(
                f"{method}: HTTP {response.status_code} from {self.rpc_url}",
                method=method,
            )
        if not isinstance(data, dict) or "result" not in data:
            raise NetworkUnavailable(
                f"{method}: malformed JSON-RPC response", method=method
            )

        return data["result"]

    def _decode(self, method: str, result: Any, parse: Callable[[Any], T]) -> T:
        try:
            return parse(result)
        except (TypeError, ValueError, KeyError) as exc:
            raise MalformedResponse(
                f"{method}: unexpected result {result!r}", method=method
            ) from exc

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def chain_id(self) -> int:
        return self._decode("eth_chainId", self._rpc_call("eth_chainId", []), hex_to_int)

    def get_balance(self, address: bytes | str, block: str = "latest") -> int:
        """Balance in wei."""
        result = self._rpc_call("eth_getBalance", [to_checksum_address(address), block])
        return self._decode("eth_getBalance", result, hex_to_int)

    def get_nonce(self, address: bytes | str, block: str = "pending") -> int:
        """
        Transaction count for an address.

        ``pending`` includes transactions still in the node's pool, so a
        second transfer sent before the first is mined gets the next nonce.
        """
        result = self._rpc_call(
            "eth_getTransactionCount", [to_checksum_address(address), block]
        )
        return self._decode("eth_getTransactionCount", result, hex_to_int)

    def get_gas_price(self) -> int:
        """Legacy gas price in wei."""
        return self._decode("eth_gasPrice", self._rpc_call("eth_gasPrice", []), hex_to_int)

    def estimate_gas(self, probe: ProbeTransaction) -> int:
        result = self._rpc_call("eth_estimateGas", [probe.to_rpc()])
        return self._decode("eth_estimateGas", result, hex_to_int)

    def get_latest_block(self) -> Block:
        result = self._rpc_call("eth_getBlockByNumber", ["latest", False])
        if result is None:
            raise NetworkUnavailable(
                "eth_getBlockByNumber: node returned no latest block",
                method="eth_getBlockByNumber",
            )
        return self._decode("eth_getBlockByNumber", result, Block.from_rpc)

    def call(self, to: bytes | str, data: bytes, block: str = "latest") -> bytes:
        """Execute a read-only contract call (eth_call)."""
        result = self._rpc_call(
            "eth_call",
            [{"to": to_checksum_address(to), "data": "0x" + data.hex()}, block],
        )
        if not result:
            return b""
        return self._decode("eth_call", result, _hex_to_bytes)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def send_raw_transaction(self, raw_tx: bytes) -> str:
        """
        Broadcast a signed transaction.

        Returns:
            Transaction hash (0x-prefixed hex). Acceptance into the pool
            only; the transaction is not yet included.
        """
        result = self._rpc_call("eth_sendRawTransaction", ["0x" + raw_tx.hex()])
        return self._decode("eth_sendRawTransaction", result, _tx_hash)

    # ------------------------------------------------------------------
    # Receipts
    # ------------------------------------------------------------------

    def get_transaction_receipt(self, tx_hash: str) -> Optional[Receipt]:
        result = self._rpc_call("eth_getTransactionReceipt", [tx_hash])
        if result is None:
            return None
        return self._decode("eth_getTransactionReceipt", result, Receipt.from_rpc)

    def await_receipt(
        self,
        tx_hash: str,
        *,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        timeout: Optional[float] = None,
        cancel: Optional[threading.Event] = None,
        max_backoff: float = MAX_POLL_BACKOFF,
    ) -> Receipt:
        """
        Poll until the transaction receipt is available.

        Waits indefinitely unless ``timeout`` is given or ``cancel`` is set.
        Transport failures while polling are retried with exponential
        backoff capped at ``max_backoff``; the transaction is never resent.

        Raises:
            ConfirmationTimeout: If ``timeout`` seconds pass without a receipt
            ConfirmationCancelled: If ``cancel`` is set while waiting
            RpcError: If the node rejects the receipt query itself
            MalformedResponse: If the node returns a receipt that cannot be
                decoded; polling again would get the same answer
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        delay = poll_interval
        polls = 0

        while True:
            if cancel is not None and cancel.is_set():
                raise ConfirmationCancelled(tx_hash)

            polls += 1
            try:
                receipt = self.get_transaction_receipt(tx_hash)
            except MalformedResponse:
                raise
            except NetworkUnavailable as exc:
                delay = min(max(delay, poll_interval) * 2, max_backoff)
                log.warning(
                    "receipt_poll_failed",
                    tx_hash=tx_hash,
                    error=str(exc),
                    retry_in=delay,
                )
            else:
                if receipt is not None:
                    log.debug("receipt_found", tx_hash=tx_hash, polls=polls)
                    return receipt
                delay = poll_interval

            wait = delay
            if deadline is not None:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    raise ConfirmationTimeout(tx_hash, timeout)
                wait = min(delay, remaining)

            if cancel is not None:
                if cancel.wait(wait):
                    raise ConfirmationCancelled(tx_hash)
            else:
                time.sleep(wait)
