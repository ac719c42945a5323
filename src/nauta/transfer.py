"""
Transfer pipeline - build, price, sign, broadcast and confirm one transfer.

States, in order::

    BUILT -> ESTIMATED -> FEES_COMPUTED -> SIGNED -> BROADCAST -> CONFIRMED

with FAILED reachable from any of them. Each step takes the previous
step's output as an argument, so a step cannot run before its inputs exist.

Network requests per transfer: one eth_estimateGas, one
eth_getBlockByNumber, one eth_getTransactionCount, one
eth_sendRawTransaction, then one or more eth_getTransactionReceipt polls.

Nothing is retried except receipt polling (see ChainClient.await_receipt).
A rejected broadcast is reported and left alone; the caller must change
nonce, amount or funding before sending again.

Nonces come from the node's pending pool. Concurrent transfers from the
same key need nonce coordination outside this module.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Optional

from .chain.client import DEFAULT_POLL_INTERVAL, ChainClient
from .config import TransferConfig
from .errors import NautaError, RpcError
from .fees import FeeOverflowError, GasFeeParameters, compute_fees
from .keys.signer import Signer, SigningError
from .log import get_logger
from .models import FinalTransaction, ProbeTransaction, Receipt, SignedTransaction
from .units import to_checksum_address

log = get_logger(__name__)


class TransferState(str, Enum):
    BUILT = "built"
    ESTIMATED = "estimated"
    FEES_COMPUTED = "fees_computed"
    SIGNED = "signed"
    BROADCAST = "broadcast"
    CONFIRMED = "confirmed"
    FAILED = "failed"


@dataclass(frozen=True)
class TransferEvent:
    state: TransferState
    message: str
    data: dict[str, Any] = field(default_factory=dict)


EventHandler = Callable[[TransferEvent], None]


# ============ Errors ============


class TransferError(NautaError):
    """A transfer step failed. ``state`` is the last state reached."""

    def __init__(self, message: str, *, state: Optional[TransferState] = None) -> None:
        super().__init__(message)
        self.state = state


class EstimationFailed(TransferError):
    exit_code = 3


class SigningFailed(TransferError):
    exit_code = 4


class BroadcastRejected(TransferError):
    exit_code = 5

    def __init__(self, detail: str, *, state: Optional[TransferState] = None) -> None:
        super().__init__(f"Node rejected the transaction: {detail}", state=state)
        self.detail = detail


class FeeDataUnavailable(TransferError):
    exit_code = 8


# ============ Pipeline ============


class TransferPipeline:
    """
    One transfer attempt.

    Args:
        config: Resolved transfer configuration
        client: Chain client bound to ``config.rpc_endpoint``
        signer: Signer holding the sender key
        on_event: Called with a TransferEvent on every state change
    """

    def __init__(
        self,
        config: TransferConfig,
        client: ChainClient,
        signer: Signer,
        on_event: Optional[EventHandler] = None,
    ) -> None:
        self.config = config
        self.client = client
        self.signer = signer
        self.on_event = on_event
        self.state: Optional[TransferState] = None

    def _transition(self, state: TransferState, message: str, **data: Any) -> None:
        self.state = state
        log.info("transfer_state", state=state.value, **data)
        if self.on_event is not None:
            self.on_event(TransferEvent(state, message, data))

    def _fail(self, exc: Exception) -> None:
        failed_in = self.state
        if isinstance(exc, TransferError) and exc.state is None:
            exc.state = failed_in
        self._transition(
            TransferState.FAILED,
            str(exc),
            error=type(exc).__name__,
            failed_in=failed_in.value if failed_in else None,
        )

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    def build_probe(self) -> ProbeTransaction:
        probe = ProbeTransaction(
            sender=self.signer.address_bytes,
            to=self.config.recipient,
            value=self.config.amount,
        )
        self._transition(
            TransferState.BUILT,
            "Probe transaction built",
            sender=self.signer.address,
            recipient=to_checksum_address(probe.to),
            value=probe.value,
            rpc_url=self.config.rpc_endpoint,
            chain_id=self.config.chain_id,
        )
        return probe

    def estimate(self, probe: ProbeTransaction) -> int:
        try:
            gas_limit = self.client.estimate_gas(probe)
        except RpcError as exc:
            raise EstimationFailed(
                f"Gas estimation failed: {exc.message}", state=self.state
            ) from exc

        self._transition(
            TransferState.ESTIMATED, "Gas estimated", gas_limit=gas_limit
        )
        return gas_limit

    def price(self, gas_limit: int) -> GasFeeParameters:
        block = self.client.get_latest_block()

        if block.base_fee_per_gas is None:
            if self.config.require_base_fee:
                raise FeeDataUnavailable(
                    f"Block {block.number} has no baseFeePerGas",
                    state=self.state,
                )
            log.warning("base_fee_missing", block=block.number, fallback=0)

        try:
            fees = compute_fees(
                block.base_fee_per_gas, gas_limit, self.config.priority_fee
            )
        except FeeOverflowError as exc:
            raise FeeDataUnavailable(str(exc), state=self.state) from exc

        self._transition(
            TransferState.FEES_COMPUTED,
            "Fees computed",
            block=block.number,
            base_fee_per_gas=fees.base_fee_per_gas,
            max_priority_fee_per_gas=fees.max_priority_fee_per_gas,
            max_fee_per_gas=fees.max_fee_per_gas,
            gas_limit=fees.gas_limit,
            estimated_total_cost=fees.estimated_total_cost,
        )
        return fees

    def sign(
        self, probe: ProbeTransaction, fees: GasFeeParameters
    ) -> tuple[FinalTransaction, SignedTransaction]:
        nonce = self.client.get_nonce(self.signer.address_bytes, "pending")
        final = FinalTransaction.from_probe(probe, fees, nonce)

        try:
            signed = self.signer.sign(final, chain_id=self.config.chain_id)
        except SigningError as exc:
            raise SigningFailed(str(exc), state=self.state) from exc

        self._transition(
            TransferState.SIGNED,
            "Transaction signed",
            nonce=nonce,
            tx_hash=signed.hash,
        )
        return final, signed

    def broadcast(self, signed: SignedTransaction) -> str:
        try:
            tx_hash = self.client.send_raw_transaction(signed.raw)
        except RpcError as exc:
            raise BroadcastRejected(exc.message, state=self.state) from exc

        if not tx_hash:
            tx_hash = signed.hash
        elif tx_hash.lower() != signed.hash.lower():
            log.warning("tx_hash_mismatch", node=tx_hash, local=signed.hash)

        self._transition(
            TransferState.BROADCAST, "Transaction sent", tx_hash=tx_hash
        )
        return tx_hash

    def confirm(
        self,
        tx_hash: str,
        *,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        timeout: Optional[float] = None,
        cancel: Optional[threading.Event] = None,
    ) -> Receipt:
        receipt = self.client.await_receipt(
            tx_hash, poll_interval=poll_interval, timeout=timeout, cancel=cancel
        )
        self._transition(
            TransferState.CONFIRMED,
            "Transaction included",
            tx_hash=receipt.transaction_hash,
            block=receipt.block_number,
            status=receipt.status,
            gas_used=receipt.gas_used,
            effective_gas_price=receipt.effective_gas_price,
        )
        return receipt

    # ------------------------------------------------------------------
    # Drivers
    # ------------------------------------------------------------------

    def quote(self) -> tuple[ProbeTransaction, GasFeeParameters]:
        """Run up to FEES_COMPUTED without signing anything."""
        try:
            probe = self.build_probe()
            gas_limit = self.estimate(probe)
            fees = self.price(gas_limit)
        except NautaError as exc:
            self._fail(exc)
            raise
        return probe, fees

    def run(
        self,
        *,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        timeout: Optional[float] = None,
        cancel: Optional[threading.Event] = None,
    ) -> Receipt:
        probe, fees = self.quote()
        try:
            _, signed = self.sign(probe, fees)
            tx_hash = self.broadcast(signed)
            return self.confirm(
                tx_hash, poll_interval=poll_interval, timeout=timeout, cancel=cancel
            )
        except NautaError as exc:
            self._fail(exc)
            raise


def execute_transfer(
    config: TransferConfig,
    *,
    client: Optional[ChainClient] = None,
    signer: Optional[Signer] = None,
    on_event: Optional[EventHandler] = None,
    poll_interval: float = DEFAULT_POLL_INTERVAL,
    timeout: Optional[float] = None,
    cancel: Optional[threading.Event] = None,
) -> Receipt:
    """
    Send ``config.amount`` wei to ``config.recipient`` and wait for the receipt.

    Args:
        config: Resolved transfer configuration
        client: Chain client (default: a new one for ``config.rpc_endpoint``,
                closed on return)
        signer: Signer (default: built from ``config.signing_key``)
        on_event: Progress callback, called on every state change
        poll_interval: Seconds between receipt polls
        timeout: Give up waiting for the receipt after this many seconds
                 (default: wait indefinitely)
        cancel: Event that stops the receipt wait when set

    Returns:
        The receipt exactly as reported by the node, including reverted ones

    Raises:
        EstimationFailed, FeeDataUnavailable, SigningFailed, BroadcastRejected,
        NetworkUnavailable, RpcError, ConfirmationTimeout, ConfirmationCancelled
    """
    if signer is None:
        try:
            signer = Signer(config.signing_key)
        except SigningError as exc:
            failure = SigningFailed(str(exc))
            if on_event is not None:
                on_event(TransferEvent(
                    TransferState.FAILED,
                    str(failure),
                    {"error": "SigningFailed", "failed_in": None},
                ))
            raise failure from exc

    owns_client = client is None
    if client is None:
        client = ChainClient(config.rpc_endpoint)

    try:
        pipeline = TransferPipeline(config, client, signer, on_event=on_event)
        return pipeline.run(poll_interval=poll_interval, timeout=timeout, cancel=cancel)
    finally:
        if owns_client:
            client.close()
