"""Shared fixtures: a scripted chain client and a fixed test key."""

from __future__ import annotations

from typing import Any, Optional

import pytest
from eth_account import Account
from eth_hash.auto import keccak

from nauta.config import TransferConfig
from nauta.errors import RpcError
from nauta.fees import DEFAULT_PRIORITY_FEE
from nauta.keys.signer import Signer
from nauta.models import Block, ProbeTransaction, Receipt
from nauta.units import parse_address

# eth-account documentation key; never funded on any real network
TEST_PRIVATE_KEY = "0x4c0883a69102937d6231471b5dbb6204fe5129617082792ae468d01a3f362318"
TEST_ADDRESS = Account.from_key(TEST_PRIVATE_KEY).address

RECIPIENT = "0x5aAeb6053F3E94C9b9A09f33669435E7Ef1BeAed"


class FakeChainClient:
    """Stands in for ChainClient; records every call in order."""

    def __init__(
        self,
        *,
        gas: int = 21_000,
        base_fee: Optional[int] = 100,
        nonce: int = 7,
        estimate_error: Optional[Exception] = None,
        broadcast_error: Optional[Exception] = None,
        receipt: Optional[Receipt] = None,
    ) -> None:
        self.gas = gas
        self.base_fee = base_fee
        self.nonce = nonce
        self.estimate_error = estimate_error
        self.broadcast_error = broadcast_error
        self.receipt = receipt
        self.calls: list[tuple[str, Any]] = []
        self.sent: list[bytes] = []
        self.closed = False

    def __enter__(self) -> "FakeChainClient":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        self.closed = True

    @property
    def methods(self) -> list[str]:
        return [name for name, _ in self.calls]

    def get_balance(self, address: Any, block: str = "latest") -> int:
        self.calls.append(("get_balance", address))
        return 2 * 10**18

    def get_gas_price(self) -> int:
        self.calls.append(("get_gas_price", None))
        return 100_000_000

    def estimate_gas(self, probe: ProbeTransaction) -> int:
        self.calls.append(("estimate_gas", probe))
        if self.estimate_error is not None:
            raise self.estimate_error
        return self.gas

    def get_latest_block(self) -> Block:
        self.calls.append(("get_latest_block", None))
        return Block(number=123, hash=None, base_fee_per_gas=self.base_fee)

    def get_nonce(self, address: bytes, block: str = "pending") -> int:
        self.calls.append(("get_nonce", (address, block)))
        return self.nonce

    def send_raw_transaction(self, raw_tx: bytes) -> str:
        self.calls.append(("send_raw_transaction", raw_tx))
        if self.broadcast_error is not None:
            raise self.broadcast_error
        self.sent.append(raw_tx)
        return "0x" + keccak(raw_tx).hex()

    def await_receipt(self, tx_hash: str, **kwargs: Any) -> Receipt:
        self.calls.append(("await_receipt", (tx_hash, kwargs)))
        if self.receipt is not None:
            return self.receipt
        return Receipt(
            transaction_hash=tx_hash,
            block_number=124,
            block_hash="0x" + "ab" * 32,
            status=1,
            gas_used=21_000,
            effective_gas_price=(self.base_fee or 0) + DEFAULT_PRIORITY_FEE,
        )


def revert_error() -> RpcError:
    return RpcError("eth_estimateGas", 3, "execution reverted")


@pytest.fixture()
def signer() -> Signer:
    return Signer(TEST_PRIVATE_KEY)


@pytest.fixture()
def config() -> TransferConfig:
    return TransferConfig(
        rpc_endpoint="https://rpc.invalid",
        chain_id=421614,
        signing_key=bytes.fromhex(TEST_PRIVATE_KEY[2:]),
        recipient=parse_address(RECIPIENT),
        amount=10**12,
    )


@pytest.fixture()
def fake_client() -> FakeChainClient:
    return FakeChainClient()
