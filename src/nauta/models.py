"""
Transaction and chain data models.

A transfer moves through two distinct transaction shapes:

- ``ProbeTransaction``: sender, recipient and value only. Sent to
  ``eth_estimateGas`` before any fee data exists.
- ``FinalTransaction``: the probe plus gas limit, EIP-1559 fees and nonce.
  This is what gets signed.

Both are frozen; the builder creates a new object instead of filling in
fields on the old one.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional

from .fees import GasFeeParameters
from .units import hex_to_int, to_checksum_address

EIP1559_TX_TYPE = 2


def _optional_int(value: Any) -> Optional[int]:
    return None if value is None else hex_to_int(value)


@dataclass(frozen=True)
class ProbeTransaction:
    sender: bytes
    to: bytes
    value: int

    def to_rpc(self) -> dict[str, str]:
        return {
            "from": to_checksum_address(self.sender),
            "to": to_checksum_address(self.to),
            "value": hex(self.value),
        }


@dataclass(frozen=True)
class FinalTransaction:
    sender: bytes
    to: bytes
    value: int
    gas_limit: int
    fees: GasFeeParameters
    nonce: int

    @classmethod
    def from_probe(
        cls,
        probe: ProbeTransaction,
        fees: GasFeeParameters,
        nonce: int,
    ) -> "FinalTransaction":
        return cls(
            sender=probe.sender,
            to=probe.to,
            value=probe.value,
            gas_limit=fees.gas_limit,
            fees=fees,
            nonce=nonce,
        )

    def to_signable(self, chain_id: int) -> dict[str, Any]:
        """Transaction dict in the shape eth-account expects for type-2 signing."""
        return {
            "type": EIP1559_TX_TYPE,
            "chainId": chain_id,
            "nonce": self.nonce,
            "to": to_checksum_address(self.to),
            "value": self.value,
            "gas": self.gas_limit,
            "maxFeePerGas": self.fees.max_fee_per_gas,
            "maxPriorityFeePerGas": self.fees.max_priority_fee_per_gas,
            "data": b"",
            "accessList": [],
        }


@dataclass(frozen=True)
class SignedTransaction:
    raw: bytes
    hash: str
    chain_id: int

    @property
    def raw_hex(self) -> str:
        return "0x" + self.raw.hex()


@dataclass(frozen=True)
class Block:
    number: int
    hash: Optional[str]
    base_fee_per_gas: Optional[int]

    @classmethod
    def from_rpc(cls, data: dict[str, Any]) -> "Block":
        return cls(
            number=hex_to_int(data["number"]),
            hash=data.get("hash"),
            base_fee_per_gas=_optional_int(data.get("baseFeePerGas")),
        )


@dataclass(frozen=True)
class Receipt:
    """A transaction receipt as reported by the node after inclusion."""

    transaction_hash: str
    block_number: int
    block_hash: Optional[str]
    status: int
    gas_used: int
    effective_gas_price: Optional[int] = None
    raw: dict[str, Any] = field(default_factory=dict, repr=False, compare=False)

    @property
    def succeeded(self) -> bool:
        return self.status == 1

    @property
    def fee_paid(self) -> Optional[int]:
        if self.effective_gas_price is None:
            return None
        return self.gas_used * self.effective_gas_price

    @classmethod
    def from_rpc(cls, data: dict[str, Any]) -> "Receipt":
        return cls(
            transaction_hash=data["transactionHash"],
            block_number=hex_to_int(data["blockNumber"]),
            block_hash=data.get("blockHash"),
            status=hex_to_int(data["status"]),
            gas_used=hex_to_int(data["gasUsed"]),
            effective_gas_price=_optional_int(data.get("effectiveGasPrice")),
            raw=data,
        )
