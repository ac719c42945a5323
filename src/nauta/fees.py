"""
EIP-1559 fee calculation.

Pure functions, no network access. The caller samples the latest base fee
and the gas estimate; this module turns them into the three per-gas fee
fields of a type-2 transaction plus the worst-case total charge.

Fee policy:
- The priority fee (tip) is a fixed policy value, 1 gwei unless the caller
  passes another one.
- ``max_fee_per_gas = 2 * base_fee + priority_fee``. The base fee can rise
  by at most 12.5% per block, so doubling it keeps the transaction
  includable through several full blocks between estimation and inclusion.
- A missing base fee (pre-London chain, or a block without the field) is
  treated as zero, which degrades to a flat tip-only charge.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .units import UINT256_MAX, WEI_PER_GWEI

DEFAULT_PRIORITY_FEE = 1 * WEI_PER_GWEI
BASE_FEE_MULTIPLIER = 2

# Plain value transfer to an EOA
TRANSFER_GAS = 21_000


class FeeOverflowError(OverflowError):
    """A fee input or result falls outside the uint256 range."""


def _checked(value: int, name: str) -> int:
    if value < 0 or value > UINT256_MAX:
        raise FeeOverflowError(f"{name} out of uint256 range: {value}")
    return value


@dataclass(frozen=True)
class GasFeeParameters:
    base_fee_per_gas: int
    max_priority_fee_per_gas: int
    max_fee_per_gas: int
    gas_limit: int
    estimated_total_cost: int

    def settled_cost(self, base_fee_at_inclusion: int) -> int:
        """What the sender actually pays if included at the given base fee."""
        effective = min(
            self.max_fee_per_gas,
            base_fee_at_inclusion + self.max_priority_fee_per_gas,
        )
        return effective * self.gas_limit


def compute_fees(
    base_fee_per_gas: Optional[int],
    gas_limit: int,
    priority_fee: int = DEFAULT_PRIORITY_FEE,
) -> GasFeeParameters:
    """
    Compute EIP-1559 fee parameters.

    Args:
        base_fee_per_gas: Latest block base fee in wei, or None if the
            block does not carry one (treated as zero).
        gas_limit: Gas limit for the transaction.
        priority_fee: Tip per gas in wei (default: 1 gwei).

    Returns:
        GasFeeParameters with max_fee_per_gas >= base fee + tip.

    Raises:
        FeeOverflowError: If any input or derived value leaves uint256.
    """
    base_fee = _checked(base_fee_per_gas or 0, "base_fee_per_gas")
    gas_limit = _checked(gas_limit, "gas_limit")
    priority_fee = _checked(priority_fee, "max_priority_fee_per_gas")

    max_fee = _checked(
        BASE_FEE_MULTIPLIER * base_fee + priority_fee, "max_fee_per_gas"
    )
    total = _checked(max_fee * gas_limit, "estimated_total_cost")

    return GasFeeParameters(
        base_fee_per_gas=base_fee,
        max_priority_fee_per_gas=priority_fee,
        max_fee_per_gas=max_fee,
        gas_limit=gas_limit,
        estimated_total_cost=total,
    )


def estimate_legacy_cost(gas_price: int, gas_limit: int = TRANSFER_GAS) -> int:
    """Flat ``gas_price * gas_limit`` cost for pre-EIP-1559 style pricing."""
    return _checked(
        _checked(gas_price, "gas_price") * _checked(gas_limit, "gas_limit"),
        "estimated_cost",
    )
