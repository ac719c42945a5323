"""
Unit and address helpers.

Wei amounts are plain Python ints; the only bound that matters is the
EVM word size, so every amount that crosses into a transaction is checked
against UINT256_MAX instead of relying on a fixed-width type.
"""

from __future__ import annotations

import string
from typing import Any
from decimal import Decimal, InvalidOperation, localcontext

from eth_hash.auto import keccak

UINT256_MAX = 2**256 - 1

ETHER_DECIMALS = 18
GWEI_DECIMALS = 9

WEI_PER_GWEI = 10**GWEI_DECIMALS
WEI_PER_ETHER = 10**ETHER_DECIMALS

_HEX_DIGITS = frozenset(string.hexdigits)


def check_uint256(value: int, name: str = "value") -> int:
    if value < 0 or value > UINT256_MAX:
        raise OverflowError(f"{name} out of uint256 range: {value}")
    return value


# ---------------------------------------------------------------------------
# Decimal amounts
# ---------------------------------------------------------------------------

def parse_units(text: str, decimals: int) -> int:
    """
    Convert a decimal string in display units to an integer base-unit amount.

    The conversion is exact: a value with more fractional digits than
    ``decimals`` is rejected rather than rounded.

    Raises:
        ValueError: If the text is not a non-negative decimal or is not
            representable in base units.
        OverflowError: If the result does not fit in uint256.
    """
    raw = text.strip()
    if not raw:
        raise ValueError("Amount is empty")

    try:
        amount = Decimal(raw)
    except InvalidOperation:
        raise ValueError(f"Not a decimal number: {text!r}") from None

    if not amount.is_finite():
        raise ValueError(f"Not a finite number: {text!r}")
    if amount.is_signed() and amount != 0:
        raise ValueError(f"Amount must not be negative: {text!r}")
    # 2**256 has 78 digits; anything past that cannot fit after scaling
    if amount != 0 and amount.adjusted() + decimals > 80:
        raise OverflowError(f"Amount out of uint256 range: {text!r}")

    with localcontext() as ctx:
        ctx.prec = 200
        scaled = amount.scaleb(decimals)
        if scaled != scaled.to_integral_value():
            raise ValueError(
                f"Amount {text!r} has more than {decimals} decimal places"
            )
        value = int(scaled)

    return check_uint256(value, "amount")


def format_units(value: int, decimals: int) -> str:
    """Render a base-unit amount as the shortest exact decimal string."""
    if value < 0:
        raise ValueError(f"Amount must not be negative: {value}")
    whole, frac = divmod(value, 10**decimals)
    frac_digits = str(frac).rjust(decimals, "0").rstrip("0")
    if frac_digits:
        return f"{whole}.{frac_digits}"
    return str(whole)


def parse_ether(text: str) -> int:
    return parse_units(text, ETHER_DECIMALS)


def format_ether(value: int) -> str:
    return format_units(value, ETHER_DECIMALS)


def parse_gwei(text: str) -> int:
    return parse_units(text, GWEI_DECIMALS)


def format_gwei(value: int) -> str:
    return format_units(value, GWEI_DECIMALS)


# ---------------------------------------------------------------------------
# JSON-RPC quantities
# ---------------------------------------------------------------------------

def hex_to_int(value: Any) -> int:
    """Decode a JSON-RPC quantity ('0x1a', or an int some nodes send)."""
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if not isinstance(value, str):
        raise TypeError(f"expected a hex quantity, got {value!r}")
    return int(value, 16)


# ---------------------------------------------------------------------------
# Addresses
# ---------------------------------------------------------------------------

def _strip_hex_prefix(text: str) -> str:
    if text[:2] in ("0x", "0X"):
        return text[2:]
    return text


def to_checksum_address(address: bytes | str) -> str:
    """Convert an address to EIP-55 checksummed format."""
    if isinstance(address, (bytes, bytearray)):
        if len(address) != 20:
            raise ValueError(f"Address must be 20 bytes, got {len(address)}")
        addr = bytes(address).hex()
    else:
        addr = _strip_hex_prefix(address.strip()).lower()

    addr_hash = keccak(addr.encode("ascii")).hex()
    result = "0x"
    for i, c in enumerate(addr):
        if c in "abcdef":
            result += c.upper() if int(addr_hash[i], 16) >= 8 else c
        else:
            result += c
    return result


def parse_address(text: str) -> bytes:
    """
    Parse a hex address into its 20 raw bytes.

    The ``0x`` prefix is optional. Mixed-case input must carry a valid
    EIP-55 checksum; all-lowercase and all-uppercase input is accepted as is.

    Raises:
        ValueError: If the text is not a well-formed address.
    """
    body = _strip_hex_prefix(text.strip())
    if len(body) != 40 or not set(body) <= _HEX_DIGITS:
        raise ValueError(f"Not a 20-byte hex address: {text!r}")

    if body != body.lower() and body != body.upper():
        if to_checksum_address(body) != "0x" + body:
            raise ValueError(f"Address checksum mismatch: {text!r}")

    return bytes.fromhex(body)
