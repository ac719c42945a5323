"""
Transfer configuration.

Reads the parameters of one transfer from environment variables (and
~/.nauta/.env), applies defaults and validates everything up front so the
pipeline never starts with a malformed recipient, amount or key.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional

import httpx
from dotenv import load_dotenv

from .chain.client import DEFAULT_CHAIN_ID, DEFAULT_RPC_URL
from .errors import NautaError
from .fees import DEFAULT_PRIORITY_FEE
from .keys.signer import NAUTA_ENV, PRIVATE_KEY_VAR
from .units import format_gwei, parse_address, parse_ether, parse_gwei, to_checksum_address

RPC_URL_VAR = "ARBITRUM_RPC_URL"
CHAIN_ID_VAR = "ARBITRUM_CHAIN_ID"
RECIPIENT_VAR = "RECIPIENT_ADDRESS"
AMOUNT_VAR = "TRANSFER_AMOUNT_ETH"
PRIORITY_FEE_VAR = "PRIORITY_FEE_GWEI"
REQUIRE_BASE_FEE_VAR = "REQUIRE_BASE_FEE"

DEFAULT_AMOUNT_ETH = "0.000001"

SECP256K1_N = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141
UINT64_MAX = 2**64 - 1

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"", "0", "false", "no", "off"}


class ConfigError(NautaError):
    """A configuration value is missing or malformed."""

    exit_code = 2

    def __init__(self, message: str, *, key: Optional[str] = None) -> None:
        super().__init__(message)
        self.key = key


class MissingFieldError(ConfigError):
    def __init__(self, name: str, key: str) -> None:
        super().__init__(f"Missing {name}: set {key}", key=key)
        self.name = name


class InvalidAddressError(ConfigError):
    pass


class InvalidAmountError(ConfigError):
    pass


class InvalidSigningKeyError(ConfigError):
    pass


class InvalidChainIdError(ConfigError):
    pass


class InvalidEndpointError(ConfigError):
    pass


@dataclass(frozen=True)
class TransferConfig:
    rpc_endpoint: str
    chain_id: int
    signing_key: bytes = field(repr=False)
    recipient: bytes
    amount: int
    priority_fee: int = DEFAULT_PRIORITY_FEE
    require_base_fee: bool = False

    @property
    def recipient_address(self) -> str:
        return to_checksum_address(self.recipient)


def load_env_file(env_path: Optional[Path] = None) -> Optional[Path]:
    """
    Load a .env file into the process environment.

    Variables already set in the environment win over the file.

    Returns:
        The path that was loaded, or None if it does not exist
    """
    env_path = env_path or NAUTA_ENV
    if not env_path.exists():
        return None
    load_dotenv(env_path, override=False)
    return env_path


def parse_signing_key(text: str) -> bytes:
    raw = text.strip()
    if raw[:2] in ("0x", "0X"):
        raw = raw[2:]
    try:
        key = bytes.fromhex(raw)
    except ValueError:
        raise InvalidSigningKeyError(
            f"{PRIVATE_KEY_VAR} is not hex", key=PRIVATE_KEY_VAR
        ) from None
    if len(key) != 32:
        raise InvalidSigningKeyError(
            f"{PRIVATE_KEY_VAR} must be 32 bytes (64 hex chars), got {len(key)} bytes",
            key=PRIVATE_KEY_VAR,
        )
    if not 0 < int.from_bytes(key, "big") < SECP256K1_N:
        raise InvalidSigningKeyError(
            f"{PRIVATE_KEY_VAR} is not a valid secp256k1 private key",
            key=PRIVATE_KEY_VAR,
        )
    return key


def _parse_endpoint(text: str) -> str:
    value = text.strip()
    try:
        url = httpx.URL(value)
    except httpx.InvalidURL:
        url = None
    if url is None or url.scheme not in ("http", "https") or not url.host:
        raise InvalidEndpointError(
            f"{RPC_URL_VAR} must be an http(s) URL, got {value!r}", key=RPC_URL_VAR
        )
    return value


def _parse_chain_id(text: str) -> int:
    try:
        chain_id = int(text.strip(), 10)
    except ValueError:
        chain_id = -1
    if not 0 < chain_id <= UINT64_MAX:
        raise InvalidChainIdError(
            f"{CHAIN_ID_VAR} must be a positive 64-bit integer, got {text!r}",
            key=CHAIN_ID_VAR,
        )
    return chain_id


def _parse_flag(text: str, key: str) -> bool:
    value = text.strip().lower()
    if value in _TRUE:
        return True
    if value in _FALSE:
        return False
    raise ConfigError(f"{key} must be true or false, got {text!r}", key=key)


def resolve(
    env: Optional[Mapping[str, str]] = None,
    env_path: Optional[Path] = None,
) -> TransferConfig:
    """
    Build a TransferConfig from the environment.

    Args:
        env: Explicit variable mapping. If None, ``env_path`` (default
             ~/.nauta/.env) is loaded and ``os.environ`` is used.
        env_path: .env file to load when ``env`` is None

    Raises:
        MissingFieldError: No signing key or no recipient
        InvalidAddressError: Recipient is not a 20-byte hex address
        InvalidAmountError: Amount or priority fee is not an exact,
            non-negative decimal in range
        InvalidSigningKeyError, InvalidChainIdError, InvalidEndpointError
    """
    if env is None:
        load_env_file(env_path)
        env = os.environ

    private_key = env.get(PRIVATE_KEY_VAR, "").strip()
    if not private_key:
        raise MissingFieldError("signing_key", PRIVATE_KEY_VAR)

    recipient_text = env.get(RECIPIENT_VAR, "").strip()
    if not recipient_text:
        raise MissingFieldError("recipient", RECIPIENT_VAR)

    rpc_endpoint = _parse_endpoint(env.get(RPC_URL_VAR) or DEFAULT_RPC_URL)
    chain_id = _parse_chain_id(env.get(CHAIN_ID_VAR) or str(DEFAULT_CHAIN_ID))
    signing_key = parse_signing_key(private_key)

    try:
        recipient = parse_address(recipient_text)
    except ValueError as exc:
        raise InvalidAddressError(
            f"{RECIPIENT_VAR} is not a valid address: {exc}", key=RECIPIENT_VAR
        ) from None

    amount_text = env.get(AMOUNT_VAR) or DEFAULT_AMOUNT_ETH
    try:
        amount = parse_ether(amount_text)
    except (ValueError, OverflowError) as exc:
        raise InvalidAmountError(
            f"{AMOUNT_VAR} is not a valid ETH amount: {exc}", key=AMOUNT_VAR
        ) from None

    fee_text = env.get(PRIORITY_FEE_VAR) or format_gwei(DEFAULT_PRIORITY_FEE)
    try:
        priority_fee = parse_gwei(fee_text)
    except (ValueError, OverflowError) as exc:
        raise InvalidAmountError(
            f"{PRIORITY_FEE_VAR} is not a valid gwei amount: {exc}",
            key=PRIORITY_FEE_VAR,
        ) from None

    require_base_fee = _parse_flag(
        env.get(REQUIRE_BASE_FEE_VAR, ""), REQUIRE_BASE_FEE_VAR
    )

    return TransferConfig(
        rpc_endpoint=rpc_endpoint,
        chain_id=chain_id,
        signing_key=signing_key,
        recipient=recipient,
        amount=amount,
        priority_fee=priority_fee,
        require_base_fee=require_base_fee,
    )
