"""
ECDSA / secp256k1 signing for nauta.

Wraps an eth-account ``LocalAccount``. The chain id is a required argument
of every signing call and is written into the EIP-1559 payload, so a
signed transfer is only valid on the chain it was built for.

Keys may be kept in ~/.nauta/.env as SENDER_PRIVATE_KEY (hex format).
"""

from __future__ import annotations

import os
import secrets
from pathlib import Path
from typing import Optional

from eth_account import Account
from eth_account.signers.local import LocalAccount

from ..errors import NautaError
from ..models import FinalTransaction, SignedTransaction

# Default config directory
NAUTA_DIR = Path.home() / ".nauta"
NAUTA_ENV = NAUTA_DIR / ".env"

PRIVATE_KEY_VAR = "SENDER_PRIVATE_KEY"


class SigningError(NautaError):
    exit_code = 4


def generate_key() -> tuple[str, str]:
    """
    Generate a new secp256k1 keypair.

    Returns:
        Tuple of (private_key_hex, address)
        - private_key_hex: 0x-prefixed hex private key (66 chars)
        - address: 0x-prefixed checksummed address (42 chars)
    """
    private_key = "0x" + secrets.token_hex(32)
    account = Account.from_key(private_key)
    return private_key, account.address


def save_private_key(private_key: str, env_path: Optional[Path] = None) -> Path:
    """
    Save a private key to the .env file, keeping any other entries.

    Args:
        private_key: 0x-prefixed hex private key
        env_path: Path to .env file (default: ~/.nauta/.env)

    Returns:
        Path to the saved .env file
    """
    env_path = env_path or NAUTA_ENV
    env_path.parent.mkdir(parents=True, exist_ok=True)

    existing = {}
    if env_path.exists():
        for line in env_path.read_text(encoding="utf-8").splitlines():
            line = line.strip()
            if line and not line.startswith("#") and "=" in line:
                k, v = line.split("=", 1)
                existing[k.strip()] = v.strip()

    existing[PRIVATE_KEY_VAR] = private_key

    lines = [f"{k}={v}" for k, v in existing.items()]
    env_path.write_text("\n".join(lines) + "\n", encoding="utf-8")

    # Owner-only on Unix
    if os.name != "nt":
        env_path.chmod(0o600)

    return env_path


class Signer:
    """
    Holds one private key and signs type-2 transactions with it.

    Args:
        private_key: 32 raw bytes or a hex string (0x prefix optional)

    Raises:
        SigningError: If the key cannot be loaded
    """

    def __init__(self, private_key: bytes | str) -> None:
        try:
            self._account: LocalAccount = Account.from_key(private_key)
        except Exception as exc:
            # exc text never contains the key material
            raise SigningError(f"Invalid signing key: {exc}") from None

    def __repr__(self) -> str:
        return f"Signer(address={self.address})"

    @property
    def address(self) -> str:
        return self._account.address

    @property
    def address_bytes(self) -> bytes:
        return bytes.fromhex(self._account.address[2:])

    def sign(self, tx: FinalTransaction, *, chain_id: int) -> SignedTransaction:
        """
        Sign a final transaction for ``chain_id``.

        Raises:
            SigningError: On a chain id that is not a positive integer, a
                transaction whose sender is not this key, or any failure
                inside eth-account
        """
        if isinstance(chain_id, bool) or not isinstance(chain_id, int) or chain_id <= 0:
            raise SigningError(f"chain_id must be a positive integer, got {chain_id!r}")
        if tx.sender != self.address_bytes:
            raise SigningError(
                f"Transaction sender 0x{tx.sender.hex()} does not match "
                f"signing key {self.address}"
            )

        try:
            signed = self._account.sign_transaction(tx.to_signable(chain_id))
        except Exception as exc:
            raise SigningError(f"Signing failed: {exc}") from exc

        return SignedTransaction(
            raw=bytes(signed.raw_transaction),
            hash="0x" + bytes(signed.hash).hex(),
            chain_id=chain_id,
        )
