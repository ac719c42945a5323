"""
Command implementations for the nauta CLI.

Each module holds one or more top-level commands:
- transfer: Send native token with EIP-1559 fees and wait for the receipt
- balance:  Show an address balance
- gas:      Show gas price and fee estimates for a plain transfer
- token:    Read ERC-20 metadata
"""

from __future__ import annotations

import sys
from typing import NoReturn

import click

from ..chain.client import DEFAULT_RPC_URL, ConfirmationCancelled, ConfirmationTimeout
from ..config import (
    AMOUNT_VAR,
    CHAIN_ID_VAR,
    PRIORITY_FEE_VAR,
    RECIPIENT_VAR,
    REQUIRE_BASE_FEE_VAR,
    RPC_URL_VAR,
    ConfigError,
)
from ..errors import MalformedResponse, NautaError, NetworkUnavailable, RpcError
from ..keys.signer import PRIVATE_KEY_VAR
from ..transfer import (
    BroadcastRejected,
    EstimationFailed,
    FeeDataUnavailable,
    SigningFailed,
)

RPC_URL_OPTION = click.option(
    "--rpc-url",
    envvar=RPC_URL_VAR,
    default=DEFAULT_RPC_URL,
    show_default=True,
    help="Execution-layer RPC URL",
)

_KEY_HINTS = {
    PRIVATE_KEY_VAR: "Set SENDER_PRIVATE_KEY (64 hex chars) or run 'nauta keygen --save'.",
    RECIPIENT_VAR: "Set RECIPIENT_ADDRESS or pass --to 0x...",
    AMOUNT_VAR: "Use a plain decimal ETH amount with at most 18 decimals, e.g. 0.000001.",
    PRIORITY_FEE_VAR: "Use a plain decimal gwei amount with at most 9 decimals.",
    CHAIN_ID_VAR: "Use a positive integer chain id, e.g. 421614 for Arbitrum Sepolia.",
    RPC_URL_VAR: "Use an http:// or https:// endpoint.",
    REQUIRE_BASE_FEE_VAR: "Use true or false.",
}


def _hint_for(exc: NautaError) -> str | None:
    if isinstance(exc, ConfigError):
        return _KEY_HINTS.get(exc.key or "")
    if isinstance(exc, EstimationFailed):
        return "The transfer would revert or cannot be simulated; check balance and recipient."
    if isinstance(exc, FeeDataUnavailable):
        return f"The latest block has no usable base fee; unset {REQUIRE_BASE_FEE_VAR} to fall back to zero."
    if isinstance(exc, SigningFailed):
        return "Check SENDER_PRIVATE_KEY and the chain id."
    if isinstance(exc, BroadcastRejected):
        return "Fix funding, nonce or amount before sending again; the same payload will be rejected again."
    if isinstance(exc, MalformedResponse):
        return f"The node returned data that cannot be decoded; try another {RPC_URL_VAR}."
    if isinstance(exc, NetworkUnavailable):
        return f"Check connectivity to the node or set {RPC_URL_VAR}."
    if isinstance(exc, RpcError):
        return "The node refused the request; see the message above."
    if isinstance(exc, (ConfirmationTimeout, ConfirmationCancelled)):
        return "The transaction was broadcast and may still be included; do not resend it."
    return None


def fail(exc: NautaError) -> NoReturn:
    """Print a one-line error plus a hint and exit with the error's code."""
    click.secho(f"ERROR: {exc}", fg="red", err=True)
    hint = _hint_for(exc)
    if hint:
        click.echo(f"  {hint}", err=True)
    sys.exit(exc.exit_code)
