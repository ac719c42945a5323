"""Balance - Show the native-token balance of an address."""

from __future__ import annotations

import os
from typing import Optional

import click

from . import RPC_URL_OPTION, fail
from ..chain.client import ChainClient
from ..config import ConfigError, InvalidAddressError, load_env_file, parse_signing_key
from ..errors import NautaError
from ..keys.signer import PRIVATE_KEY_VAR, Signer
from ..units import format_ether, parse_address, to_checksum_address


def _default_address() -> str:
    load_env_file()
    private_key = os.environ.get(PRIVATE_KEY_VAR, "").strip()
    if not private_key:
        raise ConfigError(
            f"No ADDRESS given and {PRIVATE_KEY_VAR} is not set", key=PRIVATE_KEY_VAR
        )
    return Signer(parse_signing_key(private_key)).address


@click.command()
@click.argument("address", required=False)
@RPC_URL_OPTION
def balance(address: Optional[str], rpc_url: str) -> None:
    """
    Show the balance of ADDRESS in ETH.

    Defaults to the address of SENDER_PRIVATE_KEY.
    """
    try:
        if address is None:
            address = _default_address()
        try:
            checksummed = to_checksum_address(parse_address(address))
        except ValueError as exc:
            raise InvalidAddressError(str(exc)) from None

        with ChainClient(rpc_url) as client:
            wei = client.get_balance(checksummed)
    except NautaError as exc:
        fail(exc)

    click.echo(f"Address: {checksummed}")
    click.echo(f"Balance: {format_ether(wei)} ETH ({wei} wei)")
