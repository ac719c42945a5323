"""Token - Read ERC-20 metadata from a contract."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Optional

import click

from . import RPC_URL_OPTION, fail
from ..chain.client import ChainClient
from ..chain.erc20 import DEFAULT_TOKEN_ADDRESS, Erc20Reader, load_abi
from ..errors import NautaError
from ..units import format_units


@click.command("token-info")
@click.option(
    "--contract",
    envvar="CONTRACT_ADDRESS",
    default=DEFAULT_TOKEN_ADDRESS,
    show_default=True,
    help="ERC-20 contract address",
)
@click.option(
    "--owner",
    envvar="QUERY_ADDRESS",
    default=None,
    help="Also show this address's token balance (default: $QUERY_ADDRESS)",
)
@click.option(
    "--abi",
    "abi_path",
    envvar="WETH_ABI_PATH",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="JSON ABI file to call the contract with (default: built-in ERC-20 ABI)",
)
@RPC_URL_OPTION
def token_info(contract: str, owner: Optional[str], abi_path: Optional[Path], rpc_url: str) -> None:
    """Show name, symbol, decimals and total supply of an ERC-20 token."""
    try:
        abi = load_abi(abi_path) if abi_path else None
        with ChainClient(rpc_url) as client:
            reader = Erc20Reader(client, contract, abi)
            info = reader.info()
            held = reader.balance_of(owner) if owner else None
    except NautaError as exc:
        fail(exc)
    except ValueError as exc:
        click.secho(f"ERROR: {exc}", fg="red", err=True)
        sys.exit(1)

    click.echo(f"Contract:     {info.address}")
    if abi_path:
        click.echo(f"ABI:          {abi_path}")
    click.echo(f"Name:         {info.name}")
    click.echo(f"Symbol:       {info.symbol}")
    click.echo(f"Decimals:     {info.decimals}")
    click.echo(
        f"Total supply: {format_units(info.total_supply, info.decimals)} "
        f"{info.symbol} (raw {info.total_supply})"
    )
    if held is not None:
        click.echo(f"Balance:      {format_units(held, info.decimals)} {info.symbol}")
