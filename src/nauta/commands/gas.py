"""Gas - Show current gas pricing for a plain transfer."""

from __future__ import annotations

import click

from . import RPC_URL_OPTION, fail
from ..chain.client import ChainClient
from ..errors import NautaError
from ..fees import DEFAULT_PRIORITY_FEE, TRANSFER_GAS, compute_fees, estimate_legacy_cost
from ..units import format_ether, format_gwei


@click.command("gas-price")
@click.option("--gas-limit", type=int, default=TRANSFER_GAS, show_default=True, help="Gas limit to price")
@RPC_URL_OPTION
def gas_price(gas_limit: int, rpc_url: str) -> None:
    """
    Show the node's gas price and the cost of a transfer.

    Prints both the legacy estimate (gas price x limit) and the EIP-1559
    worst case this tool would authorize.
    """
    try:
        with ChainClient(rpc_url) as client:
            price = client.get_gas_price()
            block = client.get_latest_block()
        legacy = estimate_legacy_cost(price, gas_limit)
        fees = compute_fees(block.base_fee_per_gas, gas_limit, DEFAULT_PRIORITY_FEE)
    except NautaError as exc:
        fail(exc)
    except OverflowError as exc:
        raise click.BadParameter(str(exc), param_hint="--gas-limit") from None

    click.echo(f"Gas price:        {price} wei ({format_gwei(price)} gwei)")
    click.echo(f"Gas limit:        {gas_limit}")
    click.echo(f"Estimated cost:   {legacy} wei (~{format_ether(legacy)} ETH)")
    click.echo()
    base = "n/a" if block.base_fee_per_gas is None else f"{block.base_fee_per_gas} wei"
    click.echo(f"Base fee (#{block.number}): {base}")
    click.echo(f"Max fee per gas:  {fees.max_fee_per_gas} wei")
    click.echo(
        f"Max cost:         {fees.estimated_total_cost} wei "
        f"(~{format_ether(fees.estimated_total_cost)} ETH)"
    )
