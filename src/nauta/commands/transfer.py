"""
Transfer - Send native token with EIP-1559 fees.

Flow:
1. Resolve configuration (env, ~/.nauta/.env, command-line overrides)
2. Estimate gas for a probe transaction
3. Price it from the latest block base fee
4. Sign with the chain id bound in, broadcast
5. Wait for the receipt
"""

from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import Optional

import click

from . import fail
from ..chain.client import ChainClient
from ..config import (
    AMOUNT_VAR,
    CHAIN_ID_VAR,
    PRIORITY_FEE_VAR,
    RECIPIENT_VAR,
    REQUIRE_BASE_FEE_VAR,
    RPC_URL_VAR,
    ConfigError,
    TransferConfig,
    load_env_file,
    resolve,
)
from ..errors import NautaError
from ..keys.signer import Signer, SigningError
from ..transfer import (
    SigningFailed,
    TransferEvent,
    TransferPipeline,
    TransferState,
    execute_transfer,
)
from ..units import format_ether, format_gwei


def _label(name: str) -> str:
    return click.style(f"  {name:<14}", dim=True)


def _wei_and_gwei(value: int) -> str:
    return f"{value} wei ({format_gwei(value)} gwei)"


def _wei_and_eth(value: int) -> str:
    return f"{value} wei (~{format_ether(value)} ETH)"


class ProgressPrinter:
    """Renders TransferEvents as they arrive; remembers the tx hash."""

    def __init__(self) -> None:
        self.tx_hash: Optional[str] = None

    def __call__(self, event: TransferEvent) -> None:
        data = event.data
        state = event.state

        if state is TransferState.BUILT:
            click.echo(_label("Sender:") + str(data["sender"]))
            click.echo(_label("Recipient:") + str(data["recipient"]))
            click.echo(_label("Amount:") + f"{format_ether(data['value'])} ETH")
            click.echo(_label("RPC:") + str(data["rpc_url"]))
            click.echo(_label("Chain ID:") + str(data["chain_id"]))
            click.echo()
        elif state is TransferState.ESTIMATED:
            click.echo(_label("Gas limit:") + str(data["gas_limit"]))
        elif state is TransferState.FEES_COMPUTED:
            click.echo(_label("Base fee:") + _wei_and_gwei(data["base_fee_per_gas"]))
            click.echo(_label("Priority fee:") + _wei_and_gwei(data["max_priority_fee_per_gas"]))
            click.echo(_label("Max fee:") + _wei_and_gwei(data["max_fee_per_gas"]))
            click.echo(_label("Max cost:") + _wei_and_eth(data["estimated_total_cost"]))
            click.echo()
        elif state is TransferState.SIGNED:
            click.echo(_label("Nonce:") + str(data["nonce"]))
        elif state is TransferState.BROADCAST:
            self.tx_hash = data["tx_hash"]
            click.echo(_label("TX:") + click.style(str(data["tx_hash"]), fg="bright_white"))
            click.echo("  Waiting for confirmation...")
        elif state is TransferState.CONFIRMED:
            click.echo(_label("Block:") + str(data["block"]))
            click.echo(_label("Gas used:") + str(data["gas_used"]))
            price = data.get("effective_gas_price")
            if price is not None:
                click.echo(_label("Fee paid:") + _wei_and_eth(price * data["gas_used"]))


def _build_env(overrides: dict[str, Optional[str]]) -> dict[str, str]:
    env = dict(os.environ)
    env.update({k: v for k, v in overrides.items() if v is not None})
    return env


@click.command()
@click.option("--to", "recipient", default=None, help=f"Recipient address (default: ${RECIPIENT_VAR})")
@click.option("--amount", default=None, help=f"Amount in ETH (default: ${AMOUNT_VAR} or 0.000001)")
@click.option("--rpc-url", default=None, help=f"RPC URL (default: ${RPC_URL_VAR} or Arbitrum Sepolia)")
@click.option("--chain-id", default=None, help=f"Chain ID (default: ${CHAIN_ID_VAR} or 421614)")
@click.option("--priority-fee-gwei", default=None, help=f"Tip per gas in gwei (default: ${PRIORITY_FEE_VAR} or 1)")
@click.option(
    "--require-base-fee/--allow-missing-base-fee",
    default=None,
    help="Fail instead of using zero when the latest block has no base fee",
)
@click.option("--timeout", type=float, default=None, help="Stop waiting for the receipt after N seconds")
@click.option("--poll-interval", type=float, default=2.0, show_default=True, help="Seconds between receipt polls")
@click.option(
    "--env-file",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Load variables from this .env file (default: ~/.nauta/.env)",
)
@click.option("--dry-run", is_flag=True, help="Estimate and price only; do not sign or send")
def transfer(
    recipient: Optional[str],
    amount: Optional[str],
    rpc_url: Optional[str],
    chain_id: Optional[str],
    priority_fee_gwei: Optional[str],
    require_base_fee: Optional[bool],
    timeout: Optional[float],
    poll_interval: float,
    env_file: Optional[Path],
    dry_run: bool,
) -> None:
    """
    Send native token to an address and wait for inclusion.

    Gas is estimated by the node, fees are priced from the latest base fee
    (max fee = 2 x base fee + tip), and the transaction is signed for the
    configured chain id only.
    """
    click.echo("=== nauta transfer ===")
    click.echo("")

    load_env_file(env_file)
    env = _build_env({
        RECIPIENT_VAR: recipient,
        AMOUNT_VAR: amount,
        RPC_URL_VAR: rpc_url,
        CHAIN_ID_VAR: chain_id,
        PRIORITY_FEE_VAR: priority_fee_gwei,
        REQUIRE_BASE_FEE_VAR: None if require_base_fee is None else str(require_base_fee),
    })

    try:
        config = resolve(env)
    except ConfigError as exc:
        fail(exc)

    if dry_run:
        _quote(config)
        return

    progress = ProgressPrinter()
    try:
        receipt = execute_transfer(
            config,
            on_event=progress,
            poll_interval=poll_interval,
            timeout=timeout,
        )
    except NautaError as exc:
        fail(exc)
    except KeyboardInterrupt:
        click.echo()
        if progress.tx_hash:
            click.secho(
                f"Interrupted. {progress.tx_hash} was broadcast and may still be included.",
                fg="yellow",
            )
        else:
            click.secho("Interrupted before broadcast.", fg="yellow")
        sys.exit(130)

    click.echo()
    if receipt.succeeded:
        click.secho("SUCCESS: Transfer confirmed!", fg="green")
        click.echo(f"  TX: {receipt.transaction_hash}")
    else:
        click.secho("FAILED: Transaction reverted", fg="red")
        click.echo(f"  TX: {receipt.transaction_hash}")
        sys.exit(1)


def _quote(config: TransferConfig) -> None:
    try:
        signer = Signer(config.signing_key)
    except SigningError as exc:
        fail(SigningFailed(str(exc)))

    with ChainClient(config.rpc_endpoint) as client:
        pipeline = TransferPipeline(config, client, signer, on_event=ProgressPrinter())
        try:
            pipeline.quote()
        except NautaError as exc:
            fail(exc)

    click.secho("Dry run: nothing was signed or sent.", fg="cyan")
