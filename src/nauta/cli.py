"""
nauta CLI

Command-line interface for sending EIP-1559 native-token transfers.

Commands:
  transfer    - Send native token and wait for the receipt
  balance     - Show an address balance
  gas-price   - Show gas pricing for a plain transfer
  token-info  - Read ERC-20 metadata
  whoami      - Show the sender address
  keygen      - Generate a new sender key
  info        - Show configuration
"""

from __future__ import annotations

import os
import sys

import click

from .commands import fail
from .config import (
    AMOUNT_VAR,
    CHAIN_ID_VAR,
    DEFAULT_AMOUNT_ETH,
    RECIPIENT_VAR,
    RPC_URL_VAR,
    ConfigError,
    load_env_file,
    parse_signing_key,
)
from .chain.client import DEFAULT_CHAIN_ID, DEFAULT_RPC_URL
from .errors import NautaError
from .keys.signer import NAUTA_ENV, PRIVATE_KEY_VAR, Signer, generate_key, save_private_key
from .log import configure_logging


# ============ Constants ============

VERSION = "0.3.0"


# ============ Banner ============


def _print_banner() -> None:
    click.echo(
        click.style("  ◆ ", fg="cyan")
        + click.style("N A U T A", fg="bright_white", bold=True)
        + click.style(f"  v{VERSION}", dim=True)
    )
    click.echo()


# ============ Main CLI Group ============


@click.group(invoke_without_command=True)
@click.version_option(version=VERSION, prog_name="nauta")
@click.option("-v", "--verbose", count=True, help="Log progress (-v) or RPC traffic (-vv) to stderr")
@click.option("--log-json", is_flag=True, help="Emit logs as JSON lines")
@click.pass_context
def cli(ctx: click.Context, verbose: int, log_json: bool) -> None:
    """nauta - EIP-1559 transfers on Arbitrum and other EVM chains."""
    level = {0: "WARNING", 1: "INFO"}.get(verbose, "DEBUG")
    configure_logging(level, json=log_json)
    if ctx.invoked_subcommand is None:
        _print_banner()
        click.echo(ctx.get_help())


# ============ Top-level Commands ============

from .commands.transfer import transfer
from .commands.balance import balance
from .commands.gas import gas_price
from .commands.token import token_info

cli.add_command(transfer)
cli.add_command(balance)
cli.add_command(gas_price)
cli.add_command(token_info)


# ============ Identity ============


def _load_signer() -> Signer:
    load_env_file()
    private_key = os.environ.get(PRIVATE_KEY_VAR, "").strip()
    if not private_key:
        raise ConfigError(f"{PRIVATE_KEY_VAR} is not set", key=PRIVATE_KEY_VAR)
    return Signer(parse_signing_key(private_key))


@cli.command()
def whoami() -> None:
    """Show the address of SENDER_PRIVATE_KEY."""
    try:
        signer = _load_signer()
    except NautaError as exc:
        fail(exc)
    click.echo(f"Address: {signer.address}")


@cli.command()
@click.option("--save", is_flag=True, help=f"Write the key to {NAUTA_ENV}")
@click.option("--force", is_flag=True, help="Overwrite an existing SENDER_PRIVATE_KEY")
def keygen(save: bool, force: bool) -> None:
    """Generate a new secp256k1 key for sending."""
    if save and not force:
        load_env_file()
        if os.environ.get(PRIVATE_KEY_VAR):
            click.secho(
                f"ERROR: {PRIVATE_KEY_VAR} already set; use --force to replace it.",
                fg="red",
                err=True,
            )
            sys.exit(1)

    private_key, address = generate_key()
    click.echo(f"Address: {address}")

    if save:
        path = save_private_key(private_key)
        click.echo(f"Saved:   {path}")
        click.secho("IMPORTANT: Back up this file - loss is irreversible.", fg="yellow", bold=True)
    else:
        click.echo(f"Private key: {private_key}")
        click.secho("Store this key securely; it is not saved anywhere.", fg="yellow")


# ============ Info ============


@cli.command()
def info() -> None:
    """Show effective configuration (secrets are never printed)."""
    _print_banner()
    env_path = load_env_file()

    def row(label: str, value: str) -> None:
        click.echo(click.style(f"  {label:<12} ", dim=True) + value)

    row("Env file:", str(env_path) if env_path else click.style("none", fg="yellow"))
    row("RPC:", os.environ.get(RPC_URL_VAR) or DEFAULT_RPC_URL)
    row("Chain ID:", os.environ.get(CHAIN_ID_VAR) or str(DEFAULT_CHAIN_ID))
    row("Amount:", f"{os.environ.get(AMOUNT_VAR) or DEFAULT_AMOUNT_ETH} ETH")
    row("Recipient:", os.environ.get(RECIPIENT_VAR) or click.style("not set", fg="yellow"))

    try:
        sender = _load_signer().address
    except NautaError:
        sender = click.style("not set", fg="yellow") + click.style("  (run: nauta keygen --save)", dim=True)
    row("Sender:", sender)
    click.echo()


# ============ Entry Points ============


def main() -> None:
    """nauta CLI entry point."""
    # UTF-8 output on Windows for the banner glyphs
    if sys.platform == "win32":
        try:
            sys.stdout.reconfigure(encoding="utf-8")  # type: ignore[union-attr]
            sys.stderr.reconfigure(encoding="utf-8")  # type: ignore[union-attr]
        except (AttributeError, OSError):
            pass
    cli()


if __name__ == "__main__":
    main()
