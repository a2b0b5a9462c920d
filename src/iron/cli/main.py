#!/usr/bin/env python3
"""
Iron Session CLI

Inspect and change the persisted session:
- Show the active network and account
- List known networks
- Switch network by name or chain id
- Switch wallet (mnemonic, derivation path, account index)
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from typing import Any

import click
from rich import box
from rich.console import Console
from rich.table import Table

from iron.core import config
from iron.core.context import Context
from iron.core.exceptions import IronError
from iron.core.logging_config import setup_logging
from iron.wallet.hd_wallet import Wallet

logger = logging.getLogger(__name__)
console = Console()


def _handle_cli_error(exc: Exception, exit_code: int = 1) -> None:
    """Centralized CLI error handler for consistent messaging/exit codes."""
    logger.error("CLI error: %s", exc)
    console.print(f"[bold red]Error:[/] {exc}")
    sys.exit(exit_code)


def _summary(inner) -> dict[str, Any]:
    network = inner.get_current_network()
    return {
        "network": network.name,
        "chainId": network.chain_id_hex,
        "rpcUrl": network.rpc_url,
        "address": inner.wallet.checksummed_address,
        "derivationPath": f"{inner.wallet.derivation_path}/{inner.wallet.idx}",
    }


def _print_summary(ctx: click.Context, summary: dict[str, Any], title: str) -> None:
    if ctx.obj.get("json_output"):
        click.echo(json.dumps(summary, indent=2))
        return
    table = Table(show_header=False, box=box.ROUNDED, title=title)
    table.add_row("[bold cyan]Network", f"{summary['network']} ({summary['chainId']})")
    table.add_row("[bold cyan]RPC", summary["rpcUrl"])
    table.add_row("[bold cyan]Address", summary["address"])
    table.add_row("[bold cyan]Path", summary["derivationPath"])
    console.print(table)


async def _status(db_path: str) -> dict[str, Any]:
    context = await Context.open(db_path)
    try:
        async with context.lock() as inner:
            return _summary(inner)
    finally:
        await context.close()


async def _list_networks(db_path: str) -> tuple[str, list[dict[str, Any]]]:
    context = await Context.open(db_path)
    try:
        async with context.lock() as inner:
            return inner.current_network, [n.to_dict() for n in inner.networks.values()]
    finally:
        await context.close()


async def _use_network(db_path: str, name: str | None, chain_id: int | None) -> tuple[bool, dict[str, Any]]:
    context = await Context.open(db_path)
    try:
        async with context.lock() as inner:
            if chain_id is not None:
                changed = inner.set_current_network_by_id(chain_id)
            else:
                changed = inner.set_current_network(name)
            summary = _summary(inner)
        await context.persist()
        return changed, summary
    finally:
        await context.close()


async def _use_wallet(
    db_path: str, mnemonic: str | None, path: str | None, index: int | None
) -> tuple[bool, dict[str, Any]]:
    context = await Context.open(db_path)
    try:
        async with context.lock() as inner:
            current = inner.wallet
            wallet = Wallet.derive(
                mnemonic if mnemonic is not None else current.mnemonic,
                path if path is not None else current.derivation_path,
                index if index is not None else current.idx,
                inner.get_current_network().chain_id,
            )
            changed = inner.set_wallet(wallet)
            summary = _summary(inner)
        await context.persist()
        return changed, summary
    finally:
        await context.close()


@click.group()
@click.option(
    "--db",
    "db_path",
    default=config.DB_PATH,
    show_default=True,
    envvar="IRON_DB_PATH",
    help="Session database path",
)
@click.option("--json-output", is_flag=True, help="Print machine-readable JSON")
@click.option("--log-level", default=config.LOG_LEVEL, show_default=True, help="Logging level")
@click.pass_context
def cli(ctx: click.Context, db_path: str, json_output: bool, log_level: str):
    """Iron session management."""
    setup_logging(
        name="iron",
        log_file=config.LOG_FILE,
        level=log_level,
        environment=config.ENVIRONMENT,
    )
    ctx.ensure_object(dict)
    ctx.obj["db_path"] = db_path
    ctx.obj["json_output"] = json_output


@cli.command("status")
@click.pass_context
def status(ctx: click.Context):
    """Show the active network and account."""
    try:
        summary = asyncio.run(_status(ctx.obj["db_path"]))
    except IronError as exc:
        _handle_cli_error(exc)
        return
    _print_summary(ctx, summary, "Session")


@cli.command("networks")
@click.pass_context
def networks(ctx: click.Context):
    """List known networks; the active one is marked."""
    try:
        current, entries = asyncio.run(_list_networks(ctx.obj["db_path"]))
    except IronError as exc:
        _handle_cli_error(exc)
        return

    if ctx.obj.get("json_output"):
        click.echo(json.dumps({"current": current, "networks": entries}, indent=2))
        return

    table = Table(title="Networks", box=box.ROUNDED)
    table.add_column("", width=1)
    table.add_column("Name", style="bold")
    table.add_column("Chain ID", justify="right")
    table.add_column("Currency")
    table.add_column("RPC URL", style="dim")
    for entry in entries:
        marker = "*" if entry["name"] == current else ""
        table.add_row(
            marker,
            entry["name"],
            str(entry["chain_id"]),
            f"{entry['currency']} ({entry['decimals']})",
            entry["rpc_url"],
        )
    console.print(table)


@cli.command("use-network")
@click.argument("name", required=False)
@click.option("--chain-id", type=int, help="Select the network by chain id instead of name")
@click.pass_context
def use_network(ctx: click.Context, name: str | None, chain_id: int | None):
    """
    Switch the active network.

    Example:
        iron use-network anvil
        iron use-network --chain-id 5
    """
    if (name is None) == (chain_id is None):
        raise click.UsageError("Give either a network NAME or --chain-id")

    try:
        changed, summary = asyncio.run(_use_network(ctx.obj["db_path"], name, chain_id))
    except IronError as exc:
        _handle_cli_error(exc)
        return

    logger.info("use-network: chain changed=%s", changed)
    if not ctx.obj.get("json_output"):
        note = "chain changed" if changed else "same chain id, signer unchanged"
        console.print(f"[green]Switched to {summary['network']}[/] [dim]({note})[/]")
    _print_summary(ctx, summary, "Session")


@cli.command("use-wallet")
@click.option("--mnemonic", help="BIP-39 mnemonic (defaults to the current one)")
@click.option("--path", "derivation_path", help="Derivation path template, e.g. m/44'/60'/0'/0")
@click.option("--index", type=click.IntRange(min=0), help="Account index appended to the path")
@click.pass_context
def use_wallet(
    ctx: click.Context,
    mnemonic: str | None,
    derivation_path: str | None,
    index: int | None,
):
    """
    Switch the active wallet.

    Example:
        iron use-wallet --index 1
    """
    try:
        changed, summary = asyncio.run(
            _use_wallet(ctx.obj["db_path"], mnemonic, derivation_path, index)
        )
    except IronError as exc:
        _handle_cli_error(exc)
        return

    if not ctx.obj.get("json_output"):
        note = "account changed" if changed else "same account"
        console.print(f"[green]Wallet updated[/] [dim]({note})[/]")
    _print_summary(ctx, summary, "Session")


def main() -> int:
    cli(obj={})
    return 0


if __name__ == "__main__":
    sys.exit(main())
