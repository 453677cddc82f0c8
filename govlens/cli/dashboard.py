#!/usr/bin/env python3
"""
govlens Command Line Interface

Query governance dashboards, accounts and timelock queues from the
terminal. Output is JSON.

Usage:
    govlens dashboard [--governor ADDR] [--voter ADDR] [--bravo/--alpha] ...
    govlens account <account> [--token ADDR] [--lens ADDR]
    govlens queued [--timelock ADDR] [--from-block N]
    govlens encode <types> <args>...
"""

import asyncio
import json
from typing import Any, Awaitable, Callable, Dict, Optional

import click
import httpx

from .. import __version__
from ..config.loader import GovLensConfig, load_config
from ..context import ServiceContext, build_context
from ..crypto.contract import encode_parameters
from ..exceptions import GovLensException
from ..governance.dashboard import DashboardQuery
from ..governance.timelock import fetch_queued_transactions
from ..governance.voting import fetch_account_metadata


def run_with_context(config: GovLensConfig, action: Callable[[ServiceContext], Awaitable[Any]]) -> Any:
    """Open the shared HTTP client, wire the service and run ``action``."""
    async def runner():
        async with httpx.AsyncClient(timeout=config.network.timeout) as client:
            context = build_context(config, client)
            try:
                return await action(context)
            finally:
                await context.rpc.close()

    try:
        return asyncio.run(runner())
    except GovLensException as e:
        raise click.ClickException(f"{type(e).__name__}: {e}")
    except ValueError as e:
        raise click.ClickException(str(e))


def echo_json(data: Any) -> None:
    click.echo(json.dumps(data, indent=2, default=str))


@click.group()
@click.version_option(version=__version__, prog_name="govlens")
@click.option(
    "--config", "-c",
    "config_path",
    type=click.Path(),
    default=None,
    help="Path to config.toml (default: GOVLENS_CONFIG_PATH or ./config.toml)"
)
@click.option("--rpc-url", default=None, help="Override [network] rpc_url")
@click.option("--network", default=None, help="Override [network] name")
@click.pass_context
def cli(ctx, config_path: Optional[str], rpc_url: Optional[str], network: Optional[str]):
    """govlens - governance proposal dashboards for Compound-style governors."""
    try:
        config = load_config(config_path)
        if rpc_url:
            config.network.rpc_url = rpc_url
        if network:
            config.network.name = network
        config.validate()
    except GovLensException as e:
        raise click.ClickException(str(e))
    ctx.obj = config


@cli.command("dashboard")
@click.option("--governor", default=None, help="Governor address")
@click.option("--bravo/--alpha", "is_bravo", default=None, help="Governor variant (default: [contracts] variant)")
@click.option("--token", default=None, help="Governance token address")
@click.option("--lens", default=None, help="CompoundLens address")
@click.option("--voter", default=None, help="Voter whose receipts and prior votes to include")
@click.option("--from-block", type=int, default=None, help="First block to scan for proposal events")
@click.option("--block", type=int, default=None, help="Pin the current block (default: chain head)")
@click.option("--decimals", type=int, default=None, help="Governance token decimals")
@click.pass_obj
def dashboard_cmd(config: GovLensConfig, governor, is_bravo, token, lens, voter, from_block, block, decimals):
    """Show every proposal with its lifecycle states.

    Examples:

        govlens dashboard --voter 0xabc...

        govlens --network goerli dashboard --governor 0x123... --alpha
    """
    async def action(context: ServiceContext) -> Dict[str, Any]:
        params = context.query_defaults()
        params.update(DashboardQuery.canonical_params({
            "governor_address": governor,
            "isBravo": is_bravo,
            "governance_token_address": token,
            "lens_address": lens,
            "voter": voter,
            "initial_block_number": from_block,
            "current_block_number": block,
            "decimals": decimals,
        }))
        dashboard = await context.dashboards.query(DashboardQuery.from_dict(params))
        return dashboard.to_dict()

    echo_json(run_with_context(config, action))


@cli.command("account")
@click.argument("account")
@click.option("--token", default=None, help="Governance token address")
@click.option("--lens", default=None, help="CompoundLens address")
@click.option("--block", type=int, default=None, help="Read at this block (default: latest)")
@click.pass_obj
def account_cmd(config: GovLensConfig, account: str, token, lens, block):
    """Show token balance, votes and delegate of ACCOUNT."""
    token = token or config.contracts.token
    lens = lens or config.contracts.lens
    if not token or not lens:
        raise click.ClickException("Token and lens addresses are required (options or [contracts] config)")

    async def action(context: ServiceContext):
        metadata = await fetch_account_metadata(
            context.governance.reader, lens, token, account, config.contracts.decimals, block
        )
        return metadata.to_dict()

    echo_json(run_with_context(config, action))


@cli.command("queued")
@click.option("--timelock", default=None, help="Timelock address")
@click.option("--from-block", type=int, default=None, help="First block to scan for QueueTransaction events")
@click.pass_obj
def queued_cmd(config: GovLensConfig, timelock, from_block):
    """List timelock transactions that are still queued and executable."""
    timelock = timelock or config.contracts.timelock
    if not timelock:
        raise click.ClickException("Timelock address is required (--timelock or [contracts] config)")

    async def action(context: ServiceContext):
        gov = context.governance
        queued = await fetch_queued_transactions(
            gov.logs,
            gov.reader,
            timelock,
            config.contracts.initial_block if from_block is None else from_block,
            gov.now(),
            gov.params.grace_period,
        )
        return [tx.to_dict() for tx in queued]

    echo_json(run_with_context(config, action))


@cli.command("encode")
@click.argument("types")
@click.argument("args", nargs=-1)
def encode_cmd(types: str, args):
    """ABI-encode ARGS as comma-separated TYPES.

    Examples:

        govlens encode address,uint256 0x6B17...1d0F 1000
    """
    arg_types = [t.strip() for t in types.split(",") if t.strip()]
    try:
        click.echo(encode_parameters(arg_types, list(args)))
    except (ValueError, TypeError) as e:
        raise click.ClickException(f"Cannot encode: {e}")


if __name__ == "__main__":
    cli()
