"""
txrail CLI

Command-line front end for the transaction layer.

Commands:
  init      - Create the signer key file
  whoami    - Show the signer address
  route     - Show which transport a JSON-RPC method is routed to
  gas-price - Show the congestion-aware gas price
  deploy    - Deploy a compiled contract artifact
  send      - Send raw calldata to an address
  call      - Read a contract function with eth_call
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator, Optional

import click

from .config import Settings, load_settings
from .errors import TxRailError
from .signer import LocalSigner, generate_eoa, load_private_key, save_private_key
from .submit.contract import ContractHandle
from .submit.dispatch import TransactionDispatcher
from .submit.gas import GasPriceEstimator, price_for
from .wire.abi import load_contract_json
from .wire.router import ProviderRouter
from .wire.rpc import HttpTransport


VERSION = "0.3.0"


# ============ Wiring ============


def _build_router(settings: Settings) -> ProviderRouter:
    read = HttpTransport(settings.read_rpc_url, timeout=settings.rpc_timeout)
    if settings.write_rpc_url == settings.read_rpc_url:
        write = read
    else:
        write = HttpTransport(settings.write_rpc_url, timeout=settings.rpc_timeout)
    return ProviderRouter(read, write)


@asynccontextmanager
async def _connect(settings: Settings) -> AsyncIterator[ProviderRouter]:
    router = _build_router(settings)
    try:
        yield router
    finally:
        closed = set()
        for transport in (router.read_transport, router.write_transport):
            aclose = getattr(transport, "aclose", None)
            if aclose is not None and id(transport) not in closed:
                closed.add(id(transport))
                await aclose()


def _handle(router: ProviderRouter, settings: Settings, contract_json: Any,
            address: Optional[str] = None) -> ContractHandle:
    return ContractHandle(
        router,
        contract_json,
        address,
        estimator=GasPriceEstimator(router, settings.fixed_gas_price),
        dispatcher=TransactionDispatcher(router, poll_interval=settings.poll_interval),
    )


def _parse_args(args_json: str) -> list:
    try:
        args = json.loads(args_json)
        if not isinstance(args, list):
            raise ValueError("Args must be a JSON array")
    except (json.JSONDecodeError, ValueError) as exc:
        click.secho(f"ERROR: Invalid args: {exc}", fg="red")
        sys.exit(1)
    return args


def _load_artifact(path: Path) -> dict:
    try:
        return load_contract_json(path)
    except ValueError as exc:
        click.secho(f"ERROR: {path}: {exc}", fg="red")
        sys.exit(1)


def _private_key(settings: Settings) -> str:
    try:
        return settings.private_key or load_private_key()
    except ValueError as exc:
        click.secho(f"ERROR: {exc}", fg="red")
        sys.exit(1)


def _signer(router: ProviderRouter, settings: Settings,
            private_key: Optional[str]) -> Optional[LocalSigner]:
    if private_key is None:
        return None
    return LocalSigner.from_key(private_key, router, settings.chain_id)


def _progress(count: int) -> None:
    click.echo(click.style("  confirmations: ", dim=True) + str(count))


def _run(coro: Any) -> Any:
    try:
        return asyncio.run(coro)
    except TxRailError as exc:
        click.secho(f"ERROR: {exc}", fg="red")
        sys.exit(exc.exit_code)
    except Exception as exc:
        click.secho(f"ERROR: {type(exc).__name__}: {exc}", fg="red")
        sys.exit(1)


# ============ Main CLI Group ============


@click.group()
@click.version_option(version=VERSION, prog_name="txrail")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.option(
    "--env-file",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Dotenv file (default: ~/.txrail/.env)",
)
@click.pass_context
def cli(ctx: click.Context, verbose: bool, env_file: Optional[Path]) -> None:
    """txrail - transaction submission and provider routing."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    ctx.ensure_object(dict)
    ctx.obj["env_file"] = env_file
    ctx.obj["settings"] = load_settings(env_file)


# ============ Commands ============


@cli.command()
@click.option("--force", is_flag=True, help="Replace an existing key")
@click.pass_context
def init(ctx: click.Context, force: bool) -> None:
    """Create the signer key file (keeps an existing key unless --force)."""
    env_file: Optional[Path] = ctx.obj["env_file"]
    if not force:
        try:
            private_key = ctx.obj["settings"].private_key or load_private_key(env_file)
        except ValueError:
            pass
        else:
            click.echo(f"Signer key already present: {LocalSigner.from_key(private_key).address}")
            click.echo("Use --force to replace it.")
            return

    private_key, address = generate_eoa()
    path = save_private_key(private_key, env_file)
    click.secho("SUCCESS: Signer key created!", fg="green")
    click.echo(f"  Address: {address}")
    click.echo(f"  Stored in: {path}")


@cli.command()
@click.pass_context
def whoami(ctx: click.Context) -> None:
    """Show the signer address."""
    settings: Settings = ctx.obj["settings"]
    try:
        private_key = settings.private_key or load_private_key()
    except ValueError:
        click.echo("No signer key found.")
        click.echo("Set PRIVATE_KEY in ~/.txrail/.env or the environment.")
        sys.exit(1)
    click.echo(f"Address: {LocalSigner.from_key(private_key).address}")


@cli.command()
@click.argument("method")
def route(method: str) -> None:
    """Show which transport METHOD is routed to."""
    router = ProviderRouter(read_transport=None, write_transport=None)
    click.echo(f"{method} -> {'write' if router.is_write(method) else 'read'}")


@cli.command("gas-price")
@click.pass_context
def gas_price(ctx: click.Context) -> None:
    """Show the congestion-aware gas price."""
    settings: Settings = ctx.obj["settings"]

    async def _go() -> None:
        async with _connect(settings) as router:
            estimator = GasPriceEstimator(router, settings.fixed_gas_price)
            price = await estimator.estimate()
            click.echo(f"Gas price: {price} wei")
            if settings.fixed_gas_price is not None:
                click.echo(click.style("  (fixed by TXRAIL_GAS_PRICE)", dim=True))
                return
            try:
                sample = await estimator.sample()
            except Exception as exc:
                click.secho(f"  Fallback pricing in effect: {exc}", fg="yellow")
                return
            click.echo(click.style("  Base:        ", dim=True) + str(sample.base_gas_price))
            click.echo(click.style("  Utilization: ", dim=True) + f"{sample.utilization:.2%}")
            click.echo(click.style("  Multiplier:  ", dim=True) + f"{sample.ratio_percent / 100:.2f}x")
            if price_for(sample) != price:
                click.secho("  (block changed between samples)", dim=True)

    _run(_go())


@cli.command()
@click.option(
    "--artifact",
    required=True,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Compiled contract JSON (Truffle or Foundry)",
)
@click.option("--args", "args_json", default="[]", help="Constructor args as JSON array")
@click.option("--wallet", is_flag=True, help="Deploy with the write transport's account")
@click.pass_context
def deploy(ctx: click.Context, artifact: Path, args_json: str, wallet: bool) -> None:
    """Deploy a contract artifact."""
    settings: Settings = ctx.obj["settings"]
    args = _parse_args(args_json)
    contract_json = _load_artifact(artifact)
    private_key = None if wallet else _private_key(settings)

    async def _go() -> dict:
        async with _connect(settings) as router:
            signer = _signer(router, settings, private_key)
            handle = _handle(router, settings, contract_json)
            receipt = await handle.deploy(signer, args=args, progress=_progress)
            click.secho("SUCCESS: Contract deployed!", fg="green")
            click.echo(f"  Address: {handle.get_address()}")
            click.echo(f"  TX: {receipt.get('transactionHash')}")
            return receipt

    _run(_go())


@cli.command()
@click.option("--to", "to_address", required=True, help="Target address")
@click.option("--data", default="0x", help="Hex calldata")
@click.option("--value", default=0, type=int, help="Value in wei")
@click.option("--wallet", is_flag=True, help="Send with the write transport's account")
@click.pass_context
def send(ctx: click.Context, to_address: str, data: str, value: int, wallet: bool) -> None:
    """Send raw calldata to an address."""
    settings: Settings = ctx.obj["settings"]
    private_key = None if wallet else _private_key(settings)

    async def _go() -> dict:
        async with _connect(settings) as router:
            signer = _signer(router, settings, private_key)
            handle = _handle(router, settings, [], to_address)
            receipt = await handle.send(signer, data, value, progress=_progress)
            click.secho("SUCCESS: Transaction confirmed!", fg="green")
            click.echo(f"  TX: {receipt.get('transactionHash')}")
            return receipt

    _run(_go())


@cli.command()
@click.option(
    "--artifact",
    required=True,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Compiled contract JSON",
)
@click.option("--address", required=True, help="Contract address")
@click.option("--function", "func_name", required=True, help="Function name")
@click.option("--args", "args_json", default="[]", help="Function args as JSON array")
@click.pass_context
def call(ctx: click.Context, artifact: Path, address: str, func_name: str,
         args_json: str) -> None:
    """Read a contract function with eth_call."""
    settings: Settings = ctx.obj["settings"]
    args = _parse_args(args_json)
    contract_json = _load_artifact(artifact)

    async def _go() -> Any:
        async with _connect(settings) as router:
            handle = _handle(router, settings, contract_json, address)
            result = await handle.call(func_name, args)
            click.echo(f"{func_name} -> {result!r}")
            return result

    _run(_go())
