"""
segsend CLI - send a single-input P2WPKH payment through an Esplora relay.
"""

from __future__ import annotations

import asyncio
import sys
from typing import TYPE_CHECKING

import typer
from loguru import logger
from pydantic import ValidationError

from segsend.errors import NoFundsError, SegsendError

if TYPE_CHECKING:
    from segsend.config import SendSettings
    from segsend.models import UTXO
    from segsend.pipeline import PipelineResult

app = typer.Typer(
    name="segsend",
    help="Build, sign and broadcast a P2WPKH payment",
    add_completion=False,
)


def setup_logging(level: str = "INFO") -> None:
    """Configure loguru logging."""
    logger.remove()
    logger.add(
        sys.stderr,
        level=level.upper(),
        format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | {message}",
    )


def _load_settings(**overrides: object) -> SendSettings:
    """Build settings from CLI options, falling back to SEGSEND_* env vars."""
    from segsend.config import SendSettings

    try:
        return SendSettings(**{k: v for k, v in overrides.items() if v is not None})
    except ValidationError as e:
        logger.error(f"Invalid configuration: {e}")
        raise typer.Exit(1)


@app.command()
def send(
    destination: str | None = typer.Option(None, "--to", "-t", help="Destination address"),
    amount: int | None = typer.Option(None, "--amount", "-a", help="Amount in sats"),
    fee: int | None = typer.Option(None, "--fee", help="Fixed fee in sats"),
    wif: str | None = typer.Option(None, "--wif", help="Private key (WIF); prefer SEGSEND_WIF"),
    network: str | None = typer.Option(None, "--network", "-n", help="Bitcoin network"),
    api_url: str | None = typer.Option(None, "--api-url", help="Esplora API base URL"),
    dust_policy: str | None = typer.Option(None, "--dust-policy", help="keep | absorb"),
    min_confirmations: int | None = typer.Option(None, "--min-confirmations"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Build and sign, do not broadcast"),
    log_level: str | None = typer.Option(None, "--log-level", "-l", help="Log level"),
) -> None:
    """Select a UTXO, build, sign and broadcast the payment."""
    settings = _load_settings(
        destination_address=destination,
        amount=amount,
        fee=fee,
        wif=wif,
        network=network,
        api_url=api_url,
        dust_policy=dust_policy,
        min_confirmations=min_confirmations,
    )
    setup_logging(log_level or settings.log_level)
    if not settings.destination_address:
        logger.error("Destination required. Use --to or SEGSEND_DESTINATION_ADDRESS")
        raise typer.Exit(1)

    try:
        result = asyncio.run(_send(settings, broadcast=not dry_run))
    except SegsendError as e:
        logger.error(f"Send failed at stage '{e.stage}': {e.message}")
        raise typer.Exit(1)

    if dry_run:
        typer.echo("\nFinal Raw Transaction Hex (not broadcast):")
        typer.echo(result.raw_hex)
        typer.echo(f"\nTXID: {result.txid}")
        return

    typer.echo(f"\nTransaction ID (TXID): {result.txid}")
    if result.explorer_url:
        typer.echo(f"View on Block Explorer: {result.explorer_url}")


async def _send(settings: SendSettings, broadcast: bool) -> PipelineResult:
    from segsend.backends.mempool import MempoolBackend
    from segsend.pipeline import SendPipeline

    async with MempoolBackend(settings.api_url, timeout=settings.request_timeout) as backend:
        return await SendPipeline(settings, backend).run(broadcast=broadcast)


@app.command()
def address(
    wif: str | None = typer.Option(None, "--wif", help="Private key (WIF); prefer SEGSEND_WIF"),
    network: str | None = typer.Option(None, "--network", "-n", help="Bitcoin network"),
) -> None:
    """Print the P2WPKH address of the configured key."""
    setup_logging("WARNING")
    from segsend.keys import KeyPair

    settings = _load_settings(wif=wif, network=network)
    try:
        keypair = KeyPair.from_wif(settings.wif, settings.network)
    except SegsendError as e:
        logger.error(f"Failed to load key: {e}")
        raise typer.Exit(1)

    typer.echo(keypair.address)


@app.command()
def utxos(
    wif: str | None = typer.Option(None, "--wif", help="Private key (WIF); prefer SEGSEND_WIF"),
    network: str | None = typer.Option(None, "--network", "-n", help="Bitcoin network"),
    api_url: str | None = typer.Option(None, "--api-url", help="Esplora API base URL"),
    log_level: str | None = typer.Option(None, "--log-level", "-l", help="Log level"),
) -> None:
    """List the unspent outputs of the configured key."""
    from segsend.keys import KeyPair

    settings = _load_settings(wif=wif, network=network, api_url=api_url)
    setup_logging(log_level or settings.log_level)
    try:
        keypair = KeyPair.from_wif(settings.wif, settings.network)
        found = asyncio.run(_list_utxos(settings, keypair.address))
    except SegsendError as e:
        logger.error(f"Failed to list UTXOs: {e}")
        raise typer.Exit(1)

    total = sum(u.value for u in found)
    typer.echo(f"\n{keypair.address}: {len(found)} UTXO(s), {total:,} sats")
    for u in found:
        status = "confirmed" if u.confirmed else "unconfirmed"
        typer.echo(f"  {u.outpoint}  {u.value:>12,} sats  {status}")


async def _list_utxos(settings: SendSettings, address: str) -> list[UTXO]:
    from segsend.backends.mempool import MempoolBackend

    async with MempoolBackend(settings.api_url, timeout=settings.request_timeout) as backend:
        try:
            return await backend.get_utxos(address)
        except NoFundsError:
            return []


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
