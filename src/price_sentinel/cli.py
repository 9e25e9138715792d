"""Click-based CLI for price-sentinel.

Thin wrapper around library modules. Each command delegates to the service,
the price cache, or the trigger backup.
"""

from __future__ import annotations

import asyncio
import logging
import signal
import sys

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

console = Console(stderr=True)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _run_async(coro):
    """Run an async coroutine from synchronous Click code."""
    return asyncio.run(coro)


def _load_config(ctx: click.Context):
    """Load config lazily, caching on first call."""
    if "config" not in ctx.obj:
        from price_sentinel.core import ConfigError, load_config

        try:
            ctx.obj["config"] = load_config(config_path=ctx.obj.get("config_path"))
        except ConfigError as e:
            raise click.ClickException(f"Invalid configuration: {e}") from e
    return ctx.obj["config"]


def _configure_logging(config, verbose: bool) -> None:
    level = logging.DEBUG if verbose else getattr(logging, config.logging.level)
    logging.basicConfig(
        level=level,
        format=config.logging.format,
        handlers=[logging.StreamHandler(sys.stdout)],
    )
    # httpx logs every request at INFO, including long polls
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True),
    envvar="PRICE_SENTINEL_CONFIG",
    default=None,
    help="Path to price-sentinel.yml config file.",
)
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    default=False,
    help="Enable verbose output.",
)
@click.version_option(package_name="price-sentinel")
@click.pass_context
def cli(ctx: click.Context, config: str | None, verbose: bool) -> None:
    """Price Sentinel: threshold price alerts over Telegram."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config
    ctx.obj["verbose"] = verbose
    ctx.obj["console"] = console


# ---------------------------------------------------------------------------
# run
# ---------------------------------------------------------------------------


@cli.command()
@click.option(
    "--dry-run",
    is_flag=True,
    default=False,
    help="Log notifications instead of sending them; no bot polling.",
)
@click.pass_context
def run(ctx: click.Context, dry_run: bool) -> None:
    """Restore triggers and run the matching engine and the bot."""
    from price_sentinel.core import ConfigError
    from price_sentinel.service import PriceSentinelService

    config = _load_config(ctx)
    if dry_run:
        config = config.model_copy(
            update={"telegram": config.telegram.model_copy(update={"dry_run": True})}
        )
    _configure_logging(config, ctx.obj["verbose"])

    try:
        service = PriceSentinelService.from_config(config)
    except ConfigError as e:
        raise click.ClickException(str(e)) from e

    async def _run():
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, service.stop)
            except (NotImplementedError, RuntimeError):
                pass
        await service.run()

    console.print(
        f"[green]✓[/green] Watching {config.price_source.asset_name} "
        f"({config.price_source.provider.value})"
        + (" [yellow](dry run)[/yellow]" if config.telegram.dry_run else "")
    )
    _run_async(_run())


# ---------------------------------------------------------------------------
# price
# ---------------------------------------------------------------------------


@cli.command()
@click.pass_context
def price(ctx: click.Context) -> None:
    """Fetch and print the current price once."""
    from price_sentinel.core import PriceFetchError
    from price_sentinel.prices import PriceCache, create_price_source

    config = _load_config(ctx)

    async def _run() -> float:
        source = create_price_source(config.price_source)
        try:
            cache = PriceCache(
                source,
                max_attempts=config.cache.max_attempts,
                retry_delay=config.cache.retry_delay,
            )
            return await cache.get_price()
        finally:
            await source.aclose()

    try:
        value = _run_async(_run())
    except PriceFetchError as e:
        console.print(
            f"[red]Failed to get {config.price_source.asset_name} price: {escape(str(e))}[/red]"
        )
        raise SystemExit(1)

    click.echo(f"Current {config.price_source.asset_name} price: {value:.2f}$")


# ---------------------------------------------------------------------------
# triggers
# ---------------------------------------------------------------------------


@cli.command()
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["table", "json"], case_sensitive=False),
    default="table",
    help="Output format.",
)
@click.pass_context
def triggers(ctx: click.Context, output_format: str) -> None:
    """Show the triggers stored in the backup file."""
    import json

    from price_sentinel.triggers import TriggerBackup

    config = _load_config(ctx)
    restored = TriggerBackup(config.storage.backup_path).restore()

    if output_format == "json":
        click.echo(
            json.dumps(
                [
                    {"chat_id": chat_id, **c.model_dump(mode="json")}
                    for chat_id, conditions in restored.items()
                    for c in conditions
                ],
                indent=2,
            )
        )
        return

    if not restored:
        console.print("[yellow]No triggers stored.[/yellow]")
        return

    table = Table(title=f"Triggers ({config.storage.backup_path})")
    table.add_column("Chat", style="bold")
    table.add_column("Direction")
    table.add_column("Threshold", justify="right")

    for chat_id, conditions in restored.items():
        for c in conditions:
            table.add_row(str(chat_id), c.direction.value, f"{c.threshold:.2f}")

    Console().print(table)
