"""Click-based CLI for asset-tracker.

Thin wrapper around library modules. The refresh logic lives in
``asset_tracker.refresh``; this module only wires config, store, providers
and logging together.
"""

from __future__ import annotations

import asyncio
import logging
import signal

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

console = Console(stderr=True)
logger = logging.getLogger("asset_tracker.worker")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _run_async(coro):
    """Run an async coroutine from synchronous Click code."""
    return asyncio.run(coro)


def _load_config(ctx: click.Context):
    """Load config lazily, caching on first call."""
    if "config" not in ctx.obj:
        from asset_tracker.core import ConfigError, load_config

        try:
            config = load_config(config_path=ctx.obj.get("config_path"))
        except ConfigError as e:
            raise click.ClickException(f"Invalid configuration: {e}") from e
        ctx.obj["config"] = config
        _configure_logging(config.log_level, ctx.obj.get("verbose", False))
    return ctx.obj["config"]


def _configure_logging(level: str, verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else getattr(logging, level, logging.INFO),
        format="%(name)s: %(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)


async def _create_store_async(config):
    """Create and initialize storage from config."""
    from asset_tracker.storage import create_store

    return await create_store(config.storage)


def _print_result(result) -> None:
    table = Table(title="Refresh Cycle")
    table.add_column("Metric", style="bold")
    table.add_column("Value", justify="right")
    table.add_row("Tracked assets", str(result.tracked_count))
    table.add_row("Due assets", str(result.due_count))
    for asset_type, keys in sorted(result.requested.items()):
        table.add_row(f"Requested ({asset_type})", ", ".join(keys))
    table.add_row("Prices written", str(result.update_count))
    console.print(table)


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True),
    envvar="ASSET_TRACKER_CONFIG",
    default=None,
    help="Path to asset-tracker.yml config file.",
)
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    default=False,
    help="Enable debug logging.",
)
@click.version_option(package_name="asset-tracker")
@click.pass_context
def cli(ctx: click.Context, config: str | None, verbose: bool) -> None:
    """Asset Tracker: keeps portfolio prices fresh."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config
    ctx.obj["verbose"] = verbose
    ctx.obj["console"] = console


# ---------------------------------------------------------------------------
# worker / refresh
# ---------------------------------------------------------------------------


@cli.command()
@click.option(
    "--interval",
    "-i",
    type=float,
    default=None,
    help="Seconds between refresh cycles (default: worker.interval_seconds).",
)
@click.pass_context
def worker(ctx: click.Context, interval: float | None) -> None:
    """Refresh prices continuously until interrupted."""
    config = _load_config(ctx)
    if interval is None:
        interval = config.worker.interval_seconds
    if interval <= 0:
        raise click.BadParameter("must be > 0", param_hint="--interval")

    async def _run():
        from asset_tracker.core import AssetTrackerError
        from asset_tracker.providers import build_providers
        from asset_tracker.refresh import PriceRefreshService, Scheduler

        store = await _create_store_async(config)
        try:
            async with build_providers(config) as providers:
                service = PriceRefreshService(store, providers.stock, providers.crypto)

                async def _cycle() -> None:
                    try:
                        await service.refresh()
                    except AssetTrackerError as e:
                        logger.error("Refresh error: %s", e)

                scheduler = Scheduler(interval, _cycle)
                loop = asyncio.get_running_loop()
                for sig in (signal.SIGINT, signal.SIGTERM):
                    loop.add_signal_handler(sig, scheduler.stop)
                try:
                    logger.info("Worker started, refreshing every %ss", interval)
                    await scheduler.run()
                finally:
                    for sig in (signal.SIGINT, signal.SIGTERM):
                        loop.remove_signal_handler(sig)
        finally:
            await store.close()

    _run_async(_run())


@cli.command()
@click.pass_context
def refresh(ctx: click.Context) -> None:
    """Run a single refresh cycle and report what was written."""
    config = _load_config(ctx)

    async def _run():
        from asset_tracker.core import RefreshError
        from asset_tracker.providers import build_providers
        from asset_tracker.refresh import PriceRefreshService

        store = await _create_store_async(config)
        try:
            async with build_providers(config) as providers:
                service = PriceRefreshService(store, providers.stock, providers.crypto)
                try:
                    result = await service.refresh()
                except RefreshError as e:
                    _print_result(e.context["result"])
                    for err in e.errors:
                        console.print(f"[red]Error:[/red] {err}")
                    return False
                _print_result(result)
                return True
        finally:
            await store.close()

    if not _run_async(_run()):
        ctx.exit(1)


# ---------------------------------------------------------------------------
# status
# ---------------------------------------------------------------------------


@cli.command()
@click.pass_context
def status(ctx: click.Context) -> None:
    """Show tracked assets and their current prices."""
    config = _load_config(ctx)

    async def _run():
        from asset_tracker.refresh import clamp_interval

        store = await _create_store_async(config)
        try:
            settings = await store.fetch_app_settings()
            tracked = await store.fetch_tracked_assets()
            prices = await store.get_current_prices()

            table = Table(
                title=(
                    "Tracked Assets "
                    f"(bounds {settings.min_refresh_interval_sec}s"
                    f"-{settings.max_refresh_interval_sec}s)"
                )
            )
            table.add_column("ID", justify="right")
            table.add_column("Symbol", style="bold")
            table.add_column("Type")
            table.add_column("Interval", justify="right")
            table.add_column("Price", justify="right")
            table.add_column("Fetched")
            table.add_column("Provider")

            for asset in tracked:
                current = prices.get(asset.id)
                table.add_row(
                    str(asset.id),
                    asset.symbol,
                    asset.type,
                    f"{clamp_interval(asset.min_user_refresh_sec, settings)}s",
                    f"{current.price:,.4f}" if current else "N/A",
                    current.fetched_at.isoformat(timespec="seconds") if current else "N/A",
                    current.provider if current else "N/A",
                )

            console.print(table)
        finally:
            await store.close()

    _run_async(_run())


# ---------------------------------------------------------------------------
# seeding
# ---------------------------------------------------------------------------


@cli.command("add-asset")
@click.argument("symbol")
@click.option(
    "--type",
    "asset_type",
    type=click.Choice(["stock", "crypto"], case_sensitive=False),
    required=True,
    help="Asset class.",
)
@click.option("--name", type=str, default="", help="Display name.")
@click.option(
    "--market-data-id",
    type=str,
    default=None,
    help="Provider lookup id (crypto), e.g. 'bitcoin'.",
)
@click.pass_context
def add_asset(
    ctx: click.Context,
    symbol: str,
    asset_type: str,
    name: str,
    market_data_id: str | None,
) -> None:
    """Register an asset."""
    config = _load_config(ctx)

    async def _run():
        store = await _create_store_async(config)
        try:
            asset_id = await store.save_asset(
                symbol=symbol,
                asset_type=asset_type.lower(),
                name=name,
                market_data_id=market_data_id,
            )
        finally:
            await store.close()
        click.echo(asset_id)

    _run_async(_run())


@cli.command("add-lot")
@click.option("--user", "user_id", type=str, required=True, help="Owner user id.")
@click.option("--asset-id", type=int, required=True, help="Asset id.")
@click.option("--quantity", type=float, required=True, help="Units bought.")
@click.option("--unit-cost", type=float, required=True, help="Price paid per unit.")
@click.pass_context
def add_lot(
    ctx: click.Context,
    user_id: str,
    asset_id: int,
    quantity: float,
    unit_cost: float,
) -> None:
    """Record a purchase lot for a user."""
    config = _load_config(ctx)

    async def _run():
        store = await _create_store_async(config)
        try:
            lot_id = await store.save_lot(user_id, asset_id, quantity, unit_cost)
        finally:
            await store.close()
        click.echo(lot_id)

    _run_async(_run())


@cli.command("set-interval")
@click.option("--user", "user_id", type=str, required=True, help="User id.")
@click.argument("seconds", type=int)
@click.pass_context
def set_interval(ctx: click.Context, user_id: str, seconds: int) -> None:
    """Set a user's preferred refresh interval in seconds."""
    config = _load_config(ctx)

    async def _run():
        store = await _create_store_async(config)
        try:
            await store.save_user_settings(user_id, seconds)
        finally:
            await store.close()

    _run_async(_run())


@cli.command("set-bounds")
@click.option("--min", "min_sec", type=int, required=True, help="Minimum seconds.")
@click.option("--max", "max_sec", type=int, required=True, help="Maximum seconds.")
@click.pass_context
def set_bounds(ctx: click.Context, min_sec: int, max_sec: int) -> None:
    """Set the global refresh interval bounds."""
    from pydantic import ValidationError

    from asset_tracker.core import AppSettings

    config = _load_config(ctx)
    try:
        settings = AppSettings(
            min_refresh_interval_sec=min_sec,
            max_refresh_interval_sec=max_sec,
        )
    except ValidationError as e:
        raise click.UsageError(str(e)) from e

    async def _run():
        store = await _create_store_async(config)
        try:
            await store.update_app_settings(settings)
        finally:
            await store.close()

    _run_async(_run())


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main() -> None:
    """Main entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
