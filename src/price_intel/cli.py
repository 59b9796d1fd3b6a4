"""Click-based CLI for card-price-intel.

Thin wrapper around library modules. No business logic: every operation
delegates to the price service or the valuation engine. Dollar formatting
lives here and nowhere else.
"""

from __future__ import annotations

import asyncio
import csv
import json
import logging
from decimal import Decimal
from pathlib import Path

import click
from rich.console import Console
from rich.logging import RichHandler
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
        from price_intel.core import load_config

        ctx.obj["config"] = load_config(config_path=ctx.obj.get("config_path"))
        _configure_logging(ctx.obj["config"].logging.level, ctx.obj["verbose"])
    return ctx.obj["config"]


def _configure_logging(level: str, verbose: bool) -> None:
    """Route all library logging through rich on stderr."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else getattr(logging, level),
        format="%(name)s: %(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def format_usd(value: Decimal | None) -> str:
    """Render a price for display; missing prices render as N/A."""
    if value is None:
        return "N/A"
    return f"${value.quantize(Decimal('0.01')):,}"


def _read_inventory(path: Path) -> list:
    """Read ``catalog_id,quantity[,purchase_price]`` rows from a CSV file."""
    from price_intel.valuation import InventoryRow

    rows = []
    with open(path, newline="", encoding="utf-8") as f:
        reader = csv.DictReader(f)
        if reader.fieldnames is None or "quantity" not in reader.fieldnames:
            raise click.UsageError(f"{path} must have a header with at least 'quantity'")
        for line_no, record in enumerate(reader, start=2):
            try:
                rows.append(
                    InventoryRow(
                        catalog_id=record.get("catalog_id") or None,
                        quantity=int(record["quantity"] or 0),
                        fallback_price=record.get("purchase_price") or None,
                    )
                )
            except ValueError as exc:
                raise click.UsageError(f"{path}:{line_no}: {exc}") from exc
    return rows


def _load_snapshot(config):
    """Read the disk cache for offline commands; unreadable means empty."""
    from price_intel.core import CacheLoadError
    from price_intel.prices import DiskCache, IndexSnapshot

    try:
        return DiskCache(config.cache.cache_path).load() or IndexSnapshot()
    except CacheLoadError as exc:
        console.print(f"[yellow]Ignoring unreadable price cache: {exc}[/yellow]")
        return IndexSnapshot()


def _print_outcome(outcome) -> None:
    if outcome is None:
        console.print("[green]✓[/green] Price cache is fresh; nothing to do")
        return
    mark = "[green]✓[/green]" if outcome.succeeded else "[yellow]![/yellow]"
    console.print(
        f"{mark} Prices {'updated' if outcome.prices_updated else 'kept'}, "
        f"identifiers {'updated' if outcome.bridge_updated else 'kept'}: "
        f"{outcome.price_count} prices, {outcome.mapping_count} mappings"
    )
    for error in outcome.errors:
        console.print(f"  [red]{error}[/red]")


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True),
    envvar="PRICE_INTEL_CONFIG",
    default=None,
    help="Path to price-intel.yml config file.",
)
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    default=False,
    help="Enable debug logging.",
)
@click.version_option(package_name="card-price-intel")
@click.pass_context
def cli(ctx: click.Context, config: str | None, verbose: bool) -> None:
    """Card Price Intel: cached MTGJSON prices and inventory valuation."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config
    ctx.obj["verbose"] = verbose
    ctx.obj["console"] = console


# ---------------------------------------------------------------------------
# refresh
# ---------------------------------------------------------------------------


@cli.command()
@click.option(
    "--force",
    is_flag=True,
    default=False,
    help="Refresh even if the disk cache is still fresh.",
)
@click.pass_context
def refresh(ctx: click.Context, force: bool) -> None:
    """Download the upstream documents and rebuild the price cache."""
    config = _load_config(ctx)

    async def _run():
        from price_intel.prices import PriceService

        service = PriceService(config)
        try:
            await service.load_cache()
            if force:
                return await service.refresh()
            return await service.refresh_if_stale()
        finally:
            await service.shutdown()

    outcome = _run_async(_run())
    _print_outcome(outcome)
    if outcome is not None and not (outcome.prices_updated or outcome.bridge_updated):
        raise SystemExit(1)


# ---------------------------------------------------------------------------
# status
# ---------------------------------------------------------------------------


@cli.command()
@click.option("--json", "as_json", is_flag=True, default=False, help="Print JSON.")
@click.pass_context
def status(ctx: click.Context, as_json: bool) -> None:
    """Show what the disk cache currently holds."""
    config = _load_config(ctx)

    async def _run():
        from price_intel.prices import PriceService

        service = PriceService(config)
        try:
            await service.load_cache()
            return service.status()
        finally:
            await service.shutdown()

    report = _run_async(_run())
    if as_json:
        click.echo(report.model_dump_json(indent=2))
        return

    table = Table(title="Price Cache Status")
    table.add_column("Field", style="bold")
    table.add_column("Value")
    table.add_row("Ready", "yes" if report.ready else "no")
    table.add_row("Stale", "yes" if report.stale else "no")
    table.add_row(
        "Last refreshed",
        report.last_refreshed.isoformat() if report.last_refreshed else "never",
    )
    table.add_row("Prices", str(report.price_count))
    table.add_row("Mappings", str(report.mapping_count))
    table.add_row("Cache file", report.cache_path)
    console.print(table)


# ---------------------------------------------------------------------------
# lookup
# ---------------------------------------------------------------------------


@cli.command()
@click.option("--catalog-id", type=str, default=None, help="Scryfall id of the printing.")
@click.option("--upstream-id", type=str, default=None, help="MTGJSON uuid of the printing.")
@click.pass_context
def lookup(ctx: click.Context, catalog_id: str | None, upstream_id: str | None) -> None:
    """Print both retail prices for one printing from the disk cache."""
    if bool(catalog_id) == bool(upstream_id):
        raise click.UsageError("Pass exactly one of --catalog-id or --upstream-id")
    config = _load_config(ctx)

    from price_intel.core import PriceSource
    from price_intel.prices import PriceLookup

    snapshot = _load_snapshot(config)
    prices = PriceLookup.of(snapshot)
    if catalog_id:
        quote = prices.prices_by_catalog_id(catalog_id).as_dict()
        key = catalog_id
    else:
        quote = {s: prices.price_by_upstream_id(upstream_id, s) for s in PriceSource}
        key = upstream_id

    payload = {"id": key, **{s.value: format_usd(v) for s, v in quote.items()}}
    click.echo(json.dumps(payload))


# ---------------------------------------------------------------------------
# value
# ---------------------------------------------------------------------------


@cli.command()
@click.argument("inventory", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "--preferred",
    type=click.Choice(["cardkingdom", "tcgplayer"], case_sensitive=False),
    default="cardkingdom",
    help="Source used first for best-available pricing.",
)
@click.option("--top", "top_n", type=int, default=10, help="How many top cards to list.")
@click.pass_context
def value(ctx: click.Context, inventory: Path, preferred: str, top_n: int) -> None:
    """Value an inventory CSV (catalog_id,quantity[,purchase_price])."""
    config = _load_config(ctx)
    rows = _read_inventory(inventory)

    from price_intel.core import PriceSource
    from price_intel.prices import PriceLookup
    from price_intel.valuation import top_cards, value_best_available, value_inventory

    snapshot = _load_snapshot(config)
    if snapshot.is_stale(config.cache.cache_ttl_millis):
        console.print("[yellow]Price cache is stale; run 'price-intel refresh'.[/yellow]")
    prices = PriceLookup.of(snapshot)

    totals = value_inventory(rows, prices)
    best = value_best_available(rows, prices, preferred=PriceSource(preferred.lower()))

    table = Table(title=f"Inventory Value ({totals.rows} rows)")
    table.add_column("Measure", style="bold")
    table.add_column("Value", justify="right")
    table.add_row("Card Kingdom total", format_usd(totals.cardkingdom_total))
    table.add_row("TCGplayer total", format_usd(totals.tcgplayer_total))
    table.add_row(f"Best available ({best.preferred_source})", format_usd(best.total))
    table.add_row("Rows missing identifier", str(totals.rows_missing_identifier))
    table.add_row("Rows missing price", str(totals.rows_missing_price))
    console.print(table)

    leaders = top_cards(best, top_n)
    if leaders:
        top = Table(title=f"Top {len(leaders)} Cards")
        top.add_column("Catalog id")
        top.add_column("Qty", justify="right")
        top.add_column("Unit", justify="right")
        top.add_column("Source")
        top.add_column("Line total", justify="right")
        for card in leaders:
            top.add_row(
                card.catalog_id or "-",
                str(card.quantity),
                format_usd(card.unit_price),
                card.price_source or "-",
                format_usd(card.line_total),
            )
        console.print(top)


# ---------------------------------------------------------------------------
# watch
# ---------------------------------------------------------------------------


@cli.command()
@click.option(
    "--interval",
    type=int,
    default=3600,
    help="Seconds between staleness checks.",
)
@click.pass_context
def watch(ctx: click.Context, interval: int) -> None:
    """Keep the cache fresh: check staleness on a fixed cadence until Ctrl-C."""
    if interval < 1:
        raise click.UsageError("--interval must be >= 1")
    config = _load_config(ctx)

    async def _run():
        from price_intel.prices import PriceService

        async with PriceService(config) as service:
            await service.wait_until_idle()
            while True:
                outcome = await service.refresh_if_stale()
                if outcome is not None:
                    _print_outcome(outcome)
                await asyncio.sleep(interval)

    try:
        _run_async(_run())
    except KeyboardInterrupt:
        console.print("Stopped.")
