"""Command-line interface for hpbot."""

import asyncio
import os
import sys
from datetime import datetime, timezone
from typing import Optional

import click
from rich.console import Console
from rich.table import Table

from hpbot import __version__
from hpbot.config import get_settings, reload_settings
from hpbot.utils.logging import setup_logging

console = Console()


@click.group()
@click.version_option(version=__version__)
def cli() -> None:
    """hpbot - Polymarket high-probability outcome bot."""
    pass


@cli.command()
@click.option("--dry-run/--live", default=None, help="Dry run mode (no real trades)")
@click.option("--threshold", type=float, help="Probability threshold (e.g., 0.95)")
@click.option("--trade-size", type=float, help="Shares per approved order")
@click.option("--poll-interval", type=float, help="Seconds between scan and tracking cycles")
@click.option("--event-slug", help="Only monitor this event (window prefixes are regenerated)")
@click.option("--dashboard/--no-dashboard", default=True, help="Serve the HTTP dashboard")
@click.option("--log-level", type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"]), default=None)
def run(
    dry_run: Optional[bool],
    threshold: Optional[float],
    trade_size: Optional[float],
    poll_interval: Optional[float],
    event_slug: Optional[str],
    dashboard: bool,
    log_level: Optional[str],
) -> None:
    """Run the engine and the dashboard."""
    # Override settings from CLI
    if dry_run is not None:
        os.environ["DRY_RUN"] = str(dry_run).lower()
    if threshold is not None:
        os.environ["PROBABILITY_THRESHOLD"] = str(threshold)
    if trade_size is not None:
        os.environ["TRADE_SIZE"] = str(trade_size)
    if poll_interval is not None:
        os.environ["POLL_INTERVAL_SECONDS"] = str(poll_interval)
    if event_slug is not None:
        os.environ["EVENT_SLUG"] = event_slug
    if log_level:
        os.environ["LOG_LEVEL"] = log_level

    settings = reload_settings()

    mode = "[yellow]DRY RUN[/yellow]" if settings.dry_run else "[red]LIVE TRADING[/red]"
    console.print(f"\n[bold]hpbot[/bold] - {mode}\n")

    if not settings.dry_run and not settings.is_trading_enabled():
        console.print(
            "[red]Error:[/red] Live trading requires PRIVATE_KEY.\n"
            "Set it in your .env file or environment."
        )
        sys.exit(1)

    console.print(f"[dim]Threshold:[/dim] {settings.probability_threshold:.1%}")
    console.print(f"[dim]Trade size:[/dim] {settings.trade_size} shares")
    console.print(f"[dim]Poll interval:[/dim] {settings.poll_interval_seconds}s")
    if settings.event_slug:
        console.print(f"[dim]Event:[/dim] {settings.event_slug}")
    if dashboard:
        console.print(
            f"[dim]Dashboard:[/dim] http://{settings.dashboard_host}:{settings.dashboard_port}"
        )
    console.print()

    from hpbot.bot import run_bot

    try:
        asyncio.run(run_bot(with_dashboard=dashboard))
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted[/yellow]")


@cli.command()
def scan() -> None:
    """Scan markets once and show high-probability outcomes."""
    setup_logging("WARNING")

    async def _scan() -> None:
        from hpbot.api.gateway import create_gateway
        from hpbot.engine.detector import OpportunityDetector
        from hpbot.engine.queue import PendingOrderQueue

        settings = get_settings()
        console.print("[bold]Scanning markets...[/bold]\n")

        gateway = create_gateway(settings)
        try:
            markets = await gateway.fetch_markets()
        finally:
            await gateway.close()

        console.print(f"Found {len(markets)} open markets\n")

        queue = PendingOrderQueue()
        detector = OpportunityDetector(
            queue,
            threshold=settings.probability_threshold,
            trade_size=settings.trade_size,
        )
        detector.scan(markets)
        opportunities = queue.pending()

        if not opportunities:
            console.print(
                f"[yellow]No outcomes at or above {settings.probability_threshold:.1%}[/yellow]"
            )
            return

        table = Table(title="High-Probability Outcomes")
        table.add_column("Market", style="cyan", max_width=50)
        table.add_column("Outcome")
        table.add_column("Probability", justify="right", style="green")
        table.add_column("Size", justify="right")

        for opp in opportunities:
            table.add_row(
                opp.question[:50],
                opp.label,
                f"{opp.probability:.1%}",
                f"{opp.size:g}",
            )

        console.print(table)

    asyncio.run(_scan())


@cli.command()
@click.option("--limit", default=30, help="Maximum markets to show")
def markets(limit: int) -> None:
    """List the markets the engine would scan."""
    setup_logging("WARNING")

    async def _markets() -> None:
        from hpbot.api.gateway import create_gateway

        console.print("[bold]Fetching markets...[/bold]\n")

        gateway = create_gateway()
        try:
            markets = await gateway.fetch_markets()
        finally:
            await gateway.close()

        table = Table(title=f"Markets (showing {min(limit, len(markets))} of {len(markets)})")
        table.add_column("Market", style="cyan", max_width=50)
        table.add_column("Outcomes")
        table.add_column("Ends", justify="right")

        for market in markets[:limit]:
            outcomes = ", ".join(f"{o.label} {o.probability:.1%}" for o in market.outcomes)
            ends = market.end_date.strftime("%Y-%m-%d %H:%M") if market.end_date else "-"
            table.add_row(market.question[:50], outcomes, ends)

        console.print(table)

    asyncio.run(_markets())


@cli.command()
def config() -> None:
    """Show current configuration."""
    settings = get_settings()

    table = Table(title="Current Configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Value")

    # Trading
    table.add_row("Dry Run", str(settings.dry_run))
    table.add_row("Probability Threshold", f"{settings.probability_threshold:.1%}")
    table.add_row("Trade Size", f"{settings.trade_size} shares")
    if settings.order_price:
        table.add_row("Order Price", f"${settings.order_price:.2f}")
    else:
        table.add_row("Order Price", "(observed probability)")
    table.add_row("Poll Interval", f"{settings.poll_interval_seconds}s")
    table.add_row("Window", f"{settings.window_seconds}s")

    # Markets
    table.add_row("Event Slug", settings.event_slug or "(all active events)")
    table.add_row("Keywords", ", ".join(settings.market_keywords) or "(none)")

    # Credentials
    table.add_row("Wallet Address", settings.wallet_address or "(not set)")
    table.add_row("Private Key", "(set)" if settings.private_key else "(not set)")
    table.add_row("API Credentials", "(set)" if settings.has_api_credentials() else "(derived)")

    # Storage and dashboard
    db = str(settings.ledger_db_path) if settings.ledger_db_enabled else "(disabled)"
    table.add_row("Order Event DB", db)
    table.add_row("Dashboard", f"{settings.dashboard_host}:{settings.dashboard_port}")

    console.print(table)


@cli.command()
@click.argument("prefix", default="btc-updown-15m")
@click.option("--window", type=int, help="Window length in seconds")
def slug(prefix: str, window: Optional[int]) -> None:
    """Show the slug and boundaries of the current market window."""
    from hpbot.api.windows import current_window_slug, next_window_boundary, window_start

    window_seconds = window or get_settings().window_seconds
    now = datetime.now(timezone.utc)

    start = window_start(now, window_seconds)
    end = next_window_boundary(now, window_seconds)

    console.print(f"[bold]Slug:[/bold] {current_window_slug(prefix, now, window_seconds)}")
    console.print(f"[dim]Window start:[/dim] {start.isoformat()}")
    console.print(f"[dim]Window end:[/dim]   {end.isoformat()}")
    console.print(f"[dim]Remaining:[/dim]    {int((end - now).total_seconds())}s")


@cli.command()
@click.option("--limit", default=20, help="Maximum events to show")
def history(limit: int) -> None:
    """Show recent order events from the database."""
    setup_logging("WARNING")

    async def _history() -> None:
        from hpbot.data.database import close_async_db, init_async_db
        from hpbot.data.repositories import OrderEventRepository

        try:
            await init_async_db()
            events = await OrderEventRepository.get_recent(limit=limit)
            total = await OrderEventRepository.get_total_count()
            stats = await OrderEventRepository.get_stats()
        finally:
            await close_async_db()

        if not events:
            console.print("[yellow]No order events recorded yet[/yellow]")
            return

        table = Table(title=f"Order Events (showing {len(events)} of {total})")
        table.add_column("Time", style="dim")
        table.add_column("Action", style="cyan")
        table.add_column("Outcome")
        table.add_column("Price", justify="right")
        table.add_column("Size", justify="right")
        table.add_column("OK", justify="center")
        table.add_column("Error", max_width=40)

        for e in events:
            table.add_row(
                e["timestamp"][:19],
                e["action"],
                e.get("label") or e["outcome_id"][:16],
                f"${e['price']:.3f}",
                f"{e['size']:g}",
                "[green]yes[/green]" if e["success"] else "[red]no[/red]",
                e.get("error") or "",
            )

        console.print(table)
        by_action = ", ".join(f"{k}={v}" for k, v in sorted(stats["by_action"].items()))
        console.print(
            f"[dim]Successful:[/dim] {stats['successful_events']}/{stats['total_events']}  "
            f"[dim]By action:[/dim] {by_action}"
        )

    asyncio.run(_history())


def main() -> None:
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()
