"""Typer CLI for SolarSync-Engine."""

import asyncio
from enum import Enum

import typer
from rich.console import Console
from rich.table import Table

app = typer.Typer(name="solarsync", help="SolarSync-Engine: multi-vendor solar monitoring sync")
console = Console()


class Phase(str, Enum):
    plants = "plants"
    alerts = "alerts"
    all = "all"


async def _with_engine(action):
    """Run ``action(orchestrator)`` against an initialised database."""
    from solarsync_engine.common.config import get_settings
    from solarsync_engine.common.logging import setup_logging
    from solarsync_engine.deps import get_db, get_orchestrator, get_pool

    setup_logging(get_settings().log_level)
    db = get_db()
    await db.init()
    await db.create_all()
    try:
        return await action(get_orchestrator())
    finally:
        await get_pool().close()
        await db.close()


def _print_results(results) -> None:
    table = Table(title="Vendor results")
    for column in ("Vendor", "Outcome", "Plants", "Alerts", "Error"):
        table.add_column(column)
    for result in results:
        plants = result.plants
        alerts = result.alerts
        table.add_row(
            f"{result.vendor_id} {result.vendor_name}",
            result.outcome.value,
            f"{plants.synced} ({plants.created}+/{plants.updated}~)" if plants else "-",
            f"{alerts.synced} ({alerts.created}+/{alerts.updated}~)" if alerts else "-",
            result.error
            or (plants.error if plants and plants.error else "")
            or (alerts.error if alerts and alerts.error else ""),
        )
    console.print(table)


@app.command()
def serve(
    host: str = typer.Option("0.0.0.0", help="Bind host"),
    port: int = typer.Option(8080, help="Bind port"),
    scheduler: bool = typer.Option(True, help="Run the in-process sync scheduler"),
):
    """Start the SolarSync-Engine API server."""
    import uvicorn
    from solarsync_engine.app import create_app

    console.print(f"[bold green]Starting SolarSync-Engine on {host}:{port}[/bold green]")
    uvicorn.run(create_app(start_scheduler=scheduler), host=host, port=port)


@app.command()
def sync():
    """Sync every active vendor now (ignores the restricted window)."""
    summary = asyncio.run(_with_engine(lambda orch: orch.run_all(trigger="cli")))
    _print_results(summary.results)
    console.print(
        f"[bold]{summary.vendors_succeeded}/{summary.vendors_attempted}[/bold] vendors succeeded, "
        f"{summary.vendors_partial} partial, {summary.vendors_failed} failed, "
        f"{summary.total_plants_synced} plants synced"
    )
    if summary.vendors_failed or summary.vendors_partial:
        raise typer.Exit(1)


@app.command("sync-vendor")
def sync_vendor(
    vendor_id: int = typer.Argument(..., help="Vendor id"),
    phase: Phase = typer.Option(Phase.all, help="Which phase to run"),
):
    """Sync a single vendor."""
    phases = ("plants", "alerts") if phase == Phase.all else (phase.value,)
    result = asyncio.run(
        _with_engine(lambda orch: orch.sync_vendor(vendor_id, phases=phases, trigger="cli"))
    )
    _print_results([result])
    if not result.succeeded:
        raise typer.Exit(1)


@app.command()
def status():
    """Show per-vendor sync timestamps and organization settings."""

    async def _status(orch):
        return await orch.sync_status()

    rows = asyncio.run(_with_engine(_status))
    table = Table(title="Sync status")
    for column in ("Vendor", "Type", "Active", "Plants synced", "Alerts synced", "Org", "Auto", "Interval"):
        table.add_column(column)
    for row in rows:
        settings = row.sync_settings
        table.add_row(
            f"{row.vendor_id} {row.vendor_name}",
            row.vendor_type,
            "yes" if row.is_active else "no",
            row.last_synced_at.isoformat() if row.last_synced_at else "never",
            row.last_alert_synced_at.isoformat() if row.last_alert_synced_at else "never",
            row.org_name or "-",
            ("on" if settings.auto_sync_enabled else "off") if settings else "-",
            f"{settings.sync_interval_minutes}m" if settings else "-",
        )
    console.print(table)


@app.command()
def window(
    interval: int = typer.Option(15, min=1, max=1440, help="Sync interval in minutes"),
):
    """Show whether automatic syncs are currently restricted."""
    from solarsync_engine.common.config import get_settings
    from solarsync_engine.common.models import utcnow
    from solarsync_engine.sync.window import RestrictedWindow

    settings = get_settings()
    restricted_window = RestrictedWindow.from_settings(settings)
    now = utcnow()
    nxt = restricted_window.next_eligible(now, interval)
    state = "[bold red]RESTRICTED[/bold red]" if restricted_window.is_restricted(now) else "[bold green]ELIGIBLE[/bold green]"
    console.print(
        f"{state} window {settings.sync_window_start}-{settings.sync_window_end} {settings.sync_timezone}"
    )
    console.print(f"  Next eligible sync: {restricted_window.describe(nxt)}")


@app.command("vendor-types")
def vendor_types():
    """List the vendor types this build can sync."""
    from solarsync_engine.vendors.registry import ADAPTERS

    for vendor_type, adapter_cls in ADAPTERS.items():
        console.print(f"[bold]{vendor_type.value}[/bold]  {adapter_cls.__name__}")


if __name__ == "__main__":
    app()
