#!/usr/bin/env python3
"""
World Heritage Map - Command Line Entry Point

Loads the UNESCO World Heritage site list, prints summaries and exports the
interactive map as a standalone HTML page.

Usage:
    python -m pipeline.main fetch
    python -m pipeline.main export-map world-heritage.html --year 2000 --type natural
    python -m pipeline.main serve
"""

import asyncio
from pathlib import Path

import click
from loguru import logger
from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from pipeline.config import DATA_SOURCES, settings
from pipeline.controller import HeritageMapController, create_controller
from pipeline.models import ALL_TYPES, SiteType
from pipeline.utils.logging import setup_logging

console = Console()

TYPE_CHOICES = [ALL_TYPES] + [t.value for t in SiteType]


def _load(controller: HeritageMapController) -> bool:
    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
    ) as progress:
        task = progress.add_task(f"Loading sites from {settings.source.url}...", total=None)
        ok = asyncio.run(controller.load())
        if ok:
            progress.update(task, description=f"[green]✓ {controller.total_sites_label()}[/green]")
        else:
            progress.update(task, description="[red]✗ Load failed[/red]")

    if not ok:
        console.print(f"[red]{controller.context.error}[/red]")
    return ok


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug logging")
def cli(debug):
    """World Heritage Map"""
    setup_logging(level="DEBUG" if debug else None)


@cli.command()
@click.option("--limit", type=int, default=10, help="Number of sites to show")
def fetch(limit: int):
    """Load the site list and print a summary."""
    console.print("\n[bold blue]World Heritage Map - Fetch[/bold blue]\n")

    controller = HeritageMapController()
    if not _load(controller):
        raise SystemExit(1)

    ctx = controller.context
    counts = controller.type_counts()

    summary = Table(title="Sites by Category")
    summary.add_column("Category")
    summary.add_column("Sites", justify="right")
    for category, count in counts.items():
        summary.add_row(category, str(count))
    console.print(summary)
    console.print(f"Years: {ctx.min_year}-{ctx.max_year}\n")

    table = Table()
    table.add_column("ID")
    table.add_column("Name")
    table.add_column("Country")
    table.add_column("Lat")
    table.add_column("Lon")
    table.add_column("Year")
    table.add_column("Type")

    for site in list(ctx.sites)[:limit]:
        table.add_row(
            site.id,
            site.name[:40],
            site.country[:30],
            f"{site.latitude:.4f}",
            f"{site.longitude:.4f}",
            str(site.inscription_year),
            site.type.value,
        )

    console.print(table)
    console.print(f"\n[dim]Showing {min(limit, len(ctx.sites))} of {len(ctx.sites)} sites[/dim]")


@cli.command("export-map")
@click.argument("output", type=click.Path(dir_okay=False, path_type=Path))
@click.option("--year", type=int, default=None, help="Show sites inscribed up to this year")
@click.option("--type", "site_type", type=click.Choice(TYPE_CHOICES), default=ALL_TYPES, help="Heritage category")
@click.option("--search", default="", help="Comma-separated search terms")
@click.option("--no-cluster", is_flag=True, help="Draw every marker individually")
def export_map(output: Path, year: int | None, site_type: str, search: str, no_cluster: bool):
    """Write the filtered map to OUTPUT as a standalone HTML page."""
    console.print("\n[bold blue]World Heritage Map - Export[/bold blue]\n")

    controller = create_controller()
    if no_cluster:
        controller.renderer.widget.set_clustering(False)

    if not _load(controller):
        raise SystemExit(1)

    if year is not None:
        controller.set_year(year)
    if site_type != ALL_TYPES:
        controller.set_type(site_type)
    if search:
        controller.submit_search(search)

    path = controller.renderer.widget.save(output)
    console.print(f"{controller.site_count_label()}")
    console.print(f"[green]Map written to {path}[/green]")


@cli.command()
@click.option("--host", default=None, help="Bind address")
@click.option("--port", type=int, default=None, help="Port")
@click.option("--reload", is_flag=True, help="Reload on code changes")
def serve(host: str | None, port: int | None, reload: bool):
    """Run the HTTP API."""
    import uvicorn

    api_settings = settings.api
    uvicorn.run(
        "api.main:app",
        host=host or api_settings.host,
        port=port or api_settings.port,
        reload=reload or api_settings.reload,
    )


@cli.command()
def list_sources():
    """List the data sources and their attribution."""
    console.print("\n[bold blue]Data Sources[/bold blue]\n")

    table = Table()
    table.add_column("ID")
    table.add_column("Name")
    table.add_column("License")
    table.add_column("URL")

    for source_id, source_info in DATA_SOURCES.items():
        table.add_row(
            source_id,
            source_info.get("name", source_id),
            source_info.get("license", "-"),
            source_info.get("url", "-"),
        )

    console.print(table)
    logger.debug(f"Listed {len(DATA_SOURCES)} data sources")


if __name__ == "__main__":
    cli()
