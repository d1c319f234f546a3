import asyncio
import json
import logging
import sys
from collections.abc import Callable
from pathlib import Path

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from mediahub.adapters import list_adapters
from mediahub.config import ConfigError, ConfigSource, Settings
from mediahub.models import (
    MediaRecord,
    MediaTypeFilter,
    SearchReport,
    SiteDescriptor,
    StatusSnapshot,
)
from mediahub.service import ResourceService

console = Console()

_STATUS_STYLE = {
    "active": "[green]active[/green]",
    "inactive": "[red]inactive[/red]",
    "maintenance": "[yellow]maintenance[/yellow]",
}


def _get_settings() -> Settings:
    return Settings()


def _setup_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def _get_service(ctx: click.Context) -> ResourceService:
    """Build the service, exiting with a readable message on a bad config."""
    settings: Settings = ctx.obj["settings"]
    path: Path = ctx.obj["config_path"] or settings.resolved_config_path
    try:
        return ResourceService(ConfigSource(path), settings)
    except ConfigError as e:
        console.print(f"[red]{escape(str(e))}[/red]")
        sys.exit(1)


@click.group()
@click.version_option()
@click.option(
    "--config",
    "-c",
    "config_path",
    default=None,
    type=click.Path(path_type=Path),
    help="Site config file (JSON or TOML)",
)
@click.option("--log-level", default=None, help="Logging level (default from settings)")
@click.pass_context
def main(ctx: click.Context, config_path: Path | None, log_level: str | None) -> None:
    """mediahub — search many media resource sites at once and watch their health."""
    settings = _get_settings()
    _setup_logging(log_level or settings.log_level)
    ctx.ensure_object(dict)
    ctx.obj["settings"] = settings
    ctx.obj["config_path"] = config_path


# ---------------------------------------------------------------------------
# sites
# ---------------------------------------------------------------------------


@main.command()
@click.pass_context
def sites(ctx: click.Context) -> None:
    """List configured resource sites."""
    service = _get_service(ctx)
    _print_sites(service.sites(), title="Configured Sites")


# ---------------------------------------------------------------------------
# adapters
# ---------------------------------------------------------------------------


@main.command("adapters")
def adapters_cmd() -> None:
    """List available response adapters."""
    table = Table(title="Response Adapters")
    table.add_column("Name", style="cyan", no_wrap=True)
    table.add_column("Display Name", style="bold")
    table.add_column("Description", style="dim")

    for cls in sorted(list_adapters(), key=lambda c: c.name):
        table.add_row(cls.name, cls.display_name, cls.description)

    console.print(table)


# ---------------------------------------------------------------------------
# check
# ---------------------------------------------------------------------------


@main.command()
@click.pass_context
def check(ctx: click.Context) -> None:
    """Probe every site once and show status and latency."""
    service = _get_service(ctx)
    checked = asyncio.run(service.check_all_resource_sites())
    _print_sites(checked, title="Site Health")


# ---------------------------------------------------------------------------
# search
# ---------------------------------------------------------------------------


@main.command()
@click.argument("keyword")
@click.option(
    "--type",
    "-t",
    "media_type",
    type=click.Choice(["all", "movie", "tv"]),
    default="all",
    help="Restrict to movies or TV",
)
@click.option("--page", "-p", default=1, type=click.IntRange(min=1), help="Page sent to each site")
@click.option("--limit", "-n", default=20, type=click.IntRange(min=1), help="Page size per site")
@click.option("--check/--no-check", "check_first", default=False, help="Health-check sites first")
@click.option("--format", "fmt", type=click.Choice(["table", "json"]), default="table")
@click.pass_context
def search(
    ctx: click.Context,
    keyword: str,
    media_type: MediaTypeFilter,
    page: int,
    limit: int,
    check_first: bool,
    fmt: str,
) -> None:
    """Search all active sites for KEYWORD and print merged results."""
    service = _get_service(ctx)
    try:
        report = asyncio.run(_search(service, keyword, media_type, page, limit, check_first))
    except ValueError as e:
        console.print(f"[red]{escape(str(e))}[/red]")
        sys.exit(1)

    if fmt == "json":
        data = [record.model_dump(mode="json") for record in report.records]
        click.echo(json.dumps(data, indent=2, ensure_ascii=False))
        return

    if not report.dispatched:
        console.print("No active sites to search.")
        return
    if report.failed:
        console.print(f"[yellow]Failed sites:[/yellow] {', '.join(report.failed)}")
    if not report.records:
        console.print(f"No results for '{keyword}'.")
        return

    console.print(
        f"Found [bold]{len(report.records)}[/bold] results for '{keyword}' "
        f"from {len(report.dispatched) - len(report.failed)} sites:\n"
    )
    _print_records(report.records)


async def _search(
    service: ResourceService,
    keyword: str,
    media_type: MediaTypeFilter,
    page: int,
    limit: int,
    check_first: bool,
) -> SearchReport:
    async with service:
        if check_first:
            await service.refresh_status()
        return await service.search_report(keyword, media_type, page, limit)


# ---------------------------------------------------------------------------
# monitor
# ---------------------------------------------------------------------------


@main.command()
@click.option("--interval", "-i", default=None, type=float, help="Seconds between checks")
@click.option("--runs", default=None, type=int, help="Stop after this many checks")
@click.pass_context
def monitor(ctx: click.Context, interval: float | None, runs: int | None) -> None:
    """Re-check site health on a fixed interval until interrupted."""
    service = _get_service(ctx)

    def on_snapshot(snapshot: StatusSnapshot) -> None:
        ts = snapshot.taken_at.strftime("%Y-%m-%d %H:%M:%S")
        _print_sites(service.sites(), title=f"Site Health #{snapshot.version} ({ts})")

    try:
        asyncio.run(_monitor(service, interval, runs, on_snapshot))
    except KeyboardInterrupt:
        console.print("\n[yellow]Stopped.[/yellow]")


async def _monitor(
    service: ResourceService,
    interval: float | None,
    runs: int | None,
    on_snapshot: Callable[[StatusSnapshot], None],
) -> None:
    async with service:
        await service.run_monitor(interval=interval, on_snapshot=on_snapshot, max_runs=runs)


# ---------------------------------------------------------------------------
# display helpers
# ---------------------------------------------------------------------------


def _print_sites(site_list: list[SiteDescriptor], *, title: str) -> None:
    table = Table(title=title)
    table.add_column("Key", style="cyan", no_wrap=True)
    table.add_column("Name", style="bold")
    table.add_column("Priority", justify="right")
    table.add_column("Status", justify="center")
    table.add_column("Latency", justify="right")
    table.add_column("Adapter", style="dim")

    for site in sorted(site_list, key=lambda s: s.priority):
        latency = "-"
        if site.last_response_time_ms is not None:
            latency = f"{site.last_response_time_ms:.0f} ms"
        table.add_row(
            site.key,
            site.display_name,
            str(site.priority),
            _STATUS_STYLE.get(site.status, site.status),
            latency,
            site.adapter,
        )

    console.print(table)


def _print_records(records: list[MediaRecord]) -> None:
    for record in records:
        meta = " · ".join(p for p in (record.year, record.quality, record.language) if p)
        score = f" [yellow]★ {record.score:g}[/yellow]" if record.score is not None else ""
        title = escape(record.title)
        console.print(f"[cyan]{title}[/cyan] [dim]{record.media_type}[/dim]{score}")
        if meta:
            console.print(f"  {escape(meta)}")
        console.print(f"  [dim]{record.source_display_name} · {record.url or '(no link)'}[/dim]")
        console.print()
