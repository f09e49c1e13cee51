"""Typer CLI entrypoint for chess-ingest."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Optional

import typer
import yaml
from rich import box
from rich.console import Console
from rich.table import Table
from typer import BadParameter

from .config import ConfigRepository, IngestConfig, RunMode, ScraperVariant
from .engine.sink import FileSink, SQLiteSink
from .errors import PersistenceFailure, StorageUnavailable
from .infra import SQLiteManager
from .logging_conf import configure_logging, log_dir, tail_log
from .orchestrator import IngestionPipeline, PipelineFactory, RunStatistics
from .pages import PageKey
from .ui import ProgressReporter

app = typer.Typer(
    help="Chess tournament calendar ingestion",
    no_args_is_help=True,
    rich_markup_mode=None,
)
config_app = typer.Typer(name="config", help="Configuration commands", no_args_is_help=True)
log_app = typer.Typer(name="log", help="Log viewing commands", no_args_is_help=True)
app.add_typer(config_app, name="config")
app.add_typer(log_app, name="log")

console = Console()

EXIT_STORAGE_UNAVAILABLE = 2


@dataclass
class AppState:
    repository: ConfigRepository
    config: IngestConfig
    storage: SQLiteManager

    @property
    def storage_path(self) -> Path:
        return self.repository.storage_path(self.config)


def build_state(verbose: bool) -> AppState:
    repository = ConfigRepository()
    config = repository.load_config()
    configure_logging(verbose=verbose, directory=repository.locator.logs_dir)
    storage = SQLiteManager(timeout=config.storage.timeout)
    return AppState(repository=repository, config=config, storage=storage)


def _get_state(ctx: typer.Context) -> AppState:
    state = ctx.obj
    if state is None:
        state = build_state(verbose=False)
        ctx.obj = state
    return state


def _parse_date_option(value: Optional[str], option_name: str) -> date:
    if value is None:
        return date.today()
    try:
        return date.fromisoformat(value.strip())
    except ValueError as exc:
        raise BadParameter(f"{option_name} expects YYYY-MM-DD, got {value!r}") from exc


def _parse_page_option(value: str) -> PageKey:
    try:
        return PageKey.parse(value)
    except ValueError as exc:
        raise BadParameter(str(exc)) from exc


def _open_sqlite(state: AppState) -> SQLiteSink:
    if state.config.storage.backend != "sqlite":
        console.print("This command requires the sqlite storage backend.", style="red")
        raise typer.Exit(code=1)
    try:
        return SQLiteSink(state.storage, state.storage_path)
    except StorageUnavailable as exc:
        console.print(f"Storage unavailable: {exc}", style="red")
        raise typer.Exit(code=EXIT_STORAGE_UNAVAILABLE)


def _render_statistics(stats: RunStatistics) -> Table:
    table = Table(title="Run result", box=box.SIMPLE_HEAVY)
    table.add_column("Metric", style="bold")
    table.add_column("Count", justify="right")
    table.add_row("Imported", f"[green]{stats.imported}[/green]")
    table.add_row("Skipped (duplicate)", f"[yellow]{stats.skipped}[/yellow]")
    table.add_row("Failed", f"[red]{stats.failed}[/red]")
    table.add_row("Discarded", str(stats.discarded))
    table.add_row("Geocoded", str(stats.geocoded))
    table.add_row("Without coordinates", str(stats.unresolved))
    table.add_row("Pages", f"{stats.pages_total - stats.pages_failed}/{stats.pages_total}")
    return table


def _render_failures(stats: RunStatistics) -> Table:
    table = Table(title="Failures", box=box.MINIMAL_DOUBLE_HEAD)
    table.add_column("Page", style="cyan")
    table.add_column("Tournament")
    table.add_column("Reason", style="red")
    for failure in stats.failures:
        table.add_row(failure.page, failure.identity or "-", failure.reason)
    return table


@app.callback()
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", help="Enable debug logging", is_flag=True),
) -> None:
    ctx.obj = build_state(verbose)


@app.command("run", help="Scrape the calendar and import new tournaments.")
def run(
    ctx: typer.Context,
    variant: ScraperVariant = typer.Option(
        ScraperVariant.HTTP, "--variant", help="http (fast) or browser (renders scripts)."
    ),
    mode: RunMode = typer.Option(RunMode.FULL, "--mode", help="single page or full range."),
    max_pages: Optional[int] = typer.Option(
        None, "--max-pages", min=1, help="Stop after this many pages."
    ),
    page: Optional[str] = typer.Option(
        None, "--page", help="Page for single mode, YYYY-M (default: reference month)."
    ),
    reference_date: Optional[str] = typer.Option(
        None, "--reference-date", help="Evaluate 'already ended' against this day (YYYY-MM-DD)."
    ),
    no_geocode: bool = typer.Option(False, "--no-geocode", help="Skip coordinate lookup.", is_flag=True),
    quiet: bool = typer.Option(False, "--quiet", help="Hide the progress bar.", is_flag=True),
) -> None:
    state = _get_state(ctx)
    config = state.config
    reference = _parse_date_option(reference_date, "--reference-date")
    if mode is RunMode.SINGLE:
        keys = [_parse_page_option(page) if page else PageKey.from_date(reference)]
    else:
        if page:
            raise BadParameter("--page is only valid with --mode single")
        keys = list(config.source.page_range.keys().limit(max_pages))

    try:
        sink = PipelineFactory.build_sink(config, state.storage_path, state.storage)
    except StorageUnavailable as exc:
        console.print(f"Storage unavailable: {exc}", style="red")
        raise typer.Exit(code=EXIT_STORAGE_UNAVAILABLE)

    fetcher = PipelineFactory.build_fetcher(config, variant)
    geocoder = PipelineFactory.build_geocoder(config, enabled=not no_geocode)
    progress = ProgressReporter(enabled=config.enable_progress_bar and not quiet, console=console)
    pipeline = IngestionPipeline(
        fetcher=fetcher,
        sink=sink,
        geocoder=geocoder,
        prefetch=config.source.prefetch,
        progress=progress,
    )
    try:
        stats = pipeline.run(keys, reference)
    except StorageUnavailable as exc:
        console.print(f"Storage unavailable: {exc}", style="red")
        raise typer.Exit(code=EXIT_STORAGE_UNAVAILABLE)
    finally:
        fetcher.close()
        if geocoder is not None:
            geocoder.close()
        try:
            sink.close()
        except PersistenceFailure as exc:
            console.print(f"Closing storage failed: {exc}", style="red")

    console.print(_render_statistics(stats))
    if stats.failures:
        console.print(_render_failures(stats))


@app.command("nearby", help="List tournaments within a radius of a point.")
def nearby(
    ctx: typer.Context,
    lat: float = typer.Option(..., "--lat", min=-90, max=90, help="Latitude"),
    lon: float = typer.Option(..., "--lon", min=-180, max=180, help="Longitude"),
    radius: float = typer.Option(100.0, "--radius", min=0.1, help="Radius in km"),
    reference_date: Optional[str] = typer.Option(None, "--reference-date"),
) -> None:
    state = _get_state(ctx)
    reference = _parse_date_option(reference_date, "--reference-date")
    sink = _open_sqlite(state)
    try:
        matches = sink.nearby(lat, lon, radius, reference_date=reference)
    finally:
        sink.close()
    if not matches:
        console.print(f"No tournaments within {radius:g} km.", style="yellow")
        return
    table = Table(title=f"Tournaments within {radius:g} km", box=box.SIMPLE_HEAVY)
    table.add_column("Km", justify="right")
    table.add_column("Name", style="bold")
    table.add_column("Type")
    table.add_column("Dates")
    table.add_column("City")
    for match in matches:
        row = match.row
        table.add_row(
            f"{match.distance_km:.1f}",
            row["name"],
            row["tournament_type"],
            f"{row['start_date']} → {row['end_date']}",
            f"{row['city']}, {row['country']}".strip(", "),
        )
    console.print(table)


@app.command("stats", help="Show stored tournament counts.")
def stats(ctx: typer.Context) -> None:
    state = _get_state(ctx)
    sink = _open_sqlite(state)
    try:
        summary = sink.statistics()
    finally:
        sink.close()
    table = Table(title="Database statistics", box=box.SIMPLE_HEAVY, show_header=False)
    table.add_column("Metric", style="bold")
    table.add_column("Count", justify="right")
    table.add_row("Total tournaments", str(summary["total"]))
    table.add_row("With coordinates", str(summary["with_coords"]))
    table.add_row("Without coordinates", str(summary["without_coords"]))
    console.print(table)


@app.command("export", help="Export the stored tournaments to CSV or JSON.")
def export(
    ctx: typer.Context,
    fmt: str = typer.Option("csv", "--format", help="csv or json"),
    output: Optional[Path] = typer.Option(None, "--output", help="Target file path"),
) -> None:
    if fmt not in {"csv", "json"}:
        raise BadParameter("--format must be csv or json")
    state = _get_state(ctx)
    target = output or state.repository.locator.exports_dir / f"tournaments.{fmt}"
    sink = _open_sqlite(state)
    try:
        exporter = FileSink(target, fmt, load_existing=False)
        for row in sink.iter_rows():
            exporter.add_row(row)
        exporter.flush()
    except (PersistenceFailure, StorageUnavailable) as exc:
        console.print(f"Export failed: {exc}", style="red")
        raise typer.Exit(code=1)
    finally:
        sink.close()
    console.print(f"Exported {len(exporter.rows())} tournaments to {target}", style="green")


@config_app.command("show", help="Print the effective configuration.")
def config_show(ctx: typer.Context) -> None:
    state = _get_state(ctx)
    payload = state.config.model_dump(mode="json")
    console.print(yaml.safe_dump(payload, allow_unicode=True, sort_keys=False), markup=False)


@config_app.command("path", help="Print configuration and storage paths.")
def config_path(ctx: typer.Context) -> None:
    state = _get_state(ctx)
    console.print(f"config:  {state.repository.locator.config_path()}", markup=False)
    console.print(f"storage: {state.storage_path}", markup=False)


@log_app.command("show", help="Print the tail of the ingest or error log.")
def log_show(
    lines: int = typer.Option(50, "--lines", min=1, help="Number of lines"),
    errors: bool = typer.Option(False, "--errors", help="Show error.log instead", is_flag=True),
) -> None:
    path = log_dir() / ("error.log" if errors else "ingest.log")
    content = tail_log(path, lines)
    if not content:
        console.print(f"No log entries in {path}", style="yellow")
        return
    for line in content:
        console.print(line.rstrip("\n"), markup=False, highlight=False)


__all__ = ["AppState", "app", "build_state"]
