from __future__ import annotations

import json
import sys
from typing import Dict, List, Optional

import typer
from rich.console import Console

from fleetboard.config import get_settings
from fleetboard.dashboard import Dashboard
from fleetboard.domain.models import SortDirection
from fleetboard.errors import FleetboardError
from fleetboard.infrastructure.sources import JsonFileRecordSource, PostgresRecordSource
from fleetboard.presets import available_dashboards, get_preset
from fleetboard.reporter import export_snapshot, print_metrics, print_page
from fleetboard.utils.logging import configure_logging

app = typer.Typer(help="Fleet dashboard list views and summary metrics.")

DATA_FILE_OPTION = typer.Option(
    None,
    "--data-file",
    "-f",
    help="JSON document of tables to read instead of Postgres (default: DATA_FILE).",
)
DSN_OPTION = typer.Option(None, "--dsn", help="Optional DSN override for Postgres.")


def _setup() -> None:
    settings = get_settings()
    configure_logging(level=settings.log_level, json_logs=settings.log_json)


def _build_source(data_file: Optional[str], dsn: Optional[str]):
    path = data_file or get_settings().data_file
    if path:
        return JsonFileRecordSource(path)
    return PostgresRecordSource(dsn=dsn)


def _parse_filters(pairs: Optional[List[str]]) -> Dict[str, str]:
    filters: Dict[str, str] = {}
    for pair in pairs or []:
        field, sep, value = pair.partition("=")
        if not sep or not field:
            raise typer.BadParameter(f"expected FIELD=VALUE, got {pair!r}", param_hint="--filter")
        filters[field.strip()] = value.strip()
    return filters


def _load(dashboard: str, data_file: Optional[str], dsn: Optional[str]) -> Dashboard:
    try:
        preset = get_preset(dashboard)
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_hint="DASHBOARD") from exc
    board = Dashboard(preset, _build_source(data_file, dsn))
    board.refresh()
    return board


@app.command()
def info() -> None:
    """
    Show effective configuration values.
    """
    settings = get_settings()
    typer.echo(
        f"DB={settings.db_user}@{settings.db_host}:{settings.db_port}/{settings.db_name} | "
        f"data_file={settings.data_file or '-'} page_size={settings.default_page_size} "
        f"id_field={settings.id_field} export_dir={settings.export_dir}"
    )


@app.command()
def dashboards() -> None:
    """
    List available dashboard presets.
    """
    for name in available_dashboards():
        preset = get_preset(name)
        typer.echo(f"{name:<18} table={preset.table:<22} {preset.description}")


@app.command()
def query(
    dashboard: str = typer.Argument(..., help="Dashboard preset name."),
    search: str = typer.Option("", "--search", "-q", help="Case-insensitive search text."),
    filters: Optional[List[str]] = typer.Option(
        None, "--filter", "-F", help="Equality filter FIELD=VALUE ('all' disables). Repeatable."
    ),
    sort: Optional[str] = typer.Option(None, "--sort", "-s", help="Sort field (default per preset)."),
    direction: Optional[SortDirection] = typer.Option(
        None, "--direction", "-d", help="Sort direction (asc/desc)."
    ),
    page: int = typer.Option(1, "--page", "-p", help="1-based page number."),
    page_size: Optional[int] = typer.Option(None, "--page-size", "-n", help="Rows per page."),
    columns: Optional[List[str]] = typer.Option(
        None, "--column", "-c", help="Column to display (dotted paths allowed). Repeatable."
    ),
    as_json: bool = typer.Option(False, "--json", help="Print the page as JSON."),
    data_file: Optional[str] = DATA_FILE_OPTION,
    dsn: Optional[str] = DSN_OPTION,
) -> None:
    """
    Search, filter, sort and page one dashboard table.
    """
    _setup()
    board = _load(dashboard, data_file, dsn)
    try:
        result = board.view(
            search_text=search,
            filters=_parse_filters(filters),
            sort_key=sort,
            sort_direction=direction,
            page=page,
            page_size=page_size,
        )
    except FleetboardError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=2) from exc

    if as_json:
        typer.echo(
            json.dumps(
                {
                    "items": list(result.items),
                    "total_matched": result.total_matched,
                    "total_pages": result.total_pages,
                    "page": result.page,
                    "page_size": result.page_size,
                },
                indent=2,
                default=str,
            )
        )
        return
    print_page(result, columns=columns, title=board.preset.description, console=Console())


@app.command()
def metrics(
    dashboard: str = typer.Argument(..., help="Dashboard preset name."),
    as_json: bool = typer.Option(False, "--json", help="Print the snapshot as JSON."),
    data_file: Optional[str] = DATA_FILE_OPTION,
    dsn: Optional[str] = DSN_OPTION,
) -> None:
    """
    Compute the summary cards of one dashboard.
    """
    _setup()
    board = _load(dashboard, data_file, dsn)
    snapshot = board.metrics()
    if as_json:
        typer.echo(json.dumps(snapshot, indent=2))
        return
    print_metrics(snapshot, title=board.preset.description, console=Console())


@app.command()
def export(
    dashboard: str = typer.Argument(..., help="Dashboard preset name."),
    out_dir: Optional[str] = typer.Option(None, "--out-dir", "-o", help="Export directory."),
    data_file: Optional[str] = DATA_FILE_OPTION,
    dsn: Optional[str] = DSN_OPTION,
) -> None:
    """
    Persist the full table and its metrics as JSON for report generation.
    """
    _setup()
    board = _load(dashboard, data_file, dsn)
    latest, archive = export_snapshot(
        board.preset.name,
        board.store.all(),
        board.metrics(),
        export_dir=out_dir or get_settings().export_dir,
    )
    typer.echo(f"Exported {len(board.store):,} records -> {latest} ({archive.name})")


def main() -> None:
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("Cancelled by user.", err=True)
        sys.exit(130)


if __name__ == "__main__":
    main()
