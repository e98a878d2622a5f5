from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

from rich import box
from rich.console import Console
from rich.table import Table

from fleetboard.domain.fields import Record, field_label, normalize, resolve_field
from fleetboard.domain.models import MetricsSnapshot, QueryResult
from fleetboard.utils.logging import get_logger

log = get_logger(__name__)

MAX_AUTO_COLUMNS = 8
MAX_CELL_WIDTH = 40


def _format_number(value: Any) -> str:
    if isinstance(value, bool):
        return str(value).lower()
    if isinstance(value, int):
        return f"{value:,}"
    if isinstance(value, float):
        return f"{value:,.2f}"
    return str(value)


def _cell(value: Any) -> str:
    if isinstance(value, (dict, list)):
        text = json.dumps(value, default=str)
    else:
        text = normalize(value)
    if len(text) > MAX_CELL_WIDTH:
        return text[: MAX_CELL_WIDTH - 1] + "…"
    return text


def infer_columns(items: Sequence[Record], limit: int = MAX_AUTO_COLUMNS) -> List[str]:
    """Column names in first-seen order across the page, capped at `limit`."""
    columns: List[str] = []
    for item in items:
        for key in item:
            if key not in columns:
                columns.append(key)
    return columns[:limit]


def build_page_table(
    result: QueryResult,
    columns: Optional[Sequence[Any]] = None,
    title: str = "Records",
) -> Table:
    """
    Render one query page as a rich table.

    The caption carries the pagination state so the table stands alone.
    """
    cols = list(columns) if columns else infer_columns(result.items)
    table = Table(
        title=title,
        box=box.ROUNDED,
        caption=(
            f"Page {result.page}/{max(result.total_pages, 1)} │ "
            f"{result.total_matched:,} matched"
        ),
    )
    for index, column in enumerate(cols):
        table.add_column(
            field_label(column),
            style="cyan" if index == 0 else None,
            no_wrap=index == 0,
        )
    for item in result.items:
        table.add_row(*(_cell(resolve_field(item, column)) for column in cols))
    return table


def build_metrics_table(snapshot: MetricsSnapshot, title: str = "Metrics") -> Table:
    table = Table(title=title, box=box.ROUNDED)
    table.add_column("Metric", style="cyan", no_wrap=True)
    table.add_column("Value", justify="right", style="bold green")
    for name, value in snapshot.items():
        table.add_row(name, _format_number(value))
    return table


def print_page(
    result: QueryResult,
    columns: Optional[Sequence[Any]] = None,
    title: str = "Records",
    console: Optional[Console] = None,
) -> None:
    console = console or Console()
    if not result.items:
        console.print(
            f"[yellow]No records on page {result.page} "
            f"({result.total_matched:,} matched).[/yellow]"
        )
        return
    console.print(build_page_table(result, columns=columns, title=title))


def print_metrics(
    snapshot: MetricsSnapshot, title: str = "Metrics", console: Optional[Console] = None
) -> None:
    console = console or Console()
    if not snapshot:
        console.print("[yellow]No metrics to display.[/yellow]")
        return
    console.print(build_metrics_table(snapshot, title=title))


def export_snapshot(
    dashboard: str,
    records: Sequence[Record],
    metrics: MetricsSnapshot,
    export_dir: Path | str = "exports",
) -> Tuple[Path, Path]:
    """
    Persist the full collection and its metrics for report generation.

    Writes `<export_dir>/<dashboard>-latest.json` and a timestamped archive
    next to it. Returns both paths.
    """
    now = datetime.now(timezone.utc)
    payload: Dict[str, Any] = {
        "dashboard": dashboard,
        "generated_at": now.isoformat(),
        "total_records": len(records),
        "metrics": metrics,
        "records": list(records),
    }
    directory = Path(export_dir)
    directory.mkdir(parents=True, exist_ok=True)
    latest_path = directory / f"{dashboard}-latest.json"
    archive_path = directory / f"{dashboard}-{now.strftime('%Y%m%dT%H%M%SZ')}.json"

    for path in (latest_path, archive_path):
        with path.open("w", encoding="utf-8") as f:
            json.dump(payload, f, indent=2, sort_keys=True, default=str)

    log.info("Export persisted", extra={"latest": str(latest_path), "archive": str(archive_path)})
    return latest_path, archive_path


__all__ = [
    "infer_columns",
    "build_page_table",
    "build_metrics_table",
    "print_page",
    "print_metrics",
    "export_snapshot",
]
