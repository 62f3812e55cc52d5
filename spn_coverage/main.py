from __future__ import annotations

import json
import sys
from datetime import datetime
from pathlib import Path
from typing import List, Optional

import typer

from spn_coverage.config import get_settings
from spn_coverage.domain.week_calendar import WEEKDAY_NAMES, parse_weekday
from spn_coverage.errors import SnapshotError
from spn_coverage.infrastructure.part_store import InMemoryPartStore, PartStore
from spn_coverage.orchestrator import (
    available_strategies,
    compare_strategies,
    find_mismatches,
    run_snapshot,
)
from spn_coverage.reporter import print_comparison, print_snapshot
from spn_coverage.utils.logging import configure_logging

app = typer.Typer(help="Weekly SPN coverage snapshot CLI.")

_NOW_HELP = "End of the reporting window as an ISO date/datetime (default: now)."
_WEEKDAY_HELP = "Week alignment: 0-6 or a weekday name (default from settings, Monday)."
_CSV_HELP = "Read parts from a CSV file instead of PostgreSQL."


def _parse_now(value: Optional[str]) -> Optional[datetime]:
    if value is None:
        return None
    try:
        return datetime.fromisoformat(value)
    except ValueError as exc:
        raise typer.BadParameter(f"expected an ISO date or datetime, got '{value}'") from exc


def _build_store(csv_path: Optional[Path]) -> Optional[PartStore]:
    if csv_path is None:
        return None
    return InMemoryPartStore.from_csv(csv_path)


def _fail(exc: Exception) -> None:
    typer.echo(f"Snapshot failed: {exc}", err=True)
    raise typer.Exit(code=2)


@app.command()
def info() -> None:
    """
    Show effective configuration values.
    """
    settings = get_settings()
    typer.echo(
        f"DB={settings.db_user}@{settings.db_host}:{settings.db_port}/{settings.db_name} | "
        f"table={settings.parts_schema}.{settings.parts_table} "
        f"active_status={settings.part_active_status} | "
        f"window={settings.report_window_months}mo "
        f"week_start={WEEKDAY_NAMES[settings.report_week_start_day]} "
        f"strategy={settings.report_strategy}"
    )


@app.command()
def run(
    strategy: Optional[str] = typer.Option(
        None,
        "--strategy",
        "-s",
        help="Aggregation strategy (nested_loop, prefix_count, sql_pushdown) or 'list'.",
    ),
    window_months: Optional[int] = typer.Option(
        None,
        "--window-months",
        "-m",
        help="Months of history to cover (default from settings).",
    ),
    now: Optional[str] = typer.Option(None, "--now", help=_NOW_HELP),
    week_start_day: Optional[str] = typer.Option(None, "--week-start-day", help=_WEEKDAY_HELP),
    csv_path: Optional[Path] = typer.Option(None, "--csv", help=_CSV_HELP),
    persist: bool = typer.Option(
        False,
        "--persist/--no-persist",
        help="Write the report to the results directory as JSON.",
    ),
    as_json: bool = typer.Option(False, "--json", help="Print the report as JSON instead of a table."),
) -> None:
    """
    Compute the weekly snapshot and print it.
    """
    settings = get_settings()
    configure_logging(level=settings.log_level, json_logs=settings.log_json)

    if strategy == "list":
        typer.echo("Available strategies: " + ", ".join(available_strategies()))
        return

    as_of = _parse_now(now)
    try:
        report = run_snapshot(
            now=as_of,
            window_months=window_months,
            week_start_day=parse_weekday(week_start_day) if week_start_day is not None else None,
            strategy=strategy,
            store=_build_store(csv_path),
            persist=persist,
        )
    except (SnapshotError, ValueError) as exc:
        _fail(exc)
        return

    if as_json:
        typer.echo(json.dumps(report.model_dump(mode="json"), indent=2))
    else:
        print_snapshot(report)


@app.command()
def compare(
    strategies: Optional[List[str]] = typer.Option(
        None,
        "--strategy",
        "-s",
        help="Strategies to compare (repeatable). Default: all the store supports.",
    ),
    window_months: Optional[int] = typer.Option(None, "--window-months", "-m"),
    now: Optional[str] = typer.Option(None, "--now", help=_NOW_HELP),
    week_start_day: Optional[str] = typer.Option(None, "--week-start-day", help=_WEEKDAY_HELP),
    csv_path: Optional[Path] = typer.Option(None, "--csv", help=_CSV_HELP),
) -> None:
    """
    Run several strategies over the same window and check they agree row for row.
    """
    settings = get_settings()
    configure_logging(level=settings.log_level, json_logs=settings.log_json)

    as_of = _parse_now(now)
    try:
        reports = compare_strategies(
            strategy_names=strategies or None,
            now=as_of,
            window_months=window_months,
            week_start_day=parse_weekday(week_start_day) if week_start_day is not None else None,
            store=_build_store(csv_path),
        )
    except (SnapshotError, ValueError) as exc:
        _fail(exc)
        return

    mismatches = find_mismatches(reports)
    print_comparison(reports, mismatches)
    if mismatches:
        raise typer.Exit(code=1)


def main() -> None:
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("Cancelled by user.", err=True)
        sys.exit(130)


if __name__ == "__main__":
    main()
