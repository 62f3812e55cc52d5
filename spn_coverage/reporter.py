from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional

from rich import box
from rich.console import Console
from rich.table import Table

from spn_coverage.domain.models import SnapshotReport
from spn_coverage.domain.week_calendar import WEEKDAY_NAMES


def _format_percent(value: Optional[Decimal]) -> str:
    return "N/A" if value is None else f"{value:.2f}"


def build_snapshot_table(report: SnapshotReport) -> Table:
    """
    Build a rich table with one line per week, oldest first.
    """
    title = (
        "Weekly SPN Coverage Snapshot\n"
        f"[dim]{report.window_start.isoformat()} → {report.window_end.isoformat()} │ "
        f"weeks start {WEEKDAY_NAMES[report.week_start_day].title()}[/dim]"
    )
    caption = f"strategy={report.strategy} │ active parts scanned={report.records_scanned:,}"
    if report.records_skipped:
        caption += f" │ [yellow]skipped (no creation date)={report.records_skipped:,}[/yellow]"

    table = Table(title=title, box=box.ROUNDED, caption=caption)
    table.add_column("Week Start", style="cyan", no_wrap=True)
    table.add_column("Active Parts", justify="right", style="magenta")
    table.add_column("With SPN", justify="right", style="green")
    table.add_column("Without SPN", justify="right", style="red")
    table.add_column("% With SPN", justify="right", style="bold green")
    table.add_column("% Without SPN", justify="right", style="bold red")

    for row in report.rows:
        table.add_row(
            row.week_start.date().isoformat(),
            f"{row.total_active:,}",
            f"{row.active_with_spn:,}",
            f"{row.active_without_spn:,}",
            _format_percent(row.percent_with_spn),
            _format_percent(row.percent_without_spn),
        )
    return table


def print_snapshot(report: SnapshotReport, console: Optional[Console] = None) -> None:
    """
    Render a snapshot report as a rich table.
    """
    console = console or Console()

    if not report.rows:
        console.print("[yellow]No weeks to display.[/yellow]")
        return

    console.print(build_snapshot_table(report))


def print_comparison(
    reports: Dict[str, SnapshotReport],
    mismatches: List[datetime],
    console: Optional[Console] = None,
) -> None:
    """
    Summarize a strategy comparison: per-strategy totals for the last week and the verdict.
    """
    console = console or Console()

    table = Table(title="Strategy Comparison", box=box.ROUNDED)
    table.add_column("Strategy", style="cyan", no_wrap=True)
    table.add_column("Weeks", justify="right", style="blue")
    table.add_column("Latest Active", justify="right", style="magenta")
    table.add_column("Latest % With SPN", justify="right", style="bold green")
    table.add_column("Skipped", justify="right", style="yellow")

    for name, report in reports.items():
        latest = report.rows[-1] if report.rows else None
        table.add_row(
            name,
            str(len(report.rows)),
            f"{latest.total_active:,}" if latest else "N/A",
            _format_percent(latest.percent_with_spn) if latest else "N/A",
            f"{report.records_skipped:,}",
        )
    console.print(table)

    if mismatches:
        weeks = ", ".join(week.date().isoformat() for week in mismatches[:10])
        more = f" (+{len(mismatches) - 10} more)" if len(mismatches) > 10 else ""
        console.print(f"[bold red]Strategies disagree on {len(mismatches)} week(s): {weeks}{more}[/bold red]")
    else:
        console.print("[bold green]All strategies produced identical rows.[/bold green]")
