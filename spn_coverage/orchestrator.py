"""
Orchestrator for snapshot runs: calendar, aggregation, optional persistence.

Usage (example from CLI):
    from spn_coverage.orchestrator import run_snapshot

    report = run_snapshot(window_months=12, strategy="prefix_count")
    for row in report.rows:
        print(row.week_start, row.percent_with_spn)

Stages run strictly in order and each is profiled and logged. A failing stage
aborts the run: the exception is tagged with the stage name and re-raised,
and no partial report is returned.

Persisted reports are saved to `results/` by default:
- `results/latest.json` (last run)
- `results/snapshot-<timestamp>.json` (archive, UTC timestamp to the microsecond)
"""

from __future__ import annotations

import json
from contextlib import contextmanager
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Callable, Dict, Generator, Iterable, List, Optional, Union

from spn_coverage.config import get_settings
from spn_coverage.domain.models import SnapshotReport, SnapshotRow
from spn_coverage.domain.week_calendar import generate_week_starts, reporting_window
from spn_coverage.errors import ReportPersistError, SnapshotError
from spn_coverage.infrastructure.part_store import PartStore, PostgresPartStore, SqlPartStore
from spn_coverage.strategies.abstract import SnapshotStrategy
from spn_coverage.strategies.nested_loop import NestedLoopStrategy
from spn_coverage.strategies.prefix_count import PrefixCountStrategy
from spn_coverage.strategies.sql_pushdown import SqlPushdownStrategy
from spn_coverage.utils.logging import get_logger
from spn_coverage.utils.profiler import StageStats, profile_stage

log = get_logger(__name__)


def _strategy_factories() -> Dict[str, Callable[[Optional[int]], SnapshotStrategy]]:
    """Registry of available strategies."""
    return {
        "nested_loop": lambda active_status: NestedLoopStrategy(active_status=active_status),
        "prefix_count": lambda active_status: PrefixCountStrategy(active_status=active_status),
        "sql_pushdown": lambda active_status: SqlPushdownStrategy(active_status=active_status),
    }


def available_strategies() -> List[str]:
    """List available strategy names."""
    return sorted(_strategy_factories().keys())


def _resolve_strategy(name: str, active_status: Optional[int] = None) -> SnapshotStrategy:
    factories = _strategy_factories()
    if name not in factories:
        raise ValueError(f"Unknown strategy '{name}'. Available: {', '.join(sorted(factories))}")
    return factories[name](active_status)


@contextmanager
def _stage(name: str, **fields: object) -> Generator[StageStats, None, None]:
    """Profile and log one pipeline stage, tagging failures with the stage name."""
    log.info(f"[STAGE START] {name}", extra={"stage": name, **fields})
    stats = StageStats(label=name)
    try:
        with profile_stage(name) as stats:
            yield stats
    except SnapshotError as exc:
        if exc.stage is None:
            exc.stage = name
        log.exception(f"[STAGE FAILED] {name}", extra=stats.as_log_fields())
        raise
    except Exception:
        log.exception(f"[STAGE FAILED] {name}", extra=stats.as_log_fields())
        raise
    log.info(f"[STAGE DONE] {name}", extra=stats.as_log_fields())


def _check_row_shape(rows: List[SnapshotRow], week_starts: List[datetime], strategy: str) -> None:
    """One row per week start, same order, nothing added or dropped."""
    produced = [row.week_start for row in rows]
    if produced != week_starts:
        raise SnapshotError(
            f"strategy '{strategy}' returned {len(produced)} rows for {len(week_starts)} weeks "
            "or reordered them"
        )


def _persist_report(report: SnapshotReport, results_dir: Path) -> Path:
    latest_path = results_dir / "latest.json"
    timestamp = report.generated_at.strftime("%Y%m%dT%H%M%S%fZ")
    archive_path = results_dir / f"snapshot-{timestamp}.json"
    payload = report.model_dump(mode="json")

    try:
        results_dir.mkdir(parents=True, exist_ok=True)
        with latest_path.open("w", encoding="utf-8") as f:
            json.dump(payload, f, indent=2, sort_keys=True)
        with archive_path.open("w", encoding="utf-8") as f:
            json.dump(payload, f, indent=2, sort_keys=True)
    except OSError as exc:
        raise ReportPersistError(f"cannot write report to {results_dir}: {exc}") from exc

    log.info("Report persisted", extra={"latest": str(latest_path), "archive": str(archive_path)})
    return archive_path


def run_snapshot(
    now: Optional[Union[datetime, date]] = None,
    window_months: Optional[int] = None,
    week_start_day: Optional[int] = None,
    strategy: Optional[str] = None,
    store: Optional[PartStore] = None,
    persist: bool = False,
    results_dir: Optional[Union[Path, str]] = None,
) -> SnapshotReport:
    """
    Compute the weekly SPN coverage snapshot.

    Parameters
    ----------
    now : datetime | date | None
        End of the reporting window. Defaults to the current local time.
    window_months : int | None
        How many months back the calendar starts. Defaults to settings.
    week_start_day : int | None
        Week alignment, 0=Monday .. 6=Sunday. Defaults to settings.
    strategy : str | None
        Aggregation strategy name. Defaults to settings.report_strategy.
    store : PartStore | None
        Source of parts. Defaults to the configured PostgreSQL store.
    persist : bool
        Whether to write the report to `results_dir` as JSON.
    results_dir : Path | str | None
        Directory for JSON artifacts. Defaults to settings.results_dir.

    Returns
    -------
    SnapshotReport
        One row per week, oldest first, plus run metadata.

    Raises
    ------
    InvalidWindowError
        If the window is inverted or the week alignment is out of range.
        Raised before the store is touched.
    StoreUnavailableError
        If reading the part store fails.
    ReportPersistError
        If `persist` is set and the JSON artifacts cannot be written.
    """
    settings = get_settings()
    months = settings.report_window_months if window_months is None else window_months
    weekday = settings.report_week_start_day if week_start_day is None else week_start_day
    strategy_name = strategy or settings.report_strategy
    as_of = now if now is not None else datetime.now()

    snapshot_strategy = _resolve_strategy(strategy_name, settings.part_active_status)

    with _stage("calendar", window_months=months, week_start_day=weekday) as stats:
        window_start, window_end = reporting_window(as_of, months)
        week_starts = generate_week_starts(window_start, window_end, weekday)
        stats.extra["weeks"] = len(week_starts)

    part_store = store if store is not None else PostgresPartStore()
    with _stage("aggregate", strategy=strategy_name, store=part_store.name) as stats:
        result = snapshot_strategy.compute(week_starts, part_store)
        rows = result.get("rows", [])
        _check_row_shape(rows, week_starts, strategy_name)
        stats.extra.update(
            rows=len(rows),
            scanned=result.get("records_scanned", 0),
            skipped=result.get("records_skipped", 0),
        )

    report = SnapshotReport(
        generated_at=datetime.now(timezone.utc),
        window_start=window_start,
        window_end=window_end,
        week_start_day=weekday,
        strategy=strategy_name,
        records_scanned=result.get("records_scanned", 0),
        records_skipped=result.get("records_skipped", 0),
        rows=rows,
    )

    if persist:
        with _stage("persist"):
            _persist_report(report, Path(results_dir or settings.results_dir))

    log.info(
        "[SNAPSHOT COMPLETE]",
        extra={"strategy": strategy_name, "weeks": len(rows), "skipped": report.records_skipped},
    )
    return report


def compare_strategies(
    strategy_names: Optional[Iterable[str]] = None,
    now: Optional[Union[datetime, date]] = None,
    window_months: Optional[int] = None,
    week_start_day: Optional[int] = None,
    store: Optional[PartStore] = None,
) -> Dict[str, SnapshotReport]:
    """
    Run several strategies over the same window and store.

    With `strategy_names` None (or ["all"]), runs every strategy the store
    supports; `sql_pushdown` is left out for stores without SQL access.
    Pass the result to `find_mismatches` to check that they agree.
    """
    part_store = store if store is not None else PostgresPartStore()
    as_of = now if now is not None else datetime.now()

    names = list(strategy_names) if strategy_names is not None else ["all"]
    if len(names) == 1 and names[0] == "all":
        names = available_strategies()
        if not isinstance(part_store, SqlPartStore):
            names = [name for name in names if name != "sql_pushdown"]

    reports: Dict[str, SnapshotReport] = {}
    for name in names:
        reports[name] = run_snapshot(
            now=as_of,
            window_months=window_months,
            week_start_day=week_start_day,
            strategy=name,
            store=part_store,
        )
    return reports


def find_mismatches(reports: Dict[str, SnapshotReport]) -> List[datetime]:
    """Week starts whose rows are not identical across all reports."""
    by_week: Dict[datetime, List[Optional[SnapshotRow]]] = {}
    for index, report in enumerate(reports.values()):
        for row in report.rows:
            by_week.setdefault(row.week_start, [None] * len(reports))[index] = row

    mismatched = []
    for week_start, rows in sorted(by_week.items()):
        if any(row is None or row != rows[0] for row in rows):
            mismatched.append(week_start)
    return mismatched


__all__ = [
    "available_strategies",
    "compare_strategies",
    "find_mismatches",
    "run_snapshot",
]
