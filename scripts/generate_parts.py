"""
Synthetic parts generator for the SPN coverage snapshot.

Writes a deterministic pseudo-random parts CSV (the layout read by
`InMemoryPartStore.from_csv`) and optionally loads it into PostgreSQL with
COPY. The mix of missing SPNs, deleted, inactive and malformed rows is
configurable so every branch of the aggregation has data to chew on.
"""

from __future__ import annotations

import csv
import random
import sys
import tempfile
import time
from datetime import datetime, timedelta
from pathlib import Path
from typing import Optional

import psycopg
import typer
from psycopg import sql

from spn_coverage.config import get_settings
from spn_coverage.infrastructure.db_factory import build_dsn
from spn_coverage.infrastructure.part_store import PART_COLUMNS

app = typer.Typer(help="Generate synthetic parts and load into Postgres (CSV + COPY).")

INACTIVE_STATUS = 0
_TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


def _generate_parts_csv(
    csv_path: Path,
    rows: int,
    batch_size: int,
    seed: int,
    months: int = 15,
    now: Optional[datetime] = None,
    missing_spn_ratio: float = 0.3,
    deleted_ratio: float = 0.05,
    inactive_ratio: float = 0.05,
    malformed_ratio: float = 0.0,
    active_status: int = 1,
) -> None:
    rng = random.Random(seed)
    end = (now or datetime.now()).replace(microsecond=0)
    span_seconds = int(timedelta(days=months * 31).total_seconds())

    with csv_path.open("w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        writer.writerow(PART_COLUMNS)

        buffer: list[list[str]] = []
        for part_id in range(1, rows + 1):
            created_at = end - timedelta(seconds=rng.randint(0, span_seconds))
            spn = "" if rng.random() < missing_spn_ratio else f"SPN-{rng.randint(0, 999_999):06d}"
            status = INACTIVE_STATUS if rng.random() < inactive_ratio else active_status
            deleted_at = ""
            if rng.random() < deleted_ratio:
                deleted_at = (created_at + (end - created_at) * rng.random()).strftime(_TIMESTAMP_FORMAT)
            created_cell = created_at.strftime(_TIMESTAMP_FORMAT)
            if rng.random() < malformed_ratio:
                created_cell = ""
            buffer.append([str(part_id), spn, created_cell, str(status), deleted_at])
            if len(buffer) >= batch_size:
                writer.writerows(buffer)
                buffer.clear()
        if buffer:
            writer.writerows(buffer)


def _copy_into_db(dsn: str, csv_path: Path) -> int:
    settings = get_settings()
    statement = sql.SQL("COPY {table} ({columns}) FROM STDIN WITH (FORMAT csv, HEADER TRUE)").format(
        table=sql.Identifier(settings.parts_schema, settings.parts_table),
        columns=sql.SQL(", ").join(sql.Identifier(column) for column in PART_COLUMNS),
    )
    lines = 0
    with psycopg.connect(dsn) as conn:
        with conn.cursor() as cur:
            with cur.copy(statement) as copy:
                with csv_path.open("r", encoding="utf-8") as f:
                    for line in f:
                        copy.write(line)
                        lines += 1
        conn.commit()
    # header row excluded
    return max(lines - 1, 0)


@app.command()
def main(
    rows: int = typer.Option(10_000, "--rows", "-r", help="Number of parts to generate."),
    batch_size: int = typer.Option(
        5_000, "--batch-size", "-b", help="Batch size for CSV buffering during generation."
    ),
    seed: int = typer.Option(42, "--seed", help="Deterministic RNG seed."),
    months: int = typer.Option(15, "--months", help="Spread creation dates over this many months."),
    missing_spn_ratio: float = typer.Option(0.3, "--missing-spn", help="Share of parts without an SPN."),
    deleted_ratio: float = typer.Option(0.05, "--deleted", help="Share of soft-deleted parts."),
    inactive_ratio: float = typer.Option(0.05, "--inactive", help="Share of parts with a non-active status."),
    malformed_ratio: float = typer.Option(
        0.0, "--malformed", help="Share of parts written without a creation date."
    ),
    output: Optional[Path] = typer.Option(
        None,
        "--output",
        "-o",
        help="Optional CSV output path (if omitted, a temp file will be used).",
    ),
    dsn: Optional[str] = typer.Option(None, "--dsn", help="Optional DSN override for Postgres."),
    no_load: bool = typer.Option(False, "--no-load", help="Only generate CSV; skip loading into Postgres."),
) -> None:
    """
    Generate synthetic parts and optionally load them into Postgres using COPY.
    """
    start = time.perf_counter()
    if output:
        csv_path = output
        csv_path.parent.mkdir(parents=True, exist_ok=True)
    else:
        tmpdir = Path(tempfile.mkdtemp(prefix="spn_parts_"))
        csv_path = tmpdir / "parts.csv"

    typer.echo(f"Generating {rows:,} parts -> {csv_path} (seed={seed}, months={months})")
    _generate_parts_csv(
        csv_path,
        rows=rows,
        batch_size=batch_size,
        seed=seed,
        months=months,
        missing_spn_ratio=missing_spn_ratio,
        deleted_ratio=deleted_ratio,
        inactive_ratio=inactive_ratio,
        malformed_ratio=malformed_ratio,
        active_status=get_settings().part_active_status,
    )
    typer.echo(f"CSV generation completed in {time.perf_counter() - start:.2f}s")

    if no_load:
        typer.echo("Skipping load (no-load flag set).")
        return

    load_start = time.perf_counter()
    typer.echo("Loading CSV into Postgres via COPY...")
    loaded = _copy_into_db(build_dsn(dsn), csv_path)
    typer.echo(f"Loaded {loaded:,} parts in {time.perf_counter() - load_start:.2f}s.")


if __name__ == "__main__":
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("Cancelled by user.", err=True)
        sys.exit(130)
