"""
SQL pushdown strategy: run the point-in-time join inside PostgreSQL.

The calendar is generated in Python and shipped as a timestamp array, so
week boundaries are identical to the in-process strategies. Counting happens
in the database with a LEFT JOIN (weeks with no parts still produce a row);
percentages are derived in Python through `SnapshotRow.from_counts` to keep
one rounding rule.
"""

from __future__ import annotations

from datetime import datetime
from typing import Dict, Optional, Sequence, Tuple

from psycopg import sql
from psycopg.rows import dict_row

from spn_coverage.config import get_settings
from spn_coverage.domain.models import SnapshotRow
from spn_coverage.errors import StoreUnavailableError
from spn_coverage.infrastructure.part_store import PartStore, SqlPartStore
from spn_coverage.strategies.abstract import SnapshotStrategy, StrategyResult
from spn_coverage.utils.logging import get_logger

log = get_logger(__name__)

_WEEKLY_SNAPSHOT_SQL = sql.SQL(
    r"""
    WITH week_calendar AS (
        SELECT unnest(%(week_starts)s::timestamp[]) AS week_start
    )
    SELECT
        wc.week_start,
        COUNT(p.part_id) AS total_active,
        COUNT(p.part_id) FILTER (WHERE p.supplier_part_number ~ '\S') AS active_with_spn
    FROM week_calendar wc
    LEFT JOIN {table} p
        ON p.created_at < wc.week_start + INTERVAL '7 days'
       AND p.part_status = %(active_status)s
       AND p.deleted_at IS NULL
    GROUP BY wc.week_start
    ORDER BY wc.week_start
    """
)

_DATA_QUALITY_SQL = sql.SQL(
    """
    SELECT
        COUNT(*) AS records_scanned,
        COUNT(*) FILTER (WHERE created_at IS NULL) AS records_skipped
    FROM {table}
    WHERE part_status = %(active_status)s
      AND deleted_at IS NULL
    """
)


class SqlPushdownStrategy(SnapshotStrategy):
    """
    Weekly counts computed by PostgreSQL over a Python-generated calendar.

    Requires a SQL-backed store (`PostgresPartStore`); both queries run in the
    store's single read-only transaction.
    """

    name: str = "sql_pushdown"
    description: str = "LEFT JOIN of the week calendar against the parts table in PostgreSQL."

    def __init__(self, active_status: Optional[int] = None) -> None:
        self.active_status = (
            active_status if active_status is not None else get_settings().part_active_status
        )

    def compute(self, week_starts: Sequence[datetime], store: PartStore) -> StrategyResult:
        if not isinstance(store, SqlPartStore):
            raise ValueError(
                f"Strategy '{self.name}' requires a SQL-backed part store, got '{store.name}'."
            )

        params = {"week_starts": list(week_starts), "active_status": self.active_status}
        with store.connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(_WEEKLY_SNAPSHOT_SQL.format(table=store.table_identifier), params)
                counts: Dict[datetime, Tuple[int, int]] = {
                    row["week_start"]: (row["total_active"], row["active_with_spn"])
                    for row in cur.fetchall()
                }
                cur.execute(_DATA_QUALITY_SQL.format(table=store.table_identifier), params)
                quality = cur.fetchone() or {"records_scanned": 0, "records_skipped": 0}

        rows = []
        for week_start in week_starts:
            if week_start not in counts:
                raise StoreUnavailableError(
                    f"weekly snapshot query returned no row for week {week_start.isoformat()}"
                )
            total, with_spn = counts[week_start]
            rows.append(SnapshotRow.from_counts(week_start, total, with_spn))

        skipped = quality["records_skipped"]
        if skipped:
            log.warning(
                "[DATA QUALITY] Active parts without a usable creation date were excluded",
                extra={"strategy": self.name, "skipped": skipped},
            )

        return StrategyResult(
            rows=rows,
            records_scanned=quality["records_scanned"],
            records_skipped=skipped,
            notes=f"sql pushdown over {len(rows)} weeks.",
        )


__all__ = ["SqlPushdownStrategy"]
