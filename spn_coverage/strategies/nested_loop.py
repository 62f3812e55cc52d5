"""
Nested-loop (reference) strategy: re-test every active part against every week.

O(weeks x parts). Adequate for tables in the tens of thousands and the
easiest to check by eye, so it is the baseline the other strategies are
compared against.
"""

from __future__ import annotations

from datetime import datetime
from typing import Sequence

from spn_coverage.domain.models import SnapshotRow
from spn_coverage.domain.week_calendar import WEEK
from spn_coverage.infrastructure.part_store import PartStore
from spn_coverage.strategies.abstract import AbstractSnapshotStrategy, StrategyResult


class NestedLoopStrategy(AbstractSnapshotStrategy):
    """
    Per week, count the parts that existed before the week ended.

    A part created ten weeks ago is counted in each of the last ten weeks;
    this is a point-in-time membership test, not a created-per-week histogram.
    """

    name: str = "nested_loop"
    description: str = "Filter every active part for every week (O(weeks x parts))."

    def compute(self, week_starts: Sequence[datetime], store: PartStore) -> StrategyResult:
        candidates, scanned, skipped = self._load_candidates(store)

        rows = []
        for week_start in week_starts:
            week_end = week_start + WEEK
            total = 0
            with_spn = 0
            for record in candidates:
                if record.counts_toward(week_end, self.active_status):
                    total += 1
                    if record.has_spn:
                        with_spn += 1
            rows.append(SnapshotRow.from_counts(week_start, total, with_spn))

        return StrategyResult(
            rows=rows,
            records_scanned=scanned,
            records_skipped=skipped,
            notes=f"nested loop over {len(candidates)} parts x {len(rows)} weeks.",
        )


__all__ = ["NestedLoopStrategy"]
