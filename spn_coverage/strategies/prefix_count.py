"""
Prefix-count strategy: sort creation dates once, bisect per week boundary.

Because membership as of a week end is "created before the boundary" over a
fixed set of active parts, the count for a week is the position of the
boundary in the sorted creation dates. O(parts log parts + weeks log parts).
"""

from __future__ import annotations

from bisect import bisect_left
from datetime import datetime
from typing import Sequence

from spn_coverage.domain.models import SnapshotRow
from spn_coverage.domain.week_calendar import WEEK
from spn_coverage.infrastructure.part_store import PartStore
from spn_coverage.strategies.abstract import AbstractSnapshotStrategy, StrategyResult


class PrefixCountStrategy(AbstractSnapshotStrategy):
    """
    Cumulative counts via two sorted timelines (all parts, parts with an SPN).
    """

    name: str = "prefix_count"
    description: str = "Sort creation dates once and bisect each week end."

    def compute(self, week_starts: Sequence[datetime], store: PartStore) -> StrategyResult:
        candidates, scanned, skipped = self._load_candidates(store)

        created_all = sorted(record.created_at for record in candidates)
        created_with_spn = sorted(record.created_at for record in candidates if record.has_spn)

        rows = []
        for week_start in week_starts:
            week_end = week_start + WEEK
            # bisect_left == number of creation dates strictly before week_end
            total = bisect_left(created_all, week_end)
            with_spn = bisect_left(created_with_spn, week_end)
            rows.append(SnapshotRow.from_counts(week_start, total, with_spn))

        return StrategyResult(
            rows=rows,
            records_scanned=scanned,
            records_skipped=skipped,
            notes=f"prefix count over {len(created_all)} creation dates.",
        )


__all__ = ["PrefixCountStrategy"]
