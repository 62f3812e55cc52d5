"""
Abstract strategy interfaces and result contracts for the snapshot aggregation.

Concrete strategies (nested loop, prefix count, SQL pushdown) implement the
SnapshotStrategy protocol and return a StrategyResult TypedDict so the
orchestrator can treat them interchangeably. Every strategy must return the
same rows for the same calendar and store contents.
"""

from __future__ import annotations

import abc
from datetime import datetime
from typing import List, Optional, Protocol, Sequence, Tuple, TypedDict, runtime_checkable

from spn_coverage.config import get_settings
from spn_coverage.domain.models import PartRecord, SnapshotRow
from spn_coverage.infrastructure.part_store import PartStore
from spn_coverage.utils.logging import get_logger

log = get_logger(__name__)


class StrategyResult(TypedDict, total=False):
    """
    Output contract returned by strategies.

    `records_scanned` counts parts that are active today; `records_skipped`
    counts those among them excluded for lacking a usable creation date.
    """

    rows: List[SnapshotRow]
    records_scanned: int
    records_skipped: int
    notes: Optional[str]


@runtime_checkable
class SnapshotStrategy(Protocol):
    """
    Common interface all aggregation strategies implement.

    Attributes
    ----------
    name : str
        A short machine-friendly identifier.
    description : str
        A human-friendly summary of the approach.
    """

    name: str
    description: str

    def compute(self, week_starts: Sequence[datetime], store: PartStore) -> StrategyResult:
        """
        Build one SnapshotRow per week start, in the given order.

        Parameters
        ----------
        week_starts : Sequence[datetime]
            Week boundaries produced by the week calendar.
        store : PartStore
            Source of part records.

        Returns
        -------
        StrategyResult
            Rows plus scanned/skipped record counts.
        """
        ...


class AbstractSnapshotStrategy(abc.ABC):
    """
    ABC helper for strategies that aggregate in Python.

    Subclasses set `name` and `description` and implement `compute`;
    `_load_candidates` gives them the active parts with usable dates.
    """

    name: str
    description: str

    def __init__(self, active_status: Optional[int] = None) -> None:
        self.active_status = (
            active_status if active_status is not None else get_settings().part_active_status
        )

    @abc.abstractmethod
    def compute(
        self, week_starts: Sequence[datetime], store: PartStore
    ) -> StrategyResult:  # pragma: no cover - interface only
        """Aggregate the store into weekly rows."""
        raise NotImplementedError

    def _load_candidates(self, store: PartStore) -> Tuple[List[PartRecord], int, int]:
        """
        Read active parts once and split off those without a creation date.
        Malformed rows count as scanned and skipped whatever their status.

        Returns (candidates, scanned, skipped).
        """
        candidates: List[PartRecord] = []
        scanned = 0
        skipped = 0
        malformed = 0
        for record in store.iter_parts(active_status=self.active_status):
            if record.malformed:
                scanned += 1
                skipped += 1
                malformed += 1
                continue
            # Stores are allowed, not required, to pre-filter.
            if not record.is_active(self.active_status):
                continue
            scanned += 1
            if not record.has_valid_created_at:
                skipped += 1
                continue
            candidates.append(record)

        if skipped:
            log.warning(
                "[DATA QUALITY] Malformed parts or active parts without a usable creation date were excluded",
                extra={
                    "strategy": self.name,
                    "skipped": skipped,
                    "malformed": malformed,
                    "scanned": scanned,
                },
            )
        return candidates, scanned, skipped


__all__ = [
    "AbstractSnapshotStrategy",
    "SnapshotStrategy",
    "StrategyResult",
]
