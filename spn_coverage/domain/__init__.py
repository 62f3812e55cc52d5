"""
Domain package for the SPN coverage snapshot.

Exports the part/snapshot models and the week calendar. Keep this package
focused on data definitions and pure computation; no I/O.
"""

from spn_coverage.domain.models import PartRecord, SnapshotReport, SnapshotRow, percent_of
from spn_coverage.domain.week_calendar import (
    align_to_week_start,
    generate_week_starts,
    parse_weekday,
    reporting_window,
    shift_months,
)

__all__ = [
    "PartRecord",
    "SnapshotReport",
    "SnapshotRow",
    "percent_of",
    "align_to_week_start",
    "generate_week_starts",
    "parse_weekday",
    "reporting_window",
    "shift_months",
]
