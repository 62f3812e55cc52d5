"""
SPN Coverage Snapshot - weekly point-in-time completeness of inventory parts.

For each week of a trailing window (12 months by default) this package
reports how many active parts existed by the week's end and how many of them
carry a supplier part number (SPN). It provides:

- A week calendar aligned to a configurable start day
- Interchangeable aggregation strategies (nested loop, prefix count, SQL pushdown)
- PostgreSQL and in-memory/CSV part stores
- An orchestrator with stage profiling, JSON persistence and a typer CLI

Current field values are applied to every past week: a part deleted today
never appears, and an SPN added today counts for all weeks.
"""

from __future__ import annotations

__version__ = "0.1.0"
__license__ = "MIT"

# Public API exports
from spn_coverage.config import Settings, get_settings
from spn_coverage.domain.models import PartRecord, SnapshotReport, SnapshotRow
from spn_coverage.domain.week_calendar import generate_week_starts, reporting_window
from spn_coverage.errors import (
    InvalidWindowError,
    ReportPersistError,
    SnapshotError,
    StoreUnavailableError,
)
from spn_coverage.infrastructure.part_store import InMemoryPartStore, PartStore, PostgresPartStore
from spn_coverage.orchestrator import (
    available_strategies,
    compare_strategies,
    find_mismatches,
    run_snapshot,
)
from spn_coverage.strategies.abstract import (
    AbstractSnapshotStrategy,
    SnapshotStrategy,
    StrategyResult,
)
from spn_coverage.utils.logging import configure_logging, get_logger

__all__ = [
    # Version info
    "__version__",
    "__license__",
    # Configuration
    "Settings",
    "get_settings",
    # Domain
    "PartRecord",
    "SnapshotReport",
    "SnapshotRow",
    "generate_week_starts",
    "reporting_window",
    # Errors
    "InvalidWindowError",
    "ReportPersistError",
    "SnapshotError",
    "StoreUnavailableError",
    # Stores
    "InMemoryPartStore",
    "PartStore",
    "PostgresPartStore",
    # Orchestration
    "available_strategies",
    "compare_strategies",
    "find_mismatches",
    "run_snapshot",
    # Strategy abstractions
    "AbstractSnapshotStrategy",
    "SnapshotStrategy",
    "StrategyResult",
    # Logging
    "configure_logging",
    "get_logger",
]
