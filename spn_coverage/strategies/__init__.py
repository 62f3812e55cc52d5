"""
Strategies package for the SPN coverage snapshot.

This module re-exports the abstract interfaces and the concrete aggregation
strategies so downstream code can import from `spn_coverage.strategies`
directly.
"""

from spn_coverage.strategies.abstract import (
    AbstractSnapshotStrategy,
    SnapshotStrategy,
    StrategyResult,
)
from spn_coverage.strategies.nested_loop import NestedLoopStrategy
from spn_coverage.strategies.prefix_count import PrefixCountStrategy
from spn_coverage.strategies.sql_pushdown import SqlPushdownStrategy

__all__ = [
    # Abstracts
    "AbstractSnapshotStrategy",
    "SnapshotStrategy",
    "StrategyResult",
    # Concrete strategies
    "NestedLoopStrategy",
    "PrefixCountStrategy",
    "SqlPushdownStrategy",
]
