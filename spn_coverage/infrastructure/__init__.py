"""
Infrastructure package for the SPN coverage snapshot.

Centralizes part-store access (PostgreSQL connectivity, CSV loading). Keep
this layer focused on I/O and resource management, decoupled from the
aggregation strategies and orchestrator logic.
"""

from spn_coverage.infrastructure.db_factory import (
    apply_statement_timeout,
    build_dsn,
    get_sync_connection,
)
from spn_coverage.infrastructure.part_store import (
    PART_COLUMNS,
    InMemoryPartStore,
    PartStore,
    PostgresPartStore,
    SqlPartStore,
)

__all__ = [
    "PART_COLUMNS",
    "InMemoryPartStore",
    "PartStore",
    "PostgresPartStore",
    "SqlPartStore",
    "apply_statement_timeout",
    "build_dsn",
    "get_sync_connection",
]
