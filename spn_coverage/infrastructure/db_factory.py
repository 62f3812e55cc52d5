"""
Database connection factory utilities for the SPN coverage snapshot.

A snapshot run opens exactly one PostgreSQL connection and reads inside a
single transaction, so no pool is kept. Connection acquisition retries
transient failures using tenacity.
"""

from __future__ import annotations

from typing import Optional

import psycopg
from psycopg import Connection
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from spn_coverage.config import get_settings
from spn_coverage.utils.logging import get_logger

log = get_logger(__name__)


def build_dsn(dsn_override: Optional[str] = None) -> str:
    """Compose a DSN string from settings, unless an explicit one is given."""
    if dsn_override:
        return dsn_override
    return get_settings().dsn


@retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    retry=retry_if_exception_type((psycopg.OperationalError, psycopg.InterfaceError)),
    reraise=True,
)
def get_sync_connection(dsn_override: Optional[str] = None) -> Connection:
    """
    Acquire a dedicated synchronous connection with automatic retry.

    Retries up to 3 times with exponential backoff for transient connection errors.

    Returns
    -------
    Connection
        A new psycopg connection instance.

    Raises
    ------
    psycopg.OperationalError
        If connection fails after all retry attempts.
    """
    log.debug("Opening part store connection")
    return psycopg.connect(build_dsn(dsn_override))


def apply_statement_timeout(conn: Connection, timeout_ms: int) -> None:
    """
    Bound every statement in the current transaction to `timeout_ms`.

    Uses `set_config(..., is_local => true)` so the setting ends with the
    transaction. A timeout of 0 disables the limit.
    """
    conn.execute("SELECT set_config('statement_timeout', %s, true)", (str(int(timeout_ms)),))


__all__ = [
    "apply_statement_timeout",
    "build_dsn",
    "get_sync_connection",
]
