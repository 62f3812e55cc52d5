"""
Part stores: the read side of the snapshot.

A store only has to yield `PartRecord`s, optionally pre-filtered to parts that
are active today. `PostgresPartStore` streams the parts table through a
server-side cursor inside one read-only transaction; `InMemoryPartStore`
holds records in a list and can load the CSV layout written by
`scripts/generate_parts.py`.

A failure to reach or read the source is raised as StoreUnavailableError so
the snapshot fails as a whole instead of producing a partial row set. A row
whose values fail validation is not such a failure: it is yielded as a
quarantined `PartRecord` (`malformed=True`) and counted as skipped.
"""

from __future__ import annotations

import csv
from contextlib import contextmanager
from pathlib import Path
from typing import (
    Any,
    ContextManager,
    Generator,
    Iterable,
    Iterator,
    List,
    Mapping,
    Optional,
    Protocol,
    Union,
    runtime_checkable,
)

import psycopg
from psycopg import Connection, sql
from psycopg.rows import dict_row
from pydantic import ValidationError

from spn_coverage.config import get_settings
from spn_coverage.domain.models import PartRecord
from spn_coverage.errors import StoreUnavailableError
from spn_coverage.infrastructure.db_factory import apply_statement_timeout, get_sync_connection
from spn_coverage.utils.logging import get_logger

log = get_logger(__name__)

PART_COLUMNS = ("part_id", "supplier_part_number", "created_at", "part_status", "deleted_at")


@runtime_checkable
class PartStore(Protocol):
    """
    Read contract every part store implements.

    Attributes
    ----------
    name : str
        Short identifier used in logs.
    """

    name: str

    def iter_parts(self, active_status: Optional[int] = None) -> Iterator[PartRecord]:
        """
        Yield parts. When `active_status` is given, the store may restrict the
        result to parts with that status and no deletion timestamp; malformed
        records are yielded regardless.
        """
        ...


@runtime_checkable
class SqlPartStore(PartStore, Protocol):
    """A part store that also exposes its SQL connection and table."""

    table_identifier: sql.Composable

    def connection(self) -> ContextManager[Connection]:
        ...


def _batched_fetch(cursor: psycopg.Cursor, batch_size: int) -> Iterator[list]:
    """
    Yield batches from a cursor using fetchmany.
    """
    while True:
        batch = cursor.fetchmany(batch_size)
        if not batch:
            break
        yield batch


def _to_record(row: Mapping[str, Any]) -> PartRecord:
    try:
        return PartRecord.model_validate(row)
    except ValidationError as exc:
        log.debug(
            "Quarantined malformed part row",
            extra={"part_id": row.get("part_id"), "errors": exc.error_count()},
        )
        return PartRecord.quarantined(row)


class PostgresPartStore:
    """
    Parts table in PostgreSQL, read through psycopg 3.
    """

    name: str = "postgres"

    def __init__(
        self,
        dsn_override: Optional[str] = None,
        batch_size: Optional[int] = None,
        statement_timeout_ms: Optional[int] = None,
        schema: Optional[str] = None,
        table: Optional[str] = None,
    ) -> None:
        settings = get_settings()
        self.batch_size = batch_size or settings.db_fetch_batch_size
        self.statement_timeout_ms = (
            statement_timeout_ms
            if statement_timeout_ms is not None
            else settings.db_statement_timeout_ms
        )
        self.schema = schema or settings.parts_schema
        self.table = table or settings.parts_table
        self.table_identifier = sql.Identifier(self.schema, self.table)
        self._dsn_override = dsn_override

    @contextmanager
    def connection(self) -> Generator[Connection, None, None]:
        """
        Open a connection holding one read-only REPEATABLE READ transaction.

        Every query issued inside the block sees the same snapshot of the
        parts table.
        """
        try:
            conn = get_sync_connection(self._dsn_override)
        except psycopg.Error as exc:
            raise StoreUnavailableError(f"cannot connect to part store: {exc}") from exc

        try:
            conn.read_only = True
            conn.isolation_level = psycopg.IsolationLevel.REPEATABLE_READ
            with conn.transaction():
                apply_statement_timeout(conn, self.statement_timeout_ms)
                yield conn
        except psycopg.Error as exc:
            raise StoreUnavailableError(
                f"read from {self.schema}.{self.table} failed: {exc}"
            ) from exc
        finally:
            conn.close()

    def _select_query(self, active_status: Optional[int]) -> sql.Composed:
        query = sql.SQL("SELECT {columns} FROM {table}").format(
            columns=sql.SQL(", ").join(sql.Identifier(column) for column in PART_COLUMNS),
            table=self.table_identifier,
        )
        if active_status is not None:
            query = query + sql.SQL(" WHERE part_status = %s AND deleted_at IS NULL")
        return query + sql.SQL(" ORDER BY part_id")

    def iter_parts(self, active_status: Optional[int] = None) -> Iterator[PartRecord]:
        query = self._select_query(active_status)
        params = (active_status,) if active_status is not None else None
        fetched = 0

        with self.connection() as conn:
            # Named cursor keeps the result set server-side.
            with conn.cursor(name="spn_coverage_parts", row_factory=dict_row) as cur:
                cur.execute(query, params)
                for batch in _batched_fetch(cur, self.batch_size):
                    fetched += len(batch)
                    for row in batch:
                        yield _to_record(row)

        log.debug(
            "Streamed parts from PostgreSQL",
            extra={"rows": fetched, "batch_size": self.batch_size, "table": self.table},
        )


class InMemoryPartStore:
    """
    List-backed part store, used for offline runs and tests.
    """

    name: str = "memory"

    def __init__(self, records: Iterable[Union[PartRecord, Mapping[str, Any]]] = ()) -> None:
        self._records: List[PartRecord] = [
            record if isinstance(record, PartRecord) else _to_record(record)
            for record in records
        ]

    def __len__(self) -> int:
        return len(self._records)

    def iter_parts(self, active_status: Optional[int] = None) -> Iterator[PartRecord]:
        for record in self._records:
            if active_status is None or record.malformed or record.is_active(active_status):
                yield record

    @classmethod
    def from_csv(cls, path: Union[Path, str]) -> "InMemoryPartStore":
        """
        Load parts from a CSV file with a header row naming `PART_COLUMNS`.

        Empty cells read as missing values. Rows with unparseable values are
        kept as quarantined records and later skipped by the aggregation; only
        a file that cannot be opened, decoded or parsed as CSV fails the load.
        """
        csv_path = Path(path)
        try:
            with csv_path.open("r", newline="", encoding="utf-8") as f:
                reader = csv.DictReader(f)
                missing = [column for column in PART_COLUMNS if column not in (reader.fieldnames or ())]
                if missing:
                    raise StoreUnavailableError(
                        f"{csv_path} is missing required columns: {', '.join(missing)}"
                    )
                records = [_to_record(row) for row in reader]
        except OSError as exc:
            raise StoreUnavailableError(f"cannot read parts CSV {csv_path}: {exc}") from exc
        except (UnicodeDecodeError, csv.Error) as exc:
            raise StoreUnavailableError(f"cannot parse parts CSV {csv_path}: {exc}") from exc

        malformed = sum(1 for record in records if record.malformed)
        log.info(
            "Loaded parts from CSV",
            extra={"path": str(csv_path), "rows": len(records), "malformed": malformed},
        )
        return cls(records)


__all__ = [
    "PART_COLUMNS",
    "InMemoryPartStore",
    "PartStore",
    "PostgresPartStore",
    "SqlPartStore",
]
