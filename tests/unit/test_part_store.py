from __future__ import annotations

import csv
from datetime import datetime
from pathlib import Path

import psycopg
import pytest

from scripts import generate_parts
from spn_coverage.errors import StoreUnavailableError
from spn_coverage.infrastructure import part_store
from spn_coverage.infrastructure.part_store import (
    PART_COLUMNS,
    InMemoryPartStore,
    PartStore,
    PostgresPartStore,
    SqlPartStore,
)

ACTIVE = 1
GENERATED_ROWS = 50


def _write_csv(path: Path, rows: list[list[str]], header=PART_COLUMNS) -> Path:
    with path.open("w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        writer.writerow(header)
        writer.writerows(rows)
    return path


def test_in_memory_store_filters_to_active_parts(make_part):
    parts = [
        make_part(weeks_ago=1),
        make_part(weeks_ago=1, status=0),
        make_part(weeks_ago=3, deleted_weeks_ago=1),
    ]
    store = InMemoryPartStore(parts)

    assert len(store) == 3
    assert len(list(store.iter_parts())) == 3
    assert [part.part_id for part in store.iter_parts(active_status=ACTIVE)] == [parts[0].part_id]


def test_in_memory_store_accepts_mappings():
    store = InMemoryPartStore([{"part_id": 5, "part_status": 1, "created_at": "2025-01-01"}])
    (part,) = store.iter_parts()
    assert part.created_at == datetime(2025, 1, 1)
    assert part.supplier_part_number is None


def test_from_csv_reads_blank_cells_as_missing(tmp_path: Path):
    path = _write_csv(
        tmp_path / "parts.csv",
        [
            ["1", "SPN-1", "2025-01-02 10:00:00", "1", ""],
            ["2", "", "2025-01-03 10:00:00", "1", "2025-02-01 00:00:00"],
            ["3", "SPN-3", "31/02/2025", "1", ""],
        ],
    )

    parts = list(InMemoryPartStore.from_csv(path).iter_parts())

    assert parts[0].has_spn and parts[0].deleted_at is None
    assert not parts[1].has_spn and parts[1].deleted_at == datetime(2025, 2, 1)
    assert parts[2].created_at is None


def test_from_csv_round_trips_generated_data(tmp_path: Path):
    csv_path = tmp_path / "parts.csv"
    generate_parts._generate_parts_csv(
        csv_path,
        rows=GENERATED_ROWS,
        batch_size=7,
        seed=123,
        now=datetime(2025, 6, 18),
        malformed_ratio=0.2,
    )

    store = InMemoryPartStore.from_csv(csv_path)

    assert len(store) == GENERATED_ROWS
    assert any(part.created_at is None for part in store.iter_parts())


def test_from_csv_requires_all_columns(tmp_path: Path):
    path = _write_csv(tmp_path / "parts.csv", [["1", "1"]], header=("part_id", "part_status"))
    with pytest.raises(StoreUnavailableError, match="missing required columns"):
        InMemoryPartStore.from_csv(path)


def test_from_csv_missing_file(tmp_path: Path):
    with pytest.raises(StoreUnavailableError, match="cannot read"):
        InMemoryPartStore.from_csv(tmp_path / "nope.csv")


def test_from_csv_quarantines_malformed_rows(tmp_path: Path):
    path = _write_csv(
        tmp_path / "parts.csv",
        [
            ["1", "SPN", "2025-01-01", "1", ""],
            ["2", "SPN", "2025-01-01", "active", ""],
            ["3", "SPN", "2025-01-01", "", ""],
            ["4", "SPN", "2025-01-01", "1", "not-a-date"],
        ],
    )

    store = InMemoryPartStore.from_csv(path)
    parts = list(store.iter_parts())

    assert len(store) == 4
    assert [part.malformed for part in parts] == [False, True, True, True]
    assert [part.part_id for part in parts if part.malformed] == ["2", "3", "4"]
    assert not any(part.is_active(ACTIVE) for part in parts if part.malformed)


def test_in_memory_store_yields_malformed_rows_when_filtering():
    store = InMemoryPartStore(
        [
            {"part_id": 1, "part_status": 1, "created_at": "2025-01-01"},
            {"part_id": 2, "part_status": "n/a", "created_at": "2025-01-01"},
            {"part_id": 3, "part_status": 0, "created_at": "2025-01-01"},
        ]
    )

    yielded = list(store.iter_parts(active_status=ACTIVE))

    assert [(part.part_id, part.malformed) for part in yielded] == [(1, False), (2, True)]


def test_from_csv_wraps_undecodable_bytes(tmp_path: Path):
    path = tmp_path / "parts.csv"
    header = ",".join(PART_COLUMNS).encode("utf-8")
    path.write_bytes(header + b"\n1,\xff\xfe,2025-01-01 00:00:00,1,\n")

    with pytest.raises(StoreUnavailableError, match="cannot parse"):
        InMemoryPartStore.from_csv(path)


def test_from_csv_wraps_csv_errors(tmp_path: Path):
    oversized = "X" * (csv.field_size_limit() + 1)
    path = _write_csv(tmp_path / "parts.csv", [["1", oversized, "2025-01-01", "1", ""]])

    with pytest.raises(StoreUnavailableError, match="cannot parse"):
        InMemoryPartStore.from_csv(path)


def test_store_protocols():
    memory = InMemoryPartStore()
    postgres = PostgresPartStore(dsn_override="postgresql://unused")

    assert isinstance(memory, PartStore)
    assert not isinstance(memory, SqlPartStore)
    assert isinstance(postgres, SqlPartStore)


def test_postgres_store_wraps_connection_failures(monkeypatch):
    def _refuse(dsn_override=None):
        raise psycopg.OperationalError("connection refused")

    monkeypatch.setattr(part_store, "get_sync_connection", _refuse)
    store = PostgresPartStore(dsn_override="postgresql://unused")

    with pytest.raises(StoreUnavailableError, match="cannot connect"):
        list(store.iter_parts(active_status=ACTIVE))


def test_postgres_store_defaults_come_from_settings():
    store = PostgresPartStore()
    assert store.schema == "public"
    assert store.table == "parts"
    assert store.batch_size > 0
