from __future__ import annotations

import random
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Iterator, List, Optional

import pytest

from spn_coverage.domain.models import PartRecord, SnapshotRow
from spn_coverage.domain.week_calendar import (
    WEEK,
    align_to_week_start,
    generate_week_starts,
    reporting_window,
)
from spn_coverage.errors import StoreUnavailableError
from spn_coverage.infrastructure.part_store import InMemoryPartStore
from spn_coverage.strategies.nested_loop import NestedLoopStrategy
from spn_coverage.strategies.prefix_count import PrefixCountStrategy
from spn_coverage.strategies.sql_pushdown import SqlPushdownStrategy

ACTIVE = 1
INACTIVE = 0
RANDOM_PARTS = 400
PERCENT_TOLERANCE = Decimal("0.01")

IN_MEMORY_STRATEGIES = [NestedLoopStrategy, PrefixCountStrategy]


@pytest.fixture
def week_starts(fixed_now: datetime) -> List[datetime]:
    start, end = reporting_window(fixed_now, 12)
    return generate_week_starts(start, end)


@pytest.fixture(params=IN_MEMORY_STRATEGIES, ids=lambda cls: cls.name)
def strategy(request):
    return request.param(active_status=ACTIVE)


def _rows(strategy, week_starts, parts) -> List[SnapshotRow]:
    return strategy.compute(week_starts, InMemoryPartStore(parts))["rows"]


def test_empty_store_gives_zero_rows_for_every_week(strategy, week_starts):
    rows = _rows(strategy, week_starts, [])

    assert [row.week_start for row in rows] == week_starts
    for row in rows:
        assert (row.total_active, row.active_with_spn, row.active_without_spn) == (0, 0, 0)
        assert row.percent_with_spn is None
        assert row.percent_without_spn is None


def test_part_counts_in_every_week_from_its_creation_onward(strategy, week_starts, make_part):
    part = make_part(weeks_ago=20, spn="X123")
    creation_week = align_to_week_start(part.created_at)

    rows = _rows(strategy, week_starts, [part])

    for row in rows:
        if row.week_start >= creation_week:
            assert row.total_active == 1
            assert row.active_with_spn == 1
            assert row.percent_with_spn == Decimal("100.00")
            assert row.percent_without_spn == Decimal("0.00")
        else:
            assert row.total_active == 0
            assert row.percent_with_spn is None
    assert sum(row.total_active for row in rows) == 21


def test_part_without_spn_counts_as_missing(strategy, week_starts, make_part):
    part = make_part(weeks_ago=20, spn=None)
    creation_week = align_to_week_start(part.created_at)

    rows = _rows(strategy, week_starts, [part])

    covered = [row for row in rows if row.week_start >= creation_week]
    assert covered
    for row in covered:
        assert row.active_without_spn == 1
        assert row.active_with_spn == 0
        assert row.percent_without_spn == Decimal("100.00")
        assert row.percent_with_spn == Decimal("0.00")


def test_deleted_part_never_appears_even_before_deletion(strategy, week_starts, make_part):
    part = make_part(weeks_ago=5, deleted_weeks_ago=2)

    rows = _rows(strategy, week_starts, [part])

    assert all(row.total_active == 0 for row in rows)


def test_inactive_part_is_excluded(strategy, week_starts, make_part):
    rows = _rows(strategy, week_starts, [make_part(weeks_ago=30, status=INACTIVE)])
    assert all(row.total_active == 0 for row in rows)


def test_blank_spn_counts_as_missing(strategy, week_starts, make_part):
    rows = _rows(strategy, week_starts, [make_part(weeks_ago=3, spn="   ")])
    assert rows[-1].active_without_spn == 1
    assert rows[-1].active_with_spn == 0


def test_creation_on_week_end_belongs_to_next_week(strategy, week_starts, make_part):
    boundary = week_starts[10] + WEEK
    part = make_part(created_at=boundary)

    rows = _rows(strategy, week_starts, [part])

    assert rows[10].total_active == 0
    assert rows[11].total_active == 1


def test_parts_without_creation_date_are_skipped_and_counted(strategy, week_starts, make_part):
    parts = [
        make_part(weeks_ago=10),
        make_part(weeks_ago=None),
        make_part(created_at="garbage"),
        make_part(weeks_ago=None, status=INACTIVE),
    ]

    result = strategy.compute(week_starts, InMemoryPartStore(parts))

    assert result["records_scanned"] == 3
    assert result["records_skipped"] == 2
    assert len(result["rows"]) == len(week_starts)
    assert result["rows"][-1].total_active == 1


def test_mixed_week_percentages(strategy, week_starts, make_part):
    parts = [
        make_part(weeks_ago=1, spn="A"),
        make_part(weeks_ago=1, spn=None),
        make_part(weeks_ago=1, spn=None),
    ]

    last = _rows(strategy, week_starts, parts)[-1]

    assert (last.total_active, last.active_with_spn, last.active_without_spn) == (3, 1, 2)
    assert last.percent_with_spn == Decimal("33.33")
    assert last.percent_without_spn == Decimal("66.67")


def _random_parts(seed: int, now: datetime) -> List[PartRecord]:
    rng = random.Random(seed)
    parts = []
    for part_id in range(1, RANDOM_PARTS + 1):
        created_at = now - timedelta(days=rng.uniform(0, 450))
        deleted_at = now - timedelta(days=rng.uniform(0, 30)) if rng.random() < 0.1 else None
        parts.append(
            PartRecord(
                part_id=part_id,
                supplier_part_number=None if rng.random() < 0.35 else f"SPN-{part_id}",
                created_at=None if rng.random() < 0.02 else created_at,
                part_status=INACTIVE if rng.random() < 0.1 else ACTIVE,
                deleted_at=deleted_at,
            )
        )
    return parts


@pytest.mark.parametrize("seed", [1, 7, 42])
def test_row_invariants_on_random_data(strategy, week_starts, fixed_now, seed: int):
    rows = _rows(strategy, week_starts, _random_parts(seed, fixed_now))

    assert len(rows) == len(week_starts)
    for row in rows:
        assert row.active_with_spn + row.active_without_spn == row.total_active
        if row.total_active:
            total_percent = row.percent_with_spn + row.percent_without_spn
            assert abs(total_percent - Decimal("100")) <= PERCENT_TOLERANCE
            assert Decimal(0) <= row.percent_with_spn <= Decimal(100)
    totals = [row.total_active for row in rows]
    assert totals == sorted(totals)


@pytest.mark.parametrize("seed", [3, 11, 2025])
def test_nested_loop_and_prefix_count_agree(week_starts, fixed_now, seed: int):
    store = InMemoryPartStore(_random_parts(seed, fixed_now))

    nested = NestedLoopStrategy(active_status=ACTIVE).compute(week_starts, store)
    prefix = PrefixCountStrategy(active_status=ACTIVE).compute(week_starts, store)

    assert nested["rows"] == prefix["rows"]
    assert nested["records_skipped"] == prefix["records_skipped"]
    assert nested["records_scanned"] == prefix["records_scanned"]


def test_custom_active_status(week_starts, make_part):
    parts = [make_part(weeks_ago=4, status=7), make_part(weeks_ago=4, status=ACTIVE)]
    rows = PrefixCountStrategy(active_status=7).compute(week_starts, InMemoryPartStore(parts))["rows"]
    assert rows[-1].total_active == 1


class _UnavailableStore:
    name = "unavailable"

    def iter_parts(self, active_status: Optional[int] = None) -> Iterator[PartRecord]:
        raise StoreUnavailableError("connection refused")
        yield  # pragma: no cover


def test_store_failure_propagates(strategy, week_starts):
    with pytest.raises(StoreUnavailableError):
        strategy.compute(week_starts, _UnavailableStore())


def test_sql_pushdown_requires_sql_store(week_starts):
    with pytest.raises(ValueError, match="SQL-backed"):
        SqlPushdownStrategy(active_status=ACTIVE).compute(week_starts, InMemoryPartStore())
