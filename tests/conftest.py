"""
Pytest configuration for the SPN coverage snapshot.

Provides fixtures for:
- A pinned "now" and part factories for deterministic unit tests
- Settings cache isolation
- Database connection management and schema setup for integration tests
"""

from __future__ import annotations

import logging
import os
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Callable, Generator, Optional

import psycopg
import pytest

from spn_coverage.config import Settings, get_settings
from spn_coverage.domain.models import PartRecord

FIXED_NOW = datetime(2025, 6, 18, 12, 0, 0)  # a Wednesday


@pytest.fixture
def fixed_now() -> datetime:
    return FIXED_NOW


@pytest.fixture
def make_part() -> Callable[..., PartRecord]:
    """
    Factory for active parts; `weeks_ago` places `created_at` relative to FIXED_NOW.
    """
    counter = {"next_id": 1}

    def _make(
        weeks_ago: Optional[float] = None,
        spn: Optional[str] = "SPN-1",
        status: int = 1,
        deleted_weeks_ago: Optional[float] = None,
        **overrides: Any,
    ) -> PartRecord:
        fields: dict[str, Any] = {
            "part_id": counter["next_id"],
            "supplier_part_number": spn,
            "created_at": FIXED_NOW - timedelta(weeks=weeks_ago) if weeks_ago is not None else None,
            "part_status": status,
            "deleted_at": (
                FIXED_NOW - timedelta(weeks=deleted_weeks_ago)
                if deleted_weeks_ago is not None
                else None
            ),
        }
        fields.update(overrides)
        counter["next_id"] += 1
        return PartRecord(**fields)

    return _make


@pytest.fixture
def fresh_settings() -> Generator[Callable[[], Settings], None, None]:
    """
    Clear the cached Settings before and after a test that changes the environment.
    """
    get_settings.cache_clear()
    yield get_settings
    get_settings.cache_clear()


@pytest.fixture
def restore_logging() -> Generator[None, None, None]:
    """Undo `configure_logging` calls made by CLI tests."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers = handlers
    root.setLevel(level)


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    """
    Settings fixture with test-specific overrides.

    Can be overridden via environment variables in CI or local testing.
    """
    return Settings(
        db_host=os.getenv("DB_HOST", "localhost"),
        db_port=int(os.getenv("DB_PORT", "5432")),
        db_user=os.getenv("DB_USER", "postgres"),
        db_password=os.getenv("DB_PASSWORD", "postgres"),
        db_name=os.getenv("DB_NAME", "inventory"),
        log_level="DEBUG",
    )


@pytest.fixture(scope="session")
def test_dsn(test_settings: Settings) -> str:
    """
    Database connection string for tests.
    """
    return test_settings.dsn


@pytest.fixture(scope="session")
def db_connection_available(test_dsn: str) -> bool:
    """
    Check if database is reachable.

    Used to conditionally skip integration tests when DB is not available.
    """
    try:
        with psycopg.connect(test_dsn, connect_timeout=5) as conn:
            conn.execute("SELECT 1;").fetchone()
        return True
    except psycopg.Error:
        return False


@pytest.fixture(scope="session")
def db_connection(
    test_dsn: str, db_connection_available: bool
) -> Generator[psycopg.Connection, None, None]:
    """
    Provide a session-scoped database connection for integration tests.

    Skips tests if database is not available.
    """
    if not db_connection_available:
        pytest.skip("Database not available for integration tests")

    conn = psycopg.connect(test_dsn)
    try:
        yield conn
    finally:
        conn.close()


@pytest.fixture(scope="session")
def db_schema_initialized(db_connection: psycopg.Connection) -> bool:
    """
    Ensure the parts table exists, creating it from db/init.sql if necessary.
    """
    init_sql_path = Path(__file__).parent.parent / "db" / "init.sql"
    with db_connection.cursor() as cur:
        cur.execute(init_sql_path.read_text(encoding="utf-8"))
    db_connection.commit()
    return True


@pytest.fixture(scope="function")
def clean_parts_table(db_connection: psycopg.Connection, db_schema_initialized: bool):
    """
    Empty the parts table before and after each test function.
    """
    with db_connection.cursor() as cur:
        cur.execute("TRUNCATE TABLE public.parts RESTART IDENTITY CASCADE;")
    db_connection.commit()
    yield db_connection
    with db_connection.cursor() as cur:
        cur.execute("TRUNCATE TABLE public.parts RESTART IDENTITY CASCADE;")
    db_connection.commit()
