"""
Configuration settings for the SPN coverage snapshot.

Uses Pydantic Settings to load environment variables for the part store
connection, logging, and report defaults (window length, week alignment,
aggregation strategy).
"""
from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Database
    db_host: str = Field("localhost", alias="DB_HOST")
    db_port: int = Field(5432, alias="DB_PORT")
    db_user: str = Field("postgres", alias="DB_USER")
    db_password: str = Field("postgres", alias="DB_PASSWORD")
    db_name: str = Field("inventory", alias="DB_NAME")
    db_statement_timeout_ms: int = Field(60_000, ge=0, alias="DB_STATEMENT_TIMEOUT_MS")
    db_fetch_batch_size: int = Field(5_000, gt=0, alias="DB_FETCH_BATCH_SIZE")

    # Part table layout
    parts_schema: str = Field("public", alias="PARTS_SCHEMA")
    parts_table: str = Field("parts", alias="PARTS_TABLE")
    part_active_status: int = Field(1, alias="PART_ACTIVE_STATUS")

    # Application
    app_env: str = Field("development", alias="APP_ENV")
    log_level: str = Field("INFO", alias="LOG_LEVEL")
    log_json: bool = Field(False, alias="LOG_JSON")

    # Report defaults
    report_window_months: int = Field(12, ge=0, alias="REPORT_WINDOW_MONTHS")
    report_week_start_day: int = Field(0, ge=0, le=6, alias="REPORT_WEEK_START_DAY")
    report_strategy: str = Field("prefix_count", alias="REPORT_STRATEGY")
    results_dir: str = Field("results", alias="RESULTS_DIR")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    @property
    def dsn(self) -> str:
        return (
            f"postgresql://{self.db_user}:{self.db_password}"
            f"@{self.db_host}:{self.db_port}/{self.db_name}"
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Retrieve a cached instance of Settings to avoid repeated env parsing.
    """
    return Settings()


__all__ = ["Settings", "get_settings"]
