"""
Domain models for the SPN coverage snapshot.

`PartRecord` mirrors one row of the parts table (see `db/init.sql`);
`SnapshotRow` is one week of output and `SnapshotReport` wraps a full run.
Membership and percentage rules live here so every aggregation strategy
shares exactly one definition of them.
"""
from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, List, Mapping, Optional

from pydantic import BaseModel, Field, field_serializer, field_validator

_PERCENT_QUANTUM = Decimal("0.01")


def _to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def percent_of(part: int, total: int) -> Optional[Decimal]:
    """
    Share of `part` in `total` as a percentage with exactly two decimals.

    Returns None when `total` is zero; early weeks of a window routinely have
    no qualifying parts.
    """
    if total == 0:
        return None
    return (Decimal(100) * part / total).quantize(_PERCENT_QUANTUM, rounding=ROUND_HALF_UP)


class PartRecord(BaseModel):
    """
    Representation of a single row in the parts table.

    Only current field values are available; the snapshot applies them
    retroactively to every past week.
    """

    part_id: int = Field(..., description="Primary key.")
    supplier_part_number: Optional[str] = Field(None, description="Supplier part number (SPN).")
    created_at: Optional[datetime] = Field(
        None, description="Creation timestamp; None when missing or unparseable."
    )
    part_status: int = Field(..., description="Status flag; one value marks active parts.")
    deleted_at: Optional[datetime] = Field(None, description="Soft-delete timestamp.")
    malformed: bool = Field(False, description="Row failed validation; never counted.")

    model_config = {
        "frozen": True,
        "populate_by_name": True,
    }

    @classmethod
    def quarantined(cls, row: Mapping[str, Any]) -> "PartRecord":
        """
        Stand-in for a source row that failed validation.

        Only the raw `part_id` is kept, for logging. The record is neither
        active nor dated, so it falls out of every week and is counted as
        skipped by the aggregation.
        """
        return cls.model_construct(
            part_id=row.get("part_id"),
            supplier_part_number=None,
            created_at=None,
            part_status=None,
            deleted_at=None,
            malformed=True,
        )

    @field_validator("created_at", mode="before")
    @classmethod
    def _lenient_created_at(cls, value: Any) -> Optional[datetime]:
        # A bad creation date is a data-quality condition, not a load failure.
        if isinstance(value, datetime):
            return value
        if isinstance(value, date):
            return datetime(value.year, value.month, value.day)
        if isinstance(value, str) and value.strip():
            try:
                return datetime.fromisoformat(value.strip())
            except ValueError:
                return None
        return None

    @field_validator("supplier_part_number", "deleted_at", mode="before")
    @classmethod
    def _blank_is_none(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("created_at", "deleted_at", mode="after")
    @classmethod
    def _normalize_tz(cls, value: Optional[datetime]) -> Optional[datetime]:
        return _to_naive_utc(value)

    @property
    def has_spn(self) -> bool:
        return self.supplier_part_number is not None

    @property
    def has_valid_created_at(self) -> bool:
        return self.created_at is not None

    def is_active(self, active_status: int) -> bool:
        """Active today: status flag matches and the part was never deleted."""
        return not self.malformed and self.part_status == active_status and self.deleted_at is None

    def existed_before(self, boundary: datetime) -> bool:
        return self.created_at is not None and self.created_at < boundary

    def counts_toward(self, week_end: datetime, active_status: int) -> bool:
        """Membership test for the snapshot taken at `week_end` (exclusive)."""
        return self.is_active(active_status) and self.existed_before(week_end)


class SnapshotRow(BaseModel):
    """
    Point-in-time SPN coverage for one week.
    """

    week_start: datetime
    total_active: int = Field(..., ge=0)
    active_with_spn: int = Field(..., ge=0)
    active_without_spn: int = Field(..., ge=0)
    percent_with_spn: Optional[Decimal] = None
    percent_without_spn: Optional[Decimal] = None

    model_config = {"frozen": True}

    @classmethod
    def from_counts(cls, week_start: datetime, total_active: int, active_with_spn: int) -> "SnapshotRow":
        active_without_spn = total_active - active_with_spn
        return cls(
            week_start=week_start,
            total_active=total_active,
            active_with_spn=active_with_spn,
            active_without_spn=active_without_spn,
            percent_with_spn=percent_of(active_with_spn, total_active),
            percent_without_spn=percent_of(active_without_spn, total_active),
        )

    @field_serializer("percent_with_spn", "percent_without_spn", when_used="json")
    def _percent_as_number(self, value: Optional[Decimal]) -> Optional[float]:
        return float(value) if value is not None else None


class SnapshotReport(BaseModel):
    """
    Result of one snapshot run: the weekly rows plus run metadata.
    """

    generated_at: datetime
    window_start: date
    window_end: date
    week_start_day: int = Field(..., ge=0, le=6)
    strategy: str
    records_scanned: int = Field(0, ge=0)
    records_skipped: int = Field(0, ge=0)
    rows: List[SnapshotRow] = Field(default_factory=list)

    model_config = {"frozen": True}


__all__ = ["PartRecord", "SnapshotRow", "SnapshotReport", "percent_of"]
