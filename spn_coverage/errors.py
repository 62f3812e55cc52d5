"""
Exception hierarchy for the SPN coverage snapshot.

Fatal conditions derive from SnapshotError so callers can catch one type.
Data-quality problems (e.g. a part without a creation date) are not errors:
they are counted and logged by the aggregation strategies instead.
"""

from __future__ import annotations

from typing import Optional


class SnapshotError(Exception):
    """Base exception for snapshot computation failures."""

    def __init__(self, message: str, stage: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.stage = stage

    def __str__(self) -> str:
        if self.stage:
            return f"{self.stage}: {self.message}"
        return self.message


class InvalidWindowError(SnapshotError, ValueError):
    """Raised when the reporting window or week alignment is invalid."""

    pass


class StoreUnavailableError(SnapshotError):
    """Raised when the part store cannot be reached or a read against it fails."""

    pass


class ReportPersistError(SnapshotError):
    """Raised when the report JSON cannot be written to the results directory."""

    pass


__all__ = [
    "SnapshotError",
    "InvalidWindowError",
    "ReportPersistError",
    "StoreUnavailableError",
]
