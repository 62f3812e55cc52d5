"""
Utilities package for the SPN coverage snapshot.

Exports shared helpers for logging and stage profiling. Keep this package
lightweight and free of domain-specific logic.
"""

from spn_coverage.utils.logging import configure_logging, get_logger
from spn_coverage.utils.profiler import StageStats, profile_stage

__all__ = [
    "configure_logging",
    "get_logger",
    "StageStats",
    "profile_stage",
]
