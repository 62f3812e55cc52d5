"""
Stage profiling for snapshot runs.

`profile_stage` wraps one pipeline stage (calendar, aggregate, persist) and
records wall-clock duration plus peak resident memory. Peak RSS is sampled by
a background thread because the aggregation stage materializes the part set
and a start/end snapshot would miss the high-water mark.

Usage:
    from spn_coverage.utils.profiler import profile_stage

    with profile_stage("aggregate") as stats:
        result = strategy.compute(week_starts, store)

    log.info("done", extra={"duration_seconds": stats.duration_seconds})
"""

from __future__ import annotations

import contextlib
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Generator, Optional

import psutil


@dataclass
class StageStats:
    """
    Measurements for a single profiled stage.
    """

    label: str
    start_ts: float = field(default=0.0)
    end_ts: float = field(default=0.0)
    duration_seconds: float = field(default=0.0)
    peak_rss_bytes: Optional[int] = field(default=None)
    extra: dict[str, Any] = field(default_factory=dict)

    def as_log_fields(self) -> dict[str, Any]:
        return {
            "stage": self.label,
            "duration_seconds": round(self.duration_seconds, 3),
            "peak_rss_bytes": self.peak_rss_bytes,
            **self.extra,
        }


@contextlib.contextmanager
def profile_stage(
    label: str, sample_interval_ms: int = 50
) -> Generator[StageStats, None, None]:
    """
    Profile a block of code: wall-clock duration and sampled peak RSS.

    Parameters
    ----------
    label : str
        Stage name, copied onto the returned stats.
    sample_interval_ms : int
        Interval in milliseconds between RSS samples.

    Notes
    -----
    Stats are finalized even when the block raises, so a failed stage can
    still be logged with its duration.
    """
    stats = StageStats(label=label)
    process = psutil.Process()
    peak_rss = process.memory_info().rss
    stop_sampling = threading.Event()

    def _sample_memory() -> None:
        nonlocal peak_rss
        while not stop_sampling.is_set():
            try:
                peak_rss = max(peak_rss, process.memory_info().rss)
            except psutil.Error:
                return
            stop_sampling.wait(timeout=sample_interval_ms / 1000.0)

    sampler = threading.Thread(target=_sample_memory, name=f"rss-{label}", daemon=True)
    sampler.start()

    stats.start_ts = time.perf_counter()
    try:
        yield stats
    finally:
        stats.end_ts = time.perf_counter()
        stats.duration_seconds = stats.end_ts - stats.start_ts

        stop_sampling.set()
        sampler.join(timeout=1.0)
        stats.peak_rss_bytes = peak_rss if peak_rss > 0 else None


__all__ = ["StageStats", "profile_stage"]
