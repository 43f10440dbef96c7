"""Per-run and cross-run aggregation of benchmark timings."""

from __future__ import annotations

import math
from dataclasses import dataclass, field

import numpy as np


# ---------------------------------------------------------------------------
# Percentile helper
# ---------------------------------------------------------------------------

def percentile(sorted_vals: np.ndarray | list[int], p: float) -> int:
    """Return the *p*-th percentile of a pre-sorted, non-empty sequence.

    Uses the nearest-rank method: ``ceil(p/100 * n) - 1`` clamped to
    ``[0, n-1]``.
    """
    n = len(sorted_vals)
    if n == 0:
        raise ValueError("percentile of an empty sequence")
    idx = min(max(math.ceil(p / 100.0 * n) - 1, 0), n - 1)
    return int(sorted_vals[idx])


# ---------------------------------------------------------------------------
# Run aggregation
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class LatencySummary:
    """Latency statistics of one operation kind, all in nanoseconds."""

    count: int
    mean: float
    stddev: float
    p99: int


def summarize(samples_ns: list[int]) -> LatencySummary | None:
    """Aggregate one kind's samples; ``None`` means there is no data."""
    if not samples_ns:
        return None
    arr = np.sort(np.asarray(samples_ns, dtype=np.int64))
    return LatencySummary(
        count=int(arr.size),
        mean=float(arr.mean()),
        stddev=float(arr.std()),  # population (ddof=0)
        p99=percentile(arr, 99),
    )


@dataclass(frozen=True)
class RunStats:
    """Outcome of one run: wall-clock time and per-kind latency summaries."""

    bench_ms: int
    select: LatencySummary | None = None
    insert: LatencySummary | None = None


@dataclass
class RunSamples:
    """Raw outcome of one run, before aggregation.

    Produced by the engine, or parsed back from a benchmark executable's
    output (in which case only ``bench_ms`` and the samples are known).
    """

    bench_ms: int | None
    selects: list[int] = field(default_factory=list)
    inserts: list[int] = field(default_factory=list)
    dropped: dict[str, int] = field(default_factory=dict)
    batches: int = 0
    insert_ops: int = 0
    select_ops: int = 0

    def stats(self) -> RunStats:
        if self.bench_ms is None:
            raise ValueError("run has no benchmark time")
        return RunStats(
            bench_ms=self.bench_ms,
            select=summarize(self.selects),
            insert=summarize(self.inserts),
        )


# ---------------------------------------------------------------------------
# Cross-run aggregation
# ---------------------------------------------------------------------------

@dataclass
class BenchResult:
    """Wall-clock times of repeated runs of one configuration.

    ``times`` holds one entry (milliseconds) per run, in run order.
    """

    name: str
    workload: str
    tasks: int
    concurrency: int
    times: list[int] = field(default_factory=list)

    @property
    def key(self) -> tuple[str, str, int, int]:
        return self.name, self.workload, self.tasks, self.concurrency

    def add_time(self, ms: int) -> None:
        self.times.append(ms)

    def _require_runs(self) -> np.ndarray:
        if not self.times:
            raise ValueError(f"no runs recorded for {self.key}")
        return np.asarray(self.times, dtype=np.float64)

    @property
    def mean(self) -> float:
        """Floating-point mean of the run times (ms)."""
        return float(self._require_runs().mean())

    @property
    def stddev(self) -> float:
        """Population standard deviation of the run times (ms)."""
        return float(self._require_runs().std())
