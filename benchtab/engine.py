"""Run driver -- worker pool, completion barrier, cancellation and aggregation.

A run starts ``concurrency`` workers on a thread pool, waits for every one
of them to return (percentiles need the complete sample set), then drains
the sample channels and aggregates. The first worker failure sets the run's
cancellation event; the remaining workers stop at their next batch claim and
the failure is re-raised once all of them have returned, so a failed run
never produces a report.
"""

from __future__ import annotations

import sys
import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Callable

from .backends import create_backend
from .backends.base import Backend
from .config import Config
from .cursor import BatchCursor
from .sampler import INSERT, SELECT, LatencySampler
from .stats import RunSamples
from .worker import Worker
from .workloads import Workload


def run_workers(count: int, make_worker: Callable[[threading.Event], Worker]) -> list[Worker]:
    """Run *count* workers to completion and return them.

    Raises the first worker exception after every worker has stopped.
    """
    cancel = threading.Event()
    workers = [make_worker(cancel) for _ in range(count)]
    first_error: BaseException | None = None

    with ThreadPoolExecutor(max_workers=count, thread_name_prefix="benchtab-worker") as pool:
        futures = [pool.submit(w.run) for w in workers]
        for future in as_completed(futures):
            exc = future.exception()
            if exc is not None and first_error is None:
                first_error = exc
                cancel.set()

    if first_error is not None:
        raise first_error
    return workers


class Benchmark:
    """One configured benchmark against a connected backend."""

    def __init__(self, config: Config, backend: Backend) -> None:
        self.config = config
        self.backend = backend

    # ---- Preparation ------------------------------------------------------

    def prepare(self) -> None:
        """Create the schema and pre-seed rows unless ``dont_prepare`` is set."""
        if self.config.dont_prepare:
            return
        self.backend.setup_schema()
        if self.config.workload == Workload.SELECTS:
            self.preseed()

    def preseed(self) -> None:
        """Insert every key of the task domain so that selects find their rows."""
        cfg = self.config
        print(f"Inserting {cfg.tasks} rows for the selects benchmark...", file=sys.stderr)
        cursor = BatchCursor(cfg.tasks, cfg.batch_size)
        run_workers(
            cfg.preseed_workers,
            lambda cancel: Worker(self.backend, cursor, Workload.INSERTS, cancel),
        )

    # ---- Measurement ------------------------------------------------------

    def run(self) -> RunSamples:
        cfg = self.config
        cursor = BatchCursor(cfg.tasks, cfg.batch_size)
        sampler = LatencySampler(cfg.tasks, cfg.sample_target)

        print("Starting the benchmark", file=sys.stderr)
        start = time.perf_counter_ns()
        workers = run_workers(
            cfg.concurrency,
            lambda cancel: Worker(self.backend, cursor, cfg.workload, cancel, sampler),
        )
        bench_ms = (time.perf_counter_ns() - start) // 1_000_000
        print(f"Finished\nBenchmark time: {bench_ms} ms", file=sys.stderr)

        dropped = {kind: sampler.dropped(kind) for kind in (SELECT, INSERT)}
        for kind, n in dropped.items():
            if n:
                print(f"Warning: dropped {n} {kind} samples (channel capacity {sampler.capacity})",
                      file=sys.stderr)

        return RunSamples(
            bench_ms,
            selects=sampler.drain(SELECT),
            inserts=sampler.drain(INSERT),
            dropped=dropped,
            batches=sum(w.batches for w in workers),
            insert_ops=sum(w.inserts for w in workers),
            select_ops=sum(w.selects for w in workers),
        )


def run_benchmark(config: Config, backend: Backend | None = None) -> RunSamples:
    """Connect, prepare, measure one run and close the backend."""
    backend = backend or create_backend(config)
    with backend:
        bench = Benchmark(config, backend)
        bench.prepare()
        return bench.run()
