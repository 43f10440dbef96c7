"""Worker -- claims batches and executes the workload's operations for each key."""

from __future__ import annotations

import random
import threading
import time

from .backends.base import Backend, PreparedStatement
from .cursor import BatchCursor
from .errors import CorrectnessError
from .sampler import INSERT, SELECT, LatencySampler
from .workloads import INSERT_STMT, SELECT_STMT, Workload, expected_row


def check_row(pk: int, v1: int, v2: int) -> None:
    """Raise CorrectnessError unless ``(v1, v2)`` is the payload stored for *pk*."""
    expected = expected_row(pk)
    if (v1, v2) != expected:
        raise CorrectnessError(pk, expected, (v1, v2))


class Worker:
    """One unit of concurrent execution within a run.

    Statement handles and the random generator are private to the worker;
    the cursor, the sampler and the cancellation event are shared with the
    other workers of the run. With ``sampler=None`` nothing is timed (used
    by the pre-seed pass).
    """

    def __init__(
        self,
        backend: Backend,
        cursor: BatchCursor,
        workload: Workload,
        cancel: threading.Event,
        sampler: LatencySampler | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self.backend = backend
        self.cursor = cursor
        self.workload = workload
        self.cancel = cancel
        self.sampler = sampler
        self.rng = rng or random.Random()
        self.batches = 0
        self.inserts = 0
        self.selects = 0

    def run(self) -> Worker:
        """Consume batches until the cursor is exhausted or the run is cancelled.

        The backend resources held for this thread are released on return.
        """
        try:
            self._consume()
        finally:
            self.backend.release()
        return self

    def _consume(self) -> None:
        insert_q: PreparedStatement | None = None
        select_q: PreparedStatement | None = None
        if self.workload.does_inserts:
            insert_q = self.backend.prepare(INSERT_STMT)
        if self.workload.does_selects:
            select_q = self.backend.prepare(SELECT_STMT)

        while not self.cancel.is_set():
            batch = self.cursor.claim()
            if batch is None:
                return
            self.batches += 1
            for pk in range(*batch):
                sample = self.sampler is not None and self.sampler.should_sample(self.rng)
                if insert_q is not None:
                    self._insert(insert_q, pk, sample)
                if select_q is not None:
                    self._select(select_q, pk, sample)

    def _insert(self, stmt: PreparedStatement, pk: int, sample: bool) -> None:
        t0 = time.perf_counter_ns() if sample else 0
        stmt.bind(pk, 2 * pk, 3 * pk).exec()
        if sample:
            self.sampler.record(INSERT, time.perf_counter_ns() - t0)
        self.inserts += 1

    def _select(self, stmt: PreparedStatement, pk: int, sample: bool) -> None:
        t0 = time.perf_counter_ns() if sample else 0
        res = stmt.bind(pk).exec()
        if not res.rows:
            raise CorrectnessError(pk, expected_row(pk), None)
        v1 = res.column(0).as_int64()
        v2 = res.column(1).as_int64()
        check_row(pk, v1, v2)
        if sample:
            self.sampler.record(SELECT, time.perf_counter_ns() - t0)
        self.selects += 1
