"""Batch cursor -- hands out disjoint, contiguous slices of ``[0, tasks)``."""

from __future__ import annotations

import threading


class BatchCursor:
    """Shared offset that partitions ``[0, tasks)`` into batches on demand.

    Each :meth:`claim` performs one fetch-and-add on the offset, so concurrent
    callers receive disjoint, monotonically increasing ranges that together
    tile the task domain. The lock is held only for the add itself.

    A cursor is single-use: create a fresh one for every pass over the
    domain (pre-seed, measurement).
    """

    def __init__(self, tasks: int, batch_size: int) -> None:
        if tasks < 0:
            raise ValueError(f"BatchCursor requires tasks >= 0, got {tasks}")
        if batch_size < 1:
            raise ValueError(f"BatchCursor requires batch_size >= 1, got {batch_size}")
        self.tasks = tasks
        self.batch_size = batch_size
        self._next = 0
        self._lock = threading.Lock()

    def _fetch_add(self) -> int:
        with self._lock:
            start = self._next
            self._next += self.batch_size
        return start

    def claim(self) -> tuple[int, int] | None:
        """Return the next ``(start, end)`` range, or ``None`` once exhausted."""
        start = self._fetch_add()
        if start >= self.tasks:
            return None
        return start, min(start + self.batch_size, self.tasks)

    def __iter__(self):
        while True:
            batch = self.claim()
            if batch is None:
                return
            yield batch
