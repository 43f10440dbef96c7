"""Latency sampling -- bounded-size, unbiased selection of operation timings.

Every task is sampled independently with probability ``target / total``:
draw a uniform integer in ``[0, total)`` and keep the timing iff it is below
``target``. The expected number of samples is ``target`` whatever the task
count, memory stays O(target), and the exact count varies from run to run
(this is expected-size sampling, not a reservoir).
"""

from __future__ import annotations

import queue
import random
import threading

INSERT = "insert"
SELECT = "select"
KINDS: tuple[str, ...] = (SELECT, INSERT)


def should_sample(total_tasks: int, target: int, rng: random.Random | None = None) -> bool:
    """Return True if the current task's timing should be recorded."""
    if total_tasks <= 0 or target <= 0:
        return False
    return (rng or random).randrange(total_tasks) < target


class LatencySampler:
    """Sampling decision plus the bounded per-kind sample channels of one run.

    Workers call :meth:`record` concurrently; the run driver calls
    :meth:`drain` once after every worker has finished. Each channel holds
    at most ``2 * target`` samples. A sample arriving at a full channel is
    dropped and counted instead of blocking the worker.
    """

    def __init__(self, total_tasks: int, target: int) -> None:
        self.total_tasks = total_tasks
        self.target = target
        self.capacity = max(1, 2 * target)
        self._channels: dict[str, queue.Queue] = {
            kind: queue.Queue(maxsize=self.capacity) for kind in KINDS
        }
        self._dropped: dict[str, int] = {kind: 0 for kind in KINDS}
        self._lock = threading.Lock()

    def should_sample(self, rng: random.Random | None = None) -> bool:
        return should_sample(self.total_tasks, self.target, rng)

    def record(self, kind: str, elapsed_ns: int) -> None:
        try:
            self._channels[kind].put_nowait(elapsed_ns)
        except queue.Full:
            with self._lock:
                self._dropped[kind] += 1

    def dropped(self, kind: str) -> int:
        return self._dropped[kind]

    def drain(self, kind: str) -> list[int]:
        """Remove and return every queued sample of *kind*, in arrival order."""
        channel = self._channels[kind]
        samples: list[int] = []
        while True:
            try:
                samples.append(channel.get_nowait())
            except queue.Empty:
                return samples
