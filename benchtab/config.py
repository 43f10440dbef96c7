"""Default parameters and the immutable per-invocation configuration."""

from __future__ import annotations

import argparse
import os
from dataclasses import dataclass, replace

from .errors import ConfigError
from .workloads import Workload

# Database nodes to connect to (comma separated on the command line).
DEFAULT_NODES = "192.168.100.100:9042"

DEFAULT_USER = "cassandra"
DEFAULT_PASSWORD = "cassandra"
DEFAULT_KEYSPACE = "benchks"
DEFAULT_WORKLOAD = Workload.MIXED.value

# Total number of tasks. A mixed workload performs this many inserts AND
# this many selects.
DEFAULT_TASKS = 1_000_000

# Number of concurrent workers.
DEFAULT_CONCURRENCY = 1024

# Number of tasks claimed by a worker at a time.
DEFAULT_BATCH_SIZE = 256

# Expected number of latency samples per operation kind and run.
DEFAULT_SAMPLE_TARGET = 20_000

# Minimum number of workers used to pre-seed rows for the selects workload.
DEFAULT_PRESEED_CONCURRENCY = 1024

# Backend operation timeout in seconds, handed to the backend.
DEFAULT_TIMEOUT = 30.0

DEFAULT_BACKEND = os.environ.get("BENCHTAB_BACKEND", "memory")


def clamp_batch_size(tasks: int, concurrency: int, batch_size: int) -> int:
    """Shrink *batch_size* so that every worker can get at least one batch."""
    if tasks // batch_size < concurrency:
        return max(1, tasks // concurrency)
    return batch_size


@dataclass(frozen=True)
class Config:
    """Parameter set for one benchmark invocation.

    Build it with :meth:`create` (or :meth:`from_args`), which validates the
    values and applies the batch-size clamp.
    """

    backend: str = DEFAULT_BACKEND
    nodes: tuple[str, ...] = (DEFAULT_NODES,)
    user: str = DEFAULT_USER
    password: str = DEFAULT_PASSWORD
    keyspace: str = DEFAULT_KEYSPACE
    workload: Workload = Workload.MIXED
    tasks: int = DEFAULT_TASKS
    concurrency: int = DEFAULT_CONCURRENCY
    batch_size: int = DEFAULT_BATCH_SIZE
    dont_prepare: bool = False
    async_mode: bool = False
    profile_cpu: bool = False
    profile_mem: bool = False
    sample_target: int = DEFAULT_SAMPLE_TARGET
    preseed_concurrency: int = DEFAULT_PRESEED_CONCURRENCY
    timeout: float = DEFAULT_TIMEOUT

    @classmethod
    def create(cls, **kwargs) -> Config:
        nodes = kwargs.get("nodes")
        if isinstance(nodes, str):
            kwargs["nodes"] = tuple(n.strip() for n in nodes.split(",") if n.strip())
        elif nodes is not None:
            kwargs["nodes"] = tuple(nodes)
        if "workload" in kwargs:
            kwargs["workload"] = Workload.parse(kwargs["workload"])
        return cls(**kwargs).validated()

    @classmethod
    def from_args(cls, args: argparse.Namespace) -> Config:
        return cls.create(
            backend=args.backend,
            nodes=args.nodes,
            user=args.user,
            password=args.password,
            keyspace=args.keyspace,
            workload=args.workload,
            tasks=args.tasks,
            concurrency=args.concurrency,
            batch_size=args.batch_size,
            dont_prepare=args.dont_prepare,
            async_mode=args.async_mode,
            profile_cpu=args.profile_cpu,
            profile_mem=args.profile_mem,
            sample_target=args.samples,
            preseed_concurrency=args.preseed_concurrency,
            timeout=args.timeout,
        )

    def validated(self) -> Config:
        """Check invariants and return a copy with the batch size clamped."""
        if not self.nodes:
            raise ConfigError("at least one node address is required")
        if self.tasks < 1:
            raise ConfigError(f"tasks must be >= 1, got {self.tasks}")
        if self.concurrency < 1:
            raise ConfigError(f"concurrency must be >= 1, got {self.concurrency}")
        if self.batch_size < 1:
            raise ConfigError(f"batch size must be >= 1, got {self.batch_size}")
        if self.preseed_concurrency < 1:
            raise ConfigError(
                f"pre-seed concurrency must be >= 1, got {self.preseed_concurrency}"
            )
        if self.sample_target < 0:
            raise ConfigError(f"sample target must be >= 0, got {self.sample_target}")
        if self.profile_cpu and self.profile_mem:
            raise ConfigError("select one profile type")
        batch_size = clamp_batch_size(self.tasks, self.concurrency, self.batch_size)
        if batch_size != self.batch_size:
            return replace(self, batch_size=batch_size)
        return self

    @property
    def preseed_workers(self) -> int:
        return max(self.preseed_concurrency, self.concurrency)

    def describe(self) -> str:
        """One-line summary without the password."""
        return (
            f"backend={self.backend} nodes={','.join(self.nodes)} keyspace={self.keyspace} "
            f"workload={self.workload.value} tasks={self.tasks} concurrency={self.concurrency} "
            f"batch_size={self.batch_size} samples={self.sample_target} "
            f"dont_prepare={self.dont_prepare} async={self.async_mode}"
        )
