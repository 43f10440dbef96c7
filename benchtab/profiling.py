"""Optional CPU / memory profiling around a benchmark invocation."""

from __future__ import annotations

import cProfile
import sys
import tracemalloc
from contextlib import contextmanager
from pathlib import Path

from .config import Config

CPU_PROFILE_PATH = Path("cpu.prof")
TOP_ALLOCATIONS = 15


@contextmanager
def profiled(config: Config, cpu_path: Path = CPU_PROFILE_PATH):
    """Profile the enclosed block according to ``profile_cpu`` / ``profile_mem``."""
    if config.profile_cpu:
        print("Running with CPU profiling", file=sys.stderr)
        profiler = cProfile.Profile()
        profiler.enable()
        try:
            yield
        finally:
            profiler.disable()
            profiler.dump_stats(str(cpu_path))
            print(f"CPU profile written to {cpu_path}", file=sys.stderr)
    elif config.profile_mem:
        print("Running with memory profiling", file=sys.stderr)
        tracemalloc.start()
        try:
            yield
        finally:
            snapshot = tracemalloc.take_snapshot()
            current, peak = tracemalloc.get_traced_memory()
            tracemalloc.stop()
            print(f"Memory: current={current / 1024:.1f} KiB  peak={peak / 1024:.1f} KiB",
                  file=sys.stderr)
            for stat in snapshot.statistics("lineno")[:TOP_ALLOCATIONS]:
                print(f"  {stat}", file=sys.stderr)
    else:
        yield
