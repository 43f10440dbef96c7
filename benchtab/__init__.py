"""Concurrent load generation and measurement for comparing database clients."""

from .config import Config
from .engine import Benchmark, run_benchmark
from .errors import BackendError, BenchError, ConfigError, CorrectnessError, SweepError
from .stats import BenchResult, LatencySummary, RunSamples, RunStats

__version__ = "0.1.0"

__all__ = [
    "BackendError",
    "BenchError",
    "BenchResult",
    "Benchmark",
    "Config",
    "ConfigError",
    "CorrectnessError",
    "LatencySummary",
    "RunSamples",
    "RunStats",
    "SweepError",
    "run_benchmark",
]
