"""Unified CLI with subcommands.

Usage:
    benchtab bench --backend mysql --nodes 127.0.0.1:3306 --workload mixed --tasks 100000
    benchtab sweep --config sweep.json
    benchtab sweep --driver "rust=cargo run --release ." --tasks 1000000 --concurrency 64 128
    benchtab report results/results.csv --format latex
"""

from __future__ import annotations

import argparse
import sys

from . import report as report_mod
from . import sweep as sweep_mod
from .backends import create_backend
from .config import (
    DEFAULT_BACKEND,
    DEFAULT_BATCH_SIZE,
    DEFAULT_CONCURRENCY,
    DEFAULT_KEYSPACE,
    DEFAULT_NODES,
    DEFAULT_PASSWORD,
    DEFAULT_PRESEED_CONCURRENCY,
    DEFAULT_SAMPLE_TARGET,
    DEFAULT_TASKS,
    DEFAULT_TIMEOUT,
    DEFAULT_USER,
    DEFAULT_WORKLOAD,
    Config,
)
from .engine import Benchmark
from .errors import BenchError
from .profiling import profiled
from .workloads import WORKLOADS


def register_bench_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--backend", type=str, default=DEFAULT_BACKEND,
        help=f"Database backend to benchmark (default: {DEFAULT_BACKEND})",
    )
    parser.add_argument(
        "--nodes", type=str, default=DEFAULT_NODES,
        help="Addresses of database nodes to connect to separated by a comma",
    )
    parser.add_argument(
        "--workload", type=str, default=DEFAULT_WORKLOAD,
        help=f"Type of work to perform ({', '.join(WORKLOADS)})",
    )
    parser.add_argument("--user", type=str, default=DEFAULT_USER, help="User")
    parser.add_argument("--password", type=str, default=DEFAULT_PASSWORD, help="Password")
    parser.add_argument("--keyspace", type=str, default=DEFAULT_KEYSPACE, help="Test keyspace")
    parser.add_argument(
        "--tasks", type=int, default=DEFAULT_TASKS,
        help="Total number of tasks (requests) to perform during the benchmark. "
             "A mixed workload performs this many inserts and this many selects",
    )
    parser.add_argument(
        "--concurrency", type=int, default=DEFAULT_CONCURRENCY,
        help=f"Number of workers (default: {DEFAULT_CONCURRENCY})",
    )
    parser.add_argument(
        "--batch-size", type=int, default=DEFAULT_BATCH_SIZE,
        help=f"Number of tasks in one batch performed by a worker (default: {DEFAULT_BATCH_SIZE})",
    )
    parser.add_argument(
        "--dont-prepare", action="store_true",
        help="Don't create tables and insert into them before the benchmark",
    )
    parser.add_argument(
        "--async", dest="async_mode", action="store_true",
        help="Use async query mode (forwarded to the backend)",
    )
    parser.add_argument("--profile-cpu", action="store_true", help="Use CPU profiling")
    parser.add_argument("--profile-mem", action="store_true", help="Use memory profiling")
    parser.add_argument(
        "--samples", type=int, default=DEFAULT_SAMPLE_TARGET,
        help=f"Expected number of latency samples per operation kind (default: {DEFAULT_SAMPLE_TARGET})",
    )
    parser.add_argument(
        "--preseed-concurrency", type=int, default=DEFAULT_PRESEED_CONCURRENCY,
        help="Minimum number of workers inserting rows before a selects benchmark "
             f"(default: {DEFAULT_PRESEED_CONCURRENCY})",
    )
    parser.add_argument(
        "--timeout", type=float, default=DEFAULT_TIMEOUT,
        help=f"Backend operation timeout in seconds (default: {DEFAULT_TIMEOUT})",
    )


def run_bench(args: argparse.Namespace) -> None:
    """Run one benchmark and print the sample protocol on stdout."""
    config = Config.from_args(args)
    print(f"Config {config.describe()}", file=sys.stderr)

    backend = create_backend(config)
    with profiled(config), backend:
        bench = Benchmark(config, backend)
        bench.prepare()
        samples = bench.run()

    report_mod.emit_samples(samples.bench_ms, samples.selects, samples.inserts)


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        prog="benchtab",
        description="Compare database client implementations under an identical workload",
    )
    subparsers = parser.add_subparsers(dest="command")

    bench_parser = subparsers.add_parser("bench", help="Run one benchmark against a backend")
    register_bench_args(bench_parser)

    sweep_parser = subparsers.add_parser("sweep", help="Run driver executables over a configuration matrix")
    sweep_mod.register_args(sweep_parser)

    report_parser = subparsers.add_parser("report", help="Render a comparison CSV as a table")
    report_mod.register_args(report_parser)

    parsed = parser.parse_args(argv)

    if parsed.command is None:
        parser.print_help()
        return

    try:
        if parsed.command == "bench":
            run_bench(parsed)
        elif parsed.command == "sweep":
            sweep_mod.run_sweep(parsed)
        elif parsed.command == "report":
            report_mod.run_report(parsed)
    except (BenchError, OSError, ValueError) as e:
        print(f"\nERROR running {parsed.command}: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
