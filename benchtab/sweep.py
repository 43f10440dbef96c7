"""Sweep orchestrator -- runs driver executables over a configuration matrix.

Every driver is an external benchmark executable that accepts ``--nodes``,
``--workload``, ``--tasks`` and ``--concurrency`` and prints the sample
protocol (``time <ms>``, ``select <ns>``, ``insert <ns>``) on stdout. For each
(driver, workload, tasks, concurrency) the executable is launched ``runs``
times; each run is turned into a report line, and the per-configuration run
times are written to the comparison CSV.

Config file (JSON)::

    {
      "name": "results",
      "nodes": "192.168.100.100:9042",
      "runs": 5,
      "workloads": ["inserts", "mixed"],
      "tasks": [1000000, 10000000],
      "concurrency": [64, 128, 256],
      "nap": 5,
      "drivers": [
        {"name": "benchtab-mysql", "command": "benchtab bench --backend mysql"},
        {"name": "scylla-rust-driver", "command": "cargo run --release .",
         "cwd": "scylla-rust-driver/src"}
      ]
    }
"""

from __future__ import annotations

import argparse
import itertools
import json
import shlex
import subprocess
import sys
import time
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import IO

from tqdm import tqdm

from .config import DEFAULT_NODES
from .errors import ConfigError, SweepError
from .report import REPORT_HEADER, format_report_line, parse_samples, write_csv
from .stats import BenchResult, RunSamples
from .workloads import Workload

# Seconds to sleep between two launched runs, letting the database settle.
DEFAULT_NAP = 5.0
DEFAULT_RUNS = 1
DEFAULT_TASKS = [1_000_000]
DEFAULT_CONCURRENCY = [1024]
DEFAULT_WORKLOADS = [Workload.MIXED.value]
LOG_NAME = "running.log"


@dataclass
class Driver:
    """A benchmark executable under comparison."""

    name: str
    command: str
    cwd: str | None = None

    @classmethod
    def parse(cls, spec: str) -> Driver:
        """Parse ``NAME=COMMAND`` as given on the command line."""
        name, sep, command = spec.partition("=")
        if not sep or not name.strip() or not command.strip():
            raise ConfigError(f"invalid driver {spec!r}, expected NAME=COMMAND")
        return cls(name=name.strip(), command=command.strip())

    def argv(self, nodes: str, workload: str, tasks: int, concurrency: int) -> list[str]:
        return shlex.split(self.command) + [
            "--nodes", nodes,
            "--workload", workload,
            "--tasks", str(tasks),
            "--concurrency", str(concurrency),
        ]


def default_driver(backend: str = "memory") -> Driver:
    """This package's own benchmark command for *backend*."""
    argv = [sys.executable, "-m", "benchtab", "bench", "--backend", backend]
    return Driver(name=f"benchtab-{backend}", command=shlex.join(argv))


def _positive_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value >= 1


@dataclass
class SweepConfig:
    drivers: list[Driver]
    name: str = "results"
    nodes: str = DEFAULT_NODES
    runs: int = DEFAULT_RUNS
    workloads: list[str] = field(default_factory=lambda: list(DEFAULT_WORKLOADS))
    tasks: list[int] = field(default_factory=lambda: list(DEFAULT_TASKS))
    concurrency: list[int] = field(default_factory=lambda: list(DEFAULT_CONCURRENCY))
    nap: float = DEFAULT_NAP
    out_dir: Path = Path("results")

    @classmethod
    def from_file(cls, path: str | Path, **overrides) -> SweepConfig:
        try:
            with open(path) as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigError(f"cannot read sweep config {path}: {e}") from e
        if not isinstance(data, dict):
            raise ConfigError(f"{path}: expected a JSON object")
        try:
            data["drivers"] = [Driver(**d) for d in data.get("drivers", [])]
            if "out_dir" in data:
                data["out_dir"] = Path(data["out_dir"])
            data.update({k: v for k, v in overrides.items() if v is not None})
            return cls(**data).validated()
        except TypeError as e:
            raise ConfigError(f"{path}: {e}") from e

    def validated(self) -> SweepConfig:
        if not self.drivers:
            raise ConfigError("no drivers configured")
        if not _positive_int(self.runs):
            raise ConfigError(f"runs must be an integer >= 1, got {self.runs!r}")
        for w in self.workloads:
            Workload.parse(w)
        if not all(_positive_int(v) for v in [*self.tasks, *self.concurrency]):
            raise ConfigError("tasks and concurrency values must be integers >= 1")
        if isinstance(self.nap, bool) or not isinstance(self.nap, (int, float)) or self.nap < 0:
            raise ConfigError(f"nap must be a number of seconds >= 0, got {self.nap!r}")
        return self

    def matrix(self) -> list[tuple[Driver, str, int, int]]:
        return list(itertools.product(self.drivers, self.workloads, self.tasks, self.concurrency))


class Sweep:
    """Launch every configuration of a :class:`SweepConfig` and collect results."""

    def __init__(self, config: SweepConfig, out: IO[str] | None = None) -> None:
        self.config = config
        self.out = out or sys.stdout
        self.out_dir = Path(config.out_dir)
        self.log_path = self.out_dir / LOG_NAME

    def run_path(self, driver: Driver, workload: str, tasks: int, concurrency: int, run: int) -> Path:
        return self.out_dir / (
            f"{driver.name}_workload={workload}_tasks={tasks}"
            f"_concurrency={concurrency}_run={run}"
        )

    def _log(self, message: str) -> None:
        with open(self.log_path, "a") as log:
            log.write(f"{datetime.now():%Y/%m/%d %H:%M:%S} {message}\n")

    def launch(self, driver: Driver, argv: list[str], out_path: Path) -> RunSamples:
        """Run one driver invocation, capturing stdout to *out_path*."""
        self._log(shlex.join(argv))
        try:
            with open(out_path, "w") as stdout, open(self.log_path, "a") as stderr:
                proc = subprocess.run(argv, cwd=driver.cwd, stdout=stdout, stderr=stderr)
        except OSError as e:
            raise SweepError(f"{driver.name}: cannot launch {argv[0]}: {e}") from e

        output = out_path.read_text()
        if proc.returncode != 0:
            raise SweepError(f"{driver.name} exited with code {proc.returncode}", output)

        parsed = parse_samples(output.splitlines())
        if parsed.bench_ms is None:
            raise SweepError(f"{driver.name}: no benchmark time in output", output)
        return parsed

    def run(self) -> list[BenchResult]:
        cfg = self.config
        self.out_dir.mkdir(parents=True, exist_ok=True)
        matrix = cfg.matrix()
        total = len(matrix) * cfg.runs

        tqdm.write(REPORT_HEADER, file=self.out)
        results: list[BenchResult] = []
        done = 0
        with tqdm(total=total, desc="Sweep", unit="run") as bar:
            for driver, workload, tasks, concurrency in matrix:
                result = BenchResult(driver.name, workload, tasks, concurrency)
                argv = driver.argv(cfg.nodes, workload, tasks, concurrency)
                for i in range(1, cfg.runs + 1):
                    self._log(f"{driver.name} - workload: {workload}, tasks: {tasks}, "
                              f"concurrency: {concurrency}, run: {i}")
                    out_path = self.run_path(driver, workload, tasks, concurrency, i)
                    stats = self.launch(driver, argv, out_path).stats()
                    result.add_time(stats.bench_ms)
                    tqdm.write(
                        format_report_line(driver.name, workload, tasks, concurrency, i, stats),
                        file=self.out,
                    )
                    bar.update(1)
                    done += 1
                    if cfg.nap > 0 and done < total:
                        time.sleep(cfg.nap)
                results.append(result)

        csv_path = write_csv(self.out_dir / f"{cfg.name}.csv", results)
        print(f"\nResults saved to {csv_path}", file=sys.stderr)
        return results


# -------------------------------------------------------------------
# CLI
# -------------------------------------------------------------------

def register_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--config", type=str, default=None, help="JSON sweep config file")
    parser.add_argument(
        "--driver", action="append", default=None, metavar="NAME=COMMAND",
        help="Driver executable to compare (repeatable; default: this package's memory backend)",
    )
    parser.add_argument("--name", type=str, default=None, help="CSV file name (default: results)")
    parser.add_argument("--nodes", type=str, default=None,
                        help=f"Node addresses passed to every driver (default: {DEFAULT_NODES})")
    parser.add_argument("--runs", type=int, default=None,
                        help=f"Runs per configuration (default: {DEFAULT_RUNS})")
    parser.add_argument("--workload", nargs="+", default=None,
                        choices=[w.value for w in Workload],
                        help=f"Workloads to sweep (default: {' '.join(DEFAULT_WORKLOADS)})")
    parser.add_argument("--tasks", type=int, nargs="+", default=None,
                        help=f"Task counts to sweep (default: {DEFAULT_TASKS})")
    parser.add_argument("--concurrency", type=int, nargs="+", default=None,
                        help=f"Concurrency levels to sweep (default: {DEFAULT_CONCURRENCY})")
    parser.add_argument("--nap", type=float, default=None,
                        help=f"Seconds to sleep between runs (default: {DEFAULT_NAP})")
    parser.add_argument("--out-dir", type=str, default=None,
                        help="Directory for raw outputs, log and CSV (default: results/)")


def config_from_args(args: argparse.Namespace) -> SweepConfig:
    overrides = {
        "name": args.name,
        "nodes": args.nodes,
        "runs": args.runs,
        "workloads": args.workload,
        "tasks": args.tasks,
        "concurrency": args.concurrency,
        "nap": args.nap,
        "out_dir": Path(args.out_dir) if args.out_dir else None,
    }
    if args.driver:
        overrides["drivers"] = [Driver.parse(d) for d in args.driver]
    if args.config:
        return SweepConfig.from_file(args.config, **overrides)
    overrides.setdefault("drivers", [default_driver()])
    return SweepConfig(**{k: v for k, v in overrides.items() if v is not None}).validated()


def run_sweep(args: argparse.Namespace) -> list[BenchResult]:
    return Sweep(config_from_args(args)).run()
