"""Report emitter -- report lines, the sample protocol, comparison CSV and tables."""

from __future__ import annotations

import argparse
import csv
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import IO, Iterable

from .sampler import INSERT, SELECT
from .stats import BenchResult, LatencySummary, RunSamples, RunStats

REPORT_HEADER = (
    "driver, workload, tasks, concurrency, run, bench_time, "
    "select_avg, select_stddev, select_p99, insert_avg, insert_stddev, insert_p99"
)

CSV_HEADER = ["Driver", "Workload", "Tasks", "concurrency", "Time", "Standard Deviation"]

NO_DATA = "n/a"


# -------------------------------------------------------------------
# Report line
# -------------------------------------------------------------------

def _latency_fields(summary: LatencySummary | None) -> list[str]:
    if summary is None:
        return [NO_DATA, NO_DATA, NO_DATA]
    return [
        f"{int(summary.mean)}ns",
        f"{int(summary.stddev)}ns",
        f"{summary.p99}ns",
    ]


def format_report_line(
    name: str,
    workload: str,
    tasks: int,
    concurrency: int,
    run: int,
    stats: RunStats,
) -> str:
    """Render one run as a single comma-separated line (select before insert)."""
    fields = [name, workload, str(tasks), str(concurrency), str(run), f"{stats.bench_ms}ms"]
    fields += _latency_fields(stats.select)
    fields += _latency_fields(stats.insert)
    return ", ".join(fields)


# -------------------------------------------------------------------
# Sample protocol (benchmark executable -> orchestrator)
# -------------------------------------------------------------------

def emit_samples(bench_ms: int, selects: Iterable[int], inserts: Iterable[int],
                 out: IO[str] | None = None) -> None:
    """Print ``time``, then every ``select`` and ``insert`` sample, one per line."""
    out = out or sys.stdout
    out.write(f"time {bench_ms}\n")
    for ns in selects:
        out.write(f"{SELECT} {ns}\n")
    for ns in inserts:
        out.write(f"{INSERT} {ns}\n")
    out.flush()


def parse_samples(lines: Iterable[str]) -> RunSamples:
    """Parse sample-protocol lines; lines with another leading keyword are ignored."""
    bench_ms: int | None = None
    selects: list[int] = []
    inserts: list[int] = []
    for line in lines:
        parts = line.split()
        if len(parts) != 2:
            continue
        key, value = parts
        try:
            n = int(value)
        except ValueError:
            continue
        if key == "time":
            bench_ms = n
        elif key == SELECT:
            selects.append(n)
        elif key == INSERT:
            inserts.append(n)
    return RunSamples(bench_ms, selects, inserts)


# -------------------------------------------------------------------
# Comparison CSV
# -------------------------------------------------------------------

def write_csv(path: str | Path, results: Iterable[BenchResult]) -> Path:
    """Write one row per configuration. Floats use six decimals."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", newline="") as f:
        writer = csv.writer(f)
        writer.writerow(CSV_HEADER)
        for r in results:
            writer.writerow([
                r.name,
                r.workload,
                str(r.tasks),
                str(r.concurrency),
                f"{r.mean:f}",
                f"{r.stddev:f}",
            ])
    return path


@dataclass(frozen=True)
class CsvRow:
    driver: str
    workload: str
    tasks: int
    concurrency: int
    time: float
    stddev: float

    @property
    def key(self) -> tuple[str, str, int, int]:
        return self.driver, self.workload, self.tasks, self.concurrency


def read_csv(path: str | Path) -> list[CsvRow]:
    with open(path, newline="") as f:
        reader = csv.reader(f)
        header = next(reader, None)
        if header != CSV_HEADER:
            raise ValueError(f"{path}: unexpected header {header}")
        rows: list[CsvRow] = []
        for row in reader:
            if not row:
                continue
            if len(row) != len(CSV_HEADER):
                raise ValueError(
                    f"{path}:{reader.line_num}: expected {len(CSV_HEADER)} fields, got {row}"
                )
            try:
                rows.append(CsvRow(
                    driver=row[0],
                    workload=row[1],
                    tasks=int(row[2]),
                    concurrency=int(row[3]),
                    time=float(row[4]),
                    stddev=float(row[5]),
                ))
            except ValueError as e:
                raise ValueError(f"{path}:{reader.line_num}: {e}") from e
        return rows


# -------------------------------------------------------------------
# Markdown / LaTeX rendering of a comparison CSV
# -------------------------------------------------------------------

def register_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("csv", nargs="+", help="Comparison CSV file(s) written by 'sweep'")
    parser.add_argument(
        "--format", choices=["markdown", "latex"], default="markdown",
        help="Output format (default: markdown)",
    )
    parser.add_argument(
        "--output", type=str, default=None,
        help="Write output to file instead of stdout",
    )


def run_report(args: argparse.Namespace) -> None:
    rows: list[CsvRow] = []
    for path in args.csv:
        rows.extend(read_csv(path))

    if not rows:
        print("No result rows found.")
        return

    if args.format == "latex":
        output = generate_latex(rows)
    else:
        output = generate_markdown(rows)

    if args.output:
        out_path = Path(args.output)
        out_path.parent.mkdir(parents=True, exist_ok=True)
        out_path.write_text(output)
        print(f"Report written to {args.output}")
    else:
        print(output)


def _format_ms(value: float) -> str:
    if abs(value) >= 1000:
        return f"{value:,.1f}"
    return f"{value:.2f}"


def _by_workload(rows: list[CsvRow]) -> dict[str, list[CsvRow]]:
    grouped: dict[str, list[CsvRow]] = {}
    for r in rows:
        grouped.setdefault(r.workload, []).append(r)
    for group in grouped.values():
        group.sort(key=lambda r: (r.tasks, r.concurrency, r.driver))
    return grouped


def generate_markdown(rows: list[CsvRow]) -> str:
    lines = ["# Driver Comparison\n"]
    for workload, group in sorted(_by_workload(rows).items()):
        lines.append(f"## {workload}\n")
        lines.append("| Driver | Tasks | Concurrency | Time (ms) | Std Dev (ms) |")
        lines.append("|---|---:|---:|---:|---:|")
        for r in group:
            lines.append(
                f"| {r.driver} | {r.tasks:,} | {r.concurrency:,} | "
                f"{_format_ms(r.time)} | {_format_ms(r.stddev)} |"
            )
        lines.append("")
    return "\n".join(lines)


def _escape_latex(s: str) -> str:
    """Escape LaTeX special characters."""
    for char in ("\\", "&", "%", "$", "#", "_", "{", "}", "~", "^"):
        s = s.replace(char, f"\\{char}")
    return s


def generate_latex(rows: list[CsvRow]) -> str:
    lines = []
    for workload, group in sorted(_by_workload(rows).items()):
        lines.append(r"\begin{table}[t]")
        lines.append(r"\centering")
        lines.append(f"\\caption{{Driver comparison, {_escape_latex(workload)} workload}}")
        lines.append(r"\begin{tabular}{lrrrr}")
        lines.append(r"\toprule")
        lines.append(r"Driver & Tasks & Concurrency & Time (ms) & Std Dev (ms) \\")
        lines.append(r"\midrule")
        for r in group:
            lines.append(
                f"{_escape_latex(r.driver)} & {r.tasks:,} & {r.concurrency:,} & "
                f"{_format_ms(r.time)} & {_format_ms(r.stddev)} \\\\"
            )
        lines.append(r"\bottomrule")
        lines.append(r"\end{tabular}")
        lines.append(r"\end{table}")
        lines.append("")
    return "\n".join(lines)
