"""CLI entry point: python -m benchtab bench --workload mixed --tasks 100000"""

from .cli import main

main()
