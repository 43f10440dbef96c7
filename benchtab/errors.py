"""Exception hierarchy shared by the engine, backends and orchestrator."""

from __future__ import annotations


class BenchError(Exception):
    """Base class for every error raised by benchtab."""


class ConfigError(BenchError):
    """Invalid configuration, detected before any work begins."""


class BackendError(BenchError):
    """A backend operation failed (connection, prepare or execute)."""


class CorrectnessError(BenchError):
    """A select returned a payload that differs from the one inserted.

    ``got`` is None when the row is missing altogether.
    """

    def __init__(
        self, pk: int, expected: tuple[int, int], got: tuple[int, int] | None
    ) -> None:
        found = "no row" if got is None else got
        super().__init__(f"pk {pk}: expected {expected}, got {found}")
        self.pk = pk
        self.expected = expected
        self.got = got


class SweepError(BenchError):
    """A driver launched by the sweep failed or printed no benchmark time."""

    def __init__(self, message: str, output: str = "") -> None:
        super().__init__(f"{message}\noutput:\n{output}" if output else message)
        self.output = output
