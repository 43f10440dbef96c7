"""Backend capability surface -- the only thing the engine knows about a database."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Sequence

from ..errors import BackendError

if TYPE_CHECKING:
    from ..config import Config

INT64_MIN = -(1 << 63)
INT64_MAX = (1 << 63) - 1


class Column:
    """A single value of a result row."""

    def __init__(self, value: Any) -> None:
        self.value = value

    def as_int64(self) -> int:
        value = self.value
        if isinstance(value, bool) or not isinstance(value, int):
            raise BackendError(f"expected a bigint, got {type(value).__name__} {value!r}")
        if not INT64_MIN <= value <= INT64_MAX:
            raise BackendError(f"value {value} does not fit in a bigint")
        return value


class Result:
    """Rows returned by one statement execution."""

    def __init__(self, rows: Sequence[Sequence[Any]] = ()) -> None:
        self.rows = list(rows)

    def column(self, i: int) -> Column:
        """Return column *i* of the first row."""
        if not self.rows:
            raise BackendError("statement returned no rows")
        row = self.rows[0]
        if i >= len(row):
            raise BackendError(f"row has {len(row)} columns, column {i} requested")
        return Column(row[i])


class BoundStatement:
    """A prepared statement together with its parameter values."""

    def __init__(self, prepared: PreparedStatement, params: tuple) -> None:
        self.prepared = prepared
        self.params = params

    def exec(self) -> Result:
        return self.prepared.execute(self.params)


class PreparedStatement(ABC):
    """Handle returned by :meth:`Backend.prepare`.

    Handles are private to the worker that prepared them.
    """

    def __init__(self, statement: str) -> None:
        self.statement = statement

    def bind(self, *params: Any) -> BoundStatement:
        return BoundStatement(self, params)

    @abstractmethod
    def execute(self, params: tuple) -> Result:
        """Run the statement with *params*. Raise BackendError on failure."""


class Backend(ABC):
    """Abstract base for all database backends.

    A backend is constructed from a :class:`~benchtab.config.Config`,
    connected once, optionally asked to (re)create the schema, and then
    shared by every worker of a run. ``prepare`` must be safe to call from
    any worker thread.
    """

    name: str = ""

    def __init__(self, config: Config) -> None:
        self.config = config

    @abstractmethod
    def connect(self) -> None:
        """Open the connection(s) to the database."""

    @abstractmethod
    def setup_schema(self) -> None:
        """Drop and recreate the keyspace and the ``benchtab`` table."""

    @abstractmethod
    def prepare(self, statement: str) -> PreparedStatement:
        """Prepare *statement* for repeated execution."""

    def release(self) -> None:
        """Free what the calling worker thread holds. Called when a worker returns."""

    def close(self) -> None:
        """Release every connection. Safe to call twice."""

    def __enter__(self):
        self.connect()
        return self

    def __exit__(self, *exc):
        self.close()
