"""In-process backend backed by a locked dict; used by the tests and for dry runs."""

from __future__ import annotations

import threading
from typing import TYPE_CHECKING

from ..errors import BackendError
from ..workloads import INSERT_STMT, SELECT_STMT
from .base import Backend, PreparedStatement, Result

if TYPE_CHECKING:
    from ..config import Config


class MemoryStore:
    """Keyspaces of ``benchtab`` rows, shared by every backend that uses the store."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._keyspaces: dict[str, dict[int, tuple[int, int]]] = {}

    def recreate(self, keyspace: str) -> None:
        with self._lock:
            self._keyspaces[keyspace] = {}

    def table(self, keyspace: str) -> dict[int, tuple[int, int]]:
        with self._lock:
            try:
                return self._keyspaces[keyspace]
            except KeyError:
                raise BackendError(f"keyspace {keyspace!r} does not exist") from None

    def put(self, keyspace: str, pk: int, v1: int, v2: int) -> None:
        table = self.table(keyspace)
        with self._lock:
            table[pk] = (v1, v2)

    def get(self, keyspace: str, pk: int) -> tuple[int, int] | None:
        table = self.table(keyspace)
        with self._lock:
            return table.get(pk)

    def __len__(self) -> int:
        with self._lock:
            return sum(len(t) for t in self._keyspaces.values())


# Process-wide store, so that a run with --dont-prepare sees the rows written
# by an earlier run in the same process.
DEFAULT_STORE = MemoryStore()


class _MemoryInsert(PreparedStatement):
    def __init__(self, backend: MemoryBackend) -> None:
        super().__init__(INSERT_STMT)
        self._backend = backend

    def execute(self, params: tuple) -> Result:
        pk, v1, v2 = params
        self._backend.store.put(self._backend.config.keyspace, pk, v1, v2)
        return Result()


class _MemorySelect(PreparedStatement):
    def __init__(self, backend: MemoryBackend) -> None:
        super().__init__(SELECT_STMT)
        self._backend = backend

    def execute(self, params: tuple) -> Result:
        (pk,) = params
        row = self._backend.store.get(self._backend.config.keyspace, pk)
        return Result([row] if row is not None else [])


class MemoryBackend(Backend):
    name = "memory"

    def __init__(self, config: Config, store: MemoryStore | None = None) -> None:
        super().__init__(config)
        self.store = store if store is not None else DEFAULT_STORE
        self._connected = False

    def connect(self) -> None:
        self._connected = True

    def setup_schema(self) -> None:
        self._require_connected()
        self.store.recreate(self.config.keyspace)

    def prepare(self, statement: str) -> PreparedStatement:
        self._require_connected()
        # Fails like a real server would when the table was never created.
        self.store.table(self.config.keyspace)
        if statement == INSERT_STMT:
            return _MemoryInsert(self)
        if statement == SELECT_STMT:
            return _MemorySelect(self)
        raise BackendError(f"unsupported statement: {statement}")

    def close(self) -> None:
        self._connected = False

    def _require_connected(self) -> None:
        if not self._connected:
            raise BackendError("memory backend is not connected")
