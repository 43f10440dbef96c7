"""Embedded StrataDB backend.

Strata is embedded, so node addresses and credentials are unused and the
keyspace names the database directory. Rows live in the KV namespace as
``"<pk>" -> "<v1>,<v2>"``.
"""

from __future__ import annotations

import shutil
import threading
from pathlib import Path
from typing import TYPE_CHECKING

from stratadb import Strata

from ..errors import BackendError
from ..workloads import INSERT_STMT, SELECT_STMT
from .base import Backend, PreparedStatement, Result

if TYPE_CHECKING:
    from ..config import Config


def _decode_row(raw: str) -> tuple[int, int]:
    try:
        v1, v2 = raw.split(",")
        return int(v1), int(v2)
    except (AttributeError, ValueError):
        raise BackendError(f"malformed row {raw!r}") from None


class _StrataInsert(PreparedStatement):
    def __init__(self, backend: StrataBackend) -> None:
        super().__init__(INSERT_STMT)
        self._backend = backend

    def execute(self, params: tuple) -> Result:
        pk, v1, v2 = params
        self._backend.put(str(pk), f"{v1},{v2}")
        return Result()


class _StrataSelect(PreparedStatement):
    def __init__(self, backend: StrataBackend) -> None:
        super().__init__(SELECT_STMT)
        self._backend = backend

    def execute(self, params: tuple) -> Result:
        (pk,) = params
        raw = self._backend.get(str(pk))
        return Result([_decode_row(raw)] if raw is not None else [])


class StrataBackend(Backend):
    name = "strata"

    def __init__(self, config: Config) -> None:
        super().__init__(config)
        self.path = Path(config.keyspace)
        self._db = None
        # Calls into the embedded engine are serialized.
        self._lock = threading.Lock()

    def connect(self) -> None:
        if self.path.is_dir():
            self._db = self._open()

    def _open(self):
        try:
            return Strata.open(str(self.path))
        except Exception as exc:
            raise BackendError(f"cannot open strata database at {self.path}: {exc}") from exc

    def setup_schema(self) -> None:
        self.close()
        shutil.rmtree(self.path, ignore_errors=True)
        self.path.mkdir(parents=True)
        self._db = self._open()

    def prepare(self, statement: str) -> PreparedStatement:
        if self._db is None:
            raise BackendError(f"strata database {self.path} does not exist")
        if statement == INSERT_STMT:
            return _StrataInsert(self)
        if statement == SELECT_STMT:
            return _StrataSelect(self)
        raise BackendError(f"unsupported statement: {statement}")

    def put(self, key: str, value: str) -> None:
        try:
            with self._lock:
                self._db.kv.put(key, value)
        except Exception as exc:
            raise BackendError(f"kv put {key}: {exc}") from exc

    def get(self, key: str) -> str | None:
        try:
            with self._lock:
                return self._db.kv.get(key)
        except Exception as exc:
            raise BackendError(f"kv get {key}: {exc}") from exc

    def close(self) -> None:
        if self._db is None:
            return
        with self._lock:
            self._db.flush()
            self._db = None
