"""MySQL backend over PyMySQL.

The keyspace maps to a MySQL database. PyMySQL connections are not
thread-safe, so every worker thread gets its own connection on first use,
closed again when the worker returns. Only the first node address is used.
"""

from __future__ import annotations

import threading
from typing import TYPE_CHECKING

import pymysql

from ..errors import BackendError
from ..workloads import TABLE
from .base import Backend, PreparedStatement, Result

if TYPE_CHECKING:
    from ..config import Config

DEFAULT_PORT = 3306


def parse_node(node: str) -> tuple[str, int]:
    """Split ``host[:port]`` into its parts."""
    host, sep, port = node.rpartition(":")
    if not sep:
        return node, DEFAULT_PORT
    try:
        return host, int(port)
    except ValueError:
        raise BackendError(f"invalid node address {node!r}") from None


def _to_pyformat(statement: str) -> str:
    """Translate ``?`` placeholders to PyMySQL's ``%s``."""
    return statement.replace("%", "%%").replace("?", "%s")


class _MySQLStatement(PreparedStatement):
    def __init__(self, backend: MySQLBackend, statement: str) -> None:
        super().__init__(statement)
        self._backend = backend
        self._sql = _to_pyformat(statement)

    def execute(self, params: tuple) -> Result:
        conn = self._backend.connection()
        try:
            with conn.cursor() as cursor:
                cursor.execute(self._sql, params)
                rows = cursor.fetchall() if cursor.description else ()
        except pymysql.MySQLError as exc:
            raise BackendError(f"{self.statement}: {exc}") from exc
        return Result(rows)


class MySQLBackend(Backend):
    name = "mysql"

    def __init__(self, config: Config) -> None:
        super().__init__(config)
        self._host, self._port = parse_node(config.nodes[0])
        self._local = threading.local()
        self._lock = threading.Lock()
        self._connections: list[pymysql.connections.Connection] = []

    def _open(self, database: str | None) -> pymysql.connections.Connection:
        timeout = max(1, int(self.config.timeout))
        try:
            return pymysql.connect(
                host=self._host,
                port=self._port,
                user=self.config.user,
                password=self.config.password or "",
                database=database,
                charset="utf8mb4",
                autocommit=True,
                connect_timeout=timeout,
                read_timeout=timeout,
                write_timeout=timeout,
            )
        except pymysql.MySQLError as exc:
            raise BackendError(f"cannot connect to {self._host}:{self._port}: {exc}") from exc

    def connect(self) -> None:
        # Fail fast on unreachable servers or bad credentials.
        self._open(None).close()

    def connection(self) -> pymysql.connections.Connection:
        """Return the calling thread's connection to the keyspace database."""
        conn = getattr(self._local, "conn", None)
        if conn is None:
            conn = self._open(self.config.keyspace)
            self._local.conn = conn
            with self._lock:
                self._connections.append(conn)
        return conn

    def release(self) -> None:
        conn = getattr(self._local, "conn", None)
        if conn is None:
            return
        del self._local.conn
        with self._lock:
            if conn in self._connections:
                self._connections.remove(conn)
        try:
            conn.close()
        except pymysql.MySQLError:
            pass

    def setup_schema(self) -> None:
        ks = self.config.keyspace
        conn = self._open(None)
        try:
            with conn.cursor() as cursor:
                cursor.execute(f"DROP DATABASE IF EXISTS `{ks}`")
                cursor.execute(f"CREATE DATABASE `{ks}`")
                cursor.execute(
                    f"CREATE TABLE `{ks}`.{TABLE} "
                    "(pk BIGINT PRIMARY KEY, v1 BIGINT, v2 BIGINT)"
                )
        except pymysql.MySQLError as exc:
            raise BackendError(f"schema setup failed: {exc}") from exc
        finally:
            conn.close()

    def prepare(self, statement: str) -> PreparedStatement:
        # PyMySQL has no server-side prepare; opening the connection here
        # surfaces connection errors at prepare time.
        self.connection()
        return _MySQLStatement(self, statement)

    def close(self) -> None:
        with self._lock:
            connections, self._connections = self._connections, []
        for conn in connections:
            try:
                conn.close()
            except pymysql.MySQLError:
                pass
        self._local = threading.local()
