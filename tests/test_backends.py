"""Tests for the backend registry, result accessors and the bundled backends.

The MySQL tests only need PyMySQL importable (no server); the Strata tests
need the ``stratadb`` package and are skipped otherwise.
"""

from __future__ import annotations

import contextlib
import importlib.util
import io
import os
import tempfile
import threading
import unittest
from unittest import mock

from benchtab.backends import create_backend, get_backends
from benchtab.backends.base import INT64_MAX, INT64_MIN, Column, Result
from benchtab.backends.memory import MemoryBackend, MemoryStore
from benchtab.config import Config
from benchtab.engine import Benchmark
from benchtab.errors import BackendError, ConfigError
from benchtab.workloads import INSERT_STMT, SELECT_STMT


def _have(module: str) -> bool:
    return importlib.util.find_spec(module) is not None


def _have_strata() -> bool:
    """Return True if an embedded Strata database can be opened."""
    if not _have("stratadb"):
        return False
    try:
        from stratadb import Strata

        with tempfile.TemporaryDirectory() as d:
            Strata.open(d).flush()
        return True
    except Exception:
        return False


class TestRegistry(unittest.TestCase):
    def test_memory_always_available(self):
        self.assertIs(get_backends()["memory"], MemoryBackend)

    def test_create_backend(self):
        backend = create_backend(Config.create(backend="memory"))
        self.assertIsInstance(backend, MemoryBackend)

    def test_unknown_backend(self):
        with self.assertRaises(ConfigError) as ctx:
            create_backend(Config.create(backend="cassandra"))
        self.assertIn("memory", str(ctx.exception))


class TestColumn(unittest.TestCase):
    def test_int64_values(self):
        for value in (0, -1, 42, INT64_MIN, INT64_MAX):
            with self.subTest(value=value):
                self.assertEqual(Column(value).as_int64(), value)

    def test_rejected_values(self):
        for value in (None, "1", 1.0, True, INT64_MAX + 1, INT64_MIN - 1):
            with self.subTest(value=value):
                with self.assertRaises(BackendError):
                    Column(value).as_int64()


class TestResult(unittest.TestCase):
    def test_first_row(self):
        res = Result([(2, 3), (4, 6)])
        self.assertEqual(res.column(0).as_int64(), 2)
        self.assertEqual(res.column(1).as_int64(), 3)

    def test_no_rows(self):
        with self.assertRaises(BackendError):
            Result().column(0)

    def test_missing_column(self):
        with self.assertRaises(BackendError):
            Result([(1,)]).column(1)


class TestMemoryBackend(unittest.TestCase):
    def setUp(self):
        self.backend = MemoryBackend(Config.create(backend="memory"), store=MemoryStore())

    def test_requires_connect(self):
        with self.assertRaises(BackendError):
            self.backend.setup_schema()

    def test_prepare_requires_schema(self):
        with self.backend:
            with self.assertRaises(BackendError):
                self.backend.prepare(INSERT_STMT)

    def test_insert_then_select(self):
        with self.backend:
            self.backend.setup_schema()
            self.backend.prepare(INSERT_STMT).bind(5, 10, 15).exec()
            res = self.backend.prepare(SELECT_STMT).bind(5).exec()
            self.assertEqual(res.rows, [(10, 15)])
            self.assertEqual(self.backend.prepare(SELECT_STMT).bind(6).exec().rows, [])

    def test_setup_schema_recreates(self):
        with self.backend:
            self.backend.setup_schema()
            self.backend.prepare(INSERT_STMT).bind(1, 2, 3).exec()
            self.backend.setup_schema()
            self.assertEqual(len(self.backend.store), 0)

    def test_unsupported_statement(self):
        with self.backend:
            self.backend.setup_schema()
            with self.assertRaises(BackendError):
                self.backend.prepare("DELETE FROM benchtab")


@unittest.skipUnless(_have("pymysql"), "PyMySQL not installed")
class TestMySQLHelpers(unittest.TestCase):
    def test_parse_node(self):
        from benchtab.backends.mysql import parse_node

        self.assertEqual(parse_node("db.local:3307"), ("db.local", 3307))
        self.assertEqual(parse_node("db.local"), ("db.local", 3306))
        with self.assertRaises(BackendError):
            parse_node("db.local:port")

    def test_placeholders(self):
        from benchtab.backends.mysql import _to_pyformat

        self.assertEqual(
            _to_pyformat(INSERT_STMT),
            "INSERT INTO benchtab (pk, v1, v2) VALUES (%s, %s, %s)",
        )
        self.assertEqual(_to_pyformat("SELECT '5%' WHERE pk = ?"), "SELECT '5%%' WHERE pk = %s")

    def test_unreachable_server(self):
        from benchtab.backends.mysql import MySQLBackend

        config = Config.create(backend="mysql", nodes="127.0.0.1:1", timeout=1)
        with self.assertRaises(BackendError):
            MySQLBackend(config).connect()


class _FakeCursor:
    def __init__(self, server: _FakeServer) -> None:
        self.server = server
        self.description = None
        self._rows = ()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def execute(self, sql, params=None):
        if sql.startswith("INSERT"):
            pk, v1, v2 = params
            with self.server.lock:
                self.server.rows[pk] = (v1, v2)
        elif sql.startswith("SELECT"):
            (pk,) = params
            self.description = (("v1",), ("v2",))
            with self.server.lock:
                row = self.server.rows.get(pk)
            self._rows = (row,) if row is not None else ()

    def fetchall(self):
        return self._rows


class _FakeConnection:
    def __init__(self, server: _FakeServer) -> None:
        self.server = server

    def cursor(self):
        return _FakeCursor(self.server)

    def close(self):
        self.server.disconnected()


class _FakeServer:
    """Stands in for ``pymysql.connect`` and tracks open connections."""

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.rows: dict[int, tuple[int, int]] = {}
        self.open = 0
        self.peak = 0
        self.total = 0

    def connect(self, **params):
        with self.lock:
            self.open += 1
            self.total += 1
            self.peak = max(self.peak, self.open)
        return _FakeConnection(self)

    def disconnected(self):
        with self.lock:
            self.open -= 1


@unittest.skipUnless(_have("pymysql"), "PyMySQL not installed")
class TestMySQLConnections(unittest.TestCase):
    def _run(self, workload: str) -> _FakeServer:
        from benchtab.backends.mysql import MySQLBackend

        server = _FakeServer()
        config = Config.create(
            backend="mysql", nodes="127.0.0.1:3306", workload=workload,
            tasks=2000, concurrency=4, batch_size=25, preseed_concurrency=4,
        )
        with mock.patch("pymysql.connect", server.connect):
            backend = MySQLBackend(config)
            with contextlib.redirect_stderr(io.StringIO()):
                with backend:
                    bench = Benchmark(config, backend)
                    bench.prepare()
                    bench.run()
                    self.assertEqual(server.open, 0)
                    bench.run()
                    self.assertEqual(server.open, 0)
        return server

    def test_connections_bounded_by_workers(self):
        server = self._run("selects")
        self.assertLessEqual(server.peak, 4)
        self.assertEqual(server.open, 0)
        self.assertEqual(len(server.rows), 2000)

    def test_mixed_runs_release_connections(self):
        server = self._run("mixed")
        self.assertLessEqual(server.peak, 4)
        self.assertEqual(server.open, 0)


@unittest.skipUnless(_have_strata(), "stratadb not available")
class TestStrataBackend(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        keyspace = os.path.join(self._tmp.name, "benchks")
        self.config = Config.create(backend="strata", keyspace=keyspace)

    def tearDown(self):
        self._tmp.cleanup()

    def test_missing_database(self):
        from benchtab.backends.strata import StrataBackend

        with StrataBackend(self.config) as backend:
            with self.assertRaises(BackendError):
                backend.prepare(SELECT_STMT)

    def test_insert_then_select(self):
        from benchtab.backends.strata import StrataBackend

        with StrataBackend(self.config) as backend:
            backend.setup_schema()
            backend.prepare(INSERT_STMT).bind(4, 8, 12).exec()
            res = backend.prepare(SELECT_STMT).bind(4).exec()
            self.assertEqual(res.column(0).as_int64(), 8)
            self.assertEqual(res.column(1).as_int64(), 12)
            self.assertEqual(backend.prepare(SELECT_STMT).bind(5).exec().rows, [])


if __name__ == "__main__":
    unittest.main()
