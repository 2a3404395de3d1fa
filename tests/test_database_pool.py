"""Tests for ConnectionPool reuse/retry/fallback and the SQLAlchemy error classifier."""

import unittest
from unittest.mock import MagicMock, call, patch

from fastapi import Depends, FastAPI
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from wms_tutorial.core.config import Settings
from wms_tutorial.core.database import (
    ConnectionHandle,
    ConnectionPool,
    ConnectionState,
    MockConnection,
)
from wms_tutorial.core.errors import DatabaseConnectionError, register_exception_handlers
from wms_tutorial.middleware.database import (
    DatabaseContext,
    database_error_handler,
    get_db,
    get_db_context,
)
from wms_tutorial.models import Process


class TestPoolReuse(unittest.TestCase):
    def setUp(self) -> None:
        self.pool = ConnectionPool("sqlite://", create_schema=True)
        self.addCleanup(self.pool.close)

    def test_starts_disconnected(self) -> None:
        self.assertEqual(self.pool.state, ConnectionState.DISCONNECTED)
        self.assertFalse(self.pool.is_connected)

    def test_connected_handle_is_reused(self) -> None:
        first = self.pool.acquire()
        second = self.pool.acquire()
        self.assertIsInstance(first, ConnectionHandle)
        self.assertIs(first, second)
        self.assertEqual(self.pool.state, ConnectionState.CONNECTED)

    def test_schema_is_created(self) -> None:
        db = self.pool.acquire().session()
        try:
            self.assertEqual(db.query(Process).count(), 0)
        finally:
            db.close()

    def test_stale_handle_is_replaced(self) -> None:
        first = self.pool.acquire()
        self.pool.mark_stale()
        second = self.pool.acquire()
        self.assertIsNot(first, second)
        self.assertEqual(first.state, ConnectionState.DISCONNECTED)
        self.assertTrue(second.is_connected)


class TestPoolRetry(unittest.TestCase):
    def _pool(self, is_development: bool) -> tuple[ConnectionPool, MagicMock]:
        sleep = MagicMock()
        pool = ConnectionPool(
            "postgresql://nobody@db.invalid/wms",
            is_development=is_development,
            retries=3,
            backoff=1.0,
            sleep=sleep,
        )
        return pool, sleep

    def test_development_falls_back_to_mock_after_retries(self) -> None:
        pool, sleep = self._pool(is_development=True)
        with patch.object(ConnectionPool, "_open", side_effect=OSError("refused")) as opener:
            connection = pool.acquire()
        self.assertIsInstance(connection, MockConnection)
        self.assertTrue(connection.is_mock)
        self.assertEqual(opener.call_count, 3)
        self.assertEqual(sleep.call_args_list, [call(1.0), call(1.0)])

    def test_production_raises_after_retries(self) -> None:
        pool, sleep = self._pool(is_development=False)
        with patch.object(ConnectionPool, "_open", side_effect=OSError("refused")) as opener:
            with self.assertRaises(DatabaseConnectionError):
                pool.acquire()
        self.assertEqual(opener.call_count, 3)
        self.assertEqual(sleep.call_count, 2)
        self.assertIsNone(pool.handle)

    def test_recovers_on_later_attempt(self) -> None:
        pool, sleep = self._pool(is_development=False)
        handle = MagicMock(is_connected=True)
        with patch.object(ConnectionPool, "_open", side_effect=[OSError("refused"), handle]):
            self.assertIs(pool.acquire(), handle)
        sleep.assert_called_once_with(1.0)

    def test_mock_session_answers_empty(self) -> None:
        db = MockConnection().session()
        self.assertEqual(db.query(Process).filter(Process.id == "x").order_by(Process.pk).all(), [])
        self.assertIsNone(db.query(Process).first())
        self.assertEqual(db.query(Process).count(), 0)

    def test_postgres_engine_timeouts(self) -> None:
        pool, _ = self._pool(is_development=False)
        kwargs = pool._engine_kwargs()
        self.assertEqual(kwargs["pool_timeout"], 5.0)
        self.assertEqual(kwargs["connect_args"]["connect_timeout"], 10)
        self.assertIn("statement_timeout=45000", kwargs["connect_args"]["options"])


def make_app(pool: ConnectionPool) -> FastAPI:
    app = FastAPI()
    app.state.settings = Settings(APP_ENV="prod", DATABASE_URL="sqlite://")
    app.state.pool = pool
    register_exception_handlers(app)
    app.add_exception_handler(OperationalError, database_error_handler)

    @app.get("/count")
    def count(db: Session = Depends(get_db)):
        return {"count": db.query(Process).count()}

    @app.get("/source")
    def source(ctx: DatabaseContext = Depends(get_db_context)):
        return {"mock": ctx.is_mock}

    @app.get("/fail")
    def fail(db: Session = Depends(get_db)):
        raise OperationalError("SELECT broken", {}, Exception("boom"))

    return app


class TestDatabaseDependencies(unittest.TestCase):
    def setUp(self) -> None:
        self.pool = ConnectionPool("sqlite://", create_schema=True)
        self.addCleanup(self.pool.close)
        self.client = TestClient(make_app(self.pool))

    def test_session_dependency(self) -> None:
        response = self.client.get("/count")
        self.assertEqual(response.json(), {"count": 0})
        self.assertEqual(self.client.get("/source").json(), {"mock": False})

    def test_operation_error_when_still_connected(self) -> None:
        response = self.client.get("/fail")
        self.assertEqual(response.status_code, 500)
        body = response.json()
        self.assertEqual(body["error"], "Database operation error")
        self.assertEqual(body["message"], "A database error occurred")
        self.assertTrue(self.pool.is_connected)

    def test_connection_error_marks_handle_stale(self) -> None:
        handle = self.pool.acquire()
        with patch.object(handle, "ping", return_value=False):
            response = self.client.get("/fail")
        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.json()["error"], "Database connection error")
        self.assertEqual(self.pool.state, ConnectionState.DISCONNECTED)

    def test_mock_connection_in_dependency(self) -> None:
        pool = ConnectionPool("postgresql://nobody@db.invalid/wms", is_development=True, sleep=MagicMock())
        with patch.object(ConnectionPool, "_open", side_effect=OSError("refused")):
            client = TestClient(make_app(pool))
            self.assertEqual(client.get("/source").json(), {"mock": True})
            self.assertEqual(client.get("/count").json(), {"count": 0})


if __name__ == "__main__":
    unittest.main()
