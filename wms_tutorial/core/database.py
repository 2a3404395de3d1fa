"""Database connection pool, session factory and the development mock connection."""

import logging
import time
from collections.abc import Callable
from enum import Enum
from typing import TYPE_CHECKING, Any

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from wms_tutorial.core.errors import DatabaseConnectionError

if TYPE_CHECKING:
    from wms_tutorial.core.config import Settings

logger = logging.getLogger(__name__)


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    DISCONNECTING = "disconnecting"


def check_db_connected(db: Session) -> bool:
    """Run a trivial query to verify the database is reachable."""
    try:
        db.execute(text("SELECT 1"))
        return True
    except Exception:
        return False


def _redact_url(url: str) -> str:
    return url[:20] + "..." if len(url) > 20 else url


class ConnectionHandle:
    """An opened engine plus its session factory and ready-state."""

    is_mock = False

    def __init__(self, engine: Engine) -> None:
        self.engine = engine
        self.session_factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
        self.state = ConnectionState.CONNECTED

    @property
    def is_connected(self) -> bool:
        return self.state == ConnectionState.CONNECTED

    def session(self) -> Session:
        return self.session_factory()

    def ping(self) -> bool:
        """Re-check reachability and update the ready-state accordingly."""
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except SQLAlchemyError:
            self.state = ConnectionState.DISCONNECTED
            return False
        return self.is_connected

    def close(self) -> None:
        self.state = ConnectionState.DISCONNECTING
        try:
            self.engine.dispose()
        finally:
            self.state = ConnectionState.DISCONNECTED


class _EmptyResult:
    def scalars(self) -> "_EmptyResult":
        return self

    def all(self) -> list[Any]:
        return []

    def first(self) -> None:
        return None

    def scalar(self) -> None:
        return None

    def scalar_one_or_none(self) -> None:
        return None


class _EmptyQuery:
    """Chainable query stand-in that matches nothing."""

    def __getattr__(self, name: str) -> Callable[..., "_EmptyQuery"]:
        # filter, filter_by, order_by, limit, offset, options, with_entities, ...
        return lambda *args, **kwargs: self

    def all(self) -> list[Any]:
        return []

    def first(self) -> None:
        return None

    def one_or_none(self) -> None:
        return None

    def scalar(self) -> None:
        return None

    def count(self) -> int:
        return 0

    def delete(self, *args: Any, **kwargs: Any) -> int:
        return 0

    def update(self, *args: Any, **kwargs: Any) -> int:
        return 0

    def __iter__(self):
        return iter(())


class MockSession:
    """Session that accepts writes silently and answers every read with nothing."""

    def query(self, *entities: Any, **kwargs: Any) -> _EmptyQuery:
        return _EmptyQuery()

    def execute(self, *args: Any, **kwargs: Any) -> _EmptyResult:
        return _EmptyResult()

    def get(self, *args: Any, **kwargs: Any) -> None:
        return None

    def add(self, instance: Any) -> None:
        return None

    def add_all(self, instances: Any) -> None:
        return None

    def delete(self, instance: Any) -> None:
        return None

    def flush(self, *args: Any, **kwargs: Any) -> None:
        return None

    def refresh(self, *args: Any, **kwargs: Any) -> None:
        return None

    def commit(self) -> None:
        return None

    def rollback(self) -> None:
        return None

    def close(self) -> None:
        return None


class MockConnection:
    """Development-only stand-in used when the real database cannot be reached."""

    is_mock = True

    def __init__(self) -> None:
        self.engine = None
        self.state = ConnectionState.CONNECTED

    @property
    def is_connected(self) -> bool:
        return self.state == ConnectionState.CONNECTED

    def session(self) -> MockSession:
        return MockSession()

    def ping(self) -> bool:
        return self.is_connected

    def close(self) -> None:
        self.state = ConnectionState.DISCONNECTED


class ConnectionPool:
    """
    Owns the single connection handle shared by all requests of this process.

    acquire() reuses a connected handle, otherwise closes the stale one and
    opens a new engine, retrying a bounded number of times. In development a
    MockConnection is returned once retries are exhausted; in production the
    failure is raised as DatabaseConnectionError.
    """

    def __init__(
        self,
        url: str,
        *,
        is_development: bool = False,
        create_schema: bool = False,
        server_selection_timeout: float = 5.0,
        connect_timeout: float = 10.0,
        socket_timeout: float = 45.0,
        retries: int = 3,
        backoff: float = 1.0,
        echo: bool = False,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.url = url
        self.is_development = is_development
        self.create_schema = create_schema
        self.server_selection_timeout = server_selection_timeout
        self.connect_timeout = connect_timeout
        self.socket_timeout = socket_timeout
        self.retries = max(1, retries)
        self.backoff = backoff
        self.echo = echo
        self._sleep = sleep
        self._handle: ConnectionHandle | MockConnection | None = None

    @classmethod
    def from_settings(cls, settings: "Settings") -> "ConnectionPool":
        return cls(
            settings.DATABASE_URL,
            is_development=settings.is_development,
            create_schema=settings.DB_CREATE_SCHEMA,
            server_selection_timeout=settings.DB_SERVER_SELECTION_TIMEOUT_SEC,
            connect_timeout=settings.DB_CONNECT_TIMEOUT_SEC,
            socket_timeout=settings.DB_SOCKET_TIMEOUT_SEC,
            retries=settings.DB_CONNECT_RETRIES,
            backoff=settings.DB_CONNECT_BACKOFF_SEC,
            echo=settings.DEBUG,
        )

    @property
    def handle(self) -> ConnectionHandle | MockConnection | None:
        return self._handle

    @property
    def state(self) -> ConnectionState:
        if self._handle is None:
            return ConnectionState.DISCONNECTED
        return self._handle.state

    @property
    def is_connected(self) -> bool:
        return self._handle is not None and self._handle.is_connected

    def _engine_kwargs(self) -> dict[str, Any]:
        if self.url.startswith("sqlite"):
            kwargs: dict[str, Any] = {
                "connect_args": {
                    "check_same_thread": False,
                    "timeout": self.connect_timeout,
                },
            }
            if self.url in ("sqlite://", "sqlite+pysqlite://") or ":memory:" in self.url:
                # One shared in-memory database for every session of this pool.
                kwargs["poolclass"] = StaticPool
            return kwargs
        return {
            "pool_pre_ping": True,
            "pool_timeout": self.server_selection_timeout,
            "connect_args": {
                "connect_timeout": int(self.connect_timeout),
                "options": f"-c statement_timeout={int(self.socket_timeout * 1000)}",
            },
        }

    def _open(self) -> ConnectionHandle:
        engine = create_engine(self.url, echo=self.echo, **self._engine_kwargs())
        try:
            with engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            if self.create_schema:
                from wms_tutorial.models import Base

                Base.metadata.create_all(engine)
        except Exception:
            engine.dispose()
            raise
        return ConnectionHandle(engine)

    def acquire(self) -> ConnectionHandle | MockConnection:
        """Return a connected handle, reconnecting if the cached one is not ready."""
        if self._handle is not None and self._handle.is_connected:
            return self._handle

        if self._handle is not None:
            logger.info("Closing stale database handle (state=%s)", self._handle.state.value)
            try:
                self._handle.close()
            except Exception as e:
                logger.warning("Error closing stale database handle: %s", e)
            self._handle = None

        last_error: Exception | None = None
        for attempt in range(1, self.retries + 1):
            try:
                logger.info(
                    "Connecting to database %s (attempt %s/%s)",
                    _redact_url(self.url),
                    attempt,
                    self.retries,
                )
                self._handle = self._open()
                logger.info("Database connection established")
                return self._handle
            except (SQLAlchemyError, OSError, ImportError) as e:
                last_error = e
                logger.warning("Database connection attempt %s failed: %s", attempt, e)
                if attempt < self.retries and self.backoff > 0:
                    self._sleep(self.backoff)

        if self.is_development:
            logger.warning(
                "Database unreachable after %s attempts; using mock connection (development only)",
                self.retries,
            )
            self._handle = MockConnection()
            return self._handle

        raise DatabaseConnectionError(
            f"Could not connect to the database after {self.retries} attempts: {last_error}"
        ) from last_error

    def mark_stale(self) -> None:
        """Force the next acquire() to reconnect."""
        if self._handle is not None:
            self._handle.state = ConnectionState.DISCONNECTED

    def close(self) -> None:
        if self._handle is not None:
            self._handle.close()
            self._handle = None
