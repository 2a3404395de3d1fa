"""Database dependencies for route handlers and the SQLAlchemy error classifier."""

import logging
from collections.abc import Generator
from dataclasses import dataclass
from typing import Annotated

from fastapi import Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from wms_tutorial.core.database import ConnectionHandle, ConnectionPool, MockConnection, MockSession
from wms_tutorial.core.errors import (
    AppError,
    DatabaseConnectionError,
    DatabaseOperationError,
    app_error_handler,
)

logger = logging.getLogger(__name__)


@dataclass
class DatabaseContext:
    db: Session | MockSession
    connection: ConnectionHandle | MockConnection

    @property
    def is_mock(self) -> bool:
        return self.connection.is_mock


def get_db_context(request: Request) -> Generator[DatabaseContext, None, None]:
    """Acquire the pool's connection and yield a session bound to it; always closed on exit."""
    pool: ConnectionPool = request.app.state.pool
    connection = pool.acquire()
    db = connection.session()
    try:
        yield DatabaseContext(db=db, connection=connection)
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def get_db(context: Annotated[DatabaseContext, Depends(get_db_context)]) -> Session:
    """Dependency: just the session."""
    return context.db


async def database_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    """
    Map a SQLAlchemy error that escaped a handler to a 500 envelope.

    The pool's handle is re-checked: if it is no longer reachable the failure is
    reported as a connection error and the handle is marked stale, so the next
    request reconnects. Otherwise it is an operation error. Nothing is retried.
    """
    pool: ConnectionPool | None = getattr(request.app.state, "pool", None)
    handle = pool.handle if pool is not None else None
    connected = handle is not None and await run_in_threadpool(handle.ping)

    settings = request.app.state.settings
    detail = str(exc) if settings.is_development else "A database error occurred"
    error: AppError
    if connected:
        error = DatabaseOperationError(detail)
    else:
        error = DatabaseConnectionError(detail)
        if pool is not None:
            pool.mark_stale()
    error.__cause__ = exc
    logger.error("%s on %s %s: %s", error.error, request.method, request.url.path, exc)
    return await app_error_handler(request, error)
