"""FastAPI application entrypoint. No business logic; only wiring and middleware."""

from dotenv import load_dotenv

load_dotenv()

from contextlib import asynccontextmanager

from fastapi import FastAPI
from sqlalchemy.exc import SQLAlchemyError

from wms_tutorial.api.v1 import router as v1_router
from wms_tutorial.core.config import Settings, get_settings
from wms_tutorial.core.database import ConnectionPool
from wms_tutorial.core.errors import register_exception_handlers
from wms_tutorial.core.tokens import TokenValidator
from wms_tutorial.middleware.cors import CORSMiddleware
from wms_tutorial.middleware.database import database_error_handler


def create_app(settings: Settings | None = None, pool: ConnectionPool | None = None) -> FastAPI:
    """
    Build the application around one ConnectionPool and one TokenValidator.

    Both are published on app.state; tests pass their own settings and pool.
    """
    settings = settings or get_settings()
    pool = pool or ConnectionPool.from_settings(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        pool.close()

    app = FastAPI(
        title="WMS Tutorial API",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.pool = pool
    app.state.token_validator = TokenValidator.from_settings(settings)

    register_exception_handlers(app)
    app.add_exception_handler(SQLAlchemyError, database_error_handler)

    app.add_middleware(
        CORSMiddleware,
        local_origins=settings.CORS_LOCAL_ORIGINS,
        is_development=settings.is_development,
    )

    app.include_router(v1_router, prefix=settings.API_V1_PREFIX)

    @app.get("/")
    def root() -> dict[str, str]:
        """Root route; minimal payload for discovery."""
        return {"message": "WMS Tutorial API"}

    return app


app = create_app()
