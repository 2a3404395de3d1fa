"""Health check endpoint with database connectivity check."""

from fastapi import APIRouter, Request

from wms_tutorial.core.database import check_db_connected
from wms_tutorial.core.errors import DatabaseConnectionError
from wms_tutorial.schemas.health import HealthResponse

router = APIRouter()


@router.get("/", response_model=HealthResponse)
def get_health(request: Request) -> HealthResponse:
    """
    Return service health status and database connectivity.
    Used by load balancers and monitoring.
    """
    settings = request.app.state.settings
    pool = request.app.state.pool
    try:
        connection = pool.acquire()
    except DatabaseConnectionError:
        database = "disconnected"
    else:
        if connection.is_mock:
            database = "mock"
        else:
            db = connection.session()
            try:
                database = "connected" if check_db_connected(db) else "disconnected"
            finally:
                db.close()

    return HealthResponse(
        status="ok",
        environment=settings.APP_ENV,
        database=database,
        connection_state=pool.state.value,
    )
