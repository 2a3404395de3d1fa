"""Processes: visibility-filtered listing and the incremental save path."""

from typing import Annotated, Any

from fastapi import APIRouter, Depends

from wms_tutorial.middleware.auth import AuthContext, optional_user, require_user
from wms_tutorial.middleware.database import DatabaseContext, get_db_context
from wms_tutorial.schemas.processes import (
    ProcessListResponse,
    SaveProcessesRequest,
    SaveProcessesResponse,
)
from wms_tutorial.services.process_store import (
    process_to_dict,
    save_processes,
    visible_processes_query,
)

router = APIRouter()


@router.get("", response_model=ProcessListResponse)
def list_processes(
    auth: Annotated[AuthContext, Depends(optional_user)],
    ctx: Annotated[DatabaseContext, Depends(get_db_context)],
) -> ProcessListResponse:
    """
    List processes.

    Admins and anonymous callers see every process; other users see their own
    plus global ones.
    """
    rows = visible_processes_query(ctx.db, auth.user_id, auth.role).all()
    processes = [process_to_dict(row) for row in rows]
    if ctx.is_mock:
        source = "mock"
    else:
        source = "database" if processes else "database-empty"
    return ProcessListResponse(
        processes=processes,
        source=source,
        count=len(processes),
        message=None if processes else "No processes found in the database",
    )


@router.post("", response_model=SaveProcessesResponse)
def post_processes(
    body: list[dict[str, Any]] | SaveProcessesRequest,
    auth: Annotated[AuthContext, Depends(require_user)],
    ctx: Annotated[DatabaseContext, Depends(get_db_context)],
) -> SaveProcessesResponse:
    """
    Upsert processes by id, owned by the caller.

    Accepts a JSON array or ``{"processes": [...], "metadata": {...}}``. Transient
    write conflicts are retried; a conflict that persists returns 409.
    """
    processes = body if isinstance(body, list) else body.processes
    result = save_processes(ctx.db, processes, auth.user_id)
    return SaveProcessesResponse(
        message="Processes saved successfully",
        count=result.count,
        attempts=result.attempts,
    )
