"""Presentations listing with derived direct-download and viewer URLs."""

from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy import or_

from wms_tutorial.middleware.auth import AuthContext, optional_user
from wms_tutorial.middleware.database import DatabaseContext, get_db_context
from wms_tutorial.models import Presentation
from wms_tutorial.schemas.presentations import PresentationListResponse, PresentationOut
from wms_tutorial.services.presentation_urls import direct_url, viewer_url

router = APIRouter()


def to_presentation_out(row: Presentation) -> PresentationOut:
    return PresentationOut(
        db_id=row.pk,
        id=row.id,
        user_id=row.user_id,
        title=row.title or "",
        description=row.description or "",
        url=row.url or "",
        is_local=bool(row.is_local),
        file_type=row.file_type or "other",
        source_type=row.source_type or "other",
        type=row.type or "general",
        tags=list(row.tags or []),
        thumbnail_url=row.thumbnail_url,
        created_at=row.created_at,
        updated_at=row.updated_at,
        direct_url=direct_url(row.url, row.source_type, bool(row.is_local)),
        viewer_url=viewer_url(row.url, row.source_type, bool(row.is_local)),
    )


@router.get("", response_model=PresentationListResponse)
def list_presentations(
    auth: Annotated[AuthContext, Depends(optional_user)],
    ctx: Annotated[DatabaseContext, Depends(get_db_context)],
) -> PresentationListResponse:
    """List presentations visible to the caller (same rules as processes)."""
    query = ctx.db.query(Presentation)
    if auth.user_id and not auth.is_admin:
        query = query.filter(
            or_(Presentation.user_id == auth.user_id, Presentation.user_id.is_(None))
        )
    presentations = [to_presentation_out(row) for row in query.order_by(Presentation.pk).all()]
    if ctx.is_mock:
        source = "mock"
    else:
        source = "database" if presentations else "database-empty"
    return PresentationListResponse(
        presentations=presentations,
        source=source,
        count=len(presentations),
        message=None if presentations else "No presentations found in the database",
    )
