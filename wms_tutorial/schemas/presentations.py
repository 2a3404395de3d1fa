"""Response schemas for the presentations endpoint."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class PresentationOut(BaseModel):
    """A presentation with its derived direct-download and viewer URLs."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    db_id: int = Field(alias="_id")
    id: str
    user_id: str | None = None
    title: str = ""
    description: str = ""
    url: str = ""
    is_local: bool = False
    file_type: str = "other"
    source_type: str = "other"
    type: str = "general"
    tags: list[str] = Field(default_factory=list)
    thumbnail_url: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    direct_url: str | None = None
    viewer_url: str | None = None


class PresentationListResponse(BaseModel):
    success: bool = True
    presentations: list[PresentationOut] = Field(default_factory=list)
    source: str
    count: int = Field(..., ge=0)
    message: str | None = None
