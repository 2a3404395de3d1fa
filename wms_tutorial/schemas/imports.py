"""Request/response schemas for the Excel import endpoint."""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class ImportRequest(BaseModel):
    """JSON upload: base64 workbook, optionally as a ``data:...;base64,`` URL."""

    model_config = ConfigDict(populate_by_name=True)

    file_data: str = Field(..., min_length=1, alias="fileData")
    data_type: Literal["processes", "presentations"] = Field(..., alias="dataType")


class ImportResponse(BaseModel):
    success: bool = True
    message: str
    count: int = Field(..., ge=0)
