"""Request/response schemas for the processes endpoints."""

from typing import Any

from pydantic import BaseModel, Field


class ProcessListResponse(BaseModel):
    """Processes visible to the caller, as stored documents (camelCase keys)."""

    success: bool = True
    processes: list[dict[str, Any]] = Field(default_factory=list)
    source: str = Field(description="'database', 'database-empty' or 'mock'")
    count: int = Field(..., ge=0)
    message: str | None = None


class SaveProcessesRequest(BaseModel):
    """Wrapped save body; a bare JSON array of processes is accepted too."""

    processes: list[dict[str, Any]] = Field(default_factory=list)
    metadata: dict[str, Any] | None = None


class SaveProcessesResponse(BaseModel):
    success: bool = True
    message: str
    count: int = Field(..., ge=0)
    attempts: int = Field(..., ge=1, description="Transactions run, including retries")
