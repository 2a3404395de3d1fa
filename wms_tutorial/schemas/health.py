"""Pydantic schemas for health check responses."""

from typing import Literal

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    """Response body for the health check endpoint."""

    status: Literal["ok"] = Field(default="ok", description="Service status")
    environment: str = Field(description="Current app environment (dev or prod)")
    database: Literal["connected", "disconnected", "mock"] = Field(
        description="Database connectivity; 'mock' when the development fallback is active",
    )
    connection_state: str = Field(description="Ready-state of the pool's connection handle")
