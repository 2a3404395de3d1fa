"""Pydantic request/response schemas."""

from wms_tutorial.schemas.auth import (
    AuthResponse,
    LoginRequest,
    MessageResponse,
    RegisterRequest,
    UserInfo,
    VerifyResponse,
)
from wms_tutorial.schemas.health import HealthResponse
from wms_tutorial.schemas.imports import ImportRequest, ImportResponse
from wms_tutorial.schemas.presentations import PresentationListResponse, PresentationOut
from wms_tutorial.schemas.processes import (
    ProcessListResponse,
    SaveProcessesRequest,
    SaveProcessesResponse,
)

__all__ = [
    "AuthResponse",
    "HealthResponse",
    "ImportRequest",
    "ImportResponse",
    "LoginRequest",
    "MessageResponse",
    "PresentationListResponse",
    "PresentationOut",
    "ProcessListResponse",
    "RegisterRequest",
    "SaveProcessesRequest",
    "SaveProcessesResponse",
    "UserInfo",
    "VerifyResponse",
]
