"""Request/response schemas for auth endpoints."""

from pydantic import BaseModel, Field

from wms_tutorial.core.security import (
    PASSWORD_MAX_LEN,
    PASSWORD_MIN_LEN,
    USERNAME_MAX_LEN,
    USERNAME_MIN_LEN,
)


class LoginRequest(BaseModel):
    """Credentials for login."""

    username: str = Field(
        ..., min_length=USERNAME_MIN_LEN, max_length=USERNAME_MAX_LEN, description="Username"
    )
    password: str = Field(
        ..., min_length=PASSWORD_MIN_LEN, max_length=PASSWORD_MAX_LEN, description="Password"
    )


class RegisterRequest(LoginRequest):
    """Self-service registration; always creates a 'user' account."""


class UserInfo(BaseModel):
    """Public view of a user (no password)."""

    id: str
    username: str
    role: str


class AuthResponse(BaseModel):
    """Token returned by login and registration. Send it as ``Authorization: Bearer <token>``."""

    success: bool = True
    message: str
    token: str
    user: UserInfo


class VerifyResponse(BaseModel):
    success: bool = True
    user: UserInfo


class MessageResponse(BaseModel):
    success: bool = True
    message: str
