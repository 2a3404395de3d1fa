"""Login, registration, token verification and revocation."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session

from wms_tutorial.core.errors import AuthenticationError, ValidationError
from wms_tutorial.core.security import mint_token
from wms_tutorial.middleware.auth import AuthContext, require_user
from wms_tutorial.middleware.database import get_db
from wms_tutorial.models import User
from wms_tutorial.schemas.auth import (
    AuthResponse,
    LoginRequest,
    MessageResponse,
    RegisterRequest,
    UserInfo,
    VerifyResponse,
)
from wms_tutorial.services.token_blacklist import revoke_token
from wms_tutorial.services.users import (
    ADMIN_USERNAME,
    authenticate_user,
    create_user,
    effective_role,
    ensure_admin_role,
    get_user_by_id,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def _user_info(user: User) -> UserInfo:
    return UserInfo(id=str(user.id), username=user.username, role=user.role)


@router.post("/login", response_model=AuthResponse)
def login(
    body: LoginRequest,
    request: Request,
    db: Annotated[Session, Depends(get_db)],
) -> AuthResponse:
    """
    Authenticate with username and password.

    Returns a token in the configured TOKEN_FORMAT. A stored 'admin' user whose
    role drifted is repaired before the token is minted.
    """
    user = authenticate_user(db, body.username, body.password)
    if user is None:
        logger.info("Failed login for username=%s", body.username)
        raise AuthenticationError("Invalid username or password", error="Invalid credentials")
    ensure_admin_role(db, user)
    token = mint_token(user.id, user.username, user.role, request.app.state.settings)
    return AuthResponse(message="Login successful", token=token, user=_user_info(user))


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
def register(
    body: RegisterRequest,
    request: Request,
    db: Annotated[Session, Depends(get_db)],
) -> AuthResponse:
    """Create a 'user' account and log it in. Elevated roles are granted from the CLI only."""
    if body.username == ADMIN_USERNAME:
        raise ValidationError("This username is reserved")
    user = create_user(db, body.username, body.password, role="user")
    logger.info("Registered user %s", user.username)
    token = mint_token(user.id, user.username, user.role, request.app.state.settings)
    return AuthResponse(
        message="User registered successfully",
        token=token,
        user=_user_info(user),
    )


@router.get("/verify", response_model=VerifyResponse)
def verify(
    auth: Annotated[AuthContext, Depends(require_user)],
    db: Annotated[Session, Depends(get_db)],
) -> VerifyResponse:
    """
    Check the presented token and return the caller.

    Token identities that have no stored user (e.g. development fallback tokens)
    are returned as decoded.
    """
    user = get_user_by_id(db, auth.user_id)
    if user is not None:
        ensure_admin_role(db, user)
        return VerifyResponse(user=_user_info(user))
    return VerifyResponse(
        user=UserInfo(
            id=auth.user_id or "",
            username=auth.username or "",
            role=effective_role(auth.username, auth.role),
        )
    )


@router.post("/revoke", response_model=MessageResponse)
def revoke(
    request: Request,
    auth: Annotated[AuthContext, Depends(require_user)],
    db: Annotated[Session, Depends(get_db)],
) -> MessageResponse:
    """Blacklist the presented token (logout)."""
    revoke_token(
        db,
        auth.token,
        user_id=auth.user_id,
        user_agent=request.headers.get("user-agent"),
        ip_address=request.client.host if request.client else None,
    )
    return MessageResponse(message="Token revoked successfully")
