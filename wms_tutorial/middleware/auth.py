"""Auth guard dependency: bearer token extraction, validation, revocation and role checks."""

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field

from fastapi import Request

from wms_tutorial.core.errors import AuthenticationError, AuthorizationError
from wms_tutorial.core.tokens import AuthFailure, Identity, TokenValidator
from wms_tutorial.services.token_blacklist import is_token_revoked

logger = logging.getLogger(__name__)

MISSING_TOKEN_ERROR = "Authorization token is missing or invalid"
MISSING_TOKEN_MESSAGE = "Please log in to access this resource"
REVOKED_TOKEN_ERROR = "Token revoked"
REVOKED_TOKEN_MESSAGE = "This session has been signed out. Please log in again."
FORBIDDEN_MESSAGE = "You do not have permission to access this resource"

_BEARER = "bearer "


def extract_bearer_token(authorization: str | None) -> str | None:
    """
    Token from an Authorization header value.

    Accepts ``Bearer <t>``, a bare ``<t>`` and the doubled ``Bearer Bearer <t>``
    some clients send. The prefix is matched case-insensitively.
    """
    if not authorization:
        return None
    token = authorization.lstrip()
    for _ in range(2):
        if token.lower().startswith(_BEARER):
            token = token[len(_BEARER):].lstrip()
    token = token.strip()
    if not token or token.lower() == _BEARER.strip():
        return None
    return token


@dataclass
class AuthContext:
    """What a guarded route handler sees about its caller."""

    user_id: str | None = None
    username: str | None = None
    role: str | None = None
    token: str | None = None
    headers: dict[str, str] = field(default_factory=dict)

    @property
    def is_authenticated(self) -> bool:
        return self.user_id is not None

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


def _validator(request: Request) -> TokenValidator:
    validator = getattr(request.app.state, "token_validator", None)
    if validator is None:
        validator = TokenValidator.from_settings(request.app.state.settings)
        request.app.state.token_validator = validator
    return validator


def _token_revoked(request: Request, token: str) -> bool:
    connection = request.app.state.pool.acquire()
    db = connection.session()
    try:
        return is_token_revoked(db, token)
    finally:
        db.close()


class AuthGuard:
    """
    FastAPI dependency wrapping a route handler with authentication.

    With require_auth=False the handler always runs; a valid token, if
    present, is still resolved so the handler can scope results to the caller.
    When revocation is enforced, a revoked token there counts as anonymous.
    allowed_roles restricts access to the listed roles (403 otherwise).
    """

    def __init__(self, require_auth: bool = True, allowed_roles: Iterable[str] | None = None) -> None:
        self.require_auth = require_auth
        self.allowed_roles = frozenset(allowed_roles) if allowed_roles is not None else None

    def __call__(self, request: Request) -> AuthContext:
        headers = dict(request.headers)
        token = extract_bearer_token(request.headers.get("authorization"))

        if not self.require_auth:
            context = AuthContext(headers=headers)
            if token:
                outcome = _validator(request).validate(token)
                if isinstance(outcome, Identity) and not self._revoked(request, token):
                    context = self._context(outcome, token, headers)
            return context

        if not token:
            raise AuthenticationError(MISSING_TOKEN_MESSAGE, error=MISSING_TOKEN_ERROR)

        outcome = _validator(request).validate(token)
        if isinstance(outcome, AuthFailure):
            logger.info("Rejected token on %s: %s", request.url.path, outcome.error)
            raise AuthenticationError(outcome.message, error=outcome.error)

        if self._revoked(request, token):
            logger.info("Rejected revoked token for user_id=%s", outcome.user_id)
            raise AuthenticationError(REVOKED_TOKEN_MESSAGE, error=REVOKED_TOKEN_ERROR)

        if self.allowed_roles is not None and outcome.role not in self.allowed_roles:
            raise AuthorizationError(FORBIDDEN_MESSAGE)

        return self._context(outcome, token, headers)

    @staticmethod
    def _revoked(request: Request, token: str) -> bool:
        if not request.app.state.settings.TOKEN_BLACKLIST_ENFORCED:
            return False
        return _token_revoked(request, token)

    @staticmethod
    def _context(identity: Identity, token: str, headers: dict[str, str]) -> AuthContext:
        return AuthContext(
            user_id=identity.user_id,
            username=identity.username,
            role=identity.role,
            token=token,
            headers=headers,
        )


require_user = AuthGuard()
optional_user = AuthGuard(require_auth=False)
require_admin = AuthGuard(allowed_roles=("admin",))
