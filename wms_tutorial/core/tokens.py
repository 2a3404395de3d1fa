"""
Bearer token validation.

Four encodings are accepted, tried strictly in this order (first match wins):

1. Simplified ``userId:username:role`` (no signature, no expiry).
2. JWT signed with the shared secret (``exp`` in seconds).
3. Legacy base64-encoded JSON (``exp`` in milliseconds).
4. ``dev-fallback`` / ``dev-fallback-<username>``, development only.

Each decoder is pure and never raises: it returns an Identity, a terminal
AuthFailure, or None when the token is not in its format.
"""

import base64
import binascii
import json
import re
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import jwt

DEV_FALLBACK_PREFIX = "dev-fallback"

# Anything outside the base64 alphabet is skipped when decoding legacy tokens.
_NON_BASE64 = re.compile(r"[^A-Za-z0-9+/]")

INVALID_FORMAT_ERROR = "Invalid token format"
INVALID_FORMAT_MESSAGE = "The authentication token is invalid or malformed"
EXPIRED_ERROR = "Token expired"
EXPIRED_MESSAGE = "Your session has expired. Please log in again."


@dataclass(frozen=True)
class Identity:
    """Resolved caller identity. Never persisted."""

    user_id: str
    username: str
    role: str | None


@dataclass(frozen=True)
class AuthFailure:
    """Terminal validation failure; stops the decoder chain."""

    error: str
    message: str


DecodeOutcome = Identity | AuthFailure | None
Decoder = Callable[[str], DecodeOutcome]


def _identity_from_claims(claims: dict[str, Any]) -> Identity:
    user_id = claims.get("userId") or claims.get("sub")
    username = claims.get("username") or claims.get("name")
    role = claims.get("role")
    return Identity(
        user_id="" if user_id is None else str(user_id),
        username="" if username is None else str(username),
        role=None if role is None else str(role),
    )


def dev_fallback_role(username: str) -> str:
    """Role synthesized for a development fallback username."""
    if username == "admin":
        return "admin"
    if username == "supervisor":
        return "supervisor"
    return "user"


def decode_simplified(token: str) -> DecodeOutcome:
    if ":" not in token:
        return None
    parts = token.split(":")
    if len(parts) < 3:
        # Colon tokens never fall through to the other decoders.
        return AuthFailure(INVALID_FORMAT_ERROR, INVALID_FORMAT_MESSAGE)
    return Identity(user_id=parts[0], username=parts[1], role=parts[2])


def make_jwt_decoder(secret: str, algorithm: str) -> Decoder:
    """Build the JWT decoder bound to the shared secret."""

    def decode_jwt(token: str) -> DecodeOutcome:
        try:
            claims = jwt.decode(token, secret, algorithms=[algorithm])
        except jwt.PyJWTError:
            # Bad signature, malformed and expired all fall through alike.
            return None
        if not isinstance(claims, dict):
            return None
        return _identity_from_claims(claims)

    return decode_jwt


def decode_legacy_base64(token: str, now_ms: Callable[[], float] | None = None) -> DecodeOutcome:
    """Decode base64 JSON; ``exp`` is compared in milliseconds."""
    cleaned = _NON_BASE64.sub("", token.replace("-", "+").replace("_", "/"))
    padded = cleaned + "=" * (-len(cleaned) % 4)
    try:
        raw = base64.b64decode(padded)
        data = json.loads(raw.decode("utf-8"))
    except (binascii.Error, ValueError, UnicodeDecodeError):
        return None
    if not isinstance(data, dict):
        return None
    exp = data.get("exp")
    if exp:
        current = now_ms() if now_ms is not None else time.time() * 1000
        try:
            expired = float(exp) < current
        except (TypeError, ValueError):
            return None
        if expired:
            return AuthFailure(EXPIRED_ERROR, EXPIRED_MESSAGE)
    identity = _identity_from_claims(data)
    if not identity.user_id and not identity.username:
        return None
    return identity


def decode_dev_fallback(token: str) -> DecodeOutcome:
    if token == DEV_FALLBACK_PREFIX:
        return Identity(user_id="admin-dev-id", username="admin", role="admin")
    if not token.startswith(DEV_FALLBACK_PREFIX + "-"):
        return None
    # "dev-fallback-<username>": the username is the third dash-separated segment.
    parts = token.split("-")
    username = parts[2] if len(parts) >= 3 else ""
    if not username:
        return None
    return Identity(
        user_id=f"{username}-dev-id",
        username=username,
        role=dev_fallback_role(username),
    )


class TokenValidator:
    """Ordered fold over the token decoders."""

    def __init__(self, secret: str, algorithm: str = "HS256", is_development: bool = False) -> None:
        self.is_development = is_development
        decoders: list[Decoder] = [
            decode_simplified,
            make_jwt_decoder(secret, algorithm),
            decode_legacy_base64,
        ]
        if is_development:
            decoders.append(decode_dev_fallback)
        self.decoders: tuple[Decoder, ...] = tuple(decoders)

    @classmethod
    def from_settings(cls, settings: Any) -> "TokenValidator":
        return cls(
            secret=settings.JWT_SECRET.get_secret_value(),
            algorithm=settings.JWT_ALGORITHM,
            is_development=settings.is_development,
        )

    def validate(self, token: str | None) -> Identity | AuthFailure:
        """Return the first decoder outcome, or an invalid-format failure."""
        if not token:
            return AuthFailure(INVALID_FORMAT_ERROR, INVALID_FORMAT_MESSAGE)
        for decoder in self.decoders:
            outcome = decoder(token)
            if outcome is not None:
                return outcome
        return AuthFailure(INVALID_FORMAT_ERROR, INVALID_FORMAT_MESSAGE)
