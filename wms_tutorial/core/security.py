"""Password hashing and token minting for authentication."""

import base64
import json
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Any

import bcrypt
import jwt

if TYPE_CHECKING:
    from wms_tutorial.core.config import Settings

# Bcrypt cost (rounds); 12 is a good default for security vs speed.
BCRYPT_ROUNDS = 12

USERNAME_MIN_LEN = 1
USERNAME_MAX_LEN = 255
PASSWORD_MIN_LEN = 1
PASSWORD_MAX_LEN = 128

# Lifetime assumed for tokens that carry no expiry of their own (blacklist bookkeeping).
DEFAULT_REVOCATION_TTL = timedelta(hours=24)


def hash_password(plain_password: str) -> str:
    """Hash a plain-text password for storage. Do not store plain passwords."""
    # bcrypt has a 72-byte limit; truncate to avoid errors (validation already limits length).
    pw_bytes = plain_password.encode("utf-8")[:72]
    return bcrypt.hashpw(pw_bytes, bcrypt.gensalt(rounds=BCRYPT_ROUNDS)).decode("utf-8")


def verify_password(plain_password: str, hashed: str) -> bool:
    """Verify a plain password against a stored hash."""
    pw_bytes = plain_password.encode("utf-8")[:72]
    try:
        return bcrypt.checkpw(pw_bytes, hashed.encode("utf-8"))
    except (ValueError, TypeError):
        return False


def create_simplified_token(user_id: str | int, username: str, role: str) -> str:
    """Mint a ``userId:username:role`` token. These never expire."""
    return f"{user_id}:{username}:{role}"


def create_access_token(
    user_id: str | int,
    username: str,
    role: str,
    settings: "Settings",
) -> str:
    """Create a JWT access token with sub/userId, username, role, exp and iat."""
    now = datetime.now(UTC)
    expire = now + timedelta(minutes=settings.JWT_EXPIRE_MINUTES)
    payload: dict[str, Any] = {
        "sub": str(user_id),
        "userId": str(user_id),
        "username": username,
        "role": role,
        "exp": expire,
        "iat": now,
    }
    return jwt.encode(
        payload,
        settings.JWT_SECRET.get_secret_value(),
        algorithm=settings.JWT_ALGORITHM,
    )


def mint_token(user_id: str | int, username: str, role: str, settings: "Settings") -> str:
    """Mint a login token in the configured TOKEN_FORMAT."""
    if settings.TOKEN_FORMAT == "jwt":
        return create_access_token(user_id, username, role, settings)
    return create_simplified_token(user_id, username, role)


def token_expiry(token: str, now: datetime | None = None) -> datetime:
    """
    Best-effort natural expiry of a token, without verifying it.

    JWT ``exp`` is seconds since epoch, legacy base64 ``exp`` is milliseconds.
    Tokens without an expiry (simplified, dev-fallback) get DEFAULT_REVOCATION_TTL.
    """
    now = now or datetime.now(UTC)
    fallback = now + DEFAULT_REVOCATION_TTL
    if ":" in token:
        return fallback
    try:
        parts = token.split(".")
        if len(parts) == 3:
            claims = jwt.decode(token, options={"verify_signature": False})
            if claims.get("exp"):
                return datetime.fromtimestamp(float(claims["exp"]), tz=UTC)
            return fallback
        padded = token + "=" * (-len(token) % 4)
        data = json.loads(base64.b64decode(padded).decode("utf-8"))
        if isinstance(data, dict) and data.get("exp"):
            return datetime.fromtimestamp(float(data["exp"]) / 1000, tz=UTC)
    except (jwt.PyJWTError, ValueError, TypeError, UnicodeDecodeError, OverflowError):
        return fallback
    return fallback
