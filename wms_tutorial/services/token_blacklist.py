"""Token revocation: record revoked tokens, look them up, and purge expired rows."""

import logging
from datetime import UTC, datetime

from sqlalchemy.orm import Session

from wms_tutorial.core.security import token_expiry
from wms_tutorial.models import TokenBlacklist

logger = logging.getLogger(__name__)


def revoke_token(
    db: Session,
    token: str,
    user_id: str | None = None,
    user_agent: str | None = None,
    ip_address: str | None = None,
) -> TokenBlacklist:
    """
    Add a token to the blacklist. Idempotent: revoking twice returns the existing row.

    expires_at is the token's own expiry when it carries one, otherwise now + 24h.
    """
    existing = db.query(TokenBlacklist).filter(TokenBlacklist.token == token).first()
    if existing is not None:
        return existing
    now = datetime.now(UTC)
    entry = TokenBlacklist(
        token=token,
        revoked_at=now,
        expires_at=token_expiry(token, now=now),
        user_id=user_id,
        user_agent=(user_agent or "")[:1024] or None,
        ip_address=ip_address,
    )
    db.add(entry)
    db.commit()
    logger.info("Token revoked for user_id=%s (expires_at=%s)", user_id, entry.expires_at)
    return entry


def is_token_revoked(db: Session, token: str) -> bool:
    return db.query(TokenBlacklist.id).filter(TokenBlacklist.token == token).first() is not None


def purge_expired_tokens(db: Session, now: datetime | None = None) -> int:
    """Delete blacklist rows whose expires_at has passed. Safe to run repeatedly."""
    cutoff = now or datetime.now(UTC)
    deleted_count = (
        db.query(TokenBlacklist)
        .filter(TokenBlacklist.expires_at < cutoff)
        .delete(synchronize_session=False)
    )
    db.commit()
    if deleted_count > 0:
        logger.info(
            "Token blacklist purge: cutoff=%s, tokens_deleted=%s",
            cutoff.isoformat(),
            deleted_count,
        )
    return deleted_count
