"""ORM model for revoked bearer tokens."""

from sqlalchemy import Column, DateTime, Integer, String, Text, func

from wms_tutorial.models.base import Base


class TokenBlacklist(Base):
    """
    A revoked token. Rows past expires_at are deleted by the cleanup job.

    Whether the auth guard consults this table is controlled by TOKEN_BLACKLIST_ENFORCED.
    """

    __tablename__ = "token_blacklist"

    id = Column(Integer, primary_key=True, autoincrement=True)
    token = Column(Text, nullable=False, unique=True)
    revoked_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
    expires_at = Column(DateTime(timezone=True), nullable=False, index=True)
    user_id = Column(String(255), nullable=True, index=True)
    user_agent = Column(String(1024), nullable=True)
    ip_address = Column(String(64), nullable=True)
