"""ORM model for application users (auth and RBAC)."""

from sqlalchemy import Column, DateTime, Integer, String, func

from wms_tutorial.models.base import Base

ROLES = ("user", "supervisor", "admin")


class User(Base):
    """
    User account for token authentication and role-based access control.

    role: 'user', 'supervisor' or 'admin'. The username 'admin' always carries role 'admin'.
    """

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    username = Column(String(255), nullable=False, unique=True, index=True)
    password_hash = Column(String(255), nullable=False)
    role = Column(String(32), nullable=False, default="user")
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
