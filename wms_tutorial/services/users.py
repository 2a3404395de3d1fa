"""User lookup, registration and the admin-role invariant."""

import logging

from sqlalchemy.orm import Session

from wms_tutorial.core.errors import ConflictError
from wms_tutorial.core.security import hash_password, verify_password
from wms_tutorial.models import User

logger = logging.getLogger(__name__)

ADMIN_USERNAME = "admin"


def get_user_by_username(db: Session, username: str) -> User | None:
    return db.query(User).filter(User.username == username).first()


def get_user_by_id(db: Session, user_id: str | int) -> User | None:
    try:
        pk = int(user_id)
    except (TypeError, ValueError):
        return None
    return db.query(User).filter(User.id == pk).first()


def authenticate_user(db: Session, username: str, password: str) -> User | None:
    user = get_user_by_username(db, username)
    if user is None:
        return None
    if not verify_password(password, user.password_hash):
        return None
    return user


def create_user(db: Session, username: str, password: str, role: str = "user") -> User:
    """Create a user; raises ConflictError when the username is taken."""
    if get_user_by_username(db, username) is not None:
        raise ConflictError("Username already exists", error="Duplicate username")
    user = User(
        username=username,
        password_hash=hash_password(password),
        role=effective_role(username, role),
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def effective_role(username: str | None, role: str | None) -> str:
    """The literal 'admin' username is always an admin; missing roles default to 'user'."""
    if username == ADMIN_USERNAME:
        return "admin"
    return role or "user"


def ensure_admin_role(db: Session, user: User) -> bool:
    """Repair a stored 'admin' user whose role drifted. Returns True if the row changed."""
    if user.username != ADMIN_USERNAME or user.role == "admin":
        return False
    logger.warning("Restoring admin role for user %s (was %r)", user.username, user.role)
    user.role = "admin"
    db.commit()
    return True
