"""Process visibility rules and the incremental save path with transient-conflict retry."""

import logging
import time
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import or_
from sqlalchemy.exc import DBAPIError
from sqlalchemy.orm import Session

from wms_tutorial.core.errors import ConflictError
from wms_tutorial.models import Process

logger = logging.getLogger(__name__)

MAX_SAVE_ATTEMPTS = 3
# Backoff before retry n is RETRY_BACKOFF_SEC * n (0.5s, 1.0s, ...).
RETRY_BACKOFF_SEC = 0.5

# serialization_failure, deadlock_detected
TRANSIENT_SQLSTATES = frozenset({"40001", "40P01"})

# Request keys that map onto dedicated columns; everything else goes to Process.extra.
_PROCESS_FIELDS = {
    "id": "id",
    "title": "title",
    "name": "name",
    "description": "description",
    "category": "category",
    "steps": "steps",
    "benefits": "benefits",
    "beforeAfter": "before_after",
}
_IGNORED_KEYS = {"_id", "pk", "userId", "updatedAt", "updatedBy", "createdAt"}


class TransientConflictError(Exception):
    """A write conflict that is safe to retry (raised by stores that detect one themselves)."""


@dataclass
class SaveResult:
    count: int
    attempts: int


def _sqlstate(exc: BaseException) -> str | None:
    orig = getattr(exc, "orig", None)
    for source in (orig, exc):
        if source is None:
            continue
        code = getattr(source, "pgcode", None) or getattr(source, "sqlstate", None)
        if code:
            return str(code)
    return None


def is_transient_conflict(exc: BaseException) -> bool:
    """True for write conflicts / ambiguous commits that may succeed if the transaction is rerun."""
    if isinstance(exc, TransientConflictError):
        return True
    if isinstance(exc, DBAPIError):
        if exc.connection_invalidated:
            return True
        return _sqlstate(exc) in TRANSIENT_SQLSTATES
    return False


def visible_processes_query(db: Session, user_id: str | None, role: str | None):
    """
    Processes the caller may see.

    Admins and unauthenticated callers see everything; other users see their own
    processes plus global ones (no owner).
    """
    query = db.query(Process)
    if user_id and role != "admin":
        query = query.filter(or_(Process.user_id == user_id, Process.user_id.is_(None)))
    return query.order_by(Process.pk)


def process_to_dict(process: Process) -> dict[str, Any]:
    """Serialize a Process row to the API document shape (camelCase keys)."""
    doc: dict[str, Any] = dict(process.extra or {})
    doc.update(
        {
            "_id": process.pk,
            "id": process.id,
            "title": process.title or process.name or "",
            "name": process.name or process.title or "",
            "description": process.description or "",
            "category": process.category or "general",
            "steps": list(process.steps or []),
            "benefits": list(process.benefits or []),
            "beforeAfter": list(process.before_after or []),
            "updatedAt": process.updated_at.isoformat() if process.updated_at else None,
            "updatedBy": process.updated_by,
        }
    )
    if process.user_id is not None:
        doc["userId"] = process.user_id
    return doc


def apply_process_fields(process: Process, data: dict[str, Any]) -> None:
    """Copy request fields onto a Process row; unknown keys are kept in extra."""
    extra = dict(process.extra or {})
    for key, value in data.items():
        if key in _PROCESS_FIELDS:
            setattr(process, _PROCESS_FIELDS[key], value if value is not None else "")
        elif key not in _IGNORED_KEYS:
            extra[key] = value
    for list_field in ("steps", "benefits", "before_after"):
        if not isinstance(getattr(process, list_field), list):
            setattr(process, list_field, [])
    process.extra = extra
    process.sync_title_and_name()


def _upsert_all(db: Session, processes: list[dict[str, Any]], user_id: str | None) -> int:
    now = datetime.now(UTC)
    count = 0
    for data in processes:
        external_id = str(data["id"]) if data.get("id") else None
        existing = None
        if external_id:
            existing = db.query(Process).filter(Process.id == external_id).first()
        if existing is None:
            existing = Process(
                id=external_id or f"process-{uuid.uuid4().hex[:12]}",
                steps=[],
                benefits=[],
                before_after=[],
                extra={},
            )
            db.add(existing)
            logger.debug("Creating process %s", existing.id)
        else:
            logger.debug("Updating process %s", existing.id)
        apply_process_fields(existing, {k: v for k, v in data.items() if k != "id"})
        existing.user_id = user_id
        existing.updated_at = now
        existing.updated_by = user_id
        count += 1
    db.flush()
    return count


def save_processes(
    db: Session,
    processes: list[dict[str, Any]],
    user_id: str | None,
    sleep: Callable[[float], None] = time.sleep,
) -> SaveResult:
    """
    Upsert processes by external id in a single transaction.

    Transient conflicts rerun the whole transaction up to MAX_SAVE_ATTEMPTS times
    with RETRY_BACKOFF_SEC * attempt backoff. Other errors abort immediately.
    Raises ConflictError when every attempt hit a transient conflict.
    """
    attempt = 0
    while True:
        attempt += 1
        try:
            count = _upsert_all(db, processes, user_id)
            db.commit()
            if attempt > 1:
                logger.info("Saved %s processes on attempt %s", count, attempt)
            return SaveResult(count=count, attempts=attempt)
        except Exception as e:
            db.rollback()
            if not is_transient_conflict(e):
                raise
            if attempt == MAX_SAVE_ATTEMPTS:
                logger.error("Save failed after %s attempts: %s", attempt, e)
                raise ConflictError(
                    f"Write conflict persisted after {MAX_SAVE_ATTEMPTS} attempts; please retry.",
                    error="Write conflict",
                ) from e
            delay = RETRY_BACKOFF_SEC * attempt
            logger.warning(
                "Transient conflict saving processes (attempt %s/%s); retrying in %.1fs",
                attempt,
                MAX_SAVE_ATTEMPTS,
                delay,
            )
            sleep(delay)
