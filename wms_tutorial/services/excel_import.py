"""
Excel bulk import: parse a workbook, validate cross-sheet references, replace a collection.

Processes workbooks need a Processes and a Steps sheet (Benefits and BeforeAfter are
optional); presentations workbooks need a Presentations sheet. Sheet names are matched
case-insensitively and each sheet's header row supplies the field names.

Everything is validated before the database is touched. The replace itself deletes
every existing row, verifies the table is empty, inserts the normalized documents and
verifies the final count, all inside one transaction.
"""

import logging
import uuid
from collections import Counter
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import UTC, date, datetime, time
from io import BytesIO
from typing import Any
from zipfile import BadZipFile

from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException
from sqlalchemy import delete
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from wms_tutorial.core.errors import BulkReplaceError, ImportValidationError, ValidationError
from wms_tutorial.models import Presentation, Process
from wms_tutorial.services.presentation_urls import detect_file_type, detect_source_type

logger = logging.getLogger(__name__)

Row = dict[str, Any]
Sheets = Mapping[str, list[Row]]

PROCESSES_SHEET = "Processes"
STEPS_SHEET = "Steps"
BENEFITS_SHEET = "Benefits"
BEFORE_AFTER_SHEET = "BeforeAfter"
PRESENTATIONS_SHEET = "Presentations"

ENTITY_TYPES = ("processes", "presentations")
IMPORT_ACTOR = "excel-import"

_PROCESS_COLUMNS = frozenset(
    {"id", "_id", "title", "name", "description", "category", "userId", "steps", "benefits", "beforeAfter"}
)
_STEP_COLUMNS = frozenset(
    {"id", "title", "description", "order", "duration", "status", "processId", "videoUrl", "imageUrl"}
)


@dataclass
class ImportResult:
    success: bool
    count: int
    message: str


# --- workbook parsing -------------------------------------------------------


def _cell_value(value: Any) -> Any:
    """Convert an openpyxl cell value to a JSON-friendly value."""
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    return value


def parse_workbook(data: bytes) -> dict[str, list[Row]]:
    """
    Read every sheet of an .xlsx file into a list of row dicts.

    The first row is the header. Blank cells are omitted from a row and rows
    with no values are skipped. Raises ValidationError for unreadable files.
    """
    try:
        workbook = load_workbook(BytesIO(data), read_only=True, data_only=True)
    except (InvalidFileException, BadZipFile, KeyError, OSError, ValueError) as e:
        raise ValidationError(f"Could not read Excel file: {e!s}") from e
    sheets: dict[str, list[Row]] = {}
    try:
        for worksheet in workbook.worksheets:
            values = worksheet.iter_rows(values_only=True)
            header = next(values, None)
            if header is None:
                sheets[worksheet.title] = []
                continue
            keys = [
                str(cell).strip() if cell is not None and str(cell).strip() else None
                for cell in header
            ]
            rows: list[Row] = []
            for cells in values:
                row: Row = {}
                for key, cell in zip(keys, cells):
                    if key is None or cell is None or cell == "":
                        continue
                    row[key] = _cell_value(cell)
                if row:
                    rows.append(row)
            sheets[worksheet.title] = rows
    finally:
        workbook.close()
    return sheets


def find_sheet(sheets: Sheets, name: str) -> str | None:
    """Actual sheet name matching name case-insensitively, or None."""
    wanted = name.lower()
    return next((sheet for sheet in sheets if sheet.lower() == wanted), None)


def _sheet_rows(sheets: Sheets, name: str) -> list[Row]:
    sheet = find_sheet(sheets, name)
    return list(sheets[sheet]) if sheet is not None else []


# --- field helpers ----------------------------------------------------------


def _key(value: Any) -> str | None:
    """Identifier as a string, preserved exactly; None when blank."""
    if value is None:
        return None
    if isinstance(value, str):
        return value if value != "" else None
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _truthy(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("true", "yes", "1", "y")
    return bool(value)


def _generated_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:8]}"


def _split_tags(value: Any) -> list[str]:
    if not value:
        return []
    if isinstance(value, list):
        return [str(tag).strip() for tag in value if str(tag).strip()]
    return [tag.strip() for tag in str(value).split(",") if tag.strip()]


# --- validation -------------------------------------------------------------


def validate_process_rows(processes: list[Row], steps: list[Row]) -> None:
    """
    Check referential integrity between the Processes and Steps sheets.

    Raises ImportValidationError (with the offending row count) on the first
    failing rule; nothing has been written at that point.
    """
    missing_ids = [row for row in processes if _key(row.get("id")) is None]
    if missing_ids:
        raise ImportValidationError(
            f"Validation failed: {len(missing_ids)} processes are missing ID fields. "
            "Please add IDs to all processes and try again.",
            offending_rows=len(missing_ids),
        )

    id_counts = Counter(_key(row.get("id")) for row in processes)
    duplicated = sum(count for count in id_counts.values() if count > 1)
    if duplicated:
        raise ImportValidationError(
            f"Validation failed: {duplicated} processes share an ID with another process. "
            "Process IDs must be unique.",
            offending_rows=duplicated,
        )

    missing_parent = [row for row in steps if _key(row.get("processId")) is None]
    if missing_parent:
        raise ImportValidationError(
            f"Validation failed: {len(missing_parent)} steps are missing processId fields. "
            "Please add processId to all steps and try again.",
            offending_rows=len(missing_parent),
        )

    orphaned = [row for row in steps if _key(row.get("processId")) not in id_counts]
    if orphaned:
        raise ImportValidationError(
            f"Validation failed: {len(orphaned)} steps reference process IDs that don't exist "
            "in the Processes sheet. Please fix these references and try again.",
            offending_rows=len(orphaned),
        )


def validate_presentation_rows(presentations: list[Row]) -> None:
    id_counts = Counter(_key(row.get("id")) for row in presentations if _key(row.get("id")))
    duplicated = sum(count for count in id_counts.values() if count > 1)
    if duplicated:
        raise ImportValidationError(
            f"Validation failed: {duplicated} presentations share an ID with another presentation.",
            offending_rows=duplicated,
        )


# --- child-to-parent matching -----------------------------------------------


def match_by_exact_id(child_process_id: str, process_row: Row) -> bool:
    return child_process_id == _key(process_row.get("id"))


def match_by_database_id(child_process_id: str, process_row: Row) -> bool:
    """Match the process's database-assigned identifier (an ``_id`` column), if present."""
    database_id = _key(process_row.get("_id"))
    return database_id is not None and child_process_id == database_id


def match_by_prefix(child_process_id: str, process_row: Row) -> bool:
    """Last resort for truncated ids: either id is a prefix of the other."""
    process_id = _key(process_row.get("id"))
    if not process_id:
        return False
    return child_process_id.startswith(process_id) or process_id.startswith(child_process_id)


MATCHERS: tuple[Callable[[str, Row], bool], ...] = (
    match_by_exact_id,
    match_by_database_id,
    match_by_prefix,
)


def find_parent_index(child_process_id: str, processes: list[Row]) -> int | None:
    """Index of the process a child belongs to; each matcher is tried across all processes first."""
    for matcher in MATCHERS:
        for index, process_row in enumerate(processes):
            if matcher(child_process_id, process_row):
                return index
    return None


def group_children(processes: list[Row], children: list[Row], kind: str) -> list[list[Row]]:
    """Children grouped per process (same order as processes); unmatched rows are dropped."""
    groups: list[list[Row]] = [[] for _ in processes]
    unmatched = 0
    for child in children:
        child_process_id = _key(child.get("processId"))
        index = find_parent_index(child_process_id, processes) if child_process_id else None
        if index is None:
            unmatched += 1
            continue
        groups[index].append(child)
    if unmatched:
        logger.warning("%s %s rows matched no process and were skipped", unmatched, kind)
    return groups


# --- normalization ----------------------------------------------------------


def normalize_step(row: Row) -> Row:
    step: Row = {
        "id": _key(row.get("id")) or _generated_id("step"),
        "title": _text(row.get("title")),
        "description": _text(row.get("description")),
        "order": row.get("order") or 0,
        "duration": row.get("duration") or 0,
        "status": _text(row.get("status")) or "active",
        "videoUrl": _text(row.get("videoUrl")),
    }
    if row.get("imageUrl"):
        step["imageUrl"] = row["imageUrl"]
    for key, value in row.items():
        if key not in _STEP_COLUMNS:
            step[key] = value
    return step


def normalize_benefit(row: Row) -> Row:
    return {
        "id": _key(row.get("id")) or _generated_id("benefit"),
        "title": _text(row.get("title")),
        "description": _text(row.get("description")),
    }


def normalize_before_after(row: Row) -> Row:
    return {
        "id": _key(row.get("id")) or _generated_id("ba"),
        "before": _text(row.get("before")),
        "after": _text(row.get("after")),
        "metric": _text(row.get("metric")),
    }


def normalize_process(
    row: Row,
    steps: list[Row],
    benefits: list[Row],
    before_after: list[Row],
    now: datetime,
) -> Row:
    """Column values for one Process row. The sheet's id is kept exactly as given."""
    title = _text(row.get("title"))
    name = _text(row.get("name"))
    return {
        "id": _key(row.get("id")),
        "title": title or name,
        "name": name or title,
        "description": _text(row.get("description")),
        "category": _text(row.get("category")) or "general",
        "user_id": _key(row.get("userId")),
        "steps": [normalize_step(step) for step in steps],
        "benefits": [normalize_benefit(benefit) for benefit in benefits],
        "before_after": [normalize_before_after(item) for item in before_after],
        "extra": {key: value for key, value in row.items() if key not in _PROCESS_COLUMNS},
        "updated_at": now,
        "updated_by": IMPORT_ACTOR,
    }


def normalize_presentation(row: Row, now: datetime) -> Row:
    url = _text(row.get("url")).strip()
    is_local = _truthy(row.get("isLocal"))
    return {
        "id": _key(row.get("id")) or _generated_id("presentation"),
        "title": _text(row.get("title")),
        "description": _text(row.get("description")),
        "type": _text(row.get("type")) or "general",
        "tags": _split_tags(row.get("tags")),
        "user_id": _key(row.get("userId")),
        "url": url,
        "is_local": is_local,
        "source_type": detect_source_type(url, is_local),
        "file_type": detect_file_type(url),
        "thumbnail_url": _text(row.get("thumbnailUrl")) or None,
        "updated_at": now,
        "updated_by": IMPORT_ACTOR,
    }


# --- collection replace -----------------------------------------------------


def replace_collection(db: Session, model: type, documents: list[Row]) -> int:
    """
    Delete every row of model's table and insert documents, verifying counts.

    Runs as one transaction: any failure rolls back and raises BulkReplaceError.
    """
    name = model.__tablename__
    try:
        before = db.query(model).count()
        logger.info("Replacing %s: %s existing rows, %s incoming", name, before, len(documents))

        db.query(model).delete(synchronize_session=False)
        db.flush()
        remaining = db.query(model).count()
        if remaining > 0:
            logger.warning(
                "ORM delete left %s %s rows; retrying with a table-level delete", remaining, name
            )
            db.execute(delete(model.__table__))
            remaining = db.query(model).count()
        if remaining > 0:
            raise BulkReplaceError(f"Failed to delete all {name}. {remaining} remain.")

        db.add_all([model(**document) for document in documents])
        db.flush()
        after = db.query(model).count()
        if after != len(documents):
            raise BulkReplaceError(
                f"Inserted {name} count mismatch: expected {len(documents)}, found {after}."
            )
        db.commit()
    except BulkReplaceError:
        db.rollback()
        raise
    except SQLAlchemyError as e:
        db.rollback()
        raise BulkReplaceError(f"Failed to replace {name}: {e}") from e
    logger.info("Replaced %s with %s rows", name, len(documents))
    return len(documents)


# --- entry points -----------------------------------------------------------


def import_processes(db: Session, sheets: Sheets) -> ImportResult:
    if find_sheet(sheets, PROCESSES_SHEET) is None or find_sheet(sheets, STEPS_SHEET) is None:
        raise ImportValidationError(
            'Required sheets not found in Excel file. Please make sure your Excel file '
            'contains both "Processes" and "Steps" sheets.'
        )
    processes = _sheet_rows(sheets, PROCESSES_SHEET)
    steps = _sheet_rows(sheets, STEPS_SHEET)
    if not processes:
        raise ImportValidationError("No process data found in Excel file")
    benefits = _sheet_rows(sheets, BENEFITS_SHEET)
    before_after = _sheet_rows(sheets, BEFORE_AFTER_SHEET)
    logger.info(
        "Workbook has %s processes, %s steps, %s benefits, %s before/after rows",
        len(processes),
        len(steps),
        len(benefits),
        len(before_after),
    )

    validate_process_rows(processes, steps)

    steps_by_process = group_children(processes, steps, "step")
    benefits_by_process = group_children(processes, benefits, "benefit")
    before_after_by_process = group_children(processes, before_after, "before/after")
    now = datetime.now(UTC)
    documents = [
        normalize_process(
            row,
            steps_by_process[index],
            benefits_by_process[index],
            before_after_by_process[index],
            now,
        )
        for index, row in enumerate(processes)
    ]
    count = replace_collection(db, Process, documents)
    return ImportResult(
        success=True,
        count=count,
        message=f"Successfully imported {count} processes",
    )


def import_presentations(db: Session, sheets: Sheets) -> ImportResult:
    if find_sheet(sheets, PRESENTATIONS_SHEET) is None:
        raise ImportValidationError("Presentations sheet not found in Excel file")
    presentations = _sheet_rows(sheets, PRESENTATIONS_SHEET)
    if not presentations:
        raise ImportValidationError("No presentation data found in Excel file")

    validate_presentation_rows(presentations)

    now = datetime.now(UTC)
    documents = [normalize_presentation(row, now) for row in presentations]
    count = replace_collection(db, Presentation, documents)
    return ImportResult(
        success=True,
        count=count,
        message=f"Successfully imported {count} presentations",
    )


def import_workbook(db: Session, sheets: Sheets, entity_type: str) -> ImportResult:
    """Validate and import parsed sheets for 'processes' or 'presentations'."""
    if entity_type == "processes":
        return import_processes(db, sheets)
    if entity_type == "presentations":
        return import_presentations(db, sheets)
    raise ValidationError(f"Invalid data type: {entity_type}")
