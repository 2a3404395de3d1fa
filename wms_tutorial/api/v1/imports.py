"""Excel bulk import: accept a workbook (base64 JSON or multipart), validate, replace a collection."""

import base64
import binascii
import json
import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Request, UploadFile
from pydantic import ValidationError as PydanticValidationError

from wms_tutorial.core.errors import ValidationError
from wms_tutorial.middleware.auth import AuthContext, require_admin
from wms_tutorial.middleware.database import DatabaseContext, get_db_context
from wms_tutorial.schemas.imports import ImportRequest, ImportResponse
from wms_tutorial.services.excel_import import ENTITY_TYPES, import_workbook, parse_workbook

logger = logging.getLogger(__name__)

router = APIRouter()

ALLOWED_EXCEL_EXTENSIONS = (".xlsx", ".xlsm")


def _is_upload_file(obj: object) -> bool:
    """True if obj is an uploaded file (UploadFile or file-like with filename and read)."""
    if isinstance(obj, UploadFile):
        return True
    return (
        hasattr(obj, "read")
        and callable(getattr(obj, "read", None))
        and hasattr(obj, "filename")
    )


def decode_file_data(file_data: str) -> bytes:
    """Decode base64 workbook data, dropping a ``data:<mime>;base64,`` prefix if present."""
    if "base64," in file_data:
        file_data = file_data.split("base64,", 1)[1]
    try:
        return base64.b64decode(file_data.strip(), validate=False)
    except (binascii.Error, ValueError) as e:
        raise ValidationError(f"fileData is not valid base64: {e!s}") from e


def _check_size(content: bytes, max_bytes: int) -> None:
    if not content:
        raise ValidationError("No file data provided")
    if len(content) > max_bytes:
        raise ValidationError(f"File size must not exceed {max_bytes // (1024 * 1024)} MB.")


async def _read_workbook_from_request(request: Request, max_bytes: int) -> tuple[bytes, str]:
    """Return (workbook bytes, data type) from a JSON or multipart request."""
    content_type = request.headers.get("content-type", "").split(";")[0].strip().lower()
    if content_type == "application/json":
        try:
            payload = await request.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise ValidationError(f"Invalid JSON: {e!s}") from e
        try:
            body = ImportRequest.model_validate(payload)
        except PydanticValidationError as e:
            first = e.errors()[0]
            field = ".".join(str(part) for part in first.get("loc", ()))
            raise ValidationError(f"{field}: {first.get('msg', 'invalid value')}") from e
        content = decode_file_data(body.file_data)
        _check_size(content, max_bytes)
        return content, body.data_type

    if content_type == "multipart/form-data":
        form = await request.form()
        file = form.get("file")
        if file is None or not _is_upload_file(file):
            # Some clients send the file under another name; use first file-like part.
            file = next((v for v in form.values() if _is_upload_file(v)), None)
        if file is None:
            raise ValidationError("Multipart request must include a 'file' field with an Excel file.")
        filename = (getattr(file, "filename", None) or "").lower()
        if not filename.endswith(ALLOWED_EXCEL_EXTENSIONS):
            raise ValidationError("Uploaded file must be an .xlsx workbook.")
        data_type = str(form.get("dataType") or "")
        if data_type not in ENTITY_TYPES:
            raise ValidationError(f"Invalid data type: {data_type or '(missing)'}")
        content = await file.read()
        _check_size(content, max_bytes)
        return content, data_type

    raise ValidationError("Content-Type must be application/json or multipart/form-data.")


@router.post("", response_model=ImportResponse)
async def import_excel(
    request: Request,
    auth: Annotated[AuthContext, Depends(require_admin)],
    ctx: Annotated[DatabaseContext, Depends(get_db_context)],
) -> ImportResponse:
    """
    Replace the processes or presentations collection from an Excel workbook.

    - **JSON body**: ``{"fileData": "<base64>", "dataType": "processes"}``
    - **File upload**: multipart with a ``file`` field and a ``dataType`` field.

    The workbook is validated completely before anything is deleted. A failed
    validation returns 400 with ``offendingRows`` and leaves the data untouched.
    """
    settings = request.app.state.settings
    content, data_type = await _read_workbook_from_request(request, settings.MAX_IMPORT_FILE_BYTES)
    sheets = parse_workbook(content)
    logger.info(
        "Import of %s requested by %s (%s bytes, sheets=%s)",
        data_type,
        auth.username,
        len(content),
        list(sheets),
    )
    result = import_workbook(ctx.db, sheets, data_type)
    return ImportResponse(success=result.success, message=result.message, count=result.count)
