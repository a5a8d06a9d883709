"""
Import API route - bulk roster upload from a spreadsheet.

POST /api/File/students/import accepts one multipart file under the field
name "file" (XLSX or CSV, at most IMPORT_MAX_FILE_BYTES) and returns the
import summary. Rows without an email are reported, not fatal.
"""

import os
from typing import Optional

from fastapi import APIRouter, Depends, File, UploadFile
from pydantic import BaseModel

from enrolldesk.auth import Identity, get_current_identity
from enrolldesk.database import get_store
from enrolldesk.errors import ValidationError
from enrolldesk.logging_config import get_logger, log_with_context
from enrolldesk.services.importer import ImportSummary, import_students
from enrolldesk.services.tabular import parse_spreadsheet
from enrolldesk.store.base import DocumentStore

router = APIRouter()
logger = get_logger("http")

IMPORT_MAX_FILE_BYTES = int(os.getenv("IMPORT_MAX_FILE_BYTES", str(10 * 1024 * 1024)))


class ImportResponse(BaseModel):
    message: str
    summary: ImportSummary


def read_upload(file: Optional[UploadFile]) -> bytes:
    """Bytes of the uploaded file, enforcing presence and the size limit."""
    if file is None:
        raise ValidationError('Missing file field "file" (multipart/form-data)')
    content = file.file.read(IMPORT_MAX_FILE_BYTES + 1)
    if len(content) > IMPORT_MAX_FILE_BYTES:
        raise ValidationError("File exceeds the {} MB upload limit".format(
            IMPORT_MAX_FILE_BYTES // (1024 * 1024)))
    if not content:
        raise ValidationError("Uploaded file is empty")
    return content


@router.post("/api/File/students/import", response_model=ImportResponse)
def import_student_roster(
    file: Optional[UploadFile] = File(None),
    store: DocumentStore = Depends(get_store),
    identity: Identity = Depends(get_current_identity),
):
    """
    Upsert every spreadsheet row into the roster, keyed by email.

    Processing pipeline:
    1. Read and size-check the upload
    2. Parse the first sheet into header-keyed rows
    3. Normalize, batch and commit (see services/importer.py)
    """
    content = read_upload(file)
    rows = parse_spreadsheet(content, filename=file.filename)

    log_with_context(logger, "INFO", "Roster upload received: {}".format(file.filename),
                     context={"user_id": identity.id},
                     extra_data={"bytes": len(content), "rows": len(rows)})

    summary = import_students(store, rows, requester_id=identity.id)
    return ImportResponse(message="Import completed", summary=summary)
