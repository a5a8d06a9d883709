"""
Bulk roster import - normalize, batch, commit, summarize.

Processing pipeline (strictly sequential):
1. Normalize each parsed row onto the canonical student fields
2. Skip rows without an email, recording the row number and a reason
3. Turn every valid row into a merge upsert keyed by the student key
4. Commit a batch atomically each time it reaches the batch size
5. Commit the trailing partial batch and return the summary

Re-importing the same file is idempotent: the key is derived from the
email, fields from the sheet overwrite, fields not in the sheet survive, and
created_at is only written when the student did not exist yet.

A store failure aborts the import. Batches committed before the failure stay
committed; the raised StoreError says how many rows that covers.
"""

import time
from typing import Any, Dict, List, Mapping, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field

from enrolldesk.errors import StoreError
from enrolldesk.logging_config import get_logger, log_with_context
from enrolldesk.services.normalizer import NormalizedRow, normalize_row, student_key
from enrolldesk.store.base import MAX_BATCH_OPS, SERVER_TIMESTAMP, DocumentStore, WriteBatch

logger = get_logger("import")

MAX_BATCH_SIZE = MAX_BATCH_OPS

# Parsed row 0 sits on sheet row 2: sheet rows are 1-based and row 1 is the header
HEADER_ROW_OFFSET = 2

MISSING_EMAIL_REASON = "Missing required email column"


class RowError(BaseModel):
    """Diagnostic for a row that was left out of the import."""
    row: int
    reason: str


class ImportSummary(BaseModel):
    """Outcome of one import request."""
    model_config = ConfigDict(populate_by_name=True)

    total_rows: int = Field(0, alias="totalRows")
    processed: int = 0
    skipped: int = 0
    errors: List[RowError] = Field(default_factory=list)

    def record_processed(self) -> None:
        self.processed += 1

    def record_skipped(self, row: int, reason: str) -> None:
        self.skipped += 1
        self.errors.append(RowError(row=row, reason=reason))


class UpsertBatcher:
    """
    Collects student upserts and commits them in bounded atomic batches.

    `commit_sizes` lists the size of every committed batch, in order.
    """

    def __init__(self, store: DocumentStore, batch_size: int = MAX_BATCH_SIZE):
        if not 1 <= batch_size <= MAX_BATCH_OPS:
            raise ValueError("batch_size must be between 1 and {}".format(MAX_BATCH_OPS))
        self.store = store
        self.batch_size = batch_size
        self.commit_sizes: List[int] = []
        self._batch: WriteBatch = store.batch()

    @property
    def committed_ops(self) -> int:
        return sum(self.commit_sizes)

    @property
    def pending_ops(self) -> int:
        return len(self._batch)

    def add(self, key: str, data: Dict[str, Any], on_create: Dict[str, Any]) -> None:
        self._batch.upsert("students", key, data, on_create=on_create)
        if len(self._batch) >= self.batch_size:
            self.flush()

    def flush(self) -> None:
        """Commit the in-flight batch, if it holds anything, and start a new one."""
        if not len(self._batch):
            return
        size = self._batch.commit()
        self.commit_sizes.append(size)
        self._batch = self.store.batch()
        log_with_context(logger, "DEBUG", "Committed import batch of {} rows".format(size),
                         extra_data={"batch_number": len(self.commit_sizes),
                                     "committed_rows": self.committed_ops})


def student_upsert(row: NormalizedRow, requester_id: Optional[str] = None):
    """Split a valid row into (fields to merge, fields written only on insert)."""
    data = {
        "email": row.email,
        "first_name": row.first_name,
        "last_name": row.last_name,
        "enrolled": row.enrolled,
        "phone": row.phone,
        "notes": row.notes,
        "updated_at": SERVER_TIMESTAMP,
    }
    on_create = {
        "created_at": SERVER_TIMESTAMP,
        "created_by": requester_id,
        "called_today": False,
    }
    return data, on_create


def import_students(store: DocumentStore, raw_rows: Sequence[Mapping[Any, Any]],
                    requester_id: Optional[str] = None,
                    batch_size: int = MAX_BATCH_SIZE) -> ImportSummary:
    """
    Upsert every row that has an email and report what happened to the rest.

    Raises:
        StoreError: a batch commit failed; earlier batches remain committed
    """
    start_time = time.time()
    summary = ImportSummary(total_rows=len(raw_rows))
    batcher = UpsertBatcher(store, batch_size=batch_size)

    log_with_context(logger, "INFO", "Starting import of {} rows".format(len(raw_rows)),
                     context={"user_id": requester_id})

    try:
        for index, raw_row in enumerate(raw_rows):
            row = normalize_row(raw_row)
            if not row.is_valid:
                summary.record_skipped(index + HEADER_ROW_OFFSET, MISSING_EMAIL_REASON)
                continue

            data, on_create = student_upsert(row, requester_id)
            batcher.add(student_key(row.email), data, on_create)
            summary.record_processed()

        batcher.flush()
    except StoreError as e:
        committed = batcher.committed_ops
        log_with_context(logger, "ERROR",
            "Import aborted by storage failure after {} of {} rows were committed".format(
                committed, summary.total_rows),
            context={"user_id": requester_id},
            extra_data={"committed_rows": committed, "batches_committed": len(batcher.commit_sizes),
                        "total_rows": summary.total_rows})
        raise StoreError(
            "Import did not complete: storage failure after {} of {} rows were committed".format(
                committed, summary.total_rows),
            context={"committed_rows": committed, **e.context},
        ) from e

    duration_ms = (time.time() - start_time) * 1000
    log_with_context(logger, "INFO",
        "Import complete: {} processed, {} skipped in {} batches".format(
            summary.processed, summary.skipped, len(batcher.commit_sizes)),
        context={"user_id": requester_id},
        extra_data={"duration_ms": round(duration_ms, 2), "total_rows": summary.total_rows})

    return summary
