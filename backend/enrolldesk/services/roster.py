"""
Roster read model - the student views staff work from.

Listing and fetching both perform a read-time join with the view history
(see enrichment.py); nothing is materialized. Fetching a single student is
itself a write: it records a view event for the requester before reading
the history back.
"""

import time
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from enrolldesk.errors import NotFound
from enrolldesk.logging_config import get_logger, log_with_context
from enrolldesk.services.engagement import record_view, set_call_status
from enrolldesk.services.enrichment import Viewer, resolve_viewers
from enrolldesk.store.base import DocumentStore

logger = get_logger("roster")

# Listing without a filter shows students who have not enrolled yet
DEFAULT_ENROLLED_FILTER = False

TRUE_FILTER_VALUES = ("true", "1")
FALSE_FILTER_VALUES = ("false", "0")


class StudentView(BaseModel):
    """A student as shown to staff, with its view history."""
    model_config = ConfigDict(populate_by_name=True)

    id: str
    first_name: Optional[str] = Field(None, alias="firstName")
    last_name: Optional[str] = Field(None, alias="lastName")
    email: Optional[str] = None
    enrolled: bool = False
    called_today: bool = False
    last_called_at: Optional[datetime] = None
    called_by_user_id: Optional[str] = None
    viewers: List[Viewer] = Field(default_factory=list)


class CallStatus(BaseModel):
    id: str
    called_today: bool = False
    last_called_at: Optional[datetime] = None
    called_by_user_id: Optional[str] = None


def parse_enrolled_filter(value: Optional[str]) -> Optional[bool]:
    """
    Query-string value of `enrolled` to a filter.

    Unset means the default (not enrolled); "true"/"1" and "false"/"0" select
    that state; any other value disables the filter.
    """
    if value is None:
        return DEFAULT_ENROLLED_FILTER
    if value in TRUE_FILTER_VALUES:
        return True
    if value in FALSE_FILTER_VALUES:
        return False
    return None


def _student_view(store: DocumentStore, student: Dict[str, Any]) -> StudentView:
    return StudentView(
        id=student["id"],
        first_name=student.get("first_name"),
        last_name=student.get("last_name"),
        email=student.get("email"),
        enrolled=bool(student.get("enrolled")),
        called_today=bool(student.get("called_today")),
        last_called_at=student.get("last_called_at"),
        called_by_user_id=student.get("called_by_user_id"),
        viewers=resolve_viewers(store, student["id"]),
    )


def _get_student(store: DocumentStore, student_id: str) -> Dict[str, Any]:
    student = store.get("students", student_id)
    if student is None:
        raise NotFound("Student not found", context={"student_id": student_id})
    return student


def list_students(store: DocumentStore,
                  enrolled: Optional[bool] = DEFAULT_ENROLLED_FILTER) -> List[StudentView]:
    """Students with the given enrollment state, newest first. None lists everyone."""
    start_time = time.time()

    where = {} if enrolled is None else {"enrolled": enrolled}
    students = store.query("students", where=where, order_by="created_at", descending=True)
    result = [_student_view(store, s) for s in students]

    duration_ms = (time.time() - start_time) * 1000
    log_with_context(logger, "INFO", "Listed {} students".format(len(result)),
                     extra_data={"enrolled": enrolled, "duration_ms": round(duration_ms, 2)})
    return result


def view_student(store: DocumentStore, student_id: str, requester_id: Optional[str]) -> StudentView:
    """
    Fetch one student and record that the requester viewed it.

    The returned history already contains the view recorded by this call.

    Raises:
        NotFound: unknown student id
    """
    student = _get_student(store, student_id)
    record_view(store, student_id, requester_id)
    return _student_view(store, student)


def update_call_status(store: DocumentStore, student_id: str, called_today: bool,
                       requester_id: Optional[str]) -> CallStatus:
    """
    Mark a student as called (by the requester, now) or clear the mark.

    Raises:
        NotFound: unknown student id
    """
    _get_student(store, student_id)
    set_call_status(store, student_id, called_today, requester_id)

    updated = _get_student(store, student_id)
    return CallStatus(
        id=student_id,
        called_today=bool(updated.get("called_today")),
        last_called_at=updated.get("last_called_at"),
        called_by_user_id=updated.get("called_by_user_id"),
    )
