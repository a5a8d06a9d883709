"""
Dashboard API routes - the roster as staff see and work it.

Provides endpoints for:
- Listing students by enrollment state, each with its view history
- Opening a student (records who viewed it)
- Marking a student as called / not called
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from enrolldesk.auth import Identity, get_current_identity
from enrolldesk.database import get_store
from enrolldesk.errors import ValidationError
from enrolldesk.services.roster import (
    CallStatus, StudentView, list_students, parse_enrolled_filter,
    update_call_status, view_student
)
from enrolldesk.store.base import DocumentStore

router = APIRouter()


class CallStatusRequest(BaseModel):
    """Body of the call-status update."""
    called_today: Optional[bool] = None


@router.get("/api/dashboard/students", response_model=List[StudentView])
def get_students(
    enrolled: Optional[str] = Query(None, description='"true"/"1" or "false"/"0"; defaults to not enrolled'),
    store: DocumentStore = Depends(get_store),
    identity: Identity = Depends(get_current_identity),
):
    """List students, newest first, each with who viewed it and when."""
    return list_students(store, enrolled=parse_enrolled_filter(enrolled))


@router.get("/api/dashboard/students/{student_id}", response_model=StudentView)
def get_student(
    student_id: str,
    store: DocumentStore = Depends(get_store),
    identity: Identity = Depends(get_current_identity),
):
    """Open a student record. Every call records a view by the requester."""
    return view_student(store, student_id, identity.id)


@router.patch("/api/dashboard/students/{student_id}/status", response_model=CallStatus)
def patch_student_status(
    student_id: str,
    request: CallStatusRequest,
    store: DocumentStore = Depends(get_store),
    identity: Identity = Depends(get_current_identity),
):
    """Set or clear the called-today mark."""
    if request.called_today is None:
        raise ValidationError("called_today boolean is required in body")
    return update_call_status(store, student_id, request.called_today, identity.id)
