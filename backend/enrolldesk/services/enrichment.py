"""
Viewer enrichment - attaches "who viewed this student and when".

Every view event of a student is joined with the public identity of the
staff member behind it. A user that cannot be resolved (deleted, unknown id)
degrades to `{id}`; the event itself is never dropped. One user lookup is
made per event.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict

from enrolldesk.logging_config import get_logger, log_with_context
from enrolldesk.store.base import DocumentStore

logger = get_logger("roster")


class StaffIdentity(BaseModel):
    """Public projection of a user. Never carries credential material."""
    id: str
    email: Optional[str] = None
    name: Optional[str] = None


class UnresolvedIdentity(BaseModel):
    """The raw id of a user that no longer resolves."""
    model_config = ConfigDict(extra="forbid")

    id: Optional[str] = None


class Viewer(BaseModel):
    viewed_at: Optional[datetime] = None
    # Degraded form first: a bare {id} must not widen into a StaffIdentity
    user: Union[UnresolvedIdentity, StaffIdentity]


def staff_identity(user: Dict[str, Any]) -> StaffIdentity:
    return StaffIdentity(id=user["id"], email=user.get("email"), name=user.get("name"))


def resolve_identity(store: DocumentStore, user_id: Optional[str]) -> Union[StaffIdentity, UnresolvedIdentity]:
    if user_id:
        user = store.get("users", user_id)
        if user is not None:
            return staff_identity(user)
    log_with_context(logger, "DEBUG", "View event user does not resolve",
                     context={"user_id": user_id})
    return UnresolvedIdentity(id=user_id)


def resolve_viewers(store: DocumentStore, student_id: str) -> List[Viewer]:
    """All view events of a student, most recent first, with identities attached."""
    events = store.query("views", where={"student_id": student_id},
                         order_by="viewed_at", descending=True)
    return [
        Viewer(viewed_at=event.get("viewed_at"),
               user=resolve_identity(store, event.get("user_id")))
        for event in events
    ]
