"""
Engagement recorder - the two writes staff activity produces.

View events are appended and never touched again. Call status is a plain
overwrite of three student fields, so toggling it discards the previous
caller and timestamp.
"""

from typing import Optional

from enrolldesk.logging_config import get_logger, log_with_context
from enrolldesk.store.base import SERVER_TIMESTAMP, DocumentStore

logger = get_logger("roster")


def record_view(store: DocumentStore, student_id: str, user_id: Optional[str]) -> str:
    """Append a view event and return its id."""
    view_id = store.add("views", {
        "student_id": student_id,
        "user_id": user_id,
        "viewed_at": SERVER_TIMESTAMP,
    })
    log_with_context(logger, "INFO", "Student record viewed",
                     context={"student_id": student_id, "user_id": user_id, "view_id": view_id})
    return view_id


def set_call_status(store: DocumentStore, student_id: str, called_today: bool,
                    user_id: Optional[str]) -> None:
    """
    Overwrite called_today, last_called_at and called_by_user_id.

    Raises:
        NotFound: the student does not exist
    """
    if called_today:
        fields = {
            "called_today": True,
            "last_called_at": SERVER_TIMESTAMP,
            "called_by_user_id": user_id,
        }
    else:
        fields = {
            "called_today": False,
            "last_called_at": None,
            "called_by_user_id": None,
        }
    fields["updated_at"] = SERVER_TIMESTAMP
    store.update("students", student_id, fields)

    log_with_context(logger, "INFO",
        "Student marked as {}".format("called" if called_today else "not called"),
        context={"student_id": student_id, "user_id": user_id})
