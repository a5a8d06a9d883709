from enrolldesk.models.student import Student
from enrolldesk.models.view_event import ViewEvent
from enrolldesk.models.user import User

__all__ = ["Student", "ViewEvent", "User"]
