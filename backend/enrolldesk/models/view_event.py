"""
ViewEvent model - one staff member opening one student record.

Rows are append-only. student_id and user_id are weak references: deleting
a student or a user leaves its view events in place.
"""

import uuid
from sqlalchemy import Column, DateTime, String, Index
from enrolldesk.database import Base


class ViewEvent(Base):
    """SQLAlchemy model for the views table."""
    __tablename__ = "views"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    student_id = Column(String(320), nullable=False,
                        doc="Student that was opened")
    user_id = Column(String(36), nullable=True,
                     doc="Staff member who opened the record")
    viewed_at = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("ix_views_student_id_viewed_at", "student_id", "viewed_at"),
    )

    def __repr__(self):
        return f"<ViewEvent(id={self.id}, student={self.student_id}, user={self.user_id})>"
