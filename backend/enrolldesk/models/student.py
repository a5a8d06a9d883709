"""
Student model - a prospective student on the operator's roster.

The primary key is the URL-safe encoding of the normalized email, so a
re-import of the same person always lands on the same row. Engagement
status (called_today, last_called_at, called_by_user_id) lives on the
row itself and is overwritten on every status change.
"""

from sqlalchemy import Column, Text, DateTime, Boolean, String, Index
from enrolldesk.database import Base


class Student(Base):
    """
    SQLAlchemy model for the students table.

    created_at is written once, on insert; updated_at on every write.
    """
    __tablename__ = "students"

    id = Column(String(320), primary_key=True,
                doc="Encoded normalized email, e.g. jane.doe%40example.com")
    email = Column(Text, nullable=False,
                   doc="Trimmed, lower-cased email")
    first_name = Column(Text, nullable=True, default="")
    last_name = Column(Text, nullable=True, default="")
    enrolled = Column(Boolean, nullable=False, default=False,
                      doc="Whether the student has enrolled in a program")
    phone = Column(Text, nullable=True, default="")
    notes = Column(Text, nullable=True, default="")
    called_today = Column(Boolean, nullable=False, default=False)
    last_called_at = Column(DateTime(timezone=True), nullable=True,
                            doc="When a staff member last marked the student as called")
    called_by_user_id = Column(String(36), nullable=True,
                               doc="Staff member who marked the student as called")
    created_by = Column(String(36), nullable=True,
                        doc="Staff member whose import created the record")
    created_at = Column(DateTime(timezone=True), nullable=True)
    updated_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("ix_students_enrolled_created_at", "enrolled", "created_at"),
    )

    def __repr__(self):
        return f"<Student(id={self.id}, email='{self.email}', enrolled={self.enrolled})>"
