"""
User model - a staff account.

Accounts are created and authenticated elsewhere; this service only reads
them to resolve the requester and to name the staff behind view events.
"""

import uuid
from sqlalchemy import Column, Text, DateTime, Boolean, String
from enrolldesk.database import Base


class User(Base):
    """SQLAlchemy model for the users table."""
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    email = Column(Text, nullable=False)
    name = Column(Text, nullable=True)
    role = Column(Text, nullable=True)
    role_id = Column(Text, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    is_password_set = Column(Boolean, nullable=False, default=False)
    password_hash = Column(Text, nullable=True,
                           doc="Never leaves the store layer")
    created_at = Column(DateTime(timezone=True), nullable=True)

    def __repr__(self):
        return f"<User(id={self.id}, email='{self.email}')>"
