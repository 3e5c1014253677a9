"""Professional model definitions."""

import uuid

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, func
from backend.database import Base


class Professional(Base):
    """A clinic professional whose agenda is made of generated schedules."""
    __tablename__ = "professionals"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String, nullable=False)
    email = Column(String, nullable=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
