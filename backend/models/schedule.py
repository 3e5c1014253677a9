"""Schedule (bookable slot) model definitions."""

import uuid

from sqlalchemy import Column, DateTime, ForeignKey, String, UniqueConstraint, func
from backend.database import Base


class Schedule(Base):
    """A bookable slot at an absolute UTC instant. Rows are owned by the reconciler."""
    __tablename__ = "schedules"
    __table_args__ = (
        UniqueConstraint("professional_id", "start_time", name="uq_schedules_professional_start_time"),
    )

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    professional_id = Column(String(36), ForeignKey("professionals.id", ondelete="CASCADE"), nullable=False)
    start_time = Column(DateTime(timezone=True), nullable=False)
    end_time = Column(DateTime(timezone=True), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
