"""Appointment model definitions."""

import uuid

from sqlalchemy import Column, DateTime, ForeignKey, String, func
from sqlalchemy.orm import validates
from backend.database import Base

APPOINTMENT_STATUSES = ("scheduled", "confirmed", "completed", "cancelled")
CANCELLED_STATUS = "cancelled"


class Appointment(Base):
    """Represents a booking that holds a schedule unless cancelled."""
    __tablename__ = "appointments"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    professional_id = Column(String(36), ForeignKey("professionals.id"), nullable=False)
    # Cancelled bookings outlive the slot they pointed at.
    schedule_id = Column(String(36), ForeignKey("schedules.id", ondelete="SET NULL"), nullable=True)
    client_id = Column(String(36), nullable=True)
    status = Column(String, nullable=False, default="scheduled")
    notes = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    @validates("status")
    def validate_status(self, key, value):
        if value not in APPOINTMENT_STATUSES:
            raise ValueError(f"Unknown appointment status: {value}")
        return value
