"""Availability model definitions."""

import uuid

from sqlalchemy import Boolean, Column, Date, DateTime, ForeignKey, Integer, String, Time, func
from backend.database import Base


class ProfessionalRecurringAvailability(Base):
    """Weekly open interval, keyed by day of week (0=Sunday)."""
    __tablename__ = "professional_recurring_availability"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    professional_id = Column(String(36), ForeignKey("professionals.id", ondelete="CASCADE"), nullable=False)
    day_of_week = Column(Integer, nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class ProfessionalAvailabilityOverride(Base):
    """Date-specific block (is_available=False) or extra opening (is_available=True)."""
    __tablename__ = "professional_availability_overrides"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    professional_id = Column(String(36), ForeignKey("professionals.id", ondelete="CASCADE"), nullable=False)
    override_date = Column(Date, nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    is_available = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
