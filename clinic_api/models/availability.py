"""Availability model definitions."""

from datetime import datetime

from sqlalchemy import Boolean, Column, Date, DateTime, ForeignKey, Integer, String, Time
from sqlalchemy.orm import relationship
from clinic_api.database import Base
from clinic_api.models.provider import Provider


class AppointmentAvailability(Base):
    """A provider's open booking window on a single date."""
    __tablename__ = "appointment_availability"

    id = Column(Integer, primary_key=True)
    provider_id = Column(Integer, ForeignKey("providers.id"), nullable=False, index=True)
    date = Column(Date, nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    slot_duration_minutes = Column(Integer, default=60, nullable=False)
    current_bookings = Column(Integer, default=0, nullable=False)
    max_bookings = Column(Integer, default=1, nullable=False)
    available = Column(Boolean, default=True, nullable=False)
    blocked_reason = Column(String)
    created_at = Column(DateTime, default=datetime.now)

    provider = relationship(Provider, lazy="joined")
