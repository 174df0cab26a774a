"""Appointment model definitions."""

from datetime import datetime

from sqlalchemy import Column, Date, DateTime, ForeignKey, Integer, String, Time
from sqlalchemy.orm import relationship
from clinic_api.database import Base
from clinic_api.models.procedure import Procedure
from clinic_api.models.provider import Provider


class Appointment(Base):
    """Represents a patient's booking request."""
    __tablename__ = "appointments"

    id = Column(Integer, primary_key=True)
    patient_name = Column(String, nullable=False)
    patient_email = Column(String, nullable=False, index=True)
    patient_phone = Column(String)
    service_type = Column(String, nullable=False)
    procedure_id = Column(Integer, ForeignKey("procedures.id"))
    provider_id = Column(Integer, ForeignKey("providers.id"))
    availability_id = Column(Integer, ForeignKey("appointment_availability.id", ondelete="SET NULL"))
    preferred_date = Column(Date, nullable=False)
    preferred_time = Column(Time, nullable=False)
    duration_minutes = Column(Integer, default=60, nullable=False)
    appointment_type = Column(String, default="consultation")
    notes = Column(String)
    confirmation_code = Column(String, unique=True)
    status = Column(String, default="pending")  # pending/confirmed/completed/no_show/cancelled
    cancellation_reason = Column(String)
    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)

    provider = relationship(Provider, lazy="joined")
    procedure = relationship(Procedure, lazy="joined")
