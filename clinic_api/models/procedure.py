"""Procedure model definitions."""

from sqlalchemy import Boolean, Column, ForeignKey, Integer, String, Table
from clinic_api.database import Base


procedure_providers = Table(
    "procedure_providers",
    Base.metadata,
    Column("procedure_id", Integer, ForeignKey("procedures.id", ondelete="CASCADE"), primary_key=True),
    Column("provider_id", Integer, ForeignKey("providers.id", ondelete="CASCADE"), primary_key=True),
)


class Procedure(Base):
    """Represents a bookable treatment offered by the clinic."""
    __tablename__ = "procedures"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    duration_minutes = Column(Integer)
    price_range = Column(String)
    active = Column(Boolean, default=True, nullable=False)
