"""Provider model definitions."""

from sqlalchemy import Boolean, Column, Integer, String
from clinic_api.database import Base


class Provider(Base):
    """Represents a clinician who accepts appointments."""
    __tablename__ = "providers"

    id = Column(Integer, primary_key=True, index=True)
    full_name = Column(String, nullable=False)
    title = Column(String)
    specialization = Column(String)
    active = Column(Boolean, default=True, nullable=False)
