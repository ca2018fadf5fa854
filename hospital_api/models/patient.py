"""Patient model definitions."""

from sqlalchemy import Column, String

from hospital_api.database import Base


class Patient(Base):
    """Patient profile, keyed by the identity provider uid."""
    __tablename__ = "patients"

    uid = Column(String(128), primary_key=True)
    patient_id = Column(String(64), index=True)  # hospital-issued number
    first_name = Column(String(128))
    last_name = Column(String(128))
    full_name = Column(String(255))
    phone = Column(String(32))
