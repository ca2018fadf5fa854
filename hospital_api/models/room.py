"""Room model definitions."""

from sqlalchemy import Column, DateTime, Numeric, String

from hospital_api.database import Base
from hospital_api.utils.documents import new_document_id, utcnow


class Room(Base):
    """Represents an inpatient room."""
    __tablename__ = "rooms"

    id = Column(String(64), primary_key=True, default=new_document_id)
    room_number = Column(String(16), nullable=False)
    room_type = Column(String(32), nullable=False)
    rate_per_day = Column(Numeric(12, 2), nullable=False, default=0)
    status = Column(String(32), nullable=False, default="available")  # available/occupied
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow)
