"""Appointment and slot reservation model definitions."""

from sqlalchemy import Column, DateTime, String, Text

from hospital_api.database import Base
from hospital_api.utils.documents import new_document_id, utcnow


class Appointment(Base):
    """Represents a booked consultation with a doctor."""
    __tablename__ = "appointments"

    id = Column(String(64), primary_key=True, default=new_document_id)
    patient_uid = Column(String(128), index=True)
    patient_name = Column(String(255))
    doctor_id = Column(String(128), index=True, nullable=False)
    doctor_name = Column(String(255))
    appointment_date = Column(String(10), nullable=False)  # YYYY-MM-DD
    appointment_time = Column(String(5), nullable=False)  # HH:mm, 24-hour
    status = Column(String(32), nullable=False, default="confirmed")
    admission_id = Column(String(64))
    admission_request_id = Column(String(64))
    notes = Column(Text)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow)


class AppointmentSlot(Base):
    """A taken doctor/date/time slot; the primary key is the derived slot key."""
    __tablename__ = "appointment_slots"

    id = Column(String(255), primary_key=True)
    appointment_id = Column(String(64), nullable=False)
    doctor_id = Column(String(128), nullable=False)
    appointment_date = Column(String(10), nullable=False)
    appointment_time = Column(String(5), nullable=False)
    created_at = Column(DateTime, default=utcnow)
