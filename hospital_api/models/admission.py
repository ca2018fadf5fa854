"""Admission model definitions."""

from sqlalchemy import Column, DateTime, Numeric, String, Text

from hospital_api.database import Base
from hospital_api.utils.documents import new_document_id, utcnow


class AdmissionRequest(Base):
    """A doctor's request to admit the patient of an appointment."""
    __tablename__ = "admission_requests"

    id = Column(String(64), primary_key=True, default=new_document_id)
    appointment_id = Column(String(64))
    patient_uid = Column(String(128))
    patient_id = Column(String(64))
    patient_name = Column(String(255))
    doctor_id = Column(String(128))
    doctor_name = Column(String(255))
    status = Column(String(32), nullable=False, default="pending")  # pending/accepted/cancelled
    accepted_room_id = Column(String(64))
    accepted_at = Column(DateTime)
    cancelled_at = Column(DateTime)
    cancel_reason = Column(Text)
    notes = Column(Text)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow)


class Admission(Base):
    """Represents a patient's inpatient stay."""
    __tablename__ = "admissions"

    id = Column(String(64), primary_key=True, default=new_document_id)
    status = Column(String(32), nullable=False, default="admitted")  # admitted/completed
    check_in_at = Column(DateTime)
    check_out_at = Column(DateTime)
    room_id = Column(String(64))
    room_number = Column(String(16))
    room_type = Column(String(32))
    room_rate_per_day = Column(Numeric(12, 2), default=0)
    appointment_id = Column(String(64))
    doctor_id = Column(String(128))
    doctor_name = Column(String(255))
    patient_id = Column(String(64))
    patient_uid = Column(String(128))
    patient_name = Column(String(255))
    notes = Column(Text)
    billing_id = Column(String(64))
    created_by = Column(String(32))
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow)
