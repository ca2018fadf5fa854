"""Billing record model definitions."""

from sqlalchemy import JSON, Column, DateTime, Numeric, String

from hospital_api.database import Base
from hospital_api.utils.documents import new_document_id, utcnow


class BillingRecord(Base):
    """Ledger entry created once per discharge."""
    __tablename__ = "billing_records"

    id = Column(String(64), primary_key=True, default=new_document_id)
    admission_id = Column(String(64), index=True, nullable=False)
    appointment_id = Column(String(64))
    patient_id = Column(String(64))
    patient_uid = Column(String(128))
    patient_name = Column(String(255))
    doctor_id = Column(String(128))
    doctor_name = Column(String(255))
    room_charges = Column(Numeric(12, 2), nullable=False, default=0)
    doctor_fee = Column(Numeric(12, 2), nullable=False, default=0)
    other_services = Column(JSON, nullable=False, default=list)  # [{description, amount}]
    total_amount = Column(Numeric(12, 2), nullable=False, default=0)
    generated_at = Column(DateTime, default=utcnow, index=True)
    status = Column(String(32), nullable=False, default="pending")
    payment_method = Column(String(32))
    paid_at = Column(DateTime)
    payment_reference = Column(String(128))
