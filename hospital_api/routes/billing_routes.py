import logging
from datetime import datetime

from fastapi import APIRouter, Depends
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from hospital_api.auth.dependencies import StaffUser, require_staff
from hospital_api.core.errors import database_unavailable
from hospital_api.database import get_db
from hospital_api.models.billing import BillingRecord
from hospital_api.models.patient import Patient
from hospital_api.routes.admission_routes import compose_patient_name, needs_name_enrichment
from hospital_api.schemas import CamelModel, Money, OtherService

router = APIRouter(tags=['billing'])

logger = logging.getLogger(__name__)

RECENT_BILLING_RECORDS_LIMIT = 50


class BillingRecordResponse(CamelModel):
    id: str
    admission_id: str
    appointment_id: str | None = None
    patient_id: str | None = None
    patient_uid: str | None = None
    patient_name: str | None = None
    doctor_id: str | None = None
    doctor_name: str | None = None
    room_charges: Money
    doctor_fee: Money
    other_services: list[OtherService]
    total_amount: Money
    generated_at: datetime | None = None
    status: str
    payment_method: str | None = None
    paid_at: datetime | None = None
    payment_reference: str | None = None


class BillingRecordListResponse(CamelModel):
    records: list[BillingRecordResponse]


def find_billing_patient(db: Session, record: BillingRecord) -> Patient | None:
    if record.patient_uid:
        return db.get(Patient, record.patient_uid)
    if record.patient_id:
        return db.query(Patient).filter(Patient.patient_id == record.patient_id).first()
    return None


def enrich_billing_record(db: Session, record: BillingRecord) -> BillingRecordResponse:
    response = BillingRecordResponse.model_validate(record)
    if not needs_name_enrichment(record.patient_name):
        return response

    try:
        patient = find_billing_patient(db, record)
    except SQLAlchemyError:
        db.rollback()
        logger.warning('Failed to enrich billing record %s patient name.', record.id, exc_info=True)
        return response

    if patient is not None:
        response.patient_name = compose_patient_name(patient) or response.patient_name
        response.patient_uid = response.patient_uid or patient.uid
    return response


@router.get('/billing-records', response_model=BillingRecordListResponse)
def list_billing_records(
    db: Session = Depends(get_db),
    _staff: StaffUser = Depends(require_staff),
):
    try:
        records = (
            db.query(BillingRecord)
            .order_by(BillingRecord.generated_at.desc())
            .limit(RECENT_BILLING_RECORDS_LIMIT)
            .all()
        )
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc

    return BillingRecordListResponse(records=[enrich_billing_record(db, record) for record in records])
