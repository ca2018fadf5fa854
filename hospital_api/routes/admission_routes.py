import logging
import math
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from decimal import Decimal

from fastapi import APIRouter, Body, Depends, HTTPException, Query, status
from pydantic import Field, field_validator
from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from hospital_api.auth.dependencies import StaffUser, require_staff
from hospital_api.core.errors import AdmissionNotActiveError, AdmissionNotFoundError, database_unavailable
from hospital_api.database import get_db, run_in_transaction
from hospital_api.models.admission import Admission, AdmissionRequest
from hospital_api.models.appointment import Appointment
from hospital_api.models.billing import BillingRecord
from hospital_api.models.patient import Patient
from hospital_api.models.room import Room
from hospital_api.schemas import CamelModel, Money, OtherService
from hospital_api.utils.documents import new_document_id, utcnow

router = APIRouter(tags=['admissions'])

logger = logging.getLogger(__name__)

ADMITTED_STATUS = 'admitted'
COMPLETED_STATUS = 'completed'
PENDING_STATUS = 'pending'
ACCEPTED_STATUS = 'accepted'
CANCELLED_STATUS = 'cancelled'
ROOM_AVAILABLE_STATUS = 'available'
ROOM_OCCUPIED_STATUS = 'occupied'
DAY_MILLISECONDS = 86_400_000
DEFAULT_OTHER_DESCRIPTION = 'Additional charges'
UNKNOWN_PATIENT_NAME = 'unknown'


class AcceptAdmissionRequest(CamelModel):
    room_id: str
    notes: str | None = None

    @field_validator('room_id')
    @classmethod
    def validate_room_id(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError('Missing roomId')
        return normalized


class AcceptAdmissionResponse(CamelModel):
    success: bool = True
    admission_id: str


class CancelAdmissionRequest(CamelModel):
    reason: str | None = None


class CancelAdmissionResponse(CamelModel):
    success: bool = True


class DischargeRequest(CamelModel):
    # bounded to the Numeric(12, 2) billing columns so stored parts still sum to the total
    doctor_fee: Decimal = Field(default=Decimal('0'), ge=0, max_digits=12, decimal_places=2)
    other_charges: Decimal = Field(default=Decimal('0'), ge=0, max_digits=12, decimal_places=2)
    other_description: str | None = None
    notes: str | None = None

    @field_validator('doctor_fee', 'other_charges', mode='before')
    @classmethod
    def default_blank_amounts(cls, value):
        if value is None or value == '':
            return Decimal('0')
        return value


class DischargeResponse(CamelModel):
    success: bool = True
    billing_id: str
    room_charges: Money
    total_amount: Money
    stay_days: int


class AppointmentDetails(CamelModel):
    appointment_date: str | None = None
    appointment_time: str | None = None


class AdmissionResponse(CamelModel):
    id: str
    status: str
    check_in_at: datetime | None = None
    check_out_at: datetime | None = None
    room_id: str | None = None
    room_number: str | None = None
    room_type: str | None = None
    room_rate_per_day: Money | None = None
    appointment_id: str | None = None
    doctor_id: str | None = None
    doctor_name: str | None = None
    patient_id: str | None = None
    patient_uid: str | None = None
    patient_name: str | None = None
    notes: str | None = None
    billing_id: str | None = None
    appointment_details: AppointmentDetails | None = None


class AdmissionListResponse(CamelModel):
    admissions: list[AdmissionResponse]


@dataclass(frozen=True)
class BillingSummary:
    stay_days: int
    room_charges: Decimal
    doctor_fee: Decimal
    other_services: list[OtherService]
    total_amount: Decimal


@dataclass(frozen=True)
class DischargePlan:
    """Everything the discharge transaction writes, computed from a prior read."""
    admission_id: str
    billing_id: str
    check_out_at: datetime
    notes: str | None
    appointment_id: str | None
    room_id: str | None
    patient_id: str | None
    patient_uid: str | None
    patient_name: str | None
    doctor_id: str | None
    doctor_name: str | None
    billing: BillingSummary


def compute_stay_days(check_in_at: datetime, check_out_at: datetime) -> int:
    # partial days round up; a same-day stay is one day
    elapsed_milliseconds = (check_out_at - check_in_at) / timedelta(milliseconds=1)
    return max(1, math.ceil(elapsed_milliseconds / DAY_MILLISECONDS))


def compute_billing(
    check_in_at: datetime,
    check_out_at: datetime,
    room_rate_per_day: Decimal,
    doctor_fee: Decimal,
    other_charges: Decimal,
    other_description: str | None = None,
) -> BillingSummary:
    stay_days = compute_stay_days(check_in_at, check_out_at)
    room_charges = stay_days * room_rate_per_day

    other_services = []
    if other_charges:
        other_services.append(
            OtherService(
                description=(other_description or '').strip() or DEFAULT_OTHER_DESCRIPTION,
                amount=other_charges,
            )
        )

    return BillingSummary(
        stay_days=stay_days,
        room_charges=room_charges,
        doctor_fee=doctor_fee,
        other_services=other_services,
        total_amount=room_charges + doctor_fee + other_charges,
    )


def compose_patient_name(patient: Patient) -> str | None:
    composed = ' '.join(part for part in (patient.first_name, patient.last_name) if part).strip()
    return composed or patient.full_name or None


def needs_name_enrichment(name: str | None) -> bool:
    return not name or name.strip().lower() == UNKNOWN_PATIENT_NAME


def resolve_patient_name(db: Session, stored_name: str | None, patient_uid: str | None) -> str | None:
    """Pick the billing name.

    Precedence: the stored name unless missing or "unknown", then the patient's
    first and last name, then the patient's full name, then the stored value.
    A failed lookup is logged and never raised.
    """
    if not needs_name_enrichment(stored_name) or not patient_uid:
        return stored_name

    try:
        patient = db.get(Patient, patient_uid)
    except SQLAlchemyError:
        db.rollback()
        logger.warning('Failed to enrich patient name for billing record.', exc_info=True)
        return stored_name

    if patient is None:
        return stored_name

    return compose_patient_name(patient) or stored_name


def plan_discharge(
    db: Session,
    admission_id: str,
    data: DischargeRequest,
    now: datetime | None = None,
) -> DischargePlan:
    admission = db.get(Admission, admission_id)
    if admission is None:
        raise AdmissionNotFoundError(admission_id)
    if admission.status != ADMITTED_STATUS:
        raise AdmissionNotActiveError(admission_id)

    check_out_at = now or utcnow()
    check_in_at = admission.check_in_at or check_out_at
    billing = compute_billing(
        check_in_at=check_in_at,
        check_out_at=check_out_at,
        room_rate_per_day=Decimal(admission.room_rate_per_day or 0),
        doctor_fee=data.doctor_fee,
        other_charges=data.other_charges,
        other_description=data.other_description,
    )
    caller_notes = (data.notes or '').strip()

    # copy the admission before the name lookup, which may roll the session back
    plan = DischargePlan(
        admission_id=admission_id,
        billing_id=new_document_id(),
        check_out_at=check_out_at,
        notes=caller_notes or admission.notes or None,
        appointment_id=admission.appointment_id or None,
        room_id=admission.room_id or None,
        patient_id=admission.patient_id or None,
        patient_uid=admission.patient_uid or None,
        patient_name=admission.patient_name,
        doctor_id=admission.doctor_id or None,
        doctor_name=admission.doctor_name or None,
        billing=billing,
    )

    return replace(plan, patient_name=resolve_patient_name(db, plan.patient_name, plan.patient_uid))


def apply_discharge(db: Session, plan: DischargePlan) -> None:
    """Commit the discharge of ``plan`` as one transaction.

    The admission only moves to completed if it is still admitted in the database;
    otherwise AdmissionNotActiveError is raised and nothing is written.
    """

    def commit(session: Session) -> None:
        result = session.execute(
            update(Admission)
            .where(Admission.id == plan.admission_id, Admission.status == ADMITTED_STATUS)
            .values(
                status=COMPLETED_STATUS,
                check_out_at=plan.check_out_at,
                notes=plan.notes,
                billing_id=plan.billing_id,
                updated_at=plan.check_out_at,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise AdmissionNotActiveError(plan.admission_id)

        if plan.appointment_id:
            appointment = session.get(Appointment, plan.appointment_id)
            if appointment is not None:
                appointment.status = COMPLETED_STATUS
                appointment.updated_at = plan.check_out_at

        if plan.room_id:
            room = session.get(Room, plan.room_id)
            if room is not None:
                room.status = ROOM_AVAILABLE_STATUS
                room.updated_at = plan.check_out_at

        billing = plan.billing
        session.add(
            BillingRecord(
                id=plan.billing_id,
                admission_id=plan.admission_id,
                appointment_id=plan.appointment_id,
                patient_id=plan.patient_id,
                patient_uid=plan.patient_uid,
                patient_name=plan.patient_name,
                doctor_id=plan.doctor_id,
                doctor_name=plan.doctor_name,
                room_charges=billing.room_charges,
                doctor_fee=billing.doctor_fee,
                other_services=[service.model_dump(mode='json') for service in billing.other_services],
                total_amount=billing.total_amount,
                generated_at=plan.check_out_at,
                status=PENDING_STATUS,
                payment_method=None,
                paid_at=None,
                payment_reference=None,
            )
        )
        session.flush()

    run_in_transaction(db, commit)


def load_pending_request(session: Session, request_id: str) -> tuple[AdmissionRequest, Appointment]:
    """Return a pending admission request with its appointment, or raise the matching HTTP error."""
    admission_request = session.get(AdmissionRequest, request_id)
    if admission_request is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='Admission request not found')
    if admission_request.status != PENDING_STATUS:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail='Admission request is not pending')
    if not admission_request.appointment_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail='Request missing appointmentId')

    appointment = session.get(Appointment, admission_request.appointment_id)
    if appointment is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='Appointment not found')

    return admission_request, appointment


@router.post('/admission-request/{request_id}/accept', response_model=AcceptAdmissionResponse)
def accept_admission_request(
    request_id: str,
    data: AcceptAdmissionRequest,
    db: Session = Depends(get_db),
):
    def admit(session: Session) -> str:
        admission_request, appointment = load_pending_request(session, request_id)

        room = session.get(Room, data.room_id)
        if room is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='Room not found')

        now = utcnow()
        occupied = session.execute(
            update(Room)
            .where(Room.id == room.id, Room.status == ROOM_AVAILABLE_STATUS)
            .values(status=ROOM_OCCUPIED_STATUS, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        if occupied.rowcount != 1:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail='Room is not available')

        admission = Admission(
            id=new_document_id(),
            appointment_id=appointment.id,
            patient_uid=admission_request.patient_uid or appointment.patient_uid,
            patient_id=admission_request.patient_id,
            patient_name=admission_request.patient_name or appointment.patient_name,
            doctor_id=admission_request.doctor_id or appointment.doctor_id,
            doctor_name=admission_request.doctor_name or appointment.doctor_name,
            room_id=room.id,
            room_number=room.room_number,
            room_type=room.room_type,
            room_rate_per_day=room.rate_per_day or 0,
            status=ADMITTED_STATUS,
            check_in_at=now,
            check_out_at=None,
            notes=(data.notes or '').strip() or None,
            created_by='receptionist',
            created_at=now,
            updated_at=now,
        )

        admission_request.status = ACCEPTED_STATUS
        admission_request.accepted_at = now
        admission_request.accepted_room_id = room.id
        admission_request.updated_at = now

        appointment.status = ADMITTED_STATUS
        appointment.admission_id = admission.id
        appointment.admission_request_id = admission_request.id
        appointment.updated_at = now

        session.add(admission)
        session.flush()
        return admission.id

    try:
        admission_id = run_in_transaction(db, admit)
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc

    logger.info('Admission request %s accepted as admission %s.', request_id, admission_id)
    return AcceptAdmissionResponse(admission_id=admission_id)


@router.post('/admission-request/{request_id}/cancel', response_model=CancelAdmissionResponse)
def cancel_admission_request(
    request_id: str,
    data: CancelAdmissionRequest | None = Body(default=None),
    db: Session = Depends(get_db),
    _staff: StaffUser = Depends(require_staff),
):
    request_id = request_id.strip()
    if not request_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail='Missing requestId')

    reason = ((data.reason if data else None) or '').strip() or None

    def cancel(session: Session) -> None:
        admission_request, appointment = load_pending_request(session, request_id)

        now = utcnow()
        admission_request.status = CANCELLED_STATUS
        admission_request.cancelled_at = now
        admission_request.cancel_reason = reason
        admission_request.updated_at = now

        # the visit ends without an admission
        appointment.status = COMPLETED_STATUS
        appointment.admission_request_id = None
        appointment.updated_at = now
        session.flush()

    try:
        run_in_transaction(db, cancel)
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc

    logger.info('Admission request %s cancelled.', request_id)
    return CancelAdmissionResponse()


@router.get('/admissions', response_model=AdmissionListResponse)
def list_admissions(
    admission_status: str | None = Query(default=None, alias='status'),
    db: Session = Depends(get_db),
    _staff: StaffUser = Depends(require_staff),
):
    try:
        query = db.query(Admission)
        if admission_status:
            query = query.filter(Admission.status == admission_status.strip().lower())
        admissions = query.order_by(Admission.check_in_at.desc()).all()

        appointment_ids = {admission.appointment_id for admission in admissions if admission.appointment_id}
        appointments = {}
        if appointment_ids:
            appointments = {
                appointment.id: appointment
                for appointment in db.query(Appointment).filter(Appointment.id.in_(appointment_ids)).all()
            }
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc

    results = []
    for admission in admissions:
        response = AdmissionResponse.model_validate(admission)
        appointment = appointments.get(admission.appointment_id)
        if appointment is not None:
            response.appointment_details = AppointmentDetails(
                appointment_date=appointment.appointment_date,
                appointment_time=appointment.appointment_time,
            )
        results.append(response)

    return AdmissionListResponse(admissions=results)


@router.post('/admissions/{admission_id}/discharge', response_model=DischargeResponse)
def discharge_admission(
    admission_id: str,
    data: DischargeRequest | None = Body(default=None),
    db: Session = Depends(get_db),
):
    admission_id = admission_id.strip()
    if not admission_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail='Missing admissionId')

    try:
        plan = plan_discharge(db, admission_id, data or DischargeRequest())
        apply_discharge(db, plan)
    except AdmissionNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='Admission not found') from exc
    except AdmissionNotActiveError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='Admission is not currently active',
        ) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc

    logger.info(
        'Discharged admission %s: billing %s, %s day(s), total %s.',
        admission_id,
        plan.billing_id,
        plan.billing.stay_days,
        plan.billing.total_amount,
    )
    return DischargeResponse(
        billing_id=plan.billing_id,
        room_charges=plan.billing.room_charges,
        total_amount=plan.billing.total_amount,
        stay_days=plan.billing.stay_days,
    )
