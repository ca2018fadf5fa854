import logging
from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import JSONResponse
from pydantic import field_validator
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from hospital_api.core.errors import (
    AppointmentNotFoundError,
    ForbiddenAppointmentChangeError,
    SlotAlreadyBookedError,
    database_unavailable,
)
from hospital_api.database import get_db, run_in_transaction
from hospital_api.models.appointment import Appointment, AppointmentSlot
from hospital_api.schemas import CamelModel
from hospital_api.utils.documents import new_document_id, utcnow
from hospital_api.utils.time_slots import InvalidSlotTimeError, build_slot_key, normalize_time

router = APIRouter(tags=['appointments'])

logger = logging.getLogger(__name__)

CONFIRMED_STATUS = 'confirmed'
MAX_APPOINTMENT_NOTES_LENGTH = 600
MISSING_SLOT_PARAMETERS_DETAIL = 'Missing required parameters: doctorId, date, time'
INVALID_SLOT_DETAIL = 'Invalid slot information'
SLOT_TAKEN_DETAIL = 'Slot is already booked'
SLOT_JUST_BOOKED_DETAIL = 'This slot was just booked. Please choose another time.'


def _normalize_appointment_time(value: str) -> str:
    try:
        return normalize_time(value)
    except InvalidSlotTimeError as exc:
        raise ValueError('Invalid appointment time.') from exc


class CreateAppointmentRequest(CamelModel):
    patient_uid: str
    patient_name: str | None = None
    doctor_id: str
    doctor_name: str | None = None
    appointment_date: date
    appointment_time: str
    notes: str | None = None

    @field_validator('patient_uid', 'doctor_id')
    @classmethod
    def validate_identifier(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError('Missing doctor/time information.')
        return normalized

    @field_validator('appointment_time')
    @classmethod
    def validate_appointment_time(cls, value: str) -> str:
        return _normalize_appointment_time(value)

    @field_validator('notes')
    @classmethod
    def validate_notes(cls, value: str | None) -> str | None:
        if value is None:
            return None

        normalized = value.strip()
        if not normalized:
            return None

        if len(normalized) > MAX_APPOINTMENT_NOTES_LENGTH:
            raise ValueError(f'Notes must be {MAX_APPOINTMENT_NOTES_LENGTH} characters or fewer.')

        return normalized


class RescheduleAppointmentRequest(CamelModel):
    appointment_date: date
    appointment_time: str
    patient_uid: str | None = None

    @field_validator('appointment_time')
    @classmethod
    def validate_appointment_time(cls, value: str) -> str:
        return _normalize_appointment_time(value)


class SlotAvailabilityResponse(CamelModel):
    available: bool


class BookingResponse(CamelModel):
    success: bool = True
    id: str


class RescheduleResponse(CamelModel):
    success: bool = True


def derive_slot_key(doctor_id: str | None, slot_date: str | None, slot_time: str | None) -> str | None:
    try:
        return build_slot_key(doctor_id, slot_date, slot_time)
    except InvalidSlotTimeError:
        return None


def reserve_slot(db: Session, appointment: Appointment, slot_key: str) -> None:
    """Stage the slot row for ``appointment``; the slot key is the table's primary key."""
    if db.get(AppointmentSlot, slot_key) is not None:
        raise SlotAlreadyBookedError(slot_key)

    db.add(
        AppointmentSlot(
            id=slot_key,
            appointment_id=appointment.id,
            doctor_id=appointment.doctor_id,
            appointment_date=appointment.appointment_date,
            appointment_time=appointment.appointment_time,
            created_at=utcnow(),
        )
    )


@router.get('/check-slot', response_model=SlotAvailabilityResponse)
def check_slot(
    doctor_id: str | None = Query(default=None, alias='doctorId'),
    slot_date: str | None = Query(default=None, alias='date'),
    slot_time: str | None = Query(default=None, alias='time'),
    db: Session = Depends(get_db),
):
    # advisory only: nothing is reserved here, booking re-checks inside its transaction
    if not all(value and value.strip() for value in (doctor_id, slot_date, slot_time)):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=MISSING_SLOT_PARAMETERS_DETAIL,
        )

    # same canonical date text the booking path keys on
    try:
        canonical_date = date.fromisoformat(slot_date.strip()).isoformat()
    except ValueError:
        canonical_date = None

    slot_key = derive_slot_key(doctor_id, canonical_date, slot_time) if canonical_date else None
    if slot_key is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=INVALID_SLOT_DETAIL,
        )

    try:
        slot = db.get(AppointmentSlot, slot_key)
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc

    if slot is not None:
        return JSONResponse(
            status_code=status.HTTP_409_CONFLICT,
            content={'available': False, 'error': SLOT_TAKEN_DETAIL},
        )

    return SlotAvailabilityResponse(available=True)


@router.post('', response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
def book_appointment(data: CreateAppointmentRequest, db: Session = Depends(get_db)):
    appointment_date = data.appointment_date.isoformat()
    slot_key = derive_slot_key(data.doctor_id, appointment_date, data.appointment_time)
    if slot_key is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=INVALID_SLOT_DETAIL,
        )

    def create(session: Session) -> str:
        now = utcnow()
        appointment = Appointment(
            id=new_document_id(),
            patient_uid=data.patient_uid,
            patient_name=data.patient_name,
            doctor_id=data.doctor_id,
            doctor_name=data.doctor_name,
            appointment_date=appointment_date,
            appointment_time=data.appointment_time,
            status=CONFIRMED_STATUS,
            notes=data.notes,
            created_at=now,
            updated_at=now,
        )
        reserve_slot(session, appointment, slot_key)
        session.add(appointment)
        session.flush()
        return appointment.id

    try:
        appointment_id = run_in_transaction(db, create)
    except (SlotAlreadyBookedError, IntegrityError) as exc:
        # IntegrityError: a concurrent booking inserted the same slot key first
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=SLOT_JUST_BOOKED_DETAIL,
        ) from exc
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc

    logger.info('Booked appointment %s for slot %s.', appointment_id, slot_key)
    return BookingResponse(id=appointment_id)


@router.post('/{appointment_id}/reschedule', response_model=RescheduleResponse)
def reschedule_appointment(
    appointment_id: str,
    data: RescheduleAppointmentRequest,
    db: Session = Depends(get_db),
):
    new_date = data.appointment_date.isoformat()

    def move(session: Session) -> None:
        appointment = session.get(Appointment, appointment_id)
        if appointment is None:
            raise AppointmentNotFoundError(appointment_id)

        if data.patient_uid and appointment.patient_uid and appointment.patient_uid != data.patient_uid:
            raise ForbiddenAppointmentChangeError(appointment_id)

        new_slot_key = derive_slot_key(appointment.doctor_id, new_date, data.appointment_time)
        if new_slot_key is None:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=INVALID_SLOT_DETAIL,
            )

        old_slot_key = derive_slot_key(
            appointment.doctor_id,
            appointment.appointment_date,
            appointment.appointment_time,
        )
        if new_slot_key == old_slot_key:
            return

        appointment.appointment_date = new_date
        appointment.appointment_time = data.appointment_time
        appointment.updated_at = utcnow()
        reserve_slot(session, appointment, new_slot_key)

        if old_slot_key:
            old_slot = session.get(AppointmentSlot, old_slot_key)
            if old_slot is not None:
                session.delete(old_slot)

        session.flush()

    try:
        run_in_transaction(db, move)
    except AppointmentNotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail='Appointment not found',
        ) from exc
    except ForbiddenAppointmentChangeError as exc:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail='You cannot modify this appointment',
        ) from exc
    except (SlotAlreadyBookedError, IntegrityError) as exc:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=SLOT_JUST_BOOKED_DETAIL,
        ) from exc
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc

    return RescheduleResponse()
