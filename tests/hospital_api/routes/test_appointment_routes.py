import json
from datetime import date

import pytest
from fastapi import HTTPException
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from hospital_api import database
from hospital_api.models.appointment import Appointment, AppointmentSlot
from hospital_api.routes import appointment_routes
from hospital_api.routes.appointment_routes import (
    CreateAppointmentRequest,
    RescheduleAppointmentRequest,
    book_appointment,
    check_slot,
    reschedule_appointment,
)


def _booking(**overrides) -> CreateAppointmentRequest:
    payload = {
        'patientUid': 'patient-1',
        'patientName': 'Jane Doe',
        'doctorId': 'doc-1',
        'doctorName': 'Dr. Who',
        'appointmentDate': '2026-01-05',
        'appointmentTime': '2:30 PM',
    }
    payload.update(overrides)
    return CreateAppointmentRequest(**payload)


def test_create_appointment_request_normalizes_fields() -> None:
    request = _booking(patientUid=' patient-1 ', appointmentTime='9:00 am', notes='  ')

    assert request.patient_uid == 'patient-1'
    assert request.appointment_time == '09:00'
    assert request.appointment_date == date(2026, 1, 5)
    assert request.notes is None


def test_create_appointment_request_rejects_unparseable_time() -> None:
    with pytest.raises(ValidationError):
        _booking(appointmentTime='after lunch')


def test_check_slot_reports_available_slot(db) -> None:
    response = check_slot(doctor_id='doc-1', slot_date='2026-01-05', slot_time='14:30', db=db)

    assert response.available is True


@pytest.mark.parametrize(
    ('doctor_id', 'slot_date', 'slot_time'),
    [(None, '2026-01-05', '14:30'), ('doc-1', None, '14:30'), ('doc-1', '2026-01-05', '  ')],
)
def test_check_slot_rejects_missing_parameters(db, doctor_id, slot_date, slot_time) -> None:
    with pytest.raises(HTTPException) as exception_info:
        check_slot(doctor_id=doctor_id, slot_date=slot_date, slot_time=slot_time, db=db)

    assert exception_info.value.status_code == 400
    assert exception_info.value.detail == 'Missing required parameters: doctorId, date, time'


def test_check_slot_rejects_invalid_time(db) -> None:
    with pytest.raises(HTTPException) as exception_info:
        check_slot(doctor_id='doc-1', slot_date='2026-01-05', slot_time='half past two', db=db)

    assert exception_info.value.status_code == 400
    assert exception_info.value.detail == 'Invalid slot information'


@pytest.mark.parametrize('slot_date', ['2026-1-5', '05/01/2026', 'tomorrow'])
def test_check_slot_rejects_non_iso_date(db, slot_date) -> None:
    book_appointment(_booking(), db=db)

    with pytest.raises(HTTPException) as exception_info:
        check_slot(doctor_id='doc-1', slot_date=slot_date, slot_time='14:30', db=db)

    assert exception_info.value.status_code == 400
    assert exception_info.value.detail == 'Invalid slot information'


def test_check_slot_keys_on_canonical_date(db) -> None:
    book_appointment(_booking(), db=db)

    response = check_slot(doctor_id='doc-1', slot_date=' 2026-01-05 ', slot_time='14:30', db=db)

    assert isinstance(response, JSONResponse)
    assert response.status_code == 409


def test_check_slot_reports_conflict_after_booking_in_other_time_format(db) -> None:
    book_appointment(_booking(appointmentTime='14:30'), db=db)

    response = check_slot(doctor_id='doc-1', slot_date='2026-01-05', slot_time='2:30 PM', db=db)

    assert isinstance(response, JSONResponse)
    assert response.status_code == 409
    assert json.loads(response.body) == {'available': False, 'error': 'Slot is already booked'}


def test_check_slot_does_not_reserve(db) -> None:
    check_slot(doctor_id='doc-1', slot_date='2026-01-05', slot_time='14:30', db=db)

    assert db.query(AppointmentSlot).count() == 0


def test_book_appointment_creates_appointment_and_slot(db) -> None:
    response = book_appointment(_booking(), db=db)

    appointment = db.get(Appointment, response.id)
    assert appointment.status == 'confirmed'
    assert appointment.appointment_time == '14:30'

    slot = db.get(AppointmentSlot, 'doc-1_2026-01-05_14-30')
    assert slot.appointment_id == response.id


def test_book_appointment_rejects_taken_slot(db) -> None:
    book_appointment(_booking(), db=db)

    with pytest.raises(HTTPException) as exception_info:
        book_appointment(_booking(patientUid='patient-2', appointmentTime='14:30'), db=db)

    assert exception_info.value.status_code == 409
    assert exception_info.value.detail == 'This slot was just booked. Please choose another time.'
    assert db.query(Appointment).count() == 1


def test_book_appointment_maps_concurrent_insert_to_conflict(db, monkeypatch: pytest.MonkeyPatch) -> None:
    book_appointment(_booking(), db=db)

    def reserve_after_stale_read(session, appointment, slot_key):
        # the competing request read the slot before the first booking committed
        session.add(
            AppointmentSlot(
                id=slot_key,
                appointment_id=appointment.id,
                doctor_id=appointment.doctor_id,
                appointment_date=appointment.appointment_date,
                appointment_time=appointment.appointment_time,
            )
        )

    monkeypatch.setattr(appointment_routes, 'reserve_slot', reserve_after_stale_read)

    racing_session = database.SessionLocal()
    try:
        with pytest.raises(HTTPException) as exception_info:
            book_appointment(_booking(patientUid='patient-2'), db=racing_session)
    finally:
        racing_session.close()

    assert exception_info.value.status_code == 409
    assert db.query(Appointment).count() == 1
    assert db.query(AppointmentSlot).count() == 1


def test_book_appointment_allows_same_time_for_other_doctor(db) -> None:
    book_appointment(_booking(), db=db)
    book_appointment(_booking(doctorId='doc-2'), db=db)

    assert db.query(AppointmentSlot).count() == 2


def test_reschedule_appointment_moves_slot(db) -> None:
    booked = book_appointment(_booking(), db=db)

    reschedule_appointment(
        appointment_id=booked.id,
        data=RescheduleAppointmentRequest(appointmentDate='2026-01-06', appointmentTime='10:00 AM'),
        db=db,
    )

    appointment = db.get(Appointment, booked.id)
    assert appointment.appointment_date == '2026-01-06'
    assert appointment.appointment_time == '10:00'
    assert db.get(AppointmentSlot, 'doc-1_2026-01-05_14-30') is None
    assert db.get(AppointmentSlot, 'doc-1_2026-01-06_10-00').appointment_id == booked.id


def test_reschedule_appointment_rejects_taken_slot(db) -> None:
    first = book_appointment(_booking(), db=db)
    book_appointment(_booking(patientUid='patient-2', appointmentTime='15:00'), db=db)

    with pytest.raises(HTTPException) as exception_info:
        reschedule_appointment(
            appointment_id=first.id,
            data=RescheduleAppointmentRequest(appointmentDate='2026-01-05', appointmentTime='3:00 PM'),
            db=db,
        )

    assert exception_info.value.status_code == 409
    assert db.get(Appointment, first.id).appointment_time == '14:30'
    assert db.get(AppointmentSlot, 'doc-1_2026-01-05_14-30') is not None


def test_reschedule_appointment_returns_not_found_when_missing(db) -> None:
    with pytest.raises(HTTPException) as exception_info:
        reschedule_appointment(
            appointment_id='missing',
            data=RescheduleAppointmentRequest(appointmentDate='2026-01-06', appointmentTime='10:00'),
            db=db,
        )

    assert exception_info.value.status_code == 404
    assert exception_info.value.detail == 'Appointment not found'


def test_reschedule_appointment_rejects_other_patient(db) -> None:
    booked = book_appointment(_booking(), db=db)

    with pytest.raises(HTTPException) as exception_info:
        reschedule_appointment(
            appointment_id=booked.id,
            data=RescheduleAppointmentRequest(
                appointmentDate='2026-01-06',
                appointmentTime='10:00',
                patientUid='someone-else',
            ),
            db=db,
        )

    assert exception_info.value.status_code == 403
    assert exception_info.value.detail == 'You cannot modify this appointment'


def test_check_slot_endpoint_returns_error_bodies(client) -> None:
    available = client.get('/appointments/check-slot', params={'doctorId': 'doc-1', 'date': '2026-01-05', 'time': '14:30'})
    assert available.status_code == 200
    assert available.json() == {'available': True}

    booked = client.post(
        '/appointments',
        json={
            'patientUid': 'patient-1',
            'doctorId': 'doc-1',
            'appointmentDate': '2026-01-05',
            'appointmentTime': '2:30 PM',
        },
    )
    assert booked.status_code == 201
    assert booked.json()['success'] is True

    taken = client.get('/appointments/check-slot', params={'doctorId': 'doc-1', 'date': '2026-01-05', 'time': '14:30'})
    assert taken.status_code == 409
    assert taken.json() == {'available': False, 'error': 'Slot is already booked'}

    missing = client.get('/appointments/check-slot', params={'doctorId': 'doc-1'})
    assert missing.status_code == 400
    assert missing.json() == {'error': 'Missing required parameters: doctorId, date, time'}


def test_book_endpoint_reports_validation_error_as_bad_request(client) -> None:
    response = client.post(
        '/appointments',
        json={
            'patientUid': 'patient-1',
            'doctorId': 'doc-1',
            'appointmentDate': '2026-01-05',
            'appointmentTime': 'whenever',
        },
    )

    assert response.status_code == 400
    assert response.json() == {'error': 'Invalid appointment time.'}


def test_check_slot_endpoint_requires_configured_database(client) -> None:
    database.dispose_database()

    response = client.get('/appointments/check-slot', params={'doctorId': 'doc-1', 'date': '2026-01-05', 'time': '14:30'})

    assert response.status_code == 500
    assert response.json() == {'error': 'Server not configured'}
