from fastapi import HTTPException, status


DATABASE_UNAVAILABLE_DETAIL = 'Database unavailable. Verify DATABASE_URL and database credentials.'


class SlotAlreadyBookedError(Exception):
    def __init__(self, slot_key: str):
        super().__init__(f'Slot {slot_key} is already booked')
        self.slot_key = slot_key


class AppointmentNotFoundError(Exception):
    pass


class ForbiddenAppointmentChangeError(Exception):
    pass


class AdmissionNotFoundError(Exception):
    pass


class AdmissionNotActiveError(Exception):
    pass


def database_unavailable() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=DATABASE_UNAVAILABLE_DETAIL,
    )
