import logging
from decimal import Decimal

from fastapi import APIRouter, Depends, Query
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from hospital_api.auth.dependencies import StaffUser, require_admin
from hospital_api.core.errors import database_unavailable
from hospital_api.database import get_db, run_in_transaction
from hospital_api.models.room import Room
from hospital_api.schemas import CamelModel, Money
from hospital_api.utils.documents import new_document_id, utcnow

router = APIRouter(tags=['rooms'])

logger = logging.getLogger(__name__)

ROOM_TYPE_DAILY_RATES = {
    'general': Decimal('800'),
    'semi_private': Decimal('1500'),
    'private': Decimal('3000'),
    'deluxe': Decimal('5000'),
    'vip': Decimal('10000'),
}
DEFAULT_ROOM_NUMBERS = {
    'general': ['101', '102'],
    'semi_private': ['201', '202'],
    'private': ['301'],
    'deluxe': ['401'],
    'vip': ['501'],
}


class RoomResponse(CamelModel):
    id: str
    room_number: str
    room_type: str
    rate_per_day: Money
    status: str


class SeedRoomsResponse(CamelModel):
    success: bool = True
    seeded: bool
    count: int = 0
    message: str | None = None


def build_default_rooms() -> list[Room]:
    now = utcnow()
    return [
        Room(
            id=new_document_id(),
            room_number=room_number,
            room_type=room_type,
            rate_per_day=ROOM_TYPE_DAILY_RATES[room_type],
            status='available',
            created_at=now,
            updated_at=now,
        )
        for room_type, room_numbers in DEFAULT_ROOM_NUMBERS.items()
        for room_number in room_numbers
    ]


@router.get('/rooms', response_model=list[RoomResponse])
def list_rooms(
    room_status: str | None = Query(default=None, alias='status'),
    db: Session = Depends(get_db),
):
    try:
        query = db.query(Room)
        if room_status:
            query = query.filter(Room.status == room_status.strip().lower())
        return query.order_by(Room.room_number.asc()).all()
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.post('/admin/rooms/seed', response_model=SeedRoomsResponse)
def seed_rooms(
    db: Session = Depends(get_db),
    _admin: StaffUser = Depends(require_admin),
):
    def seed(session: Session) -> int:
        if session.query(Room.id).first() is not None:
            return 0
        rooms = build_default_rooms()
        session.add_all(rooms)
        session.flush()
        return len(rooms)

    try:
        count = run_in_transaction(db, seed)
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc

    if not count:
        return SeedRoomsResponse(seeded=False, message='Rooms already exist')

    logger.info('Seeded %s default rooms.', count)
    return SeedRoomsResponse(seeded=True, count=count)
