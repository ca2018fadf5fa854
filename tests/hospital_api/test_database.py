import pytest
from fastapi import HTTPException
from sqlalchemy.exc import IntegrityError, OperationalError

from hospital_api import database
from hospital_api.database import get_db, run_in_transaction


class RecordingSession:
    def __init__(self):
        self.commits = 0
        self.rollbacks = 0

    def commit(self):
        self.commits += 1

    def rollback(self):
        self.rollbacks += 1


def _locked() -> OperationalError:
    return OperationalError('UPDATE admissions', {}, Exception('database is locked'))


def test_run_in_transaction_commits_result() -> None:
    session = RecordingSession()

    assert run_in_transaction(session, lambda _session: 'done') == 'done'
    assert session.commits == 1
    assert session.rollbacks == 0


def test_run_in_transaction_retries_operational_errors() -> None:
    session = RecordingSession()
    attempts = []

    def work(_session):
        attempts.append(len(attempts) + 1)
        if len(attempts) < 3:
            raise _locked()
        return 'committed'

    assert run_in_transaction(session, work, max_attempts=3) == 'committed'
    assert attempts == [1, 2, 3]
    assert session.rollbacks == 2
    assert session.commits == 1


def test_run_in_transaction_gives_up_after_max_attempts() -> None:
    session = RecordingSession()

    def work(_session):
        raise _locked()

    with pytest.raises(OperationalError):
        run_in_transaction(session, work, max_attempts=2)

    assert session.rollbacks == 2
    assert session.commits == 0


@pytest.mark.parametrize(
    'error',
    [ValueError('not active'), IntegrityError('INSERT INTO appointment_slots', {}, Exception('UNIQUE'))],
)
def test_run_in_transaction_does_not_retry_other_errors(error: Exception) -> None:
    session = RecordingSession()
    calls = []

    def work(_session):
        calls.append(1)
        raise error

    with pytest.raises(type(error)):
        run_in_transaction(session, work, max_attempts=3)

    assert calls == [1]
    assert session.rollbacks == 1


def test_get_db_rejects_uninitialized_database() -> None:
    database.dispose_database()

    with pytest.raises(HTTPException) as exception_info:
        next(get_db())

    assert exception_info.value.status_code == 500
    assert exception_info.value.detail == 'Server not configured'


def test_create_schema_requires_initialized_database() -> None:
    database.dispose_database()

    with pytest.raises(RuntimeError):
        database.create_schema()


def test_init_database_binds_session_factory() -> None:
    engine = database.init_database('sqlite://')
    try:
        database.create_schema()
        with database.SessionLocal() as session:
            assert session.get_bind() is engine
    finally:
        database.dispose_database()
