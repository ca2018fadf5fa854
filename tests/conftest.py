import os

import pytest

os.environ.setdefault('DATABASE_URL', 'sqlite://')

from hospital_api import database  # noqa: E402
from hospital_api.auth.dependencies import StaffUser  # noqa: E402
from hospital_api.auth.jwt_handler import create_access_token  # noqa: E402


@pytest.fixture
def db():
    database.init_database('sqlite://')
    database.create_schema()

    session = database.SessionLocal()
    try:
        yield session
    finally:
        session.close()
        database.dispose_database()


@pytest.fixture
def client(db):
    from fastapi.testclient import TestClient

    from hospital_api.main import app

    # no context manager: startup would re-initialize the database from DATABASE_URL
    return TestClient(app, raise_server_exceptions=False)


@pytest.fixture
def receptionist() -> StaffUser:
    return StaffUser(subject='desk@hospital.test', role='receptionist')


@pytest.fixture
def admin_user() -> StaffUser:
    return StaffUser(subject='admin@hospital.test', role='admin')


def bearer(role: str) -> dict[str, str]:
    return {'Authorization': f'Bearer {create_access_token(f"{role}@hospital.test", role)}'}


@pytest.fixture
def staff_headers() -> dict[str, str]:
    return bearer('receptionist')


@pytest.fixture
def patient_headers() -> dict[str, str]:
    return bearer('patient')
