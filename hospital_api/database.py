import logging
from collections.abc import Callable, Iterator
from typing import TypeVar

from fastapi import HTTPException, status
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from hospital_api.core import config


logger = logging.getLogger(__name__)

T = TypeVar('T')

Base = declarative_base()

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
)

engine: Engine | None = None


def _engine_options(url: str) -> dict:
    if not url.startswith('sqlite'):
        return {'pool_pre_ping': True}

    options: dict = {'connect_args': {'check_same_thread': False}}
    if url in {'sqlite://', 'sqlite:///:memory:'}:
        # one shared connection, otherwise every session sees an empty database
        options['poolclass'] = StaticPool
    return options


def init_database(url: str | None = None) -> Engine:
    global engine

    database_url = url or config.DATABASE_URL
    if engine is not None:
        dispose_database()

    engine = create_engine(database_url, echo=config.DATABASE_ECHO, **_engine_options(database_url))
    SessionLocal.configure(bind=engine)
    return engine


def create_schema() -> None:
    if engine is None:
        raise RuntimeError('Database is not initialized. Call init_database() first.')

    # registers every table on Base.metadata
    from hospital_api.models import admission, appointment, billing, patient, room  # noqa: F401

    Base.metadata.create_all(bind=engine)


def dispose_database() -> None:
    global engine

    if engine is None:
        return

    engine.dispose()
    engine = None
    SessionLocal.configure(bind=None)


def get_db() -> Iterator[Session]:
    if engine is None:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail='Server not configured',
        )

    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def run_in_transaction(
    db: Session,
    work: Callable[[Session], T],
    max_attempts: int | None = None,
) -> T:
    """Run ``work`` and commit it as one unit.

    Any exception rolls the session back. ``OperationalError`` (lock timeouts,
    serialization failures) is retried against fresh state; ``work`` must therefore
    re-read whatever its preconditions depend on.
    """
    attempts = max_attempts or config.TRANSACTION_MAX_ATTEMPTS

    for attempt in range(1, attempts + 1):
        try:
            result = work(db)
            db.commit()
            return result
        except OperationalError:
            db.rollback()
            if attempt >= attempts:
                raise
            logger.warning('Transaction conflict, retrying (attempt %s of %s).', attempt, attempts)
        except Exception:
            db.rollback()
            raise

    raise RuntimeError('Transaction attempts exhausted.')
