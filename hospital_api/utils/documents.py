from datetime import datetime, timezone
from uuid import uuid4


def new_document_id() -> str:
    return uuid4().hex


def utcnow() -> datetime:
    """Naive UTC timestamp, the form stored in every DateTime column."""
    return datetime.now(timezone.utc).replace(tzinfo=None)
