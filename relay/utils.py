import uuid
from datetime import datetime, timezone


def utcnow() -> datetime:
    """Текущее время в UTC."""
    return datetime.now(timezone.utc)


def new_id() -> str:
    """Случайный идентификатор (uuid4, 128 бит из os.urandom)."""
    return uuid.uuid4().hex
