"""UTC time helpers shared by every store."""

from datetime import datetime, timezone
from typing import Callable, Optional

Clock = Callable[[], datetime]

_DB_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"


def utc_now() -> datetime:
    """Get current UTC datetime."""
    return datetime.now(timezone.utc)


def to_db_timestamp(value: datetime) -> str:
    """
    Render a datetime as fixed-width UTC ISO-8601 text.

    Fixed width (always microseconds, always `Z`) keeps lexical order equal
    to chronological order, so `<=` comparisons in SQL behave the same on
    SQLite and PostgreSQL.
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime(_DB_FORMAT)


def from_db_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    return datetime.strptime(value, _DB_FORMAT).replace(tzinfo=timezone.utc)
