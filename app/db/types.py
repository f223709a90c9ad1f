# app/db/types.py
from datetime import datetime, timezone

from sqlalchemy import DateTime
from sqlalchemy.types import TypeDecorator


def ensure_utc(value: datetime) -> datetime:
    """
    Normalize a datetime to an aware UTC datetime.

    Naive values are assumed to already be in UTC.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class UTCDateTime(TypeDecorator):
    """
    Stores datetimes as naive UTC and always hands back aware UTC datetimes.

    SQLite has no timezone support, so without this values would come back
    naive there and aware on PostgreSQL.
    """

    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return ensure_utc(value).replace(tzinfo=None)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return ensure_utc(value)
