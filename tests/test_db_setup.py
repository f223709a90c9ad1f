# tests/test_db_setup.py
from datetime import datetime, timedelta, timezone

from sqlalchemy.pool import NullPool

from app.db.session import engine_options
from app.db.types import UTCDateTime, ensure_utc


def test_engine_options_per_backend():
    assert engine_options("sqlite+aiosqlite:///./x.db", testing=True) == {"poolclass": NullPool}
    assert engine_options("sqlite+aiosqlite:///./x.db") == {}

    pg = engine_options("postgresql+asyncpg://u:p@localhost/db")
    assert pg["pool_pre_ping"] is True


def test_ensure_utc_treats_naive_as_utc_and_converts_offsets():
    naive = datetime(2026, 3, 1, 9, 0)
    assert ensure_utc(naive) == datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)

    plus_two = datetime(2026, 3, 1, 11, 0, tzinfo=timezone(timedelta(hours=2)))
    converted = ensure_utc(plus_two)
    assert converted.tzinfo is timezone.utc
    assert converted.hour == 9


def test_utc_datetime_column_round_trip_shape():
    column_type = UTCDateTime()
    aware = datetime(2026, 3, 1, 11, 0, tzinfo=timezone(timedelta(hours=2)))

    stored = column_type.process_bind_param(aware, dialect=None)
    assert stored == datetime(2026, 3, 1, 9, 0)
    assert stored.tzinfo is None

    loaded = column_type.process_result_value(stored, dialect=None)
    assert loaded == aware
    assert loaded.tzinfo is timezone.utc

    assert column_type.process_bind_param(None, dialect=None) is None
