from __future__ import annotations

import datetime as dt

from sqlalchemy.types import DateTime, TypeDecorator

from src.utils.time import as_utc


class UTCDateTime(TypeDecorator):
    """
    Timestamp column that is naive UTC in the database and tz-aware UTC in Python.

    Scans, uploads and plans compare `created_at` against month boundaries for
    quotas, so every value read back must carry tzinfo even on SQLite.
    """

    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value: dt.datetime | None, dialect):
        return None if value is None else as_utc(value).replace(tzinfo=None)

    def process_result_value(self, value: dt.datetime | None, dialect):
        return None if value is None else as_utc(value)
