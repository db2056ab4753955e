from __future__ import annotations

import datetime as dt

from src.db.models import Scan, Upload
from src.utils.time import UTC, format_local, format_local_date


def test_scan_and_upload_timestamps_are_utc(session):
    naive = dt.datetime(2025, 3, 1, 12, 0, 0)
    scan = Scan(user_id="u1", status="done", started_at=naive, finished_at=naive.replace(tzinfo=UTC))
    up = Upload(user_id="u1", kind="csv", storage_handle="u1/x.csv", original_name="x.csv")
    session.add_all([scan, up])
    session.commit()
    session.expire_all()

    got = session.query(Scan).one()
    assert got.started_at.tzinfo is not None
    assert got.started_at.utcoffset() == dt.timedelta(0)
    assert got.started_at == dt.datetime(2025, 3, 1, 12, 0, 0, tzinfo=UTC)
    assert session.query(Upload).one().created_at.tzinfo is not None


def test_format_local_uses_ui_timezone(monkeypatch):
    monkeypatch.setenv("UI_TIMEZONE", "Europe/Paris")
    v = dt.datetime(2025, 7, 1, 10, 0, 0, tzinfo=UTC)
    assert format_local(v, fmt="%H:%M") == "12:00"
    assert format_local_date(v) == "2025-07-01"
    assert format_local(None) == "-"
