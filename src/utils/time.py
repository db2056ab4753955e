from __future__ import annotations

import datetime as dt
import os
from functools import lru_cache
from typing import Any
from zoneinfo import ZoneInfo

UTC = dt.timezone.utc

DEFAULT_UI_TIMEZONE = "Europe/Paris"


def utcnow() -> dt.datetime:
    return dt.datetime.now(UTC)


@lru_cache(maxsize=16)
def _zone(name: str) -> ZoneInfo:
    return ZoneInfo(name)


def ui_zone() -> ZoneInfo:
    name = (os.environ.get("UI_TIMEZONE") or "").strip() or DEFAULT_UI_TIMEZONE
    return _zone(name)


def as_utc(value: dt.datetime) -> dt.datetime:
    """Naive datetimes are taken to be UTC already."""
    return value.replace(tzinfo=UTC) if value.tzinfo is None else value.astimezone(UTC)


def format_local(value: Any, fmt: str = "%Y-%m-%d %H:%M %Z") -> str:
    """Jinja filter: UTC timestamps shown in the UI timezone; plain dates pass through."""
    if value is None:
        return "-"
    if isinstance(value, dt.datetime):
        return as_utc(value).astimezone(ui_zone()).strftime(fmt)
    if isinstance(value, dt.date):
        return value.isoformat()
    return str(value)


def format_local_date(value: Any) -> str:
    if isinstance(value, dt.datetime):
        return as_utc(value).astimezone(ui_zone()).date().isoformat()
    return format_local(value)
