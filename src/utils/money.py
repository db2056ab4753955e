from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any


def to_cents(value: Any) -> int | None:
    """Integer minor units from an int, Decimal or numeric string; None when not a finite number."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    try:
        d = Decimal(str(value).strip())
    except InvalidOperation:
        return None
    return int(d.quantize(Decimal(1), rounding=ROUND_HALF_UP)) if d.is_finite() else None


def format_cents(value: Any, currency: str = "EUR", dash: str = "-") -> str:
    """
    Jinja filter for amounts stored in minor units.

    123456 renders "1,234.56 EUR", whole amounts drop the decimals ("1,200 EUR").
    Missing values render `dash`; anything non-numeric is echoed back stripped.
    """
    cents = to_cents(value)
    if cents is None:
        return ("" if value is None else str(value).strip()) or dash

    whole, frac = divmod(abs(cents), 100)
    body = f"{whole:,}" if frac == 0 else f"{whole:,}.{frac:02d}"
    return f"{'-' if cents < 0 else ''}{body} {currency}"
