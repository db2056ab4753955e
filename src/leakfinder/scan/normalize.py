from __future__ import annotations

import datetime as dt
import re
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Iterable, Optional

from src.leakfinder.scan.models import Transaction


_WS_RE = re.compile(r"\s+")
_DIGIT_RUN_RE = re.compile(r"\d+")
_PUNCT_RE = re.compile(r"[^\w\s#.'-]+")
_DMY_RE = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})\b")
_CURRENCY_RE = re.compile(r"[€$£]|EUR|USD", re.IGNORECASE)

MAX_LABEL_LEN = 64

DEFAULT_BOILERPLATE = (
    "cb",
    "carte",
    "sepa",
    "virement",
    "paiement",
    "prelevement",
    "prélèvement",
    "card",
    "transfer",
    "payment",
    "direct debit",
)


def parse_date(value: str) -> dt.date:
    s = (value or "").strip()
    if not s:
        raise ValueError("Missing date")
    m = _DMY_RE.match(s)
    if m:
        day, month, year = (int(g) for g in m.groups())
        return dt.date(year, month, day)
    try:
        return dt.date.fromisoformat(s[:10])
    except Exception:
        pass
    for fmt in ("%d-%m-%Y", "%d.%m.%Y", "%Y/%m/%d", "%d/%m/%y"):
        try:
            return dt.datetime.strptime(s.split()[0], fmt).date()
        except Exception:
            continue
    raise ValueError(f"Invalid date: {value!r}")


def parse_amount_minor_units(value: str) -> int:
    s = _WS_RE.sub("", value or "")
    s = _CURRENCY_RE.sub("", s)
    if not s:
        raise ValueError("Missing amount")
    s = s.replace(",", ".", 1)
    try:
        d = Decimal(s)
    except InvalidOperation:
        raise ValueError(f"Invalid amount: {value!r}")
    if not d.is_finite():
        raise ValueError(f"Invalid amount: {value!r}")
    return int((d * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _boilerplate_re(words: Iterable[str]) -> Optional[re.Pattern[str]]:
    alts = sorted({w.strip().lower() for w in words if w.strip()}, key=len, reverse=True)
    if not alts:
        return None
    return re.compile(r"\b(" + "|".join(re.escape(w).replace(r"\ ", r"\s+") for w in alts) + r")\b")


_DEFAULT_BOILERPLATE_RE = _boilerplate_re(DEFAULT_BOILERPLATE)


def normalize_label(raw: str, *, boilerplate: Optional[Iterable[str]] = None) -> str:
    """
    Grouping key for a transaction label.

    "CB NETFLIX.COM 12/04" and "CB NETFLIX.COM 18/05" both become "netflix.com # #".
    Truncation happens before boilerplate removal, and removal runs to a fixed
    point, so normalizing an already-normalized label returns it unchanged.
    """
    pattern = _DEFAULT_BOILERPLATE_RE if boilerplate is None else _boilerplate_re(boilerplate)
    s = (raw or "").lower()
    s = _DIGIT_RUN_RE.sub("#", s)
    s = _PUNCT_RE.sub(" ", s)
    s = _WS_RE.sub(" ", s).strip()
    s = s[:MAX_LABEL_LEN].strip()
    if pattern is None:
        return s
    while True:
        cleaned = _WS_RE.sub(" ", pattern.sub(" ", s)).strip()
        if cleaned == s:
            return s
        s = cleaned


def normalize_row(
    cells: list[str],
    *,
    date_index: int,
    label_index: int,
    amount_index: int,
    boilerplate: Optional[Iterable[str]] = None,
) -> Optional[Transaction]:
    def _cell(i: int) -> str:
        return cells[i] if 0 <= i < len(cells) else ""

    try:
        occurred = parse_date(_cell(date_index))
        amount = parse_amount_minor_units(_cell(amount_index))
    except ValueError:
        return None
    label = _cell(label_index).strip()
    return Transaction(
        occurred_on=occurred,
        raw_label=label,
        normalized_label=normalize_label(label, boilerplate=boilerplate),
        amount_minor_units=amount,
    )


def format_minor_units(value: int, currency: str = "EUR") -> str:
    d = (Decimal(int(value)) / Decimal(100)).quantize(Decimal("0.01"))
    s = f"{d:f}"
    if s.endswith(".00"):
        s = s[:-3]
    return f"{s} {currency}"
