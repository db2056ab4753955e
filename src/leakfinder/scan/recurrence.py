from __future__ import annotations

from collections import defaultdict
from typing import Iterable, Sequence

from src.leakfinder.config import DetectionConfig
from src.leakfinder.scan.models import Transaction


def median(values: Sequence[float]) -> float:
    if not values:
        return 0.0
    s = sorted(values)
    n = len(s)
    mid = n // 2
    if n % 2 == 1:
        return float(s[mid])
    return (s[mid - 1] + s[mid]) / 2


def group_debits(txns: Iterable[Transaction]) -> dict[str, list[Transaction]]:
    groups: dict[str, list[Transaction]] = defaultdict(list)
    for t in txns:
        if not t.is_debit:
            continue
        groups[t.group_key].append(t)
    return dict(groups)


def gap_days(txns: Sequence[Transaction]) -> list[int]:
    dates = sorted(t.occurred_on for t in txns)
    return [(dates[i] - dates[i - 1]).days for i in range(1, len(dates))]


def is_eligible(txns: Sequence[Transaction], cfg: DetectionConfig | None = None) -> bool:
    cfg = cfg or DetectionConfig()
    return len(txns) >= cfg.min_occurrences


def is_monthly_cadence(txns: Sequence[Transaction], cfg: DetectionConfig | None = None) -> bool:
    cfg = cfg or DetectionConfig()
    if not is_eligible(txns, cfg):
        return False
    med = median(gap_days(txns))
    return cfg.cadence_min_days <= med <= cfg.cadence_max_days


def is_stable_amount(amounts: Sequence[int], cfg: DetectionConfig | None = None) -> bool:
    """Absolute amounts stay within a flat tolerance OR a relative one around their mean."""
    cfg = cfg or DetectionConfig()
    if len(amounts) < 2:
        return False
    values = [abs(a) for a in amounts]
    avg = sum(values) / len(values)
    if avg <= 0:
        return False
    max_diff = max(abs(v - avg) for v in values)
    return max_diff <= cfg.abs_tolerance_minor_units or (max_diff / avg) <= cfg.rel_tolerance


def is_recurring(txns: Sequence[Transaction], cfg: DetectionConfig | None = None) -> bool:
    cfg = cfg or DetectionConfig()
    return is_monthly_cadence(txns, cfg) and is_stable_amount([t.amount_minor_units for t in txns], cfg)
