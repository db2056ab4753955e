from __future__ import annotations

import re
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Sequence

from src.leakfinder.config import DetectionConfig
from src.leakfinder.scan.models import (
    BANK_FEE,
    SUBSCRIPTION,
    EvidenceRow,
    Explain,
    FindingDraft,
    Transaction,
)
from src.leakfinder.scan.normalize import format_minor_units
from src.leakfinder.scan.recurrence import group_debits, is_recurring

# Column widths of the stored rows (db/models.py).
MERCHANT_MAX_LEN = 200
RAW_LABEL_MAX_LEN = 500
GROUP_KEY_MAX_LEN = 100
NAME_MAX_LEN = 100


def mean_abs_rounded(amounts: Sequence[int]) -> int:
    if not amounts:
        return 0
    total = Decimal(sum(abs(a) for a in amounts))
    return int((total / Decimal(len(amounts))).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def yearly_gain(amounts: Sequence[int]) -> int:
    return mean_abs_rounded(amounts) * 12


def _keyword_re(words: Sequence[str]) -> Optional[re.Pattern[str]]:
    alts = [re.escape(w.strip()) for w in words if w.strip()]
    if not alts:
        return None
    # left word boundary only: "fee" matches "fees" but not "coffee"
    return re.compile(r"\b(" + "|".join(alts) + ")", re.IGNORECASE)


def is_bank_fee(key: str, cfg: DetectionConfig | None = None) -> bool:
    cfg = cfg or DetectionConfig()
    pat = _keyword_re(cfg.bank_fee_keywords)
    return bool(pat and pat.search(key or ""))


def classify(key: str, cfg: DetectionConfig | None = None) -> str:
    return BANK_FEE if is_bank_fee(key, cfg) else SUBSCRIPTION


def match_brand(key: str, cfg: DetectionConfig | None = None) -> Optional[str]:
    cfg = cfg or DetectionConfig()
    for pattern, brand in cfg.brands.items():
        if re.search(pattern, key or "", re.IGNORECASE):
            return brand
    return None


def _evidence(entries: Sequence[Transaction], limit: int) -> list[EvidenceRow]:
    ordered = sorted(entries, key=lambda t: t.occurred_on, reverse=True)
    return [
        EvidenceRow(
            occurred_at=t.occurred_on,
            amount_minor_units=abs(t.amount_minor_units),
            merchant=(t.raw_label or t.group_key)[:MERCHANT_MAX_LEN],
            raw_label=t.raw_label[:RAW_LABEL_MAX_LEN],
        )
        for t in ordered[:limit]
    ]


def build_finding(key: str, entries: Sequence[Transaction], cfg: DetectionConfig | None = None) -> FindingDraft:
    cfg = cfg or DetectionConfig()
    category = classify(key, cfg)
    brand = match_brand(key, cfg)
    amounts = [t.amount_minor_units for t in entries]
    avg = mean_abs_rounded(amounts)
    gain = avg * 12
    name = (brand or key)[:NAME_MAX_LEN]
    calc = (
        f"Average {format_minor_units(avg, cfg.currency)}/month x 12 = "
        f"{format_minor_units(gain, cfg.currency)}/year"
    )
    assumptions = [f"Monthly recurrence detected over {len(entries)} occurrences"]

    if category == BANK_FEE:
        return FindingDraft(
            category=BANK_FEE,
            title=f"Bank fees: {name}",
            description="Recurring bank fees detected.",
            estimated_yearly_gain_minor_units=gain,
            confidence=cfg.bank_fee_confidence,
            effort_minutes=cfg.bank_fee_effort_minutes,
            risk_level="low",
            brand=brand,
            group_key=key[:GROUP_KEY_MAX_LEN],
            explain=Explain(
                calc_steps=[calc],
                assumptions=assumptions,
                recommendation="Switching to a no-fee account or another bank can remove these fees.",
            ),
            evidence=_evidence(entries, cfg.max_evidence),
        )

    if brand:
        recommendation = f"Check whether you still use {brand}; cancel or switch to a cheaper plan if not."
    else:
        recommendation = "Check whether this subscription is still useful; cancel it if not."
    return FindingDraft(
        category=SUBSCRIPTION,
        title=f"Subscription detected: {name}",
        description="Recurring transactions detected.",
        estimated_yearly_gain_minor_units=gain,
        confidence=cfg.subscription_confidence,
        effort_minutes=cfg.subscription_effort_minutes,
        risk_level="low",
        brand=brand,
        group_key=key[:GROUP_KEY_MAX_LEN],
        explain=Explain(calc_steps=[calc], assumptions=assumptions, recommendation=recommendation),
        evidence=_evidence(entries, cfg.max_evidence),
    )


def rank_findings(findings: list[FindingDraft], cfg: DetectionConfig | None = None) -> list[FindingDraft]:
    cfg = cfg or DetectionConfig()
    ordered = sorted(findings, key=lambda f: (-f.estimated_yearly_gain_minor_units, f.title))
    return ordered[: cfg.max_findings]


def detect_findings(txns: Sequence[Transaction], cfg: DetectionConfig | None = None) -> tuple[list[FindingDraft], int]:
    """Returns (ranked findings, number of eligible groups considered)."""
    cfg = cfg or DetectionConfig()
    out: list[FindingDraft] = []
    considered = 0
    for key, entries in group_debits(txns).items():
        if len(entries) < cfg.min_occurrences:
            continue
        considered += 1
        if not is_recurring(entries, cfg):
            continue
        out.append(build_finding(key, entries, cfg))
    return rank_findings(out, cfg), considered
