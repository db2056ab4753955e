from __future__ import annotations

import datetime as dt

from src.leakfinder.config import PlanConfig
from src.leakfinder.scan.models import EvidenceRow, Explain, FindingDraft, PlanItemDraft
from src.leakfinder.scan.plan import fallback_steps
from src.leakfinder.scan.scoring import effort_level, score_action


def _ev(day: str, cents: int, merchant: str, raw: str) -> EvidenceRow:
    return EvidenceRow(occurred_at=dt.date.fromisoformat(day), amount_minor_units=cents, merchant=merchant, raw_label=raw)


def demo_findings() -> list[FindingDraft]:
    return [
        FindingDraft(
            category="subscription",
            title="Forgotten subscriptions (2)",
            description="Two subscriptions with no recent use.",
            estimated_yearly_gain_minor_units=24000,
            confidence=0.9,
            effort_minutes=5,
            risk_level="low",
            group_key="subscriptions",
            explain=Explain(
                calc_steps=["12 EUR + 8 EUR per month", "20 EUR x 12 months = 240 EUR/year"],
                assumptions=["No usage detected over 60 days"],
                recommendation="Cancel the services you no longer use.",
            ),
            evidence=[
                _ev("2025-12-05", 1200, "StreamPlus", "STREAMPLUS"),
                _ev("2025-11-05", 1200, "StreamPlus", "STREAMPLUS"),
                _ev("2025-10-05", 1200, "StreamPlus", "STREAMPLUS"),
                _ev("2025-12-12", 800, "MusicNow", "MUSICNOW"),
                _ev("2025-11-12", 800, "MusicNow", "MUSICNOW"),
                _ev("2025-10-12", 800, "MusicNow", "MUSICNOW"),
            ],
        ),
        FindingDraft(
            category="bank_fee",
            title="Account maintenance fees",
            description="8 EUR charged every month.",
            estimated_yearly_gain_minor_units=9600,
            confidence=0.88,
            effort_minutes=10,
            risk_level="low",
            group_key="bank_fees",
            explain=Explain(
                calc_steps=["8 EUR x 12 months = 96 EUR/year"],
                assumptions=["Constant fees over 12 months"],
                recommendation="Move to a no-fee account.",
            ),
            evidence=[
                _ev(f"2025-{12 - i:02d}-10", 800, "Bank XYZ", "FRAIS TENUE COMPTE") for i in range(6)
            ],
        ),
        FindingDraft(
            category="insurance",
            title="Overpriced car insurance",
            description="Premium above the market benchmark.",
            estimated_yearly_gain_minor_units=22000,
            confidence=0.72,
            effort_minutes=25,
            risk_level="medium",
            group_key="insurance",
            explain=Explain(
                calc_steps=["Current premium 540 EUR", "Benchmark 320 EUR", "Gap 220 EUR/year"],
                assumptions=["Standard driver profile"],
                recommendation="Compare 2-3 insurers and renegotiate.",
            ),
            evidence=[_ev("2025-09-01", 54000, "AssurAuto", "ASSURAUTO PRIME")],
        ),
        FindingDraft(
            category="tax",
            title="Withholding rate possibly too high",
            description="Gap between income and withholding rate.",
            estimated_yearly_gain_minor_units=12000,
            confidence=0.7,
            effort_minutes=10,
            risk_level="medium",
            group_key="tax",
            explain=Explain(
                calc_steps=["Current rate 11%", "Simulated rate 9%"],
                assumptions=["Stable income over 12 months"],
                recommendation="Adjust the rate on the tax portal.",
            ),
            evidence=[_ev("2025-10-15", 0, "Tax office", "TAUX PAS 11%")],
        ),
        FindingDraft(
            category="utilities",
            title="Energy contract above market",
            description="Energy contract more expensive than the market.",
            estimated_yearly_gain_minor_units=9000,
            confidence=0.65,
            effort_minutes=20,
            risk_level="medium",
            group_key="utilities",
            explain=Explain(
                calc_steps=["Average spend 110 EUR/month", "Benchmark 102 EUR/month"],
                assumptions=["Average household consumption"],
                recommendation="Compare 2 offers before renewal.",
            ),
            evidence=[_ev("2025-11-20", 11000, "Energia", "FACTURE ENERGIE")],
        ),
        FindingDraft(
            category="other",
            title="Duplicate cloud storage",
            description="Two cloud services billed in parallel.",
            estimated_yearly_gain_minor_units=6000,
            confidence=0.8,
            effort_minutes=5,
            risk_level="low",
            group_key="other",
            explain=Explain(
                calc_steps=["2 services at 5 EUR/month", "10 EUR x 12 = 120 EUR/year", "Conservative gain 60 EUR/year"],
                assumptions=["A single service is enough"],
                recommendation="Keep a single cloud subscription.",
            ),
            evidence=[
                _ev("2025-12-02", 500, "CloudBox", "CLOUDBOX"),
                _ev("2025-12-03", 500, "DrivePlus", "DRIVEPLUS"),
            ],
        ),
    ]


def demo_plan_items(findings: list[FindingDraft], cfg: PlanConfig | None = None) -> list[PlanItemDraft]:
    out: list[PlanItemDraft] = []
    for idx, f in enumerate(findings):
        out.append(
            PlanItemDraft(
                position=idx + 1,
                action_title=f.title,
                action_steps=fallback_steps(f.title, cfg),
                gain_estimated_yearly_minor_units=f.estimated_yearly_gain_minor_units,
                effort_minutes=f.effort_minutes,
                risk_level=f.risk_level,
                priority_score=float(
                    score_action(f.estimated_yearly_gain_minor_units, effort_level(f.effort_minutes), f.risk_level)
                ),
                category=f.category,
                finding_index=idx,
            )
        )
    return out
