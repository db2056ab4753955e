from __future__ import annotations

import datetime as dt
from dataclasses import dataclass
from typing import Any, Optional

from pydantic import BaseModel, Field


SUBSCRIPTION = "subscription"
BANK_FEE = "bank_fee"


@dataclass(frozen=True)
class Transaction:
    occurred_on: dt.date
    raw_label: str
    normalized_label: str
    amount_minor_units: int  # debit negative, credit positive

    @property
    def is_debit(self) -> bool:
        return self.amount_minor_units < 0

    @property
    def group_key(self) -> str:
        return self.normalized_label or self.raw_label


class ColumnMapping(BaseModel):
    date: str = ""
    label: str = ""
    amount: str = ""


class EvidenceRow(BaseModel):
    occurred_at: dt.date
    amount_minor_units: int
    merchant: str
    raw_label: str


class Explain(BaseModel):
    calc_steps: list[str] = Field(default_factory=list)
    assumptions: list[str] = Field(default_factory=list)
    recommendation: str = ""


class FindingDraft(BaseModel):
    category: str
    title: str
    description: str
    estimated_yearly_gain_minor_units: int
    confidence: float
    effort_minutes: int
    risk_level: str = "low"
    brand: Optional[str] = None
    group_key: str = ""
    explain: Explain = Field(default_factory=Explain)
    evidence: list[EvidenceRow] = Field(default_factory=list)


class PlanItemDraft(BaseModel):
    position: int
    action_title: str
    action_steps: list[str]
    gain_estimated_yearly_minor_units: int
    effort_minutes: int
    risk_level: str
    priority_score: float
    category: str
    status: str = "todo"
    steps_source: str = "fallback"  # generated|fallback
    finding_index: Optional[int] = None
    extra: dict[str, Any] = Field(default_factory=dict)


class AnalysisResult(BaseModel):
    rows_total: int
    transactions_parsed: int
    rows_dropped: int
    debit_count: int
    groups_considered: int
    findings: list[FindingDraft] = Field(default_factory=list)

    @property
    def total_gain_minor_units(self) -> int:
        return sum(f.estimated_yearly_gain_minor_units for f in self.findings)
