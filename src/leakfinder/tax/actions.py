from __future__ import annotations

import logging
from typing import Any, Optional

from pydantic import BaseModel, Field

from src.core.text_generation import TextGenerator
from src.leakfinder.scan.models import PlanItemDraft


log = logging.getLogger(__name__)

TAX_POSITION_BASE = 100
TAX_EFFORT_MINUTES = 15


class TaxAnswers(BaseModel):
    salary: float = 0.0  # average monthly salary, EUR
    km: float = 0.0  # yearly home-work distance
    children: int = 0
    donations: float = 0.0  # EUR per year
    notes: str = ""


class TaxAction(BaseModel):
    title: str
    gain_estimate: float  # EUR per year
    proof: str = ""
    reasoning: list[str] = Field(default_factory=list)
    steps: list[str] = Field(default_factory=list)
    score: float = 80


def clamp(value: float, lo: float, hi: float) -> float:
    return min(hi, max(lo, value))


def default_tax_actions(answers: TaxAnswers) -> list[TaxAction]:
    actions: list[TaxAction] = []

    if answers.salary > 0:
        annual = answers.salary * 12
        gain = clamp(round(annual * 0.015), 400, 1800)
        actions.append(
            TaxAction(
                title="Adjust your withholding rate",
                gain_estimate=gain,
                proof=f"Declared average monthly salary: {answers.salary:g} EUR",
                reasoning=[
                    "Your withholding rate can be updated to match your current income.",
                    "Adjusting it avoids a large catch-up payment later.",
                    "You gain cash flow right away.",
                ],
                steps=[
                    "Sign in to the tax portal.",
                    "Open 'Manage my withholding'.",
                    "Choose 'Update after an income change'.",
                    "Enter your income and confirm.",
                ],
                score=90,
            )
        )

    if answers.donations > 0:
        gain = clamp(round(answers.donations * 0.66), 60, 800)
        actions.append(
            TaxAction(
                title="Declare donations not yet claimed",
                gain_estimate=gain,
                proof=f"Detected or estimated donations: {answers.donations:g} EUR",
                reasoning=[
                    "Donations to charities give a tax reduction.",
                    "The rate is usually 66%.",
                    "A large share of your donations can come back.",
                ],
                steps=[
                    "Sign in to the tax portal and open your return.",
                    "Find the 'Donations to charities' section.",
                    "Enter the total amount donated.",
                    "Confirm your return.",
                ],
                score=85,
            )
        )

    if answers.km > 0:
        gain = clamp(round(answers.km * 0.63), 500, 2500)
        actions.append(
            TaxAction(
                title="Claim your mileage expenses",
                gain_estimate=gain,
                proof=f"Estimated home-work distance: {answers.km:g} km/year",
                reasoning=[
                    "Actual mileage costs can replace the flat deduction.",
                    "The mileage scale values declared kilometres highly.",
                    "This can lower your tax significantly.",
                ],
                steps=[
                    "Sign in to the tax portal and open your return.",
                    "Choose 'Actual expenses' instead of the flat rate.",
                    "Compute your home-work kilometres with the mileage scale.",
                    "Enter the total and confirm.",
                ],
                score=92,
            )
        )

    return actions


def _tax_prompt(answers: TaxAnswers) -> str:
    return (
        "You are a practical, reassuring tax expert.\n"
        f"Average monthly salary: {answers.salary:g} EUR\n"
        f"Declared home-work distance: {answers.km:g} km/year\n"
        f"Donations: {answers.donations:g} EUR\n"
        f"Dependent children: {answers.children}\n"
        f"Other information: {answers.notes}\n\n"
        "For each tax opportunity: check it applies, estimate the net yearly gain, give the proof, "
        "explain in 3 short lines why it saves money, and give 4-5 concrete steps.\n"
        'Reply only in JSON: { "actions": [ { "title": "...", "gain_estimate": 1200, "proof": "...", '
        '"reasoning": ["..."], "steps": ["..."], "score": 96 } ] }'
    )


def generate_tax_actions(answers: TaxAnswers, *, generator: Optional[TextGenerator]) -> tuple[list[TaxAction], str]:
    """Returns (actions, source). Generated actions replace the defaults only when valid and non-empty."""
    defaults = default_tax_actions(answers)
    if generator is None:
        return defaults, "default"
    try:
        payload: dict[str, Any] = generator.generate_json(
            system="Reply with valid JSON only.", prompt=_tax_prompt(answers), max_tokens=700
        )
        raw = payload.get("actions")
        if not isinstance(raw, list) or not raw:
            raise ValueError("No actions in response")
        actions = [TaxAction.model_validate(a) for a in raw]
        return actions, "generated"
    except Exception as e:
        log.warning("Tax action generation failed, using defaults: %s: %s", type(e).__name__, e)
        return defaults, "default"


def tax_priority_score(gain_minor_units: int, score: float) -> int:
    """Same cent scale as finding items: yearly gain weighted by the 0-100 action score."""
    return int(round(gain_minor_units * clamp(score, 0, 100) / 100))


def tax_plan_items(actions: list[TaxAction], *, source: str = "default") -> list[PlanItemDraft]:
    items: list[PlanItemDraft] = []
    for i, a in enumerate(actions):
        gain = int(round(a.gain_estimate * 100))
        items.append(
            PlanItemDraft(
                position=TAX_POSITION_BASE + i,
                action_title=a.title,
                action_steps=list(a.steps),
                gain_estimated_yearly_minor_units=gain,
                effort_minutes=TAX_EFFORT_MINUTES,
                risk_level="low",
                priority_score=float(tax_priority_score(gain, a.score)),
                category="tax",
                steps_source=source,
                extra={"proof": a.proof, "reasoning": list(a.reasoning), "score": a.score},
            )
        )
    return items
