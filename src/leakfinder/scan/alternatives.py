from __future__ import annotations

import logging
import re
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from src.core.text_generation import TextGenerator
from src.leakfinder.scan.normalize import format_minor_units


log = logging.getLogger(__name__)

MAX_ALTERNATIVES = 3
_STEP_NUMBER_RE = re.compile(r"^\s*\d+[.)]\s*")


class UsageAnswers(BaseModel):
    frequency: str = ""  # e.g. "daily", "a few times a month"
    people: str = ""  # people or devices sharing the subscription
    usage: str = ""


class Alternative(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str
    price: Optional[float] = None  # EUR per month
    gain_annual: Optional[float] = Field(default=None, alias="gainAnnual")
    reason: str = ""
    difficulty: str = ""
    steps: list[str] = Field(default_factory=list)


def default_alternatives() -> list[Alternative]:
    return [
        Alternative(
            name="Cheaper plan",
            price=5.99,
            gain_annual=60,
            reason="Cheaper for occasional use.",
            difficulty="easy",
            steps=[
                "Open your subscription settings.",
                "Pick a cheaper plan.",
                "Confirm the change.",
            ],
        )
    ]


def strip_step_number(step: str) -> str:
    return _STEP_NUMBER_RE.sub("", step).strip()


def _alternatives_prompt(
    subscription: str, monthly_price: Optional[int], answers: UsageAnswers, currency: str
) -> str:
    price = f" at {format_minor_units(monthly_price, currency)}/month" if monthly_price else ""
    return (
        "You are an expert in cutting subscription costs.\n"
        f"Current subscription: {subscription}{price}\n"
        f"How often it is used: {answers.frequency}\n"
        f"People or devices: {answers.people}\n"
        f"Main use: {answers.usage or 'not given'}\n\n"
        "Suggest 2-3 alternatives that fit better or cost less. For each give the exact name, "
        "the current monthly price, the yearly gain versus the current plan, why it is better, "
        "the difficulty (very easy / easy / medium) and 3 concrete steps to switch.\n"
        'Reply only in JSON: { "alternatives": [ { "name": "...", "price": 8.99, "gainAnnual": 108, '
        '"reason": "...", "difficulty": "easy", "steps": ["...", "...", "..."] } ] }'
    )


def generate_alternatives(
    subscription: str,
    monthly_price: Optional[int],
    answers: UsageAnswers,
    *,
    generator: Optional[TextGenerator],
    currency: str = "EUR",
) -> tuple[list[Alternative], str]:
    """Returns (alternatives, source), source being 'generated' or 'default'."""
    if generator is None:
        return default_alternatives(), "default"
    try:
        payload: dict[str, Any] = generator.generate_json(
            system="Reply with valid JSON only.",
            prompt=_alternatives_prompt(subscription, monthly_price, answers, currency),
            max_tokens=450,
        )
        raw = payload.get("alternatives")
        if not isinstance(raw, list) or not raw:
            raise ValueError("No alternatives in response")
        out = [Alternative.model_validate(a) for a in raw[:MAX_ALTERNATIVES]]
        for alt in out:
            alt.steps = [s for s in (strip_step_number(str(x)) for x in alt.steps) if s]
        return out, "generated"
    except Exception as e:
        log.warning("Alternative generation failed for %r, using defaults: %s: %s", subscription, type(e).__name__, e)
        return default_alternatives(), "default"
