from __future__ import annotations

import logging
from typing import Any, Optional, Sequence

from src.core.text_generation import TextGenerationError, TextGenerator
from src.leakfinder.config import PlanConfig
from src.leakfinder.scan.models import FindingDraft, PlanItemDraft
from src.leakfinder.scan.normalize import format_minor_units


log = logging.getLogger(__name__)

MIN_STEPS = 4
MAX_STEPS = 6

_SYSTEM_PROMPT = "You are a practical personal-finance assistant. Reply with valid JSON only."


def priority_score(gain_minor_units: int, confidence: float) -> int:
    return int(round(gain_minor_units * confidence))


def rank_for_plan(findings: Sequence[FindingDraft], top_n: int) -> list[tuple[int, FindingDraft]]:
    """Returns (index in `findings`, finding) pairs, best priority first."""
    indexed = list(enumerate(findings))
    indexed.sort(
        key=lambda p: (
            -priority_score(p[1].estimated_yearly_gain_minor_units, p[1].confidence),
            p[0],
        )
    )
    return indexed[:top_n]


def fallback_steps(title: str, cfg: PlanConfig | None = None) -> list[str]:
    cfg = cfg or PlanConfig()
    steps = [s.format(title=title) for s in cfg.fallback_steps]
    return steps if steps else [f"Review '{title}'"]


def _steps_prompt(f: FindingDraft, currency: str) -> str:
    brand = f"Brand: {f.brand}\n" if f.brand else ""
    return (
        "Write an action plan to remove this recurring cost.\n"
        f"Title: {f.title}\n"
        f"Description: {f.description}\n"
        f"{brand}"
        f"Estimated yearly gain: {format_minor_units(f.estimated_yearly_gain_minor_units, currency)}\n"
        f"Estimated effort: {f.effort_minutes} minutes\n\n"
        f"Give {MIN_STEPS} to {MAX_STEPS} short, concrete steps in order.\n"
        'Reply in JSON: { "steps": ["...", "..."] }'
    )


def _clean_steps(payload: dict[str, Any]) -> list[str]:
    steps = payload.get("steps")
    if not isinstance(steps, list):
        raise TextGenerationError("Missing 'steps' array")
    cleaned = [str(s).strip() for s in steps if isinstance(s, (str, int, float)) and str(s).strip()]
    if not (MIN_STEPS <= len(cleaned) <= MAX_STEPS):
        raise TextGenerationError(f"Expected {MIN_STEPS}-{MAX_STEPS} steps, got {len(cleaned)}")
    return cleaned


def generate_steps(
    f: FindingDraft,
    *,
    generator: Optional[TextGenerator],
    cfg: PlanConfig | None = None,
    currency: str = "EUR",
) -> tuple[list[str], str]:
    """Returns (steps, source) where source is 'generated' or 'fallback'."""
    cfg = cfg or PlanConfig()
    if generator is None:
        return fallback_steps(f.title, cfg), "fallback"
    try:
        payload = generator.generate_json(system=_SYSTEM_PROMPT, prompt=_steps_prompt(f, currency))
        return _clean_steps(payload), "generated"
    except Exception as e:
        # Any collaborator failure degrades to the template; the plan must always build.
        log.warning("Step generation failed for %r, using template: %s: %s", f.title, type(e).__name__, e)
        return fallback_steps(f.title, cfg), "fallback"


def build_plan_items(
    findings: Sequence[FindingDraft],
    *,
    generator: Optional[TextGenerator] = None,
    cfg: PlanConfig | None = None,
    currency: str = "EUR",
) -> list[PlanItemDraft]:
    cfg = cfg or PlanConfig()
    items: list[PlanItemDraft] = []
    for position, (idx, f) in enumerate(rank_for_plan(findings, cfg.top_n), start=1):
        steps, source = generate_steps(f, generator=generator, cfg=cfg, currency=currency)
        items.append(
            PlanItemDraft(
                position=position,
                action_title=f.title,
                action_steps=steps,
                gain_estimated_yearly_minor_units=f.estimated_yearly_gain_minor_units,
                effort_minutes=f.effort_minutes,
                risk_level=f.risk_level,
                priority_score=float(priority_score(f.estimated_yearly_gain_minor_units, f.confidence)),
                category=f.category,
                status="todo",
                steps_source=source,
                finding_index=idx,
            )
        )
    return items
