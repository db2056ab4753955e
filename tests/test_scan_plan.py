from __future__ import annotations

import logging
from typing import Any, Optional

from src.core.text_generation import OpenAIChatClient, TextGenerationError
from src.leakfinder.config import PlanConfig, TextGenerationConfig
from src.leakfinder.scan.demo import demo_findings
from src.leakfinder.scan.models import FindingDraft
from src.leakfinder.scan.plan import build_plan_items, fallback_steps, priority_score, rank_for_plan


class _StubGenerator:
    def __init__(self, payload: Any = None, error: Optional[Exception] = None) -> None:
        self.payload = payload
        self.error = error
        self.calls: list[str] = []

    def generate_json(self, *, system: str, prompt: str, max_tokens: Optional[int] = None) -> dict[str, Any]:
        self.calls.append(prompt)
        if self.error is not None:
            raise self.error
        return self.payload


def _finding(title: str, gain: int, confidence: float = 0.9) -> FindingDraft:
    return FindingDraft(
        category="subscription",
        title=title,
        description="Recurring transactions detected.",
        estimated_yearly_gain_minor_units=gain,
        confidence=confidence,
        effort_minutes=5,
    )


def test_priority_score_and_top_n():
    findings = [_finding(f"F{i}", 1000 * (i + 1)) for i in range(8)]
    ranked = rank_for_plan(findings, top_n=6)
    assert len(ranked) == 6
    assert [f.title for _, f in ranked] == ["F7", "F6", "F5", "F4", "F3", "F2"]
    assert priority_score(14400, 0.9) == 12960
    # confidence can reorder equal gains
    a, b = _finding("A", 10000, 0.85), _finding("B", 10000, 0.9)
    assert [f.title for _, f in rank_for_plan([a, b], top_n=6)] == ["B", "A"]


def test_unreachable_generator_gives_exactly_four_template_steps(monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    client = OpenAIChatClient(TextGenerationConfig())
    items = build_plan_items(demo_findings(), generator=client)
    assert len(items) == 6
    for it in items:
        assert it.steps_source == "fallback"
        assert it.action_steps == fallback_steps(it.action_title)
        assert len(it.action_steps) == 4
        assert it.status == "todo"
    assert [it.position for it in items] == [1, 2, 3, 4, 5, 6]


def test_no_generator_uses_template():
    items = build_plan_items([_finding("Subscription detected: Netflix", 15588)], generator=None)
    assert items[0].action_steps[0] == "Review the transactions behind 'Subscription detected: Netflix'"


def test_generated_steps_are_used_when_valid():
    gen = _StubGenerator({"steps": ["Open the app", "Go to account", "Cancel plan", "Confirm by email", "  "]})
    items = build_plan_items([_finding("Subscription detected: Netflix", 15588)], generator=gen)
    assert items[0].steps_source == "generated"
    assert items[0].action_steps == ["Open the app", "Go to account", "Cancel plan", "Confirm by email"]
    assert "155.88 EUR" in gen.calls[0]


def test_wrong_step_count_or_error_falls_back():
    too_few = _StubGenerator({"steps": ["one", "two"]})
    too_many = _StubGenerator({"steps": [str(i) for i in range(7)]})
    broken = _StubGenerator(error=TextGenerationError("timeout"))
    not_a_list = _StubGenerator({"steps": "do it"})
    for gen in (too_few, too_many, broken, not_a_list):
        items = build_plan_items([_finding("X", 1200)], generator=gen)
        assert items[0].steps_source == "fallback"
        assert len(items[0].action_steps) == 4


def test_finding_index_points_back_to_source_finding():
    findings = [_finding("small", 100), _finding("big", 90000)]
    items = build_plan_items(findings, generator=None, cfg=PlanConfig(top_n=1))
    assert len(items) == 1
    assert items[0].finding_index == 1
    assert items[0].priority_score == float(priority_score(90000, 0.9))


def test_no_generator_logs_nothing_but_real_failures_warn(caplog):
    with caplog.at_level(logging.WARNING, logger="src.leakfinder.scan.plan"):
        build_plan_items(demo_findings(), generator=None)
    assert caplog.records == []

    with caplog.at_level(logging.WARNING, logger="src.leakfinder.scan.plan"):
        build_plan_items([_finding("X", 1200)], generator=_StubGenerator(error=TextGenerationError("timeout")))
    assert [r.levelname for r in caplog.records] == ["WARNING"]
