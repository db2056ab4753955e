from __future__ import annotations

from typing import Any, Optional

import pytest

from src.leakfinder.scan.scoring import priority_label
from src.leakfinder.tax.actions import (
    TaxAnswers,
    clamp,
    default_tax_actions,
    generate_tax_actions,
    tax_plan_items,
    tax_priority_score,
)


class _StubGenerator:
    def __init__(self, payload: Any) -> None:
        self.payload = payload

    def generate_json(self, *, system: str, prompt: str, max_tokens: Optional[int] = None) -> dict[str, Any]:
        if isinstance(self.payload, Exception):
            raise self.payload
        return self.payload


def test_clamp():
    assert clamp(5, 10, 20) == 10
    assert clamp(25, 10, 20) == 20
    assert clamp(15, 10, 20) == 15


def test_no_answers_no_actions():
    assert default_tax_actions(TaxAnswers()) == []


@pytest.mark.parametrize(
    "answers,title,expected",
    [
        (TaxAnswers(salary=1000), "Adjust your withholding rate", 400),
        (TaxAnswers(salary=2500), "Adjust your withholding rate", 450),
        (TaxAnswers(salary=20000), "Adjust your withholding rate", 1800),
        (TaxAnswers(donations=50), "Declare donations not yet claimed", 60),
        (TaxAnswers(donations=500), "Declare donations not yet claimed", 330),
        (TaxAnswers(donations=5000), "Declare donations not yet claimed", 800),
        (TaxAnswers(km=100), "Claim your mileage expenses", 500),
        (TaxAnswers(km=2000), "Claim your mileage expenses", 1260),
        (TaxAnswers(km=10000), "Claim your mileage expenses", 2500),
    ],
)
def test_default_actions_clamp_gains(answers, title, expected):
    actions = default_tax_actions(answers)
    assert len(actions) == 1
    assert actions[0].title == title
    assert actions[0].gain_estimate == expected
    assert len(actions[0].steps) == 4


def test_generated_actions_replace_defaults_only_when_valid():
    answers = TaxAnswers(salary=3000, donations=200, km=4000)
    good = _StubGenerator(
        {"actions": [{"title": "Claim childcare costs", "gain_estimate": 700, "steps": ["a", "b"], "score": 96}]}
    )
    actions, source = generate_tax_actions(answers, generator=good)
    assert source == "generated"
    assert [a.title for a in actions] == ["Claim childcare costs"]

    for payload in ({"actions": []}, {"foo": 1}, {"actions": [{"gain_estimate": 1}]}, RuntimeError("down")):
        actions, source = generate_tax_actions(answers, generator=_StubGenerator(payload))
        assert source == "default"
        assert len(actions) == 3

    actions, source = generate_tax_actions(answers, generator=None)
    assert source == "default"


def test_tax_plan_items_positions_and_units():
    actions = default_tax_actions(TaxAnswers(salary=2500, km=2000))
    items = tax_plan_items(actions, source="default")
    assert [it.position for it in items] == [100, 101]
    assert items[0].gain_estimated_yearly_minor_units == 45000
    assert items[1].gain_estimated_yearly_minor_units == 126000
    assert all(it.category == "tax" and it.effort_minutes == 15 for it in items)
    assert items[0].extra["proof"].startswith("Declared average monthly salary")
    assert items[0].steps_source == "default"


def test_tax_priority_uses_the_finding_cent_scale():
    actions = default_tax_actions(TaxAnswers(salary=2500, km=2000, donations=100))
    items = tax_plan_items(actions)
    # 45000 * 0.90, 6600 * 0.85, 126000 * 0.92
    assert [it.priority_score for it in items] == [40500.0, 5610.0, 115920.0]
    assert [priority_label(int(it.priority_score)) for it in items] == ["P1", "P2", "P1"]
    assert items[0].extra["score"] == 90
    assert tax_priority_score(10000, 150) == 10000
