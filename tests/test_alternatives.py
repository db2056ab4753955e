from __future__ import annotations

from typing import Any, Optional

from src.core.text_generation import TextGenerationError
from src.leakfinder.scan.alternatives import (
    UsageAnswers,
    default_alternatives,
    generate_alternatives,
    strip_step_number,
)


class _StubGenerator:
    def __init__(self, payload: Any) -> None:
        self.payload = payload
        self.prompts: list[str] = []

    def generate_json(self, *, system: str, prompt: str, max_tokens: Optional[int] = None) -> dict[str, Any]:
        self.prompts.append(prompt)
        if isinstance(self.payload, Exception):
            raise self.payload
        return self.payload


ANSWERS = UsageAnswers(frequency="once a week", people="2", usage="series")


def test_prompt_carries_brand_price_and_usage():
    gen = _StubGenerator(
        {
            "alternatives": [
                {"name": "Netflix Standard with ads", "price": 5.99, "gainAnnual": 84, "steps": ["1. Open", "2) Pick", "3. Save"]},
                {"name": "Shared family plan", "price": 7.5, "gainAnnual": 66},
                {"name": "Pause for two months", "gainAnnual": 26},
                {"name": "Fourth one"},
            ]
        }
    )
    alternatives, source = generate_alternatives("Netflix", 1299, ANSWERS, generator=gen)
    assert source == "generated"
    assert [a.name for a in alternatives] == ["Netflix Standard with ads", "Shared family plan", "Pause for two months"]
    assert alternatives[0].gain_annual == 84
    assert alternatives[0].steps == ["Open", "Pick", "Save"]
    prompt = gen.prompts[0]
    assert "Netflix at 12.99 EUR/month" in prompt
    assert "once a week" in prompt and "People or devices: 2" in prompt


def test_unusable_responses_fall_back_to_defaults():
    for payload in ({"alternatives": []}, {"foo": 1}, {"alternatives": [{"price": 3}]}, TextGenerationError("down")):
        alternatives, source = generate_alternatives("Netflix", 1299, ANSWERS, generator=_StubGenerator(payload))
        assert source == "default"
        assert alternatives == default_alternatives()

    alternatives, source = generate_alternatives("Netflix", None, ANSWERS, generator=None)
    assert source == "default"
    assert alternatives[0].name == "Cheaper plan"
    assert alternatives[0].gain_annual == 60


def test_strip_step_number():
    assert strip_step_number("1. Open the app") == "Open the app"
    assert strip_step_number(" 12) Confirm") == "Confirm"
    assert strip_step_number("Cancel 2 plans") == "Cancel 2 plans"
