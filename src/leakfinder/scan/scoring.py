from __future__ import annotations

_EFFORT_WEIGHT = {"low": 1.0, "medium": 0.7, "high": 0.4}
_RISK_WEIGHT = {"low": 1.0, "medium": 0.8, "high": 0.6}


def effort_level(minutes: int) -> str:
    if minutes <= 10:
        return "low"
    if minutes <= 30:
        return "medium"
    return "high"


def score_action(yearly_gain: int, effort: str, risk: str) -> int:
    e = _EFFORT_WEIGHT.get((effort or "").strip().lower(), _EFFORT_WEIGHT["high"])
    r = _RISK_WEIGHT.get((risk or "").strip().lower(), _RISK_WEIGHT["high"])
    return int(round(yearly_gain * e * r))


def priority_label(score: int, *, p1: int = 10000, p2: int = 3000) -> str:
    if score >= p1:
        return "P1"
    if score >= p2:
        return "P2"
    return "P3"
