from __future__ import annotations

from src.leakfinder.errors import InvalidTransition
from src.leakfinder.scan.csv_io import InputError


FINDING_STATUSES = ("open", "snoozed", "resolved")
PLAN_ITEM_STATUSES = ("todo", "doing", "done", "skipped")

_PLAN_ITEM_TRANSITIONS: dict[str, frozenset[str]] = {
    "todo": frozenset({"doing", "done", "skipped"}),
    "doing": frozenset({"done", "skipped", "todo"}),
    "done": frozenset({"todo"}),
    "skipped": frozenset({"todo"}),
}


def _clean(value: str, allowed: tuple[str, ...], entity: str) -> str:
    v = (value or "").strip().lower()
    if v not in allowed:
        raise InputError(f"Unknown {entity} status: {value!r} (expected one of {', '.join(allowed)}).")
    return v


def check_finding_transition(current: str, requested: str) -> str:
    """Findings move freely between open, snoozed and resolved."""
    return _clean(requested, FINDING_STATUSES, "finding")


def check_plan_item_transition(current: str, requested: str) -> str:
    new = _clean(requested, PLAN_ITEM_STATUSES, "plan item")
    if new == current:
        return new
    if new not in _PLAN_ITEM_TRANSITIONS.get(current, frozenset()):
        raise InvalidTransition("plan item", current, new)
    return new
