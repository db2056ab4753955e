from __future__ import annotations

import pytest

from src.leakfinder.errors import InvalidTransition
from src.leakfinder.scan.csv_io import InputError
from src.leakfinder.status import check_finding_transition, check_plan_item_transition


@pytest.mark.parametrize("current", ["open", "snoozed", "resolved"])
@pytest.mark.parametrize("requested", ["open", "snoozed", "resolved"])
def test_findings_move_freely(current, requested):
    assert check_finding_transition(current, requested) == requested


@pytest.mark.parametrize(
    "current,requested",
    [
        ("todo", "doing"),
        ("todo", "done"),
        ("todo", "skipped"),
        ("doing", "done"),
        ("doing", "skipped"),
        ("doing", "todo"),
        ("done", "todo"),
        ("skipped", "todo"),
        ("done", "done"),
    ],
)
def test_allowed_plan_item_transitions(current, requested):
    assert check_plan_item_transition(current, requested) == requested


@pytest.mark.parametrize(
    "current,requested",
    [("done", "doing"), ("done", "skipped"), ("skipped", "doing"), ("skipped", "done")],
)
def test_rejected_plan_item_transitions(current, requested):
    with pytest.raises(InvalidTransition):
        check_plan_item_transition(current, requested)


def test_unknown_status_is_input_error():
    with pytest.raises(InputError):
        check_plan_item_transition("todo", "archived")
    with pytest.raises(InputError):
        check_finding_transition("open", "")
    assert check_plan_item_transition("todo", " DOING ") == "doing"
