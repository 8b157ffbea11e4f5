from __future__ import annotations

import pytest
from pydantic import ValidationError

from turnkit.ai.plan import DoCommand, Plan, SayCommand, coerce_plan, parse_plan, plan_from_response
from turnkit.errors import PlannerError


def test_parse_plan_reads_do_and_say_commands() -> None:
    plan = parse_plan(
        '{"type": "plan", "commands": ['
        '{"type": "DO", "action": "createWI", "entities": {"title": "Fix login"}},'
        '{"type": "SAY", "response": "Done."}]}'
    )

    assert plan.commands == [
        DoCommand(action="createWI", entities={"title": "Fix login"}),
        SayCommand(response="Done."),
    ]
    assert plan.describe() == "DO createWI, SAY"


@pytest.mark.parametrize(
    "raw",
    [
        "not json",
        "[]",
        '{"commands": []}',
        '{"type": "plan"}',
        '{"type": "plan", "commands": [{"type": "JUMP"}]}',
        '{"type": "plan", "commands": [{"type": "DO", "action": ""}]}',
    ],
)
def test_parse_plan_rejects_malformed_payloads(raw: str) -> None:
    with pytest.raises(PlannerError):
        parse_plan(raw)


def test_coerce_plan_accepts_plans_and_mappings() -> None:
    plan = Plan.say("hi")

    assert coerce_plan(plan) is plan
    assert coerce_plan({"type": "plan", "commands": []}) == Plan()
    with pytest.raises(PlannerError):
        coerce_plan(42)


def test_plan_from_response_extracts_embedded_plan() -> None:
    text = 'Sure. {"type": "plan", "commands": [{"type": "DO", "action": "lookup"}]} Thanks.'

    assert plan_from_response(text) == Plan.do("lookup")


def test_plan_from_response_falls_back_to_say() -> None:
    assert plan_from_response("  Hello there  ") == Plan.say("Hello there")
    assert plan_from_response("Use {braces} freely") == Plan.say("Use {braces} freely")
    assert plan_from_response("   ") == Plan()


def test_plans_are_immutable() -> None:
    plan = Plan.say("hi")

    with pytest.raises(ValidationError):
        plan.type = "other"  # type: ignore[misc]
