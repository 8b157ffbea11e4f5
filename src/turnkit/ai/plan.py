"""Plan and command models produced by planners."""

from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from turnkit.errors import PlannerError


class DoCommand(BaseModel):
    """Invoke a registered action."""

    model_config = ConfigDict(frozen=True)

    type: Literal["DO"] = "DO"
    action: str = Field(min_length=1)
    entities: dict[str, Any] = Field(default_factory=dict)


class SayCommand(BaseModel):
    """Send a message; always the last command that runs in a plan."""

    model_config = ConfigDict(frozen=True)

    type: Literal["SAY"] = "SAY"
    response: str


PredictedCommand = Annotated[DoCommand | SayCommand, Field(discriminator="type")]


class Plan(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["plan"] = "plan"
    commands: list[PredictedCommand] = Field(default_factory=list)

    @classmethod
    def say(cls, response: str) -> Plan:
        return cls(commands=[SayCommand(response=response)])

    @classmethod
    def do(cls, action: str, **entities: Any) -> Plan:
        return cls(commands=[DoCommand(action=action, entities=entities)])

    def describe(self) -> str:
        parts = []
        for command in self.commands:
            if isinstance(command, DoCommand):
                parts.append(f"DO {command.action}")
            else:
                parts.append("SAY")
        return ", ".join(parts) or "<empty>"


def parse_plan(raw: str | Mapping[str, Any]) -> Plan:
    """Validate a planner payload; malformed JSON or a missing type/commands field is fatal."""

    payload: Any = raw
    if isinstance(raw, str):
        try:
            payload = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise PlannerError(f"plan is not valid JSON: {exc.msg}") from exc
    if not isinstance(payload, Mapping):
        raise PlannerError("plan must be a JSON object")
    if payload.get("type") != "plan":
        raise PlannerError("plan is missing type='plan'")
    if not isinstance(payload.get("commands"), list):
        raise PlannerError("plan is missing a commands list")
    try:
        return Plan.model_validate(payload)
    except ValidationError as exc:
        raise PlannerError(f"plan has invalid commands: {exc.error_count()} error(s)") from exc


def coerce_plan(value: Any) -> Plan:
    if isinstance(value, Plan):
        return value
    if isinstance(value, (str, Mapping)):
        return parse_plan(value)
    raise PlannerError(f"planner returned {type(value).__name__}, expected a plan")


def plan_from_response(text: str) -> Plan:
    """Turn raw model text into a plan: an embedded JSON plan if present, else one SAY."""

    stripped = text.strip()
    if not stripped:
        return Plan()
    start = stripped.find("{")
    end = stripped.rfind("}")
    if start != -1 and end > start:
        try:
            return parse_plan(stripped[start : end + 1])
        except PlannerError:
            pass
    return Plan.say(stripped)
