"""Moderator contract."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from turnkit.ai.plan import Plan
from turnkit.ai.prompts import RenderedPrompt

if TYPE_CHECKING:
    from turnkit.context import TurnContext
    from turnkit.state import TurnState


@runtime_checkable
class Moderator(Protocol):
    """Reviews prompts before planning and plans before execution.

    ``review_prompt`` returns None to approve, or a plan to run instead of
    calling the planner. ``review_plan`` always returns the plan to execute,
    either the one passed in or a replacement.
    """

    async def review_prompt(
        self,
        context: TurnContext,
        state: TurnState,
        prompt: RenderedPrompt,
        options: Any,
    ) -> Plan | None: ...

    async def review_plan(self, context: TurnContext, state: TurnState, plan: Plan) -> Plan: ...


class DefaultModerator:
    """Approves every prompt and plan."""

    async def review_prompt(
        self,
        context: TurnContext,
        state: TurnState,
        prompt: RenderedPrompt,
        options: Any,
    ) -> Plan | None:
        return None

    async def review_plan(self, context: TurnContext, state: TurnState, plan: Plan) -> Plan:
        return plan
