"""Planner contract."""

from __future__ import annotations

import inspect
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from turnkit.ai.plan import Plan, plan_from_response
from turnkit.ai.prompts import RenderedPrompt

if TYPE_CHECKING:
    from turnkit.context import TurnContext
    from turnkit.state import TurnState

type CompletionFunction = Callable[[str], Awaitable[str] | str]


@runtime_checkable
class Planner(Protocol):
    """Turns a rendered prompt into a plan."""

    async def complete_prompt(
        self,
        context: TurnContext,
        state: TurnState,
        prompt: RenderedPrompt,
        options: Any,
    ) -> Plan: ...


class CompletionPlanner:
    """Planner over any text completion function.

    The completion result is parsed with ``plan_from_response``: a JSON plan
    embedded in the text is executed as-is, anything else becomes a single SAY.
    """

    def __init__(self, complete: CompletionFunction) -> None:
        self._complete = complete

    async def complete_prompt(
        self,
        context: TurnContext,
        state: TurnState,
        prompt: RenderedPrompt,
        options: Any,
    ) -> Plan:
        text = self._complete(prompt.text)
        if inspect.isawaitable(text):
            text = await text
        return plan_from_response(str(text or ""))
