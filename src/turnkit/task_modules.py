"""Task module fetch/submit routes on the priority lane."""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Mapping
from typing import TYPE_CHECKING, Any

from turnkit.activity import Activity, ActivityTypes
from turnkit.context import INVOKE_RESPONSE_KEY, TurnContext
from turnkit.routing import RouteLane, SelectorSpec, task_selector
from turnkit.state import TurnState

if TYPE_CHECKING:
    from turnkit.application import Application

FETCH_INVOKE_NAME = "task/fetch"
SUBMIT_INVOKE_NAME = "task/submit"

type TaskHandler = Callable[[TurnContext, TurnState, dict[str, Any]], Awaitable[Any]]


class TaskModules:
    """Registers task module handlers keyed by a verb inside the invoke payload."""

    def __init__(self, app: Application) -> None:
        self._app = app

    def fetch(
        self, verb: SelectorSpec | list[SelectorSpec], handler: TaskHandler | None = None
    ) -> Any:
        return self._register(verb, handler, FETCH_INVOKE_NAME)

    def submit(
        self, verb: SelectorSpec | list[SelectorSpec], handler: TaskHandler | None = None
    ) -> Any:
        return self._register(verb, handler, SUBMIT_INVOKE_NAME)

    def _register(self, verb: SelectorSpec | list[SelectorSpec], handler: TaskHandler | None, invoke_name: str) -> Any:
        verbs = verb if isinstance(verb, list) else [verb]

        def _add(task_handler: TaskHandler) -> TaskHandler:
            for item in verbs:
                selector = task_selector(item, self._app.options.task_data_filter, invoke_name)
                self._app.add_route(selector, _invoke_route(task_handler, invoke_name), RouteLane.PRIORITY)
            return task_handler

        if handler is None:
            return _add
        _add(handler)
        return self._app


def _invoke_route(handler: TaskHandler, invoke_name: str) -> Callable[[TurnContext, TurnState], Awaitable[None]]:
    async def _route(context: TurnContext, state: TurnState) -> None:
        activity = context.activity
        if activity.type != ActivityTypes.INVOKE or activity.name != invoke_name:
            raise RuntimeError(f"unexpected {invoke_name} handler triggered for activity type: {activity.type}")

        value = activity.value if isinstance(activity.value, Mapping) else {}
        data = value.get("data")
        result = await handler(context, state, dict(data) if isinstance(data, Mapping) else {})
        if INVOKE_RESPONSE_KEY in context.turn_state:
            return

        response: dict[str, Any] | None = None
        if isinstance(result, str):
            response = {"task": {"type": "message", "value": result}}
        elif result is not None or invoke_name == FETCH_INVOKE_NAME:
            response = {"task": {"type": "continue", "value": result}}
        await context.send_activity(
            Activity(type=ActivityTypes.INVOKE_RESPONSE, value={"status": 200, "body": response})
        )

    _route.__qualname__ = f"{invoke_name}:{getattr(handler, '__qualname__', 'handler')}"
    return _route
