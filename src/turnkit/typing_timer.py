"""Typing indicator shown while a message turn is being handled."""

from __future__ import annotations

import asyncio

from loguru import logger

from turnkit.activity import Activity, ActivityTypes
from turnkit.context import TurnContext


class TypingTimer:
    """Sends a typing activity every ``delay`` seconds until stopped.

    Owned by one turn. Stops on the first outgoing message or when the turn
    calls ``stop()``, whichever comes first.
    """

    def __init__(self, delay: float = 1.0) -> None:
        self._delay = delay
        self._task: asyncio.Task[None] | None = None
        self._stopped = False

    def start(self, context: TurnContext) -> bool:
        if context.activity.type != ActivityTypes.MESSAGE or self._task is not None or self._stopped:
            return False
        context.on_send_activities(self._on_send)
        self._task = asyncio.create_task(self._typing_loop(context))
        return True

    def stop(self) -> None:
        self._stopped = True
        task, self._task = self._task, None
        if task is not None and task is not asyncio.current_task():
            task.cancel()

    def _on_send(self, context: TurnContext, activities: list[Activity]) -> None:
        if self._task is None:
            return
        if any(activity.type == ActivityTypes.MESSAGE for activity in activities):
            self.stop()

    async def _typing_loop(self, context: TurnContext) -> None:
        try:
            while not self._stopped:
                await asyncio.sleep(self._delay)
                if self._stopped:
                    return
                await context.send_activity(Activity.typing())
        except asyncio.CancelledError:
            return
        except Exception:
            logger.exception("typing.timer.error conversation={}", context.activity.conversation_id)
            self._stopped = True
            return
