"""Per-turn context handed to selectors and handlers."""

from __future__ import annotations

import inspect
from collections.abc import Awaitable, Callable
from dataclasses import replace
from typing import TYPE_CHECKING, Any

from turnkit.activity import Activity, ActivityTypes

if TYPE_CHECKING:
    from turnkit.adapter import ChannelAdapter

INVOKE_RESPONSE_KEY = "turnkit.invoke_response"

type SendObserver = Callable[[TurnContext, list[Activity]], Awaitable[None] | None]


class TurnContext:
    """Context for one turn: the inbound activity plus a way to answer it."""

    def __init__(self, adapter: ChannelAdapter, activity: Activity) -> None:
        self.adapter = adapter
        self.activity = activity
        self.responded = False
        self.turn_state: dict[str, Any] = {}
        self._send_observers: list[SendObserver] = []

    def on_send_activities(self, observer: SendObserver) -> None:
        """Register an observer called with every outgoing batch before it is sent."""

        self._send_observers.append(observer)

    async def send_activity(self, activity_or_text: Activity | str) -> Activity | None:
        if isinstance(activity_or_text, str):
            activity = self.activity.reply(activity_or_text)
        else:
            activity = activity_or_text
        sent = await self.send_activities([activity])
        return sent[0] if sent else None

    async def send_activities(self, activities: list[Activity]) -> list[Activity]:
        addressed = [self._address(activity) for activity in activities]
        for observer in list(self._send_observers):
            result = observer(self, addressed)
            if inspect.isawaitable(result):
                await result

        outgoing: list[Activity] = []
        for activity in addressed:
            if activity.type == ActivityTypes.INVOKE_RESPONSE:
                self.turn_state[INVOKE_RESPONSE_KEY] = activity
                continue
            outgoing.append(activity)
        if any(activity.type != ActivityTypes.TYPING for activity in addressed):
            self.responded = True
        if outgoing:
            await self.adapter.send_activities(self, outgoing)
        return addressed

    def _address(self, activity: Activity) -> Activity:
        inbound = self.activity
        return replace(
            activity,
            channel_id=inbound.channel_id,
            conversation_id=inbound.conversation_id,
            sender_id=activity.sender_id or inbound.recipient_id,
            recipient_id=activity.recipient_id or inbound.sender_id,
        )
