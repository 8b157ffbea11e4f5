"""Channel adapter interface and the in-process bus adapter."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from dataclasses import replace
from typing import Any, ClassVar

from loguru import logger

from turnkit.activity import Activity, ConversationReference
from turnkit.bus import MessageBus
from turnkit.context import INVOKE_RESPONSE_KEY, TurnContext

type TurnLogic = Callable[[TurnContext], Awaitable[Any]]


class ChannelAdapter(ABC):
    """Transport boundary: delivers activities in and sends activities out."""

    name: str = "base"
    supports_proactive: ClassVar[bool] = False

    @abstractmethod
    async def send_activities(self, context: TurnContext, activities: list[Activity]) -> None:
        """Deliver outgoing activities for one turn."""

    async def continue_conversation(
        self,
        bot_app_id: str,
        reference: ConversationReference,
        logic: TurnLogic,
    ) -> None:
        """Open a proactive context for an existing conversation and run logic in it."""

        if not self.supports_proactive:
            raise NotImplementedError(f"{self.name} adapter cannot continue conversations")
        activity = reference.to_activity()
        context = TurnContext(self, replace(activity, recipient_id=activity.recipient_id or bot_app_id))
        await logic(context)

    async def process_activity(self, activity: Activity, logic: TurnLogic) -> Activity | None:
        """Run logic for one inbound activity; return the queued invoke response, if any."""

        context = TurnContext(self, activity)
        await logic(context)
        return context.turn_state.get(INVOKE_RESPONSE_KEY)


class BusAdapter(ChannelAdapter):
    """Adapter that publishes outgoing activities on a MessageBus."""

    name = "bus"
    supports_proactive = True

    def __init__(self, bus: MessageBus | None = None) -> None:
        self.bus = bus or MessageBus()
        self._unsubscribe: Callable[[], None] | None = None

    async def send_activities(self, context: TurnContext, activities: list[Activity]) -> None:
        for activity in activities:
            logger.debug("bus.adapter.outbound type={} conversation={}", activity.type, activity.conversation_id)
            await self.bus.publish_outbound(activity)

    def listen(self, logic: TurnLogic) -> None:
        """Run logic for every inbound activity published on the bus."""

        async def _on_inbound(activity: Activity) -> None:
            await self.process_activity(activity, logic)

        self.close()
        self._unsubscribe = self.bus.on_inbound(_on_inbound)

    def close(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
