"""Signal-based activity bus."""

from __future__ import annotations

from collections.abc import Callable, Coroutine
from typing import Any

from blinker import Signal

from turnkit.activity import Activity

ActivityReceiver = Callable[[Activity], Coroutine[Any, Any, None]]


class MessageBus:
    """In-process activity bus backed by blinker signals."""

    def __init__(self) -> None:
        self._inbound = Signal("turnkit.inbound")
        self._outbound = Signal("turnkit.outbound")

    async def publish_inbound(self, activity: Activity) -> None:
        await self._inbound.send_async(self, activity=activity)

    async def publish_outbound(self, activity: Activity) -> None:
        await self._outbound.send_async(self, activity=activity)

    def on_inbound(self, handler: ActivityReceiver) -> Callable[[], None]:
        return self._connect(self._inbound, handler)

    def on_outbound(self, handler: ActivityReceiver) -> Callable[[], None]:
        return self._connect(self._outbound, handler)

    @staticmethod
    def _connect(signal: Signal, handler: ActivityReceiver) -> Callable[[], None]:
        async def _receiver(sender: Any, *, activity: Activity) -> None:
            await handler(activity)

        signal.connect(_receiver, weak=False)
        return lambda: signal.disconnect(_receiver)
