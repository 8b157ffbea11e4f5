from __future__ import annotations

import pytest
from support import message_activity

from turnkit.activity import Activity, ActivityTypes, ConversationReference
from turnkit.adapter import BusAdapter
from turnkit.application import Application
from turnkit.bus import MessageBus
from turnkit.context import TurnContext
from turnkit.state import MemoryStorage, TurnState


@pytest.mark.asyncio
async def test_bus_delivers_to_every_subscriber_until_unsubscribed() -> None:
    bus = MessageBus()
    first: list[str | None] = []
    second: list[str | None] = []

    async def on_first(activity: Activity) -> None:
        first.append(activity.text)

    async def on_second(activity: Activity) -> None:
        second.append(activity.text)

    unsubscribe = bus.on_outbound(on_first)
    bus.on_outbound(on_second)

    await bus.publish_outbound(Activity.message("one"))
    unsubscribe()
    await bus.publish_outbound(Activity.message("two"))

    assert first == ["one"]
    assert second == ["one", "two"]


@pytest.mark.asyncio
async def test_bus_adapter_runs_application_for_inbound_activities() -> None:
    adapter = BusAdapter()
    app = Application(adapter=adapter, storage=MemoryStorage(), start_typing_timer=False)
    replies: list[Activity] = []

    @app.message("ping")
    async def ping(context: TurnContext, state: TurnState) -> None:
        await context.send_activity("pong")

    async def collect(activity: Activity) -> None:
        replies.append(activity)

    adapter.bus.on_outbound(collect)
    adapter.listen(app.run)
    await adapter.bus.publish_inbound(message_activity("ping"))
    adapter.close()
    await adapter.bus.publish_inbound(message_activity("ping"))

    assert [reply.text for reply in replies] == ["pong"]
    assert replies[0].conversation_id == "conv-1"
    assert replies[0].recipient_id == "user-1"
    assert replies[0].sender_id == "bot"


@pytest.mark.asyncio
async def test_bus_adapter_continues_conversations() -> None:
    adapter = BusAdapter()
    app = Application(adapter=adapter, bot_app_id="bot-app", storage=MemoryStorage())
    replies: list[Activity] = []

    async def collect(activity: Activity) -> None:
        replies.append(activity)

    adapter.bus.on_outbound(collect)
    reference = ConversationReference(channel_id="cli", conversation_id="room", user_id="u1")

    await app.send_proactive_activity(reference, "reminder")

    assert len(replies) == 1
    assert replies[0].type == ActivityTypes.MESSAGE
    assert replies[0].conversation_id == "room"
    assert replies[0].sender_id == "bot-app"
    assert replies[0].recipient_id == "u1"


@pytest.mark.asyncio
async def test_context_marks_responded_only_for_non_typing(make_context) -> None:
    context = make_context(message_activity("hi"))

    await context.send_activity(Activity.typing())
    assert context.responded is False

    await context.send_activity("hello")
    assert context.responded is True
