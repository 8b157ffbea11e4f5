from __future__ import annotations

from dataclasses import dataclass, field

from turnkit.activity import Activity, ActivityTypes
from turnkit.adapter import ChannelAdapter
from turnkit.context import TurnContext


@dataclass
class RecordingAdapter(ChannelAdapter):
    """Adapter that keeps every outgoing activity in memory."""

    sent: list[Activity] = field(default_factory=list)
    proactive: bool = False
    continued: int = 0

    name = "recording"

    @property
    def supports_proactive(self) -> bool:  # type: ignore[override]
        return self.proactive

    async def send_activities(self, context: TurnContext, activities: list[Activity]) -> None:
        self.sent.extend(activities)

    async def continue_conversation(self, bot_app_id, reference, logic) -> None:  # type: ignore[no-untyped-def]
        self.continued += 1
        await super().continue_conversation(bot_app_id, reference, logic)

    def texts(self) -> list[str]:
        return [activity.text or "" for activity in self.sent if activity.type == ActivityTypes.MESSAGE]

    def of_type(self, activity_type: str) -> list[Activity]:
        return [activity for activity in self.sent if activity.type == activity_type]


def message_activity(text: str, **kwargs: object) -> Activity:
    defaults: dict[str, object] = {
        "channel_id": "test",
        "conversation_id": "conv-1",
        "sender_id": "user-1",
        "recipient_id": "bot",
    }
    defaults.update(kwargs)
    return Activity.message(text, **defaults)  # type: ignore[arg-type]


def invoke_activity(name: str, data: dict[str, object] | None = None, **kwargs: object) -> Activity:
    defaults: dict[str, object] = {
        "channel_id": "test",
        "conversation_id": "conv-1",
        "sender_id": "user-1",
        "recipient_id": "bot",
    }
    defaults.update(kwargs)
    return Activity(type=ActivityTypes.INVOKE, name=name, value={"data": data or {}}, **defaults)  # type: ignore[arg-type]
