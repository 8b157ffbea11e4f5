"""Interaction event models."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from typing import Any


class ActivityTypes:
    """Activity type names understood by the router."""

    MESSAGE = "message"
    INVOKE = "invoke"
    INVOKE_RESPONSE = "invokeResponse"
    CONVERSATION_UPDATE = "conversationUpdate"
    MESSAGE_REACTION = "messageReaction"
    TYPING = "typing"
    EVENT = "event"


@dataclass(frozen=True)
class Activity:
    """One inbound or outbound interaction event."""

    type: str
    id: str | None = None
    channel_id: str = "default"
    conversation_id: str = "default"
    sender_id: str | None = None
    recipient_id: str | None = None
    text: str | None = None
    value: Any = None
    name: str | None = None
    members_added: list[dict[str, Any]] = field(default_factory=list)
    members_removed: list[dict[str, Any]] = field(default_factory=list)
    reactions_added: list[dict[str, Any]] = field(default_factory=list)
    reactions_removed: list[dict[str, Any]] = field(default_factory=list)
    channel_data: dict[str, Any] = field(default_factory=dict)
    entities: list[dict[str, Any]] = field(default_factory=list)
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    @classmethod
    def message(cls, text: str, **kwargs: Any) -> Activity:
        return cls(type=ActivityTypes.MESSAGE, text=text, **kwargs)

    @classmethod
    def typing(cls) -> Activity:
        return cls(type=ActivityTypes.TYPING)

    def with_text(self, text: str | None) -> Activity:
        return replace(self, text=text)

    def reply(self, text: str) -> Activity:
        """Create a message addressed back to the sender of this activity."""

        return Activity(
            type=ActivityTypes.MESSAGE,
            channel_id=self.channel_id,
            conversation_id=self.conversation_id,
            sender_id=self.recipient_id,
            recipient_id=self.sender_id,
            text=text,
        )


@dataclass(frozen=True)
class ConversationReference:
    """Enough of an activity to address its conversation later."""

    channel_id: str
    conversation_id: str
    user_id: str | None = None
    bot_id: str | None = None
    activity_id: str | None = None

    @classmethod
    def from_activity(cls, activity: Activity) -> ConversationReference:
        return cls(
            channel_id=activity.channel_id,
            conversation_id=activity.conversation_id,
            user_id=activity.sender_id,
            bot_id=activity.recipient_id,
            activity_id=activity.id,
        )

    def to_activity(self, activity_type: str = ActivityTypes.EVENT) -> Activity:
        return Activity(
            type=activity_type,
            id=self.activity_id,
            channel_id=self.channel_id,
            conversation_id=self.conversation_id,
            sender_id=self.user_id,
            recipient_id=self.bot_id,
        )


def remove_recipient_mention(activity: Activity) -> str | None:
    """Return the message text with @mentions of the recipient removed."""

    text = activity.text
    if not text or not activity.recipient_id:
        return text
    for entity in activity.entities:
        if entity.get("type") != "mention":
            continue
        mentioned = entity.get("mentioned")
        if not isinstance(mentioned, Mapping) or mentioned.get("id") != activity.recipient_id:
            continue
        mention_text = entity.get("text")
        if isinstance(mention_text, str) and mention_text:
            text = text.replace(mention_text, "")
    return text.strip()
