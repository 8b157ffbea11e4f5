"""turnkit - turn dispatch and AI plan execution for conversational apps."""

from turnkit.activity import Activity, ActivityTypes, ConversationReference
from turnkit.adapter import BusAdapter, ChannelAdapter
from turnkit.application import Application, ApplicationOptions
from turnkit.bus import MessageBus
from turnkit.context import TurnContext
from turnkit.routing import RouteLane
from turnkit.state import FileStorage, MemoryStorage, Storage, TurnState
from turnkit.types import TurnResult

__version__ = "0.1.0"

__all__ = [
    "Activity",
    "ActivityTypes",
    "Application",
    "ApplicationOptions",
    "BusAdapter",
    "ChannelAdapter",
    "ConversationReference",
    "FileStorage",
    "MemoryStorage",
    "MessageBus",
    "RouteLane",
    "Storage",
    "TurnContext",
    "TurnResult",
    "TurnState",
]
