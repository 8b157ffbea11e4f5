"""Turn state scopes and backing stores."""

from turnkit.state.storage import FileStorage, MemoryStorage, Storage
from turnkit.state.turn_state import (
    CONVERSATION_SCOPE,
    TEMP_SCOPE,
    USER_SCOPE,
    DefaultTurnStateManager,
    TurnState,
    TurnStateEntry,
    TurnStateManager,
)

__all__ = [
    "CONVERSATION_SCOPE",
    "TEMP_SCOPE",
    "USER_SCOPE",
    "DefaultTurnStateManager",
    "FileStorage",
    "MemoryStorage",
    "Storage",
    "TurnState",
    "TurnStateEntry",
    "TurnStateManager",
]
