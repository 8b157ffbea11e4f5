"""Conversation history kept in the conversation scope."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Literal

from turnkit.state import TurnState

HISTORY_KEY = "__history__"

type HistoryRole = Literal["user", "assistant"]


@dataclass(frozen=True)
class HistoryEntry:
    role: HistoryRole
    text: str

    def to_dict(self) -> dict[str, str]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> HistoryEntry | None:
        role = data.get("role")
        text = data.get("text")
        if role not in ("user", "assistant") or not isinstance(text, str):
            return None
        return cls(role=role, text=text)


class ConversationHistory:
    """Helpers reading and writing the bounded history list."""

    @staticmethod
    def add_entry(state: TurnState, role: HistoryRole, text: str, max_entries: int = 10) -> None:
        """Append one entry, dropping the oldest entries beyond max_entries."""

        if max_entries <= 0:
            state.conversation.remove(HISTORY_KEY)
            return
        entries = [entry.to_dict() for entry in ConversationHistory.get_entries(state)]
        entries.append(HistoryEntry(role=role, text=text).to_dict())
        state.conversation.set(HISTORY_KEY, entries[-max_entries:])

    @staticmethod
    def get_entries(state: TurnState) -> list[HistoryEntry]:
        raw = state.conversation.get(HISTORY_KEY)
        if not isinstance(raw, list):
            return []
        entries: list[HistoryEntry] = []
        for item in raw:
            if not isinstance(item, dict):
                continue
            entry = HistoryEntry.from_dict(item)
            if entry is not None:
                entries.append(entry)
        return entries

    @staticmethod
    def last_entry(state: TurnState) -> HistoryEntry | None:
        entries = ConversationHistory.get_entries(state)
        return entries[-1] if entries else None

    @staticmethod
    def remove_last_entry(state: TurnState) -> HistoryEntry | None:
        entries = ConversationHistory.get_entries(state)
        if not entries:
            return None
        removed = entries.pop()
        state.conversation.set(HISTORY_KEY, [entry.to_dict() for entry in entries])
        return removed

    @staticmethod
    def clear(state: TurnState) -> None:
        state.conversation.remove(HISTORY_KEY)

    @staticmethod
    def to_text(
        state: TurnState,
        *,
        max_entries: int | None = None,
        separator: str = "\n",
        user_prefix: str = "User:",
        assistant_prefix: str = "Assistant:",
    ) -> str:
        entries = ConversationHistory.get_entries(state)
        if max_entries is not None:
            entries = entries[-max_entries:] if max_entries > 0 else []
        lines = [
            f"{user_prefix if entry.role == 'user' else assistant_prefix} {entry.text}" for entry in entries
        ]
        return separator.join(lines)
