"""Turn state scopes and the manager that loads and saves them."""

from __future__ import annotations

import hashlib
import json
from abc import ABC, abstractmethod
from collections.abc import Iterator
from typing import TYPE_CHECKING, Any

from loguru import logger

from turnkit.state.storage import Storage

if TYPE_CHECKING:
    from turnkit.context import TurnContext

CONVERSATION_SCOPE = "conversation"
USER_SCOPE = "user"
TEMP_SCOPE = "temp"


def _hash_value(value: dict[str, Any]) -> str:
    encoded = json.dumps(value, sort_keys=True, ensure_ascii=False, default=str)
    return hashlib.sha256(encoded.encode("utf-8")).hexdigest()


class TurnStateEntry:
    """One named scope: a flat mapping plus change tracking."""

    def __init__(self, value: dict[str, Any] | None = None, storage_key: str | None = None) -> None:
        self._value: dict[str, Any] = dict(value or {})
        self._storage_key = storage_key
        self._hash = _hash_value(self._value)
        self._deleted = False

    @property
    def storage_key(self) -> str | None:
        return self._storage_key

    @property
    def value(self) -> dict[str, Any]:
        if self._deleted:
            self._value = {}
            self._deleted = False
        return self._value

    @property
    def has_changed(self) -> bool:
        return _hash_value(self._value) != self._hash

    @property
    def is_deleted(self) -> bool:
        return self._deleted

    def get(self, key: str, default: Any = None) -> Any:
        return self.value.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self.value[key] = value

    def remove(self, key: str) -> None:
        self.value.pop(key, None)

    def delete(self) -> None:
        """Drop the whole scope; it is removed from storage on save."""
        self._value = {}
        self._deleted = True

    def replace(self, value: dict[str, Any] | None = None) -> None:
        self._value = dict(value or {})
        self._deleted = False

    def mark_saved(self) -> None:
        self._hash = _hash_value(self._value)

    def __contains__(self, key: object) -> bool:
        return key in self._value

    def __repr__(self) -> str:
        return f"TurnStateEntry(storage_key={self._storage_key!r}, value={self._value!r})"


class TurnState:
    """All scopes for one turn, keyed by scope name."""

    def __init__(self, scopes: dict[str, TurnStateEntry] | None = None) -> None:
        self._scopes: dict[str, TurnStateEntry] = dict(scopes or {})
        self._scopes.setdefault(CONVERSATION_SCOPE, TurnStateEntry())
        self._scopes.setdefault(USER_SCOPE, TurnStateEntry())
        self._scopes[TEMP_SCOPE] = TurnStateEntry()

    @property
    def conversation(self) -> TurnStateEntry:
        return self._scopes[CONVERSATION_SCOPE]

    @property
    def user(self) -> TurnStateEntry:
        return self._scopes[USER_SCOPE]

    @property
    def temp(self) -> TurnStateEntry:
        return self._scopes[TEMP_SCOPE]

    def scope(self, name: str) -> TurnStateEntry | None:
        return self._scopes.get(name)

    def items(self) -> Iterator[tuple[str, TurnStateEntry]]:
        return iter(self._scopes.items())

    def __getitem__(self, name: str) -> TurnStateEntry:
        return self._scopes[name]

    def __contains__(self, name: object) -> bool:
        return name in self._scopes


class TurnStateManager(ABC):
    """Loads state before a turn and persists it after."""

    @abstractmethod
    async def load_state(self, storage: Storage | None, context: TurnContext) -> TurnState:
        """Materialize state for the activity in context."""

    @abstractmethod
    async def save_state(self, storage: Storage | None, context: TurnContext, state: TurnState) -> None:
        """Persist dirty scopes and remove deleted ones."""


class DefaultTurnStateManager(TurnStateManager):
    """Conversation and user scopes keyed by channel, bot and conversation/user ids."""

    async def load_state(self, storage: Storage | None, context: TurnContext) -> TurnState:
        keys = self.storage_keys(context)
        items = await storage.read(list(keys.values())) if storage is not None else {}
        scopes = {name: TurnStateEntry(items.get(key), key) for name, key in keys.items()}
        logger.debug("state.load keys={} found={}", list(keys.values()), len(items))
        return TurnState(scopes)

    async def save_state(self, storage: Storage | None, context: TurnContext, state: TurnState) -> None:
        if storage is None:
            return
        changes: dict[str, dict[str, Any]] = {}
        deletions: list[str] = []
        for name, entry in state.items():
            if name == TEMP_SCOPE or entry.storage_key is None:
                continue
            if entry.is_deleted:
                deletions.append(entry.storage_key)
            elif entry.has_changed:
                changes[entry.storage_key] = dict(entry.value)

        if changes:
            await storage.write(changes)
        if deletions:
            await storage.delete(deletions)
        for name, entry in state.items():
            if name != TEMP_SCOPE:
                entry.mark_saved()
        logger.debug("state.save written={} deleted={}", sorted(changes), deletions)

    @staticmethod
    def storage_keys(context: TurnContext) -> dict[str, str]:
        activity = context.activity
        channel_id = activity.channel_id or "default"
        bot_id = activity.recipient_id or "bot"
        keys = {CONVERSATION_SCOPE: f"{channel_id}/{bot_id}/conversations/{activity.conversation_id}"}
        if activity.sender_id:
            keys[USER_SCOPE] = f"{channel_id}/{bot_id}/users/{activity.sender_id}"
        return keys
