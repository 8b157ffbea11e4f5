from __future__ import annotations

from pathlib import Path

import pytest
from support import message_activity

from turnkit.state import (
    DefaultTurnStateManager,
    FileStorage,
    MemoryStorage,
    TurnState,
    TurnStateEntry,
)

CONVERSATION_KEY = "test/bot/conversations/conv-1"
USER_KEY = "test/bot/users/user-1"


class CountingStorage(MemoryStorage):
    def __init__(self) -> None:
        super().__init__()
        self.writes: list[dict[str, dict[str, object]]] = []
        self.deletes: list[list[str]] = []

    async def write(self, changes):  # type: ignore[no-untyped-def]
        self.writes.append(dict(changes))
        await super().write(changes)

    async def delete(self, keys):  # type: ignore[no-untyped-def]
        self.deletes.append(list(keys))
        await super().delete(keys)


def test_entry_tracks_changes_by_content() -> None:
    entry = TurnStateEntry({"count": 1}, "key")
    assert not entry.has_changed

    entry.set("count", 2)
    assert entry.has_changed

    entry.set("count", 1)
    assert not entry.has_changed


def test_entry_delete_then_access_starts_empty() -> None:
    entry = TurnStateEntry({"count": 1}, "key")
    entry.delete()

    assert entry.is_deleted
    assert entry.get("count") is None
    assert not entry.is_deleted
    assert entry.value == {}


def test_state_always_has_fresh_temp_scope() -> None:
    state = TurnState({"temp": TurnStateEntry({"leftover": True})})

    assert state.temp.value == {}
    assert "conversation" in state
    assert "user" in state
    assert state.scope("missing") is None


def test_storage_keys_follow_channel_bot_and_ids(make_context) -> None:
    keys = DefaultTurnStateManager.storage_keys(make_context(message_activity("hi")))

    assert keys == {"conversation": CONVERSATION_KEY, "user": USER_KEY}


def test_storage_keys_skip_user_scope_without_sender(make_context) -> None:
    keys = DefaultTurnStateManager.storage_keys(make_context(message_activity("hi", sender_id=None, recipient_id=None)))

    assert keys == {"conversation": "test/bot/conversations/conv-1"}


@pytest.mark.asyncio
async def test_unchanged_state_is_not_written(make_context) -> None:
    storage = CountingStorage()
    await storage.write({CONVERSATION_KEY: {"count": 1}})
    storage.writes.clear()
    manager = DefaultTurnStateManager()
    context = make_context(message_activity("hi"))

    state = await manager.load_state(storage, context)
    assert state.conversation.get("count") == 1
    await manager.save_state(storage, context, state)

    assert storage.writes == []


@pytest.mark.asyncio
async def test_only_changed_scopes_are_written(make_context) -> None:
    storage = CountingStorage()
    manager = DefaultTurnStateManager()
    context = make_context(message_activity("hi"))

    state = await manager.load_state(storage, context)
    state.user.set("name", "Ada")
    state.temp.set("scratch", "ignored")
    await manager.save_state(storage, context, state)

    assert storage.writes == [{USER_KEY: {"name": "Ada"}}]
    assert storage.keys() == [USER_KEY]


@pytest.mark.asyncio
async def test_deleted_scope_is_removed_from_storage(make_context) -> None:
    storage = CountingStorage()
    await storage.write({CONVERSATION_KEY: {"count": 3}})
    manager = DefaultTurnStateManager()
    context = make_context(message_activity("hi"))

    state = await manager.load_state(storage, context)
    state.conversation.delete()
    await manager.save_state(storage, context, state)

    assert storage.deletes == [[CONVERSATION_KEY]]
    assert await storage.read([CONVERSATION_KEY]) == {}


@pytest.mark.asyncio
async def test_state_round_trips_across_turns(make_context) -> None:
    storage = MemoryStorage()
    manager = DefaultTurnStateManager()

    first = make_context(message_activity("one"))
    state = await manager.load_state(storage, first)
    state.conversation.set("count", 1)
    await manager.save_state(storage, first, state)

    second = make_context(message_activity("two"))
    state = await manager.load_state(storage, second)
    assert state.conversation.get("count") == 1
    assert state.temp.value == {}


@pytest.mark.asyncio
async def test_without_storage_state_is_empty_and_save_is_noop(make_context) -> None:
    manager = DefaultTurnStateManager()
    context = make_context(message_activity("hi"))

    state = await manager.load_state(None, context)
    state.conversation.set("count", 1)
    await manager.save_state(None, context, state)

    assert state.conversation.get("count") == 1


@pytest.mark.asyncio
async def test_memory_storage_returns_copies() -> None:
    storage = MemoryStorage()
    record = {"items": [1]}
    await storage.write({"k": record})
    record["items"].append(2)

    loaded = await storage.read(["k", "missing"])
    loaded["k"]["items"].append(3)

    assert await storage.read(["k"]) == {"k": {"items": [1]}}


@pytest.mark.asyncio
async def test_file_storage_persists_records(tmp_path: Path) -> None:
    storage = FileStorage(tmp_path / "state")
    await storage.write({CONVERSATION_KEY: {"count": 2}})

    reopened = FileStorage(tmp_path / "state")
    assert await reopened.read([CONVERSATION_KEY, USER_KEY]) == {CONVERSATION_KEY: {"count": 2}}
    assert reopened.keys() == [CONVERSATION_KEY]

    await reopened.delete([CONVERSATION_KEY, USER_KEY])
    assert await reopened.read([CONVERSATION_KEY]) == {}


@pytest.mark.asyncio
async def test_file_storage_skips_corrupt_records(tmp_path: Path) -> None:
    storage = FileStorage(tmp_path)
    await storage.write({"good": {"ok": True}})
    (tmp_path / "bad.json").write_text("{not json", encoding="utf-8")

    assert await storage.read(["good", "bad"]) == {"good": {"ok": True}}
