from __future__ import annotations

import json
from pathlib import Path

import pytest
from support import message_activity

from turnkit.ai.history import HISTORY_KEY, ConversationHistory, HistoryEntry
from turnkit.ai.planner import CompletionPlanner
from turnkit.ai.plan import Plan
from turnkit.ai.prompts import PromptManager, PromptTemplate
from turnkit.state import TurnState


def test_history_is_bounded_to_latest_entries() -> None:
    state = TurnState()
    for index in range(5):
        ConversationHistory.add_entry(state, "user", f"m{index}", max_entries=3)

    assert [entry.text for entry in ConversationHistory.get_entries(state)] == ["m2", "m3", "m4"]


def test_history_with_zero_limit_is_cleared() -> None:
    state = TurnState()
    ConversationHistory.add_entry(state, "user", "hello")
    ConversationHistory.add_entry(state, "user", "again", max_entries=0)

    assert HISTORY_KEY not in state.conversation


def test_history_text_and_last_entry() -> None:
    state = TurnState()
    ConversationHistory.add_entry(state, "user", "hi")
    ConversationHistory.add_entry(state, "assistant", "hello")

    assert ConversationHistory.to_text(state) == "User: hi\nAssistant: hello"
    assert ConversationHistory.to_text(state, max_entries=1) == "Assistant: hello"
    assert ConversationHistory.last_entry(state) == HistoryEntry("assistant", "hello")

    assert ConversationHistory.remove_last_entry(state) == HistoryEntry("assistant", "hello")
    assert ConversationHistory.to_text(state) == "User: hi"


def test_history_ignores_malformed_records() -> None:
    state = TurnState()
    state.conversation.set(HISTORY_KEY, [{"role": "user", "text": "ok"}, {"role": "system", "text": "x"}, "junk"])

    assert ConversationHistory.get_entries(state) == [HistoryEntry("user", "ok")]

    ConversationHistory.clear(state)
    assert ConversationHistory.get_entries(state) == []


@pytest.mark.asyncio
async def test_render_prompt_resolves_scopes_and_functions(make_context) -> None:
    prompts = PromptManager()
    state = TurnState()
    state.temp.set("input", "hi")
    state.user.set("name", "Ada")
    state.conversation.set("items", ["a", "b"])

    @prompts.function("today")
    def today(context, state) -> str:  # type: ignore[no-untyped-def]
        return "Monday"

    template = PromptTemplate(
        name="greet",
        text="{{$input}} {{$user.name}} {{ $conversation.items }} {{today}} [{{missing}}] [{{$other.key}}]",
    )
    rendered = await prompts.render_prompt(make_context(message_activity("hi")), state, template)

    assert rendered.text == 'hi Ada ["a", "b"] Monday [] []'
    assert rendered.name == "greet"


@pytest.mark.asyncio
async def test_async_prompt_functions_are_awaited(make_context) -> None:
    prompts = PromptManager()

    async def sender(context, state) -> str:  # type: ignore[no-untyped-def]
        return context.activity.sender_id

    prompts.add_function("sender", sender)
    prompts.add_template("who", "from {{sender}}")

    rendered = await prompts.render_prompt(make_context(message_activity("x")), TurnState(), "who")

    assert rendered.text == "from user-1"


def test_prompt_functions_cannot_be_silently_replaced() -> None:
    prompts = PromptManager()
    prompts.add_function("f", lambda context, state: 1)

    with pytest.raises(ValueError):
        prompts.add_function("f", lambda context, state: 2)
    prompts.add_function("f", lambda context, state: 2, allow_overrides=True)
    assert prompts.has_function("f")


def test_templates_load_from_prompts_folder(tmp_path: Path) -> None:
    folder = tmp_path / "chat"
    folder.mkdir()
    (folder / "skprompt.txt").write_text("Hello {{$input}}", encoding="utf-8")
    (folder / "config.json").write_text(json.dumps({"temperature": 0.2}), encoding="utf-8")
    prompts = PromptManager(tmp_path)

    assert prompts.has_template("chat")
    assert not prompts.has_template("absent")
    template = prompts.get_template("chat")
    assert template.text == "Hello {{$input}}"
    assert template.config == {"temperature": 0.2}
    with pytest.raises(KeyError):
        prompts.get_template("absent")


@pytest.mark.asyncio
async def test_completion_planner_wraps_text_functions(make_context) -> None:
    prompts = PromptManager()
    state = TurnState()
    state.temp.set("input", "hi")
    rendered = await prompts.render_prompt(make_context(message_activity("hi")), state, "default")
    seen: list[str] = []

    def complete(text: str) -> str:
        seen.append(text)
        return "Hello!"

    plan = await CompletionPlanner(complete).complete_prompt(
        make_context(message_activity("hi")), state, rendered, None
    )

    assert plan == Plan.say("Hello!")
    assert seen == ["\nUser: hi\nAssistant:"]
