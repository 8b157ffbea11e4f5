"""Work item bot - keyword routes plus an AI plan loop.

Run it from this directory:

    python -m turnkit routes work_items_bot:build
    python -m turnkit chat work_items_bot:build

The planner here is a toy keyword matcher standing in for a model call:
"create <title>" becomes a DO createWI command followed by a SAY, anything
else is echoed back. Saying "reset" clears the conversation.
"""

from __future__ import annotations

from typing import Any

from turnkit import Application, BusAdapter, MemoryStorage, TurnContext, TurnState
from turnkit.ai import AIOptions, DoCommand, Plan, RenderedPrompt, SayCommand


class KeywordPlanner:
    async def complete_prompt(
        self, context: TurnContext, state: TurnState, prompt: RenderedPrompt, options: Any
    ) -> Plan:
        text = (context.activity.text or "").strip()
        if text.lower().startswith("create "):
            title = text[len("create ") :]
            return Plan(
                commands=[
                    DoCommand(action="createWI", entities={"title": title}),
                    SayCommand(response=f"Created work item '{title}'."),
                ]
            )
        return Plan.say(f"You said: {text}")


def build() -> Application:
    app = Application.from_settings(
        adapter=BusAdapter(),
        storage=MemoryStorage(),
        start_typing_timer=False,
        ai=AIOptions(planner=KeywordPlanner()),
    )

    @app.message("reset")
    async def reset(context: TurnContext, state: TurnState) -> None:
        state.conversation.delete()
        await context.send_activity("Conversation reset.")

    @app.message("list")
    async def list_items(context: TurnContext, state: TurnState) -> None:
        items = state.conversation.get("work_items", [])
        await context.send_activity(", ".join(items) if items else "No work items yet.")

    @app.ai.action("createWI")
    async def create_work_item(context: TurnContext, state: TurnState, entities: dict[str, Any]) -> str:
        items = list(state.conversation.get("work_items", []))
        items.append(entities["title"])
        state.conversation.set("work_items", items)
        return entities["title"]

    return app
