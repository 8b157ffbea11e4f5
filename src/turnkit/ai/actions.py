"""Registry of app actions callable from DO commands."""

from __future__ import annotations

import inspect
import json
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from loguru import logger

from turnkit.errors import ActionError, UnknownActionError

if TYPE_CHECKING:
    from turnkit.context import TurnContext
    from turnkit.state import TurnState

type ActionHandler = Callable[[TurnContext, TurnState, dict[str, Any]], Awaitable[Any] | Any]


def _shorten_text(text: str, width: int = 30, placeholder: str = "...") -> str:
    """Shorten text to width characters, cutting in the middle of words if needed."""
    if len(text) <= width:
        return text

    available = width - len(placeholder)
    if available <= 0:
        return placeholder

    return text[:available] + placeholder


@dataclass(frozen=True)
class ActionEntry:
    name: str
    handler: ActionHandler
    allow_overrides: bool = False


class ActionRegistry:
    """Name -> handler table. Read-only once the app starts serving."""

    def __init__(self) -> None:
        self._actions: dict[str, ActionEntry] = {}

    def register(self, name: str, handler: ActionHandler, *, allow_overrides: bool = False) -> None:
        existing = self._actions.get(name)
        if existing is not None and not existing.allow_overrides:
            raise ValueError(f"action already registered: {name}")
        self._actions[name] = ActionEntry(name=name, handler=handler, allow_overrides=allow_overrides)

    def has(self, name: str) -> bool:
        return name in self._actions

    def get(self, name: str) -> ActionEntry | None:
        return self._actions.get(name)

    def names(self) -> list[str]:
        return sorted(self._actions)

    async def execute(self, name: str, context: TurnContext, state: TurnState, entities: dict[str, Any]) -> Any:
        entry = self.get(name)
        if entry is None:
            raise UnknownActionError(name)

        self._log_action_call(name, entities)
        start = time.monotonic()
        try:
            result = entry.handler(context, state, entities)
            if inspect.isawaitable(result):
                result = await result
            return result
        except Exception as exc:
            logger.exception("ai.action.call.error name={}", name)
            raise ActionError(name, exc) from exc
        finally:
            duration = time.monotonic() - start
            logger.info("ai.action.call.end name={} duration={:.3f}ms", name, duration * 1000)

    def _log_action_call(self, name: str, entities: dict[str, Any]) -> None:
        params: list[str] = []
        for key, value in entities.items():
            try:
                rendered = json.dumps(value, ensure_ascii=False)
            except TypeError:
                rendered = repr(value)
            params.append(f"{key}={_shorten_text(rendered)}")
        logger.info("ai.action.call.start name={} {{ {} }}", name, ", ".join(params))
