"""Prompt templates, function bindings and rendering."""

from __future__ import annotations

import inspect
import json
import re
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any

from loguru import logger

from turnkit.state.turn_state import TEMP_SCOPE

if TYPE_CHECKING:
    from turnkit.context import TurnContext
    from turnkit.state import TurnState

type PromptFunction = Callable[[TurnContext, TurnState], Awaitable[Any] | Any]

REFERENCE_RE = re.compile(r"\{\{\s*(\$?[A-Za-z_][A-Za-z0-9_.]*)\s*\}\}")
PROMPT_FILE = "skprompt.txt"
CONFIG_FILE = "config.json"


@dataclass(frozen=True)
class PromptTemplate:
    name: str
    text: str
    config: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class RenderedPrompt:
    """Final prompt text handed to the moderator and planner."""

    name: str
    text: str
    config: dict[str, Any] = field(default_factory=dict)


DEFAULT_PROMPT = PromptTemplate(
    name="default",
    text="{{$history}}\nUser: {{$input}}\nAssistant:",
)


class PromptManager:
    """Holds templates and the functions they may call.

    Templates are added in code or loaded lazily from
    ``<prompts_folder>/<name>/skprompt.txt`` (with an optional ``config.json``).

    References:
        ``{{$name}}`` reads ``temp.name``; ``{{$scope.key}}`` reads a key from
        the ``conversation``, ``user`` or ``temp`` scope; ``{{name}}`` calls a
        registered function. Unknown references render as empty text.
    """

    def __init__(self, prompts_folder: Path | None = None) -> None:
        self._prompts_folder = prompts_folder
        self._templates: dict[str, PromptTemplate] = {DEFAULT_PROMPT.name: DEFAULT_PROMPT}
        self._functions: dict[str, PromptFunction] = {}

    def add_template(self, template: PromptTemplate | str, text: str | None = None) -> PromptTemplate:
        if isinstance(template, str):
            if text is None:
                raise ValueError("template text is required when adding by name")
            template = PromptTemplate(name=template, text=text)
        self._templates[template.name] = template
        return template

    def has_template(self, name: str) -> bool:
        return name in self._templates or self._template_dir(name) is not None

    def get_template(self, name: str) -> PromptTemplate:
        template = self._templates.get(name)
        if template is not None:
            return template
        folder = self._template_dir(name)
        if folder is None:
            raise KeyError(name)
        config_path = folder / CONFIG_FILE
        config = json.loads(config_path.read_text(encoding="utf-8")) if config_path.exists() else {}
        template = PromptTemplate(name=name, text=(folder / PROMPT_FILE).read_text(encoding="utf-8"), config=config)
        self._templates[name] = template
        return template

    def add_function(self, name: str, handler: PromptFunction, *, allow_overrides: bool = False) -> None:
        if name in self._functions and not allow_overrides:
            raise ValueError(f"prompt function already registered: {name}")
        self._functions[name] = handler

    def function(self, name: str) -> Callable[[PromptFunction], PromptFunction]:
        def decorator(handler: PromptFunction) -> PromptFunction:
            self.add_function(name, handler)
            return handler

        return decorator

    def has_function(self, name: str) -> bool:
        return name in self._functions

    async def invoke_function(self, name: str, context: TurnContext, state: TurnState) -> Any:
        handler = self._functions.get(name)
        if handler is None:
            raise KeyError(name)
        value = handler(context, state)
        if inspect.isawaitable(value):
            value = await value
        return value

    async def render_prompt(
        self, context: TurnContext, state: TurnState, template: PromptTemplate | str
    ) -> RenderedPrompt:
        if isinstance(template, str):
            template = self.get_template(template)

        values: dict[str, str] = {}
        for match in REFERENCE_RE.finditer(template.text):
            reference = match.group(1)
            if reference in values:
                continue
            values[reference] = await self._resolve(reference, context, state)

        text = REFERENCE_RE.sub(lambda match: values[match.group(1)], template.text)
        return RenderedPrompt(name=template.name, text=text, config=dict(template.config))

    async def _resolve(self, reference: str, context: TurnContext, state: TurnState) -> str:
        if reference.startswith("$"):
            scope_name, _, key = reference[1:].rpartition(".")
            scope = state.scope(scope_name or TEMP_SCOPE)
            if scope is None:
                logger.debug("prompt.reference.unknown_scope reference={}", reference)
                return ""
            return _format_value(scope.get(key))
        if reference not in self._functions:
            logger.debug("prompt.reference.unknown_function reference={}", reference)
            return ""
        return _format_value(await self.invoke_function(reference, context, state))

    def _template_dir(self, name: str) -> Path | None:
        if self._prompts_folder is None:
            return None
        folder = self._prompts_folder / name
        if (folder / PROMPT_FILE).is_file():
            return folder
        return None


def _format_value(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, (dict, list, tuple)):
        return json.dumps(value, ensure_ascii=False)
    return str(value)
