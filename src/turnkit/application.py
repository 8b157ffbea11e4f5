"""Turn lifecycle: load state, run hooks, dispatch one handler, save state."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field, replace
from typing import Any

import pluggy
from loguru import logger

from turnkit.activity import Activity, ActivityTypes, ConversationReference, remove_recipient_mention
from turnkit.adapter import ChannelAdapter, TurnLogic
from turnkit.ai import AI, AIOptions
from turnkit.config import Settings, load_settings
from turnkit.context import TurnContext
from turnkit.errors import ConfigurationError
from turnkit.hook_runtime import HookRuntime
from turnkit.hookspecs import TURNKIT_HOOK_NAMESPACE, TurnkitHookSpecs
from turnkit.logging_utils import bind_conversation, reset_conversation
from turnkit.routing import (
    Route,
    RouteLane,
    RouteRegistry,
    SelectorSpec,
    activity_selector,
    conversation_update_selector,
    message_reaction_selector,
    message_selector,
)
from turnkit.state import DefaultTurnStateManager, FileStorage, Storage, TurnState, TurnStateManager
from turnkit.task_modules import TaskModules
from turnkit.types import RouteHandler, RouteSelector, TurnEvent, TurnHook, TurnResult
from turnkit.typing_timer import TypingTimer


@dataclass
class ApplicationOptions:
    """Collaborators and switches for one Application."""

    adapter: ChannelAdapter | None = None
    bot_app_id: str | None = None
    storage: Storage | None = None
    turn_state_manager: TurnStateManager = field(default_factory=DefaultTurnStateManager)
    ai: AIOptions | None = None
    remove_recipient_mention: bool = True
    start_typing_timer: bool = True
    typing_timer_delay: float = 1.0
    long_running_messages: bool = False
    task_data_filter: str = "verb"
    plugins: list[Any] = field(default_factory=list)

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs: Any) -> ApplicationOptions:
        """Build options from settings; explicit keyword arguments win over settings."""

        ai_options = kwargs.pop("ai", None)
        if ai_options is not None:
            ai_options = replace(
                ai_options,
                max_steps=settings.ai_max_steps,
                max_history_entries=settings.max_history_entries,
            )
        values: dict[str, Any] = {
            "bot_app_id": settings.bot_app_id,
            "remove_recipient_mention": settings.remove_recipient_mention,
            "start_typing_timer": settings.start_typing_timer,
            "typing_timer_delay": settings.typing_timer_delay,
            "long_running_messages": settings.long_running_messages,
            "task_data_filter": settings.task_data_filter,
        }
        values.update(kwargs)
        if values.get("storage") is None and settings.storage_path is not None:
            values["storage"] = FileStorage(settings.storage_path)
        return cls(ai=ai_options, **values)


class Application:
    """Routes each turn to exactly one handler, or to the AI loop."""

    def __init__(self, options: ApplicationOptions | None = None, **kwargs: Any) -> None:
        if options is not None and kwargs:
            raise TypeError(f"pass either options or keyword options, not both: {', '.join(sorted(kwargs))}")
        self._options = options or ApplicationOptions(**kwargs)
        self._routes = RouteRegistry()
        self._before_turn: list[TurnHook] = []
        self._after_turn: list[TurnHook] = []

        self._plugin_manager = pluggy.PluginManager(TURNKIT_HOOK_NAMESPACE)
        self._plugin_manager.add_hookspecs(TurnkitHookSpecs)
        for plugin in self._options.plugins:
            self._plugin_manager.register(plugin)
        self._hooks = HookRuntime(self._plugin_manager)

        self._storage = self._options.storage or self._hooks.call_first_sync("provide_storage")
        self._ai = AI(self._options.ai) if self._options.ai is not None else None
        self._task_modules = TaskModules(self)

        if self._options.long_running_messages and not self._supports_proactive():
            raise ConfigurationError(
                "long_running_messages is unavailable because no proactive adapter or bot_app_id was configured."
            )

    @classmethod
    def from_settings(cls, settings: Settings | None = None, **kwargs: Any) -> Application:
        """Build an application from env/.env settings plus explicit collaborators."""

        settings = settings or load_settings()
        return cls(ApplicationOptions.from_settings(settings, **kwargs))

    @property
    def options(self) -> ApplicationOptions:
        return self._options

    @property
    def ai(self) -> AI:
        if self._ai is None:
            raise ConfigurationError("Application.ai is unavailable because no AI options were configured.")
        return self._ai

    @property
    def has_ai(self) -> bool:
        return self._ai is not None

    @property
    def storage(self) -> Storage | None:
        return self._storage

    @property
    def task_modules(self) -> TaskModules:
        return self._task_modules

    @property
    def routes(self) -> RouteRegistry:
        return self._routes

    def hook_report(self) -> dict[str, list[str]]:
        return self._hooks.hook_report()

    def add_route(
        self,
        selector: RouteSelector,
        handler: RouteHandler,
        lane: RouteLane = RouteLane.DEFAULT,
    ) -> Application:
        self._routes.add(selector, handler, lane)
        return self

    def activity(self, spec: SelectorSpec | list[SelectorSpec], handler: RouteHandler | None = None) -> Any:
        return self._register(spec, activity_selector, handler)

    def message(self, spec: SelectorSpec | list[SelectorSpec], handler: RouteHandler | None = None) -> Any:
        return self._register(spec, message_selector, handler)

    def conversation_update(self, event: str | list[str], handler: RouteHandler | None = None) -> Any:
        return self._register(event, conversation_update_selector, handler)

    def message_reactions(self, event: str | list[str], handler: RouteHandler | None = None) -> Any:
        return self._register(event, message_reaction_selector, handler)

    def turn(self, event: TurnEvent | list[TurnEvent], handler: TurnHook | None = None) -> Any:
        events = event if isinstance(event, list) else [event]

        def _add(hook: TurnHook) -> TurnHook:
            for name in events:
                if name == "before_turn":
                    self._before_turn.append(hook)
                elif name == "after_turn":
                    self._after_turn.append(hook)
                else:
                    raise ValueError(f"unknown turn event: {name}")
            return hook

        if handler is None:
            return _add
        _add(handler)
        return self

    async def run(self, context: TurnContext) -> TurnResult:
        """Run one turn for the activity in context."""

        token = bind_conversation(context.activity.conversation_id)
        try:
            result = await self._start_long_running_call(context, self._run_turn)
        except Exception as exc:
            await self._hooks.notify_error(stage="turn", error=exc, activity=context.activity)
            raise
        finally:
            reset_conversation(token)
        await self._hooks.call_many("on_turn_end", context=context, result=result)
        return result

    async def process(self, activity: Activity) -> Activity | None:
        """Run one inbound activity through the configured adapter."""

        adapter = self._require_adapter("process")
        return await adapter.process_activity(activity, self.run)

    async def continue_conversation(
        self,
        target: TurnContext | Activity | ConversationReference,
        logic: TurnLogic,
    ) -> None:
        adapter = self._require_adapter("continue_conversation")
        if not self._options.bot_app_id:
            logger.warning("app.continue_conversation without bot_app_id; production channels require one")

        if isinstance(target, TurnContext):
            reference = ConversationReference.from_activity(target.activity)
        elif isinstance(target, Activity):
            reference = ConversationReference.from_activity(target)
        else:
            reference = target
        await adapter.continue_conversation(self._options.bot_app_id or "", reference, logic)

    async def send_proactive_activity(
        self,
        target: TurnContext | Activity | ConversationReference,
        activity_or_text: Activity | str,
    ) -> Activity | None:
        sent: list[Activity | None] = []

        async def _send(context: TurnContext) -> None:
            sent.append(await context.send_activity(activity_or_text))

        await self.continue_conversation(target, _send)
        return sent[0] if sent else None

    async def _run_turn(self, context: TurnContext) -> TurnResult:
        options = self._options
        activity = context.activity
        if options.remove_recipient_mention and activity.type == ActivityTypes.MESSAGE:
            context.activity = activity.with_text(remove_recipient_mention(activity))

        manager = options.turn_state_manager
        state = await manager.load_state(self._storage, context)
        logger.info("turn.start type={} name={}", context.activity.type, context.activity.name or "-")

        if not await self._call_turn_hooks(context, state, self._before_turn):
            await manager.save_state(self._storage, context, state)
            logger.info("turn.aborted stage=before_turn")
            return TurnResult(handled=False, saved=True, status="aborted")

        timer = self._start_typing_timer(context)
        try:
            route_name = await self._dispatch(context, state)
        finally:
            if timer is not None:
                timer.stop()

        if route_name is None:
            logger.info("turn.unhandled type={}", context.activity.type)
            return TurnResult(handled=False, saved=False, status="unhandled")

        if not await self._call_turn_hooks(context, state, self._after_turn):
            logger.info("turn.not_persisted route={}", route_name)
            return TurnResult(handled=True, saved=False, status="not_persisted", route=route_name)

        await manager.save_state(self._storage, context, state)
        logger.info("turn.finish route={}", route_name)
        return TurnResult(handled=True, saved=True, status="handled", route=route_name)

    async def _dispatch(self, context: TurnContext, state: TurnState) -> str | None:
        route: Route | None = await self._routes.resolve(context)
        if route is not None:
            logger.info("turn.dispatch lane={} route={}", route.lane, route.name)
            await route.handler(context, state)
            return route.name

        activity = context.activity
        if self._ai is not None and activity.type == ActivityTypes.MESSAGE and activity.text:
            logger.info("turn.dispatch route=ai")
            await self._ai.chain(context, state)
            return "ai"
        return None

    @staticmethod
    async def _call_turn_hooks(context: TurnContext, state: TurnState, hooks: list[TurnHook]) -> bool:
        for hook in hooks:
            if not await hook(context, state):
                return False
        return True

    def _start_typing_timer(self, context: TurnContext) -> TypingTimer | None:
        if not self._options.start_typing_timer:
            return None
        timer = TypingTimer(self._options.typing_timer_delay)
        return timer if timer.start(context) else None

    async def _start_long_running_call(
        self,
        context: TurnContext,
        handler: Callable[[TurnContext], Any],
    ) -> TurnResult:
        if context.activity.type != ActivityTypes.MESSAGE or not self._options.long_running_messages:
            return await handler(context)

        results: list[TurnResult] = []

        async def _continue(proactive: TurnContext) -> None:
            proactive.activity = replace(context.activity)
            results.append(await handler(proactive))

        logger.info("turn.long_running conversation={}", context.activity.conversation_id)
        await self.continue_conversation(context, _continue)
        return results[0]

    def _register(
        self,
        specs: Any,
        factory: Callable[[Any], RouteSelector],
        handler: RouteHandler | None,
    ) -> Any:
        items = specs if isinstance(specs, list) else [specs]

        def _add(route_handler: RouteHandler) -> RouteHandler:
            for spec in items:
                self._routes.add(factory(spec), route_handler)
            return route_handler

        if handler is None:
            return _add
        _add(handler)
        return self

    def _supports_proactive(self) -> bool:
        adapter = self._options.adapter
        return adapter is not None and adapter.supports_proactive and bool(self._options.bot_app_id)

    def _require_adapter(self, operation: str) -> ChannelAdapter:
        adapter = self._options.adapter
        if adapter is None:
            raise ConfigurationError(f"Application.{operation} requires an adapter to be configured.")
        return adapter
