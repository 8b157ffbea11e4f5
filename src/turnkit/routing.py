"""Route selectors and the ordered route registry."""

from __future__ import annotations

import inspect
import re
from collections.abc import Mapping
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING

from loguru import logger

from turnkit.activity import ActivityTypes
from turnkit.errors import SelectorError
from turnkit.types import RouteHandler, RouteSelector

if TYPE_CHECKING:
    from turnkit.context import TurnContext

type SelectorSpec = str | re.Pattern[str] | RouteSelector

CONVERSATION_UPDATE_EVENTS = frozenset({
    "channelCreated",
    "channelRenamed",
    "channelDeleted",
    "channelRestored",
    "membersAdded",
    "membersRemoved",
    "teamRenamed",
    "teamDeleted",
    "teamArchived",
    "teamUnarchived",
    "teamRestored",
})
MESSAGE_REACTION_EVENTS = frozenset({"reactionsAdded", "reactionsRemoved"})


class RouteLane(StrEnum):
    PRIORITY = "priority"
    DEFAULT = "default"


@dataclass(frozen=True)
class Route:
    """One selector/handler pair in a lane."""

    selector: RouteSelector
    handler: RouteHandler
    lane: RouteLane = RouteLane.DEFAULT

    @property
    def name(self) -> str:
        return getattr(self.handler, "__qualname__", None) or repr(self.handler)


class RouteRegistry:
    """Append-only registry resolving one activity to one route."""

    def __init__(self) -> None:
        self._lanes: dict[RouteLane, list[Route]] = {lane: [] for lane in RouteLane}

    def add(self, selector: RouteSelector, handler: RouteHandler, lane: RouteLane = RouteLane.DEFAULT) -> Route:
        route = Route(selector=selector, handler=handler, lane=RouteLane(lane))
        self._lanes[route.lane].append(route)
        return route

    def routes(self, lane: RouteLane | None = None) -> list[Route]:
        if lane is not None:
            return list(self._lanes[RouteLane(lane)])
        return [route for lanes in self._lanes.values() for route in lanes]

    async def resolve(self, context: TurnContext) -> Route | None:
        """Return the first matching route, consulting the priority lane only for invokes."""

        if context.activity.type == ActivityTypes.INVOKE:
            route = await self._first_match(context, RouteLane.PRIORITY)
            if route is not None:
                return route
        return await self._first_match(context, RouteLane.DEFAULT)

    async def _first_match(self, context: TurnContext, lane: RouteLane) -> Route | None:
        for index, route in enumerate(self._lanes[lane]):
            try:
                matched = route.selector(context)
                if inspect.isawaitable(matched):
                    matched = await matched
            except Exception as exc:
                logger.error("route.selector.error lane={} index={} route={}", lane, index, route.name)
                raise SelectorError(f"selector #{index} in {lane} lane failed: {exc!s}") from exc
            if matched:
                return route
        return None

    def __len__(self) -> int:
        return sum(len(lanes) for lanes in self._lanes.values())


def activity_selector(spec: SelectorSpec) -> RouteSelector:
    """Match the activity type by name (case-insensitive) or regex."""

    if callable(spec):
        return spec
    if isinstance(spec, re.Pattern):
        pattern = spec

        def _match_type_pattern(context: TurnContext) -> bool:
            activity_type = context.activity.type
            return bool(activity_type) and pattern.search(activity_type) is not None

        return _match_type_pattern

    type_name = str(spec).casefold()

    def _match_type(context: TurnContext) -> bool:
        activity_type = context.activity.type
        return bool(activity_type) and activity_type.casefold() == type_name

    return _match_type


def message_selector(spec: SelectorSpec) -> RouteSelector:
    """Match message text by case-insensitive substring or regex."""

    if callable(spec):
        return spec
    if isinstance(spec, re.Pattern):
        pattern = spec

        def _match_text_pattern(context: TurnContext) -> bool:
            text = _message_text(context)
            return text is not None and pattern.search(text) is not None

        return _match_text_pattern

    keyword = str(spec).casefold()

    def _match_keyword(context: TurnContext) -> bool:
        text = _message_text(context)
        return text is not None and keyword in text.casefold()

    return _match_keyword


def conversation_update_selector(event: str) -> RouteSelector:
    if event not in CONVERSATION_UPDATE_EVENTS:
        raise ValueError(f"unknown conversation update event: {event}")

    def _match_update(context: TurnContext) -> bool:
        activity = context.activity
        if activity.type != ActivityTypes.CONVERSATION_UPDATE:
            return False
        if event == "membersAdded":
            return bool(activity.members_added)
        if event == "membersRemoved":
            return bool(activity.members_removed)
        channel_data = activity.channel_data
        return isinstance(channel_data, Mapping) and channel_data.get("eventType") == event

    return _match_update


def message_reaction_selector(event: str) -> RouteSelector:
    if event not in MESSAGE_REACTION_EVENTS:
        raise ValueError(f"unknown message reaction event: {event}")

    def _match_reaction(context: TurnContext) -> bool:
        activity = context.activity
        if activity.type != ActivityTypes.MESSAGE_REACTION:
            return False
        if event == "reactionsAdded":
            return bool(activity.reactions_added)
        return bool(activity.reactions_removed)

    return _match_reaction


def task_selector(spec: SelectorSpec, filter_field: str, invoke_name: str) -> RouteSelector:
    """Match an invoke by name whose payload data carries the given verb."""

    if callable(spec):
        return spec

    def _match_task(context: TurnContext) -> bool:
        activity = context.activity
        if activity.type != ActivityTypes.INVOKE or activity.name != invoke_name:
            return False
        value = activity.value
        data = value.get("data") if isinstance(value, Mapping) else None
        if not isinstance(data, Mapping):
            return False
        verb = data.get(filter_field)
        if isinstance(spec, re.Pattern):
            return isinstance(verb, str) and spec.search(verb) is not None
        return verb == spec

    return _match_task


def _message_text(context: TurnContext) -> str | None:
    activity = context.activity
    if activity.type != ActivityTypes.MESSAGE or not activity.text:
        return None
    return activity.text
