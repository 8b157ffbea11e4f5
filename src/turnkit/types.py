"""Framework-neutral data aliases."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Literal

if TYPE_CHECKING:
    from turnkit.context import TurnContext
    from turnkit.state import TurnState

type RouteSelector = Callable[[TurnContext], bool | Awaitable[bool]]
type RouteHandler = Callable[[TurnContext, TurnState], Awaitable[None]]
type TurnHook = Callable[[TurnContext, TurnState], Awaitable[bool]]
type TurnEvent = Literal["before_turn", "after_turn"]
type TurnStatus = Literal["handled", "aborted", "not_persisted", "unhandled"]


@dataclass(frozen=True)
class TurnResult:
    """Result of one complete turn."""

    handled: bool
    saved: bool
    status: TurnStatus
    route: str | None = None
