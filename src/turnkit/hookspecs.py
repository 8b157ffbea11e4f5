"""Pluggy hook namespace and application hook specifications."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pluggy

from turnkit.activity import Activity
from turnkit.state import Storage
from turnkit.types import TurnResult

if TYPE_CHECKING:
    from turnkit.context import TurnContext

TURNKIT_HOOK_NAMESPACE = "turnkit"
hookspec = pluggy.HookspecMarker(TURNKIT_HOOK_NAMESPACE)
hookimpl = pluggy.HookimplMarker(TURNKIT_HOOK_NAMESPACE)


class TurnkitHookSpecs:
    """Hook contract for turnkit plugins."""

    @hookspec(firstresult=True)
    def provide_storage(self) -> Storage | None:
        """Provide the storage backing conversation and user state."""

    @hookspec
    def on_turn_end(self, context: TurnContext, result: TurnResult) -> None:
        """Observe a finished turn."""

    @hookspec
    def on_error(self, stage: str, error: Exception, activity: Activity | None) -> None:
        """Observe errors from any stage of a turn."""
